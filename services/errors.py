"""
Error taxonomy of the allocation engine.

Every precondition failure has its own class and a stable ``code`` so callers
can render field-specific feedback. All of them except StorageError are
recoverable by the caller.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class AllocationError(Exception):
    code = "allocation_error"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "field": self.field,
            "details": self.details,
        }


class NotFoundError(AllocationError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any, field: Optional[str] = None):
        super().__init__(
            f"Selected {entity} does not exist.",
            field=field,
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(AllocationError):
    """Malformed or contradictory input. ``errors`` maps field -> message."""

    code = "validation_error"
    status_code = 422

    def __init__(self, errors: Dict[str, str]):
        fields = list(errors)
        super().__init__(
            next(iter(errors.values())),
            field=fields[0] if len(fields) == 1 else None,
            details={"errors": dict(errors)},
        )
        self.errors = dict(errors)


class CapacityExceededError(AllocationError):
    code = "capacity_exceeded"
    status_code = 409

    def __init__(self, room_code: str, occupancy: int, capacity: int, field: str = "room_id"):
        super().__init__(
            f"Room {room_code} is at full capacity ({capacity} person(s)). "
            f"Current occupancy: {occupancy}. Please select another room.",
            field=field,
            details={"room_code": room_code, "occupancy": occupancy, "capacity": capacity},
        )
        self.room_code = room_code
        self.occupancy = occupancy
        self.capacity = capacity


class InactiveOccupantError(AllocationError):
    code = "inactive_occupant"
    status_code = 422

    def __init__(self, name: str, employee_code: str):
        super().__init__(
            f"Employee {name} ({employee_code}) is inactive and cannot be allocated to a room. "
            "Please activate the employee first.",
            field="employee_id",
            details={"name": name, "employee_code": employee_code},
        )


class AlreadyAllocatedError(AllocationError):
    code = "already_allocated"
    status_code = 409

    def __init__(self, occupant_label: str, room_code: str, room_id: int, allocation_id: int, field: str):
        super().__init__(
            f"{occupant_label} is already allocated to room {room_code}. "
            "Please release the current allocation first.",
            field=field,
            details={"room_code": room_code, "room_id": room_id, "allocation_id": allocation_id},
        )
        self.room_code = room_code
        self.room_id = room_id


class AlreadyReleasedError(AllocationError):
    code = "already_released"
    status_code = 409

    def __init__(self, allocation_id: int, released_at: datetime):
        super().__init__(
            f"This allocation has already been released on {released_at:%Y-%m-%d %H:%M:%S}.",
            field="allocation_id",
            details={"allocation_id": allocation_id, "released_at": released_at.isoformat()},
        )
        self.released_at = released_at


class OccupiedRecordError(AllocationError):
    """Lifecycle change refused because the record still has active allocations"""

    code = "room_not_empty"
    status_code = 409

    def __init__(self, message: str, active_allocations: int):
        super().__init__(message, details={"active_allocations": active_allocations})


class StorageError(AllocationError):
    """Unexpected persistence failure; the unit of work was rolled back"""

    code = "storage_error"
    status_code = 503

    def __init__(self, operation: str):
        super().__init__(f"Failed to {operation}. Please try again.")
