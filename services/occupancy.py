"""
Occupant value and the read-only capacity/duration derivations
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.core import OccupantType, RoomAllocation
from services.errors import ValidationError


@dataclass(frozen=True)
class Occupant:
    """Either an employee or a guest, never both"""

    type: OccupantType
    id: int

    @classmethod
    def employee(cls, employee_id: int) -> "Occupant":
        return cls(OccupantType.EMPLOYEE, employee_id)

    @classmethod
    def guest(cls, guest_id: int) -> "Occupant":
        return cls(OccupantType.GUEST, guest_id)

    @classmethod
    def from_ids(cls, employee_id: Optional[int], guest_id: Optional[int]) -> "Occupant":
        has_employee = employee_id is not None
        has_guest = guest_id is not None
        if has_employee and has_guest:
            message = "Cannot allocate both employee and guest to the same allocation. Please select only one."
            raise ValidationError({"employee_id": message, "guest_id": message})
        if not has_employee and not has_guest:
            message = "Either employee or guest must be selected for allocation."
            raise ValidationError({"employee_id": message, "guest_id": message})
        return cls.employee(employee_id) if has_employee else cls.guest(guest_id)

    @classmethod
    def of(cls, allocation: RoomAllocation) -> "Occupant":
        return cls.from_ids(allocation.employee_id, allocation.guest_id)

    @property
    def field(self) -> str:
        return "employee_id" if self.type == OccupantType.EMPLOYEE else "guest_id"

    def as_columns(self) -> dict:
        """Column values for a RoomAllocation row"""
        if self.type == OccupantType.EMPLOYEE:
            return {"employee_id": self.id, "guest_id": None}
        return {"employee_id": None, "guest_id": self.id}


def available_slots(capacity: int, active_count: int) -> int:
    return max(0, capacity - active_count)


def is_available(capacity: int, active_count: int) -> bool:
    return available_slots(capacity, active_count) > 0


def is_full(capacity: int, active_count: int) -> bool:
    return active_count >= capacity


def is_empty(active_count: int) -> bool:
    return active_count == 0


def occupancy_percentage(capacity: int, active_count: int) -> float:
    if capacity <= 0:
        return 0.0
    return round(active_count / capacity * 100, 1)


def occupancy_rate(occupied: int, total: int) -> float:
    return round(occupied / total * 100, 1) if total > 0 else 0


def _elapsed_seconds(allocated_at: datetime, released_at: Optional[datetime], now: datetime) -> float:
    end = released_at if released_at is not None else now
    return max(0.0, (end - allocated_at).total_seconds())


def duration_days(allocated_at: datetime, released_at: Optional[datetime], now: datetime) -> int:
    """Whole days elapsed; ``now`` is only used while still active"""
    return int(_elapsed_seconds(allocated_at, released_at, now) // 86400)


def duration_hours(allocated_at: datetime, released_at: Optional[datetime], now: datetime) -> int:
    return int(_elapsed_seconds(allocated_at, released_at, now) // 3600)


def allocation_durations(allocation: RoomAllocation, now: datetime) -> dict:
    return {
        "duration_days": duration_days(allocation.allocated_at, allocation.released_at, now),
        "duration_hours": duration_hours(allocation.allocated_at, allocation.released_at, now),
    }
