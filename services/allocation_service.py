"""
Allocation engine.

Mediates every change between occupants and rooms:
- Allocate a room to an employee or a guest
- Release an allocation
- Transfer an occupant to another room (release + allocate, one transaction)
- Bulk release

Each public operation is one unit of work: validation, writes and the room
status projection share a transaction. Lock order is allocation row, then room
rows (ascending id), then occupant row.
"""

from contextlib import contextmanager
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.core import Employee, Guest, OccupantType, Room, RoomAllocation
from services.errors import (
    AllocationError,
    AlreadyAllocatedError,
    AlreadyReleasedError,
    CapacityExceededError,
    InactiveOccupantError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from services.occupancy import Occupant, duration_days, is_available
from services.room_status import active_allocation_count, refresh_room_status
from utils.clock import Clock, get_clock
from utils.logging_utils import format_detail, get_logger, log_error, log_event

AREA = "allocation"

logger = get_logger("allocation_service")


def merge_notes(existing: Optional[str], addition: Optional[str]) -> Optional[str]:
    """Append new notes on a new line, never overwriting what is there"""
    addition = addition.strip() if addition else None
    if not addition:
        return existing
    return f"{existing}\n{addition}" if existing else addition


class AllocationService:
    """Allocate / release / transfer rooms under capacity and exclusivity rules"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        audit: Callable[..., None] = log_event,
        user: str = "system",
    ):
        self.db = db
        self.clock = clock or get_clock()
        self.audit = audit
        self.user = user

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def allocate(
        self,
        room_id: int,
        employee_id: Optional[int] = None,
        guest_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> RoomAllocation:
        """
        Allocate a room to exactly one occupant.

        Checks, first failure wins: room exists, exactly one occupant,
        room capacity, occupant exists (and is active for employees),
        occupant has no active allocation.

        Raises:
            NotFoundError, ValidationError, CapacityExceededError,
            InactiveOccupantError, AlreadyAllocatedError, StorageError
        """
        with self._unit_of_work("allocate room") as events:
            room = self._lock_room(room_id)
            occupant = Occupant.from_ids(employee_id, guest_id)
            allocation = self._allocate_locked(room, occupant, notes, field="room_id")
            events.append(("Allocate room", self._allocation_detail(allocation, room)))
        return allocation

    def release(self, allocation_id: int, notes: Optional[str] = None) -> RoomAllocation:
        """
        Close an active allocation.

        Raises:
            NotFoundError, AlreadyReleasedError, StorageError
        """
        with self._unit_of_work("release allocation") as events:
            allocation = self._lock_active_allocation(allocation_id)
            room = self._lock_room(allocation.room_id, include_deleted=True)
            self._close_allocation(allocation, room, notes)
            events.append((
                "Release allocation",
                format_detail(
                    allocation_id=allocation.id,
                    room_code=room.room_code,
                    occupant_type=allocation.occupant_type.value,
                    released_at=allocation.released_at.isoformat(),
                    duration_days=duration_days(allocation.allocated_at, allocation.released_at, self.clock.now()),
                ),
            ))
        return allocation

    def transfer(self, allocation_id: int, new_room_id: int) -> RoomAllocation:
        """
        Move the occupant of an active allocation to another room.

        The old allocation is released and a new one created in a single
        transaction; on any failure nothing changes.

        Returns:
            The new allocation
        """
        with self._unit_of_work("transfer allocation") as events:
            allocation = self._lock_active_allocation(allocation_id)
            if allocation.room_id == new_room_id:
                raise ValidationError({"new_room_id": "Cannot transfer to the same room."})

            rooms = self._lock_rooms([allocation.room_id, new_room_id])
            old_room = rooms.get(allocation.room_id)
            new_room = rooms.get(new_room_id)
            if new_room is None or new_room.deleted:
                raise NotFoundError("room", new_room_id, field="new_room_id")
            self._check_capacity(new_room, field="new_room_id")

            occupant = Occupant.of(allocation)
            self._close_allocation(allocation, old_room, f"Transferred to room {new_room.room_code}")
            new_allocation = self._allocate_locked(
                new_room,
                occupant,
                f"Transferred from room {old_room.room_code}",
                field="new_room_id",
            )
            events.append((
                "Transfer allocation",
                format_detail(
                    old_allocation_id=allocation.id,
                    new_allocation_id=new_allocation.id,
                    from_room=old_room.room_code,
                    to_room=new_room.room_code,
                    occupant_type=occupant.type.value,
                    occupant_id=occupant.id,
                ),
            ))
        return new_allocation

    def bulk_release(self, allocation_ids: Iterable[int], notes: Optional[str] = None) -> dict:
        """
        Release several allocations, each in its own unit of work.
        Already released allocations are skipped; other failures are collected.
        """
        allocation_ids = list(dict.fromkeys(allocation_ids))
        released: List[int] = []
        skipped: List[int] = []
        errors: List[str] = []

        for allocation_id in allocation_ids:
            try:
                self.release(allocation_id, notes)
                released.append(allocation_id)
            except AlreadyReleasedError:
                skipped.append(allocation_id)
            except StorageError:
                # Releases committed so far stay; the outage surfaces as 503
                raise
            except AllocationError as exc:
                errors.append(f"Allocation ID {allocation_id}: {exc.message}")

        self._emit(
            "Bulk release",
            format_detail(released_count=len(released), total_requested=len(allocation_ids)),
        )
        return {
            "released_count": len(released),
            "total_requested": len(allocation_ids),
            "released_ids": released,
            "skipped_ids": skipped,
            "errors": errors,
        }

    # ------------------------------------------------------------------
    # Unit of work and audit
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self, operation: str):
        events = []
        try:
            yield events
            self.db.commit()
        except AllocationError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_error(AREA, self.user, operation, str(exc))
            raise StorageError(operation) from exc
        except Exception:
            self.db.rollback()
            raise

        for action, detail in events:
            self._emit(action, detail)

    def _emit(self, action: str, detail: str) -> None:
        # Out of band: a failing audit sink never undoes a committed mutation
        try:
            self.audit(AREA, self.user, action, detail)
        except Exception:
            logger.exception("Audit sink failed | action=%s detail=%s", action, detail)

    # ------------------------------------------------------------------
    # Locked lookups
    # ------------------------------------------------------------------

    def _lock_room(self, room_id: int, field: str = "room_id", include_deleted: bool = False) -> Room:
        query = self.db.query(Room).filter(Room.id == room_id)
        if not include_deleted:
            query = query.filter(Room.deleted.is_(False))
        room = query.with_for_update().first()
        if not room:
            raise NotFoundError("room", room_id, field=field)
        return room

    def _lock_rooms(self, room_ids: List[int]) -> dict:
        rooms = {}
        for room_id in sorted(set(room_ids)):
            room = self.db.query(Room).filter(Room.id == room_id).with_for_update().first()
            if room is not None:
                rooms[room_id] = room
        return rooms

    def _lock_active_allocation(self, allocation_id: int) -> RoomAllocation:
        allocation = (
            self.db.query(RoomAllocation)
            .filter(RoomAllocation.id == allocation_id)
            .with_for_update()
            .first()
        )
        if not allocation:
            raise NotFoundError("allocation", allocation_id, field="allocation_id")
        if allocation.is_released():
            raise AlreadyReleasedError(allocation.id, allocation.released_at)
        return allocation

    # ------------------------------------------------------------------
    # Steps shared by allocate and transfer
    # ------------------------------------------------------------------

    def _check_capacity(self, room: Room, field: str) -> None:
        occupancy = active_allocation_count(self.db, room.id)
        if not is_available(room.capacity, occupancy):
            raise CapacityExceededError(room.room_code, occupancy, room.capacity, field=field)

    def _validate_occupant(self, occupant: Occupant) -> None:
        if occupant.type == OccupantType.EMPLOYEE:
            employee = (
                self.db.query(Employee)
                .filter(Employee.id == occupant.id, Employee.deleted.is_(False))
                .with_for_update()
                .first()
            )
            if not employee:
                raise NotFoundError("employee", occupant.id, field="employee_id")
            if not employee.is_active():
                raise InactiveOccupantError(employee.name, employee.employee_code)
            label = f"Employee {employee.display_name}"
            column = RoomAllocation.employee_id
        else:
            guest = (
                self.db.query(Guest)
                .filter(Guest.id == occupant.id, Guest.deleted.is_(False))
                .with_for_update()
                .first()
            )
            if not guest:
                raise NotFoundError("guest", occupant.id, field="guest_id")
            label = f"Guest {guest.name}"
            column = RoomAllocation.guest_id

        existing = (
            self.db.query(RoomAllocation)
            .filter(column == occupant.id, RoomAllocation.released_at.is_(None))
            .order_by(RoomAllocation.allocated_at.desc())
            .first()
        )
        if existing:
            raise AlreadyAllocatedError(
                label,
                existing.room.room_code,
                existing.room_id,
                existing.id,
                field=occupant.field,
            )

    def _allocate_locked(self, room: Room, occupant: Occupant, notes: Optional[str], field: str) -> RoomAllocation:
        self._check_capacity(room, field=field)
        self._validate_occupant(occupant)

        allocation = RoomAllocation(
            room_id=room.id,
            allocated_at=self.clock.now(),
            released_at=None,
            notes=merge_notes(None, notes),
            **occupant.as_columns(),
        )
        self.db.add(allocation)
        self.db.flush()
        refresh_room_status(self.db, room)
        return allocation

    def _close_allocation(self, allocation: RoomAllocation, room: Room, notes: Optional[str]) -> None:
        allocation.released_at = self.clock.now()
        allocation.notes = merge_notes(allocation.notes, notes)
        self.db.flush()
        refresh_room_status(self.db, room)

    def _allocation_detail(self, allocation: RoomAllocation, room: Room) -> str:
        return format_detail(
            allocation_id=allocation.id,
            room_code=room.room_code,
            occupant_type=allocation.occupant_type.value,
            occupant_id=allocation.employee_id or allocation.guest_id,
            allocated_at=allocation.allocated_at.isoformat(),
        )

