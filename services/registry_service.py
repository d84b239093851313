"""
Lifecycle of the reference records (rooms, employees, guests).

Only the rules that touch occupancy live here: new rooms start empty, a room's
capacity never drops below its occupancy, and nothing holding an active
allocation can be soft-deleted.
"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models.core import Employee, Guest, Room, RoomAllocation, RoomStatus
from schemas.registry import (
    EmployeeCreate,
    EmployeeUpdate,
    GuestCreate,
    GuestUpdate,
    RoomCreate,
    RoomUpdate,
)
from services.errors import (
    NotFoundError,
    OccupiedRecordError,
    StorageError,
    ValidationError,
)
from services.room_status import active_allocation_count
from utils.clock import Clock, get_clock
from utils.logging_utils import format_detail, log_error, log_event

AREA = "registry"


class RegistryService:
    def __init__(self, db: Session, clock: Optional[Clock] = None, user: str = "system"):
        self.db = db
        self.clock = clock or get_clock()
        self.user = user

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def get_room(self, room_id: int, for_update: bool = False) -> Room:
        query = self.db.query(Room).filter(Room.id == room_id, Room.deleted.is_(False))
        if for_update:
            # Same row lock the allocation engine takes before its capacity check
            query = query.with_for_update()
        room = query.first()
        if not room:
            raise NotFoundError("room", room_id, field="room_id")
        return room

    def create_room(self, data: RoomCreate) -> Room:
        self._ensure_unique_room_code(data.room_code)
        room = Room(
            room_code=data.room_code,
            capacity=int(data.capacity),
            status=RoomStatus.EMPTY,
            notes=data.notes,
        )
        self._save(room, "create room")
        log_event(AREA, self.user, "Create room", format_detail(room_id=room.id, room_code=room.room_code))
        return room

    def update_room(self, room_id: int, data: RoomUpdate) -> Room:
        room = self.get_room(room_id, for_update=True)
        changes = data.model_dump(exclude_unset=True)

        if "capacity" in changes and changes["capacity"] is not None:
            new_capacity = int(changes["capacity"])
            occupancy = active_allocation_count(self.db, room.id)
            if new_capacity < occupancy:
                self.db.rollback()
                raise ValidationError({
                    "capacity": (
                        f"Cannot reduce capacity to {new_capacity}. Current occupancy is {occupancy}. "
                        "Please release some allocations first."
                    )
                })
            room.capacity = new_capacity
        if "notes" in changes:
            room.notes = changes["notes"]

        self._save(room, "update room")
        log_event(AREA, self.user, "Update room", format_detail(room_id=room.id, room_code=room.room_code))
        return room

    def delete_room(self, room_id: int) -> None:
        room = self.get_room(room_id, for_update=True)
        occupancy = active_allocation_count(self.db, room.id)
        if occupancy > 0:
            self.db.rollback()
            raise OccupiedRecordError(
                "Cannot delete room with active allocations. Please release all allocations first.",
                occupancy,
            )
        room.deleted = True
        room.deleted_at = self.clock.now()
        self._save(room, "delete room")
        log_event(AREA, self.user, "Delete room", format_detail(room_code=room.room_code))

    def _ensure_unique_room_code(self, room_code: str) -> None:
        exists = (
            self.db.query(Room.id)
            .filter(Room.room_code == room_code, Room.deleted.is_(False))
            .first()
        )
        if exists:
            raise ValidationError({"room_code": "This room code is already in use."})

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    def get_employee(self, employee_id: int) -> Employee:
        employee = (
            self.db.query(Employee)
            .filter(Employee.id == employee_id, Employee.deleted.is_(False))
            .first()
        )
        if not employee:
            raise NotFoundError("employee", employee_id, field="employee_id")
        return employee

    def create_employee(self, data: EmployeeCreate) -> Employee:
        exists = (
            self.db.query(Employee.id)
            .filter(Employee.employee_code == data.employee_code, Employee.deleted.is_(False))
            .first()
        )
        if exists:
            raise ValidationError({"employee_code": "This employee code is already in use."})

        employee = Employee(
            employee_code=data.employee_code,
            name=data.name,
            department=data.department,
            status=data.status,
        )
        self._save(employee, "create employee")
        log_event(AREA, self.user, "Create employee", format_detail(employee_code=employee.employee_code))
        return employee

    def update_employee(self, employee_id: int, data: EmployeeUpdate) -> Employee:
        """Status may change at any time; existing allocations are not touched"""
        employee = self.get_employee(employee_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(employee, field, value)
        self._save(employee, "update employee")
        log_event(
            AREA,
            self.user,
            "Update employee",
            format_detail(employee_code=employee.employee_code, status=employee.status.value),
        )
        return employee

    def delete_employee(self, employee_id: int) -> None:
        employee = self.get_employee(employee_id)
        self._ensure_no_active_allocation(RoomAllocation.employee_id == employee.id, "employee")
        employee.deleted = True
        employee.deleted_at = self.clock.now()
        self._save(employee, "delete employee")
        log_event(AREA, self.user, "Delete employee", format_detail(employee_code=employee.employee_code))

    # ------------------------------------------------------------------
    # Guests
    # ------------------------------------------------------------------

    def get_guest(self, guest_id: int) -> Guest:
        guest = self.db.query(Guest).filter(Guest.id == guest_id, Guest.deleted.is_(False)).first()
        if not guest:
            raise NotFoundError("guest", guest_id, field="guest_id")
        return guest

    def create_guest(self, data: GuestCreate) -> Guest:
        if data.visit_date < self.clock.today():
            raise ValidationError({"visit_date": "Visit date cannot be in the past."})
        guest = Guest(**data.model_dump())
        self._save(guest, "create guest")
        log_event(AREA, self.user, "Create guest", format_detail(guest_id=guest.id, name=guest.name))
        return guest

    def update_guest(self, guest_id: int, data: GuestUpdate) -> Guest:
        guest = self.get_guest(guest_id)
        for field, value in data.model_dump().items():
            setattr(guest, field, value)
        self._save(guest, "update guest")
        log_event(AREA, self.user, "Update guest", format_detail(guest_id=guest.id))
        return guest

    def delete_guest(self, guest_id: int) -> None:
        guest = self.get_guest(guest_id)
        self._ensure_no_active_allocation(RoomAllocation.guest_id == guest.id, "guest")
        guest.deleted = True
        guest.deleted_at = self.clock.now()
        self._save(guest, "delete guest")
        log_event(AREA, self.user, "Delete guest", format_detail(name=guest.name))

    # ------------------------------------------------------------------

    def _ensure_no_active_allocation(self, criterion, entity: str) -> None:
        active = (
            self.db.query(func.count(RoomAllocation.id))
            .filter(criterion, RoomAllocation.released_at.is_(None))
            .scalar()
        )
        if active:
            raise OccupiedRecordError(
                f"Cannot delete {entity} with active room allocation. Please release the allocation first.",
                active,
            )

    def _save(self, record, operation: str) -> None:
        try:
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        except IntegrityError as exc:
            self.db.rollback()
            log_error(AREA, self.user, operation, str(exc.orig))
            raise ValidationError({"record": f"Failed to {operation}: conflicting data."}) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_error(AREA, self.user, operation, str(exc))
            raise StorageError(operation) from exc
