from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Boolean,
    ForeignKey,
    Text,
    Index,
    CheckConstraint,
    text,
    Enum,
)
from sqlalchemy.orm import relationship
from database.connection import Base
import enum


# ============================================================================
# ENUMS
# ============================================================================

class RoomStatus(str, enum.Enum):
    EMPTY = "empty"
    OCCUPIED = "occupied"


class RoomCapacity(int, enum.Enum):
    SINGLE = 1
    DOUBLE = 2


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Department(str, enum.Enum):
    HR = "HR"
    FINANCE = "Finance"
    PRODUKSI = "Produksi"
    SARANA = "Sarana"
    SAFETY = "Safety"


class OccupantType(str, enum.Enum):
    EMPLOYEE = "employee"
    GUEST = "guest"


def _enum_values(obj):
    return [e.value for e in obj]


# ============================================================================
# REFERENCE DATA
# ============================================================================

class Room(Base):
    """Physical room with capacity for one or two occupants"""
    __tablename__ = "rooms"
    __table_args__ = (
        CheckConstraint("capacity IN (1, 2)", name="ck_room_capacity"),
        # room_code is only unique among rooms that were not soft-deleted
        Index(
            "uq_room_code_live",
            "room_code",
            unique=True,
            postgresql_where=text("deleted = false"),
            sqlite_where=text("deleted = 0"),
        ),
        Index("idx_room_status", "status"),
    )

    id = Column(Integer, primary_key=True)
    room_code = Column(String(50), nullable=False)
    capacity = Column(Integer, nullable=False, default=RoomCapacity.SINGLE.value)

    # Projection of the active allocation count, maintained by services.room_status
    status = Column(
        Enum(RoomStatus, values_callable=_enum_values, name="room_status"),
        nullable=False,
        default=RoomStatus.EMPTY,
    )
    notes = Column(Text, nullable=True)

    deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    allocations = relationship("RoomAllocation", back_populates="room", order_by="RoomAllocation.allocated_at")


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        Index(
            "uq_employee_code_live",
            "employee_code",
            unique=True,
            postgresql_where=text("deleted = false"),
            sqlite_where=text("deleted = 0"),
        ),
        Index("idx_employee_department", "department"),
        Index("idx_employee_status", "status"),
    )

    id = Column(Integer, primary_key=True)
    employee_code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    department = Column(
        Enum(Department, values_callable=_enum_values, name="department"),
        nullable=False,
    )
    status = Column(
        Enum(EmployeeStatus, values_callable=_enum_values, name="employee_status"),
        nullable=False,
        default=EmployeeStatus.ACTIVE,
    )

    deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    allocations = relationship("RoomAllocation", back_populates="employee")

    def is_active(self):
        return self.status == EmployeeStatus.ACTIVE

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.employee_code})"


class Guest(Base):
    """
    Visiting guest. There is no status column: current/upcoming/past is
    derived from today against [visit_date, checkout_date].
    """
    __tablename__ = "guests"
    __table_args__ = (
        CheckConstraint(
            "checkout_date IS NULL OR checkout_date > visit_date",
            name="ck_guest_checkout_after_visit",
        ),
        Index("idx_guest_visit", "visit_date", "checkout_date"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    company = Column(String(255), nullable=True)
    visit_date = Column(Date, nullable=False)
    checkout_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    allocations = relationship("RoomAllocation", back_populates="guest")

    def is_currently_visiting(self, today):
        if self.visit_date > today:
            return False
        return self.checkout_date is None or self.checkout_date >= today

    def visit_duration_days(self):
        """Inclusive number of visit days, None without checkout date"""
        if not self.checkout_date:
            return None
        return (self.checkout_date - self.visit_date).days + 1

    @property
    def display_name(self) -> str:
        company = f" - {self.company}" if self.company else ""
        return f"{self.name}{company}"


# ============================================================================
# ALLOCATIONS (append-only history)
# ============================================================================

class RoomAllocation(Base):
    """
    Binds one room to one occupant (employee XOR guest) until released.
    released_at is written once by the release operation and never cleared.
    """
    __tablename__ = "room_allocations"
    __table_args__ = (
        CheckConstraint(
            "(employee_id IS NULL) <> (guest_id IS NULL)",
            name="ck_allocation_single_occupant",
        ),
        CheckConstraint(
            "released_at IS NULL OR released_at >= allocated_at",
            name="ck_allocation_release_after_allocate",
        ),
        Index("idx_alloc_room_active", "room_id", "released_at"),
        Index("idx_alloc_allocated_at", "allocated_at"),
        # At most one active allocation per occupant
        Index(
            "uq_alloc_employee_active",
            "employee_id",
            unique=True,
            postgresql_where=text("released_at IS NULL AND employee_id IS NOT NULL"),
            sqlite_where=text("released_at IS NULL AND employee_id IS NOT NULL"),
        ),
        Index(
            "uq_alloc_guest_active",
            "guest_id",
            unique=True,
            postgresql_where=text("released_at IS NULL AND guest_id IS NOT NULL"),
            sqlite_where=text("released_at IS NULL AND guest_id IS NOT NULL"),
        ),
    )

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="RESTRICT"), nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=True)
    guest_id = Column(Integer, ForeignKey("guests.id", ondelete="RESTRICT"), nullable=True)

    allocated_at = Column(DateTime, nullable=False)
    released_at = Column(DateTime, nullable=True)  # null = still occupying
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room = relationship("Room", back_populates="allocations")
    employee = relationship("Employee", back_populates="allocations")
    guest = relationship("Guest", back_populates="allocations")

    def is_active(self):
        return self.released_at is None

    def is_released(self):
        return self.released_at is not None

    @property
    def occupant_type(self) -> OccupantType:
        return OccupantType.EMPLOYEE if self.employee_id is not None else OccupantType.GUEST

    @property
    def occupant_name(self) -> str:
        if self.employee_id is not None and self.employee:
            return self.employee.name
        if self.guest_id is not None and self.guest:
            return self.guest.name
        return "Unknown"

    @property
    def occupant_info(self) -> str:
        if self.employee_id is not None and self.employee:
            return self.employee.display_name
        if self.guest_id is not None and self.guest:
            return self.guest.display_name
        return "Unknown"
