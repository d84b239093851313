"""
Schemas for rooms, employees and guests
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

import config
from models.core import Department, EmployeeStatus, RoomCapacity, RoomStatus

CODE_PATTERN = r"^[A-Z0-9\-_]+$"
NAME_PATTERN = r"^[A-Za-z\s]+$"
PHONE_PATTERN = r"^[\d\s\-\+\(\)]+$"


def _upper_code(v):
    if isinstance(v, str):
        return v.strip().upper()
    return v


def _trim_or_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


# ========================================================================
# ROOMS
# ========================================================================

class RoomCreate(BaseModel):
    room_code: str = Field(..., min_length=2, max_length=50, pattern=CODE_PATTERN)
    capacity: RoomCapacity
    notes: Optional[str] = Field(None, max_length=config.NOTES_MAX_LENGTH)

    @field_validator("room_code", mode="before")
    @classmethod
    def normalize_code(cls, v):
        return _upper_code(v)

    @field_validator("notes", mode="before")
    @classmethod
    def trim_notes(cls, v):
        return _trim_or_none(v)


class RoomUpdate(BaseModel):
    """room_code is the immutable business key and cannot be changed"""
    capacity: Optional[RoomCapacity] = None
    notes: Optional[str] = Field(None, max_length=config.NOTES_MAX_LENGTH)

    @field_validator("notes", mode="before")
    @classmethod
    def trim_notes(cls, v):
        return _trim_or_none(v)

    @model_validator(mode="before")
    @classmethod
    def require_one_field(cls, data):
        if isinstance(data, dict) and data:
            return data
        raise ValueError("At least one field is required for an update")


class RoomRead(BaseModel):
    id: int
    room_code: str
    capacity: int
    status: RoomStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    current_occupancy: int = 0
    available_slots: int = 0
    occupancy_percentage: float = 0
    is_available: bool = False

    model_config = ConfigDict(from_attributes=True)


class RoomOccupant(BaseModel):
    allocation_id: int
    type: str
    name: str
    allocated_at: datetime


class RoomDetail(RoomRead):
    current_occupants: List[RoomOccupant] = []


class RoomStatistics(BaseModel):
    total_rooms: int
    occupied_rooms: int
    empty_rooms: int
    occupancy_rate: float
    capacity_1_rooms: int
    capacity_2_rooms: int
    total_capacity: int
    total_occupied_slots: int


# ========================================================================
# OCCUPANT DETAIL
# ========================================================================

class CurrentRoom(BaseModel):
    id: int
    room_code: str
    capacity: int
    allocation_id: int
    allocated_at: datetime
    duration_days: int


class PastAllocation(BaseModel):
    allocation_id: int
    room_code: str
    allocated_at: datetime
    released_at: datetime
    duration_days: int
    notes: Optional[str] = None


class OccupancyDetail(BaseModel):
    has_active_allocation: bool = False
    current_room: Optional[CurrentRoom] = None
    allocation_history: List[PastAllocation] = []


# ========================================================================
# EMPLOYEES
# ========================================================================

class EmployeeCreate(BaseModel):
    employee_code: str = Field(..., min_length=3, max_length=50, pattern=CODE_PATTERN)
    name: str = Field(..., min_length=2, max_length=255, pattern=NAME_PATTERN)
    department: Department
    status: EmployeeStatus = EmployeeStatus.ACTIVE

    @field_validator("employee_code", mode="before")
    @classmethod
    def normalize_code(cls, v):
        return _upper_code(v)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255, pattern=NAME_PATTERN)
    department: Optional[Department] = None
    status: Optional[EmployeeStatus] = None

    @model_validator(mode="before")
    @classmethod
    def require_one_field(cls, data):
        if isinstance(data, dict) and data:
            return data
        raise ValueError("At least one field is required for an update")


class EmployeeRead(BaseModel):
    id: int
    employee_code: str
    name: str
    department: Department
    status: EmployeeStatus
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ========================================================================
# GUESTS
# ========================================================================

class GuestBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    phone: Optional[str] = Field(None, max_length=20, pattern=PHONE_PATTERN)
    company: Optional[str] = Field(None, max_length=255)
    visit_date: date
    checkout_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=config.NOTES_MAX_LENGTH)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("phone", "company", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return _trim_or_none(v)

    @model_validator(mode="after")
    def check_stay_window(self):
        if self.checkout_date is None:
            return self
        if self.checkout_date <= self.visit_date:
            raise ValueError("Checkout date must be after visit date.")
        if (self.checkout_date - self.visit_date).days > config.GUEST_MAX_STAY_DAYS:
            raise ValueError(
                f"Guest stay duration cannot exceed {config.GUEST_MAX_STAY_DAYS} days. "
                "Please contact administrator for longer stays."
            )
        return self


class GuestCreate(GuestBase):
    pass


class GuestUpdate(GuestBase):
    pass


class GuestRead(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    company: Optional[str] = None
    visit_date: date
    checkout_date: Optional[date] = None
    notes: Optional[str] = None
    is_current: bool = False
    visit_duration_days: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class EmployeeDetail(OccupancyDetail):
    data: EmployeeRead


class GuestDetail(OccupancyDetail):
    data: GuestRead
