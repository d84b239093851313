"""
Pydantic schemas for the allocation API
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

import config
from models.core import OccupantType, RoomAllocation
from services.occupancy import allocation_durations


def _blank_to_none(v):
    if isinstance(v, str) and v.strip() == "":
        return None
    if isinstance(v, str):
        return v.strip()
    return v


class AllocateRequest(BaseModel):
    """Request for POST /api/allocations"""
    room_id: int = Field(..., gt=0)
    employee_id: Optional[int] = None
    guest_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=config.NOTES_MAX_LENGTH)

    @field_validator("employee_id", "guest_id", mode="before")
    @classmethod
    def empty_id_to_none(cls, v):
        """Form widgets send "" or 0 for "nothing selected" """
        if v in ("", "0", 0):
            return None
        return v

    @field_validator("notes", mode="before")
    @classmethod
    def strip_notes(cls, v):
        return _blank_to_none(v)


class ReleaseRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=config.NOTES_MAX_LENGTH)

    @field_validator("notes", mode="before")
    @classmethod
    def strip_notes(cls, v):
        return _blank_to_none(v)


class TransferRequest(BaseModel):
    new_room_id: int = Field(..., gt=0)


class BulkReleaseRequest(BaseModel):
    allocation_ids: List[int] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=config.NOTES_MAX_LENGTH)

    @field_validator("notes", mode="before")
    @classmethod
    def strip_notes(cls, v):
        return _blank_to_none(v)


class BulkReleaseResponse(BaseModel):
    message: str
    released_count: int
    total_requested: int
    released_ids: List[int]
    skipped_ids: List[int]
    errors: List[str]


class AllocationRead(BaseModel):
    """Allocation plus display fields derived at read time"""
    id: int
    room_id: int
    room_code: str
    room_capacity: int
    employee_id: Optional[int] = None
    guest_id: Optional[int] = None
    occupant_type: OccupantType
    occupant_name: str
    occupant_info: str
    allocated_at: datetime
    released_at: Optional[datetime] = None
    notes: Optional[str] = None
    is_active: bool
    duration_days: int
    duration_hours: int

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def build(cls, allocation: RoomAllocation, now: datetime) -> "AllocationRead":
        return cls(
            id=allocation.id,
            room_id=allocation.room_id,
            room_code=allocation.room.room_code,
            room_capacity=allocation.room.capacity,
            employee_id=allocation.employee_id,
            guest_id=allocation.guest_id,
            occupant_type=allocation.occupant_type,
            occupant_name=allocation.occupant_name,
            occupant_info=allocation.occupant_info,
            allocated_at=allocation.allocated_at,
            released_at=allocation.released_at,
            notes=allocation.notes,
            is_active=allocation.is_active(),
            **allocation_durations(allocation, now),
        )


class AllocationPage(BaseModel):
    data: List[AllocationRead]
    total: int
    page: int
    per_page: int
    last_page: int


class AllocationMessage(BaseModel):
    message: str
    data: AllocationRead


class AvailableRoom(BaseModel):
    id: int
    room_code: str
    capacity: int
    available_slots: int
    current_occupancy: int
    display_text: str


class SelectableOccupant(BaseModel):
    id: int
    display_text: str
