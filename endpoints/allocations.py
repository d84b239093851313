"""
Allocation endpoints: allocate, release, transfer and the allocation screens
"""

from datetime import date
from math import ceil
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from models.core import OccupantType
from schemas.allocations import (
    AllocateRequest,
    AllocationMessage,
    AllocationPage,
    AllocationRead,
    AvailableRoom,
    BulkReleaseRequest,
    BulkReleaseResponse,
    ReleaseRequest,
    SelectableOccupant,
    TransferRequest,
)
from services.allocation_service import AllocationService
from services.errors import ValidationError
from services.reporting_service import ReportingService
from utils.dependencies import get_allocation_service, get_reporting_service
from utils.rate_limiter import MUTATION_LIMIT, limiter

router = APIRouter(prefix="/api/allocations", tags=["Allocations"])


# ========================================================================
# QUERIES
# ========================================================================

@router.get("", response_model=List[AllocationRead])
def list_active_allocations(reports: ReportingService = Depends(get_reporting_service)):
    now = reports.clock.now()
    return [AllocationRead.build(a, now) for a in reports.active_allocations()]


@router.get("/history", response_model=AllocationPage)
def allocation_history(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    room_id: Optional[int] = Query(None, gt=0),
    occupant_type: Optional[OccupantType] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    reports: ReportingService = Depends(get_reporting_service),
):
    items, total = reports.allocation_history(start_date, end_date, room_id, occupant_type, page, per_page)
    now = reports.clock.now()
    return AllocationPage(
        data=[AllocationRead.build(a, now) for a in items],
        total=total,
        page=page,
        per_page=per_page,
        last_page=max(1, ceil(total / per_page)),
    )


@router.get("/statistics")
def allocation_statistics(reports: ReportingService = Depends(get_reporting_service)):
    return reports.allocation_statistics()


@router.get("/report")
def occupancy_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    occupant_type: Optional[OccupantType] = Query(None, alias="type"),
    reports: ReportingService = Depends(get_reporting_service),
):
    if end_date < start_date:
        raise ValidationError({"end_date": "End date must be on or after start date."})
    return reports.occupancy_report(start_date, end_date, occupant_type)


@router.get("/available-rooms", response_model=List[AvailableRoom])
def available_rooms(
    capacity: Optional[int] = Query(None, ge=1, le=2),
    reports: ReportingService = Depends(get_reporting_service),
):
    return reports.find_available_rooms(capacity)


@router.get("/available-employees", response_model=List[SelectableOccupant])
def available_employees(reports: ReportingService = Depends(get_reporting_service)):
    return [
        SelectableOccupant(id=e.id, display_text=f"{e.name} ({e.employee_code}) - {e.department.value}")
        for e in reports.available_employees()
    ]


@router.get("/available-guests", response_model=List[SelectableOccupant])
def available_guests(reports: ReportingService = Depends(get_reporting_service)):
    return [SelectableOccupant(id=g.id, display_text=g.display_name) for g in reports.available_guests()]


@router.get("/auto-assign")
def auto_assign_room(
    preferred_capacity: int = Query(1, ge=1, le=2),
    reports: ReportingService = Depends(get_reporting_service),
):
    room = reports.auto_assign_room(preferred_capacity)
    if room is None:
        return {"success": False, "message": "No available rooms found.", "room": None}
    return {
        "success": True,
        "message": f"Room {room.room_code} suggested.",
        "room": {"id": room.id, "room_code": room.room_code, "capacity": room.capacity},
    }


@router.get("/{allocation_id}", response_model=AllocationRead)
def get_allocation(
    allocation_id: int = Path(..., gt=0),
    reports: ReportingService = Depends(get_reporting_service),
):
    return AllocationRead.build(reports.get_allocation(allocation_id), reports.clock.now())


# ========================================================================
# MUTATIONS
# ========================================================================

@router.post("", response_model=AllocationMessage, status_code=status.HTTP_201_CREATED)
@limiter.limit(MUTATION_LIMIT)
def allocate_room(
    request: Request,
    payload: AllocateRequest,
    service: AllocationService = Depends(get_allocation_service),
):
    allocation = service.allocate(payload.room_id, payload.employee_id, payload.guest_id, payload.notes)
    data = AllocationRead.build(allocation, service.clock.now())
    return AllocationMessage(
        message=f"Room {data.room_code} allocated to {data.occupant_name}.",
        data=data,
    )


@router.post("/bulk-release", response_model=BulkReleaseResponse)
@limiter.limit(MUTATION_LIMIT)
def bulk_release(
    request: Request,
    payload: BulkReleaseRequest,
    service: AllocationService = Depends(get_allocation_service),
):
    result = service.bulk_release(payload.allocation_ids, payload.notes)
    return BulkReleaseResponse(
        message=f"Released {result['released_count']} of {result['total_requested']} allocation(s).",
        **result,
    )


@router.post("/{allocation_id}/release", response_model=AllocationMessage)
@limiter.limit(MUTATION_LIMIT)
def release_allocation(
    request: Request,
    payload: Optional[ReleaseRequest] = None,
    allocation_id: int = Path(..., gt=0),
    service: AllocationService = Depends(get_allocation_service),
):
    notes = payload.notes if payload else None
    allocation = service.release(allocation_id, notes)
    data = AllocationRead.build(allocation, service.clock.now())
    return AllocationMessage(message=f"Room {data.room_code} released.", data=data)


@router.post("/{allocation_id}/transfer", response_model=AllocationMessage)
@limiter.limit(MUTATION_LIMIT)
def transfer_allocation(
    request: Request,
    payload: TransferRequest,
    allocation_id: int = Path(..., gt=0),
    service: AllocationService = Depends(get_allocation_service),
):
    allocation = service.transfer(allocation_id, payload.new_room_id)
    data = AllocationRead.build(allocation, service.clock.now())
    return AllocationMessage(
        message=f"{data.occupant_name} transferred to room {data.room_code}.",
        data=data,
    )
