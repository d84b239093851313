from typing import List

from fastapi import APIRouter, Depends, Path, Request, Response, status

from schemas.registry import RoomCreate, RoomDetail, RoomRead, RoomStatistics, RoomUpdate
from services.registry_service import RegistryService
from services.reporting_service import ReportingService
from utils.dependencies import get_registry_service, get_reporting_service
from utils.rate_limiter import MUTATION_LIMIT, limiter

router = APIRouter(prefix="/api/rooms", tags=["Rooms"])


@router.get("", response_model=List[RoomRead])
def list_rooms(reports: ReportingService = Depends(get_reporting_service)):
    return reports.list_rooms()


@router.get("/statistics", response_model=RoomStatistics)
def room_statistics(reports: ReportingService = Depends(get_reporting_service)):
    return reports.room_statistics()


@router.get("/{room_id}", response_model=RoomDetail)
def get_room(
    room_id: int = Path(..., gt=0),
    reports: ReportingService = Depends(get_reporting_service),
):
    return reports.room_detail(room_id)


@router.post("", response_model=RoomDetail, status_code=status.HTTP_201_CREATED)
@limiter.limit(MUTATION_LIMIT)
def create_room(
    request: Request,
    payload: RoomCreate,
    registry: RegistryService = Depends(get_registry_service),
    reports: ReportingService = Depends(get_reporting_service),
):
    room = registry.create_room(payload)
    return reports.room_detail(room.id)


@router.put("/{room_id}", response_model=RoomDetail)
@limiter.limit(MUTATION_LIMIT)
def update_room(
    request: Request,
    payload: RoomUpdate,
    room_id: int = Path(..., gt=0),
    registry: RegistryService = Depends(get_registry_service),
    reports: ReportingService = Depends(get_reporting_service),
):
    registry.update_room(room_id, payload)
    return reports.room_detail(room_id)


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(MUTATION_LIMIT)
def delete_room(
    request: Request,
    room_id: int = Path(..., gt=0),
    registry: RegistryService = Depends(get_registry_service),
):
    registry.delete_room(room_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
