from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status

from models.core import Guest
from schemas.registry import GuestCreate, GuestDetail, GuestRead, GuestUpdate
from services.registry_service import RegistryService
from services.reporting_service import ReportingService
from utils.dependencies import get_registry_service, get_reporting_service
from utils.rate_limiter import MUTATION_LIMIT, limiter

router = APIRouter(prefix="/api/guests", tags=["Guests"])


def _guest_view(guest: Guest, today: date) -> GuestRead:
    return GuestRead(
        id=guest.id,
        name=guest.name,
        phone=guest.phone,
        company=guest.company,
        visit_date=guest.visit_date,
        checkout_date=guest.checkout_date,
        notes=guest.notes,
        is_current=guest.is_currently_visiting(today),
        visit_duration_days=guest.visit_duration_days(),
    )


@router.get("", response_model=List[GuestRead])
def list_guests(
    scope: str = Query("all", pattern="^(all|current|upcoming|past)$"),
    reports: ReportingService = Depends(get_reporting_service),
):
    if scope == "current":
        guests = reports.current_guests()
    elif scope == "upcoming":
        guests = reports.upcoming_guests()
    elif scope == "past":
        guests = reports.past_guests()
    else:
        guests = (
            reports.db.query(Guest)
            .filter(Guest.deleted.is_(False))
            .order_by(Guest.visit_date.desc())
            .all()
        )
    today = reports.clock.today()
    return [_guest_view(g, today) for g in guests]


@router.get("/statistics")
def guest_statistics(reports: ReportingService = Depends(get_reporting_service)):
    return reports.guest_statistics()


@router.get("/{guest_id}", response_model=GuestDetail)
def get_guest(
    guest_id: int = Path(..., gt=0),
    reports: ReportingService = Depends(get_reporting_service),
):
    detail = reports.guest_detail(guest_id)
    return GuestDetail(data=_guest_view(detail.pop("guest"), reports.clock.today()), **detail)


@router.post("", response_model=GuestRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(MUTATION_LIMIT)
def create_guest(
    request: Request,
    payload: GuestCreate,
    registry: RegistryService = Depends(get_registry_service),
):
    return _guest_view(registry.create_guest(payload), registry.clock.today())


@router.put("/{guest_id}", response_model=GuestRead)
@limiter.limit(MUTATION_LIMIT)
def update_guest(
    request: Request,
    payload: GuestUpdate,
    guest_id: int = Path(..., gt=0),
    registry: RegistryService = Depends(get_registry_service),
):
    return _guest_view(registry.update_guest(guest_id, payload), registry.clock.today())


@router.delete("/{guest_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(MUTATION_LIMIT)
def delete_guest(
    request: Request,
    guest_id: int = Path(..., gt=0),
    registry: RegistryService = Depends(get_registry_service),
):
    registry.delete_guest(guest_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
