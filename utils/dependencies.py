"""
FastAPI dependencies shared by the routers
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from database.connection import get_db
from services.allocation_service import AllocationService
from services.registry_service import RegistryService
from services.reporting_service import ReportingService
from utils.clock import Clock, get_clock

# Recorded as the actor in audit lines until the API gets authentication
API_USER = "admin"


def get_allocation_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AllocationService:
    return AllocationService(db, clock=clock, user=API_USER)


def get_registry_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> RegistryService:
    return RegistryService(db, clock=clock, user=API_USER)


def get_reporting_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReportingService:
    return ReportingService(db, clock=clock)
