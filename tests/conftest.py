"""
Shared fixtures: in-memory SQLite database, frozen clock, recording audit
sink and a TestClient wired to both.
"""

import os
import tempfile
from datetime import date, datetime

# Must be set before config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_FILE"] = os.path.join(tempfile.gettempdir(), "room_allocation_tests.log")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.connection import Base, get_db
from models.core import (
    Department,
    Employee,
    EmployeeStatus,
    Guest,
    Room,
    RoomStatus,
)
from services.allocation_service import AllocationService
from services.registry_service import RegistryService
from services.reporting_service import ReportingService
from utils.clock import FrozenClock, get_clock

# 2025-01-15 09:00 in Asia/Jakarta
START = datetime(2025, 1, 15, 2, 0, 0)
TODAY = date(2025, 1, 15)

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class RecordingAudit:
    """Audit sink that keeps every event in memory"""

    def __init__(self):
        self.events = []

    def __call__(self, area, user, action, detail=""):
        self.events.append({"area": area, "user": user, "action": action, "detail": detail})

    @property
    def actions(self):
        return [e["action"] for e in self.events]


@pytest.fixture
def db():
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def service(db, clock, audit):
    return AllocationService(db, clock=clock, audit=audit)


@pytest.fixture
def registry(db, clock):
    return RegistryService(db, clock=clock)


@pytest.fixture
def reports(db, clock):
    return ReportingService(db, clock=clock)


@pytest.fixture
def make_room(db):
    def _make(room_code="R1-01", capacity=1):
        room = Room(room_code=room_code, capacity=capacity, status=RoomStatus.EMPTY)
        db.add(room)
        db.commit()
        db.refresh(room)
        return room
    return _make


@pytest.fixture
def make_employee(db):
    counter = {"n": 0}

    def _make(name="Budi Santoso", status=EmployeeStatus.ACTIVE, department=Department.PRODUKSI, code=None):
        counter["n"] += 1
        employee = Employee(
            employee_code=code or f"EMP{counter['n']:04d}",
            name=name,
            department=department,
            status=status,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee
    return _make


@pytest.fixture
def make_guest(db):
    def _make(name="Sarah Lim", visit_date=TODAY, checkout_date=None, company=None):
        guest = Guest(name=name, visit_date=visit_date, checkout_date=checkout_date, company=company)
        db.add(guest)
        db.commit()
        db.refresh(guest)
        return guest
    return _make


@pytest.fixture
def client(db, clock):
    from main import app

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
