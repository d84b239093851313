"""
Concurrent allocations against a file-backed SQLite database.

Each worker has its own session and service. The capacity count is slowed
down so that, without write locking, both workers would read the count
before either inserts.
"""

import threading
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

import services.allocation_service as allocation_module
from database.connection import Base, build_engine
from models.core import Department, Employee, EmployeeStatus, Room, RoomAllocation, RoomStatus
from services.allocation_service import AllocationService
from services.errors import AllocationError
from services.room_status import active_allocation_count
from utils.clock import FrozenClock

START = datetime(2025, 1, 15, 2, 0, 0)


@pytest.fixture
def file_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'allocations.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def make_session(file_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=file_engine)


@pytest.fixture
def interleaved_count(monkeypatch):
    """Hold each capacity count until the other worker has counted too, or 1s passed"""
    barrier = threading.Barrier(2)

    def _count(db, room_id):
        count = active_allocation_count(db, room_id)
        try:
            barrier.wait(timeout=1)
        except threading.BrokenBarrierError:
            pass
        return count

    monkeypatch.setattr(allocation_module, "active_allocation_count", _count)
    return barrier


def _seed(make_session, rooms, employees):
    session = make_session()
    try:
        room_rows = [Room(room_code=code, capacity=capacity, status=RoomStatus.EMPTY) for code, capacity in rooms]
        employee_rows = [
            Employee(employee_code=f"EMP{n:04d}", name=name, department=Department.PRODUKSI, status=EmployeeStatus.ACTIVE)
            for n, name in enumerate(employees, start=1)
        ]
        session.add_all(room_rows + employee_rows)
        session.commit()
        return [r.id for r in room_rows], [e.id for e in employee_rows]
    finally:
        session.close()


def _run_concurrently(make_session, requests):
    clock = FrozenClock(START)
    results = {}

    def _worker(key, room_id, employee_id):
        session = make_session()
        try:
            service = AllocationService(session, clock=clock, audit=lambda *args, **kwargs: None)
            service.allocate(room_id, employee_id=employee_id)
            results[key] = "ok"
        except AllocationError as exc:
            results[key] = exc.code
        finally:
            session.close()

    threads = [
        threading.Thread(target=_worker, args=(key, room_id, employee_id))
        for key, (room_id, employee_id) in enumerate(requests)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return [results.get(key) for key in range(len(requests))]


def test_same_room_never_exceeds_capacity(make_session, interleaved_count):
    (room_id,), (first, second) = _seed(make_session, [("R1-01", 1)], ["Budi Santoso", "Eko Pratama"])

    results = _run_concurrently(make_session, [(room_id, first), (room_id, second)])

    assert sorted(results) == ["capacity_exceeded", "ok"]
    session = make_session()
    try:
        assert active_allocation_count(session, room_id) == 1
        assert session.get(Room, room_id).status == RoomStatus.OCCUPIED
    finally:
        session.close()


def test_same_employee_gets_one_room(make_session, interleaved_count):
    room_ids, (employee_id,) = _seed(make_session, [("R1-01", 1), ("R1-02", 1)], ["Budi Santoso"])

    results = _run_concurrently(make_session, [(room_ids[0], employee_id), (room_ids[1], employee_id)])

    assert sorted(results) == ["already_allocated", "ok"]
    session = make_session()
    try:
        active = (
            session.query(RoomAllocation)
            .filter(RoomAllocation.employee_id == employee_id, RoomAllocation.released_at.is_(None))
            .all()
        )
        assert len(active) == 1
        statuses = {session.get(Room, room_id).status for room_id in room_ids}
        assert statuses == {RoomStatus.OCCUPIED, RoomStatus.EMPTY}
    finally:
        session.close()


def test_double_room_takes_exactly_two(make_session, interleaved_count):
    (room_id,), employees = _seed(make_session, [("R2-01", 2)], ["Budi Santoso", "Eko Pratama", "Dewi Lestari"])
    session = make_session()
    try:
        AllocationService(session, clock=FrozenClock(START), audit=lambda *args, **kwargs: None).allocate(
            room_id, employee_id=employees[0]
        )
    finally:
        session.close()
    interleaved_count.reset()

    results = _run_concurrently(make_session, [(room_id, employees[1]), (room_id, employees[2])])

    assert sorted(results) == ["capacity_exceeded", "ok"]
    session = make_session()
    try:
        assert active_allocation_count(session, room_id) == 2
    finally:
        session.close()
