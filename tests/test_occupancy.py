"""
Tests for the occupancy derivations and the room status projection
"""

from datetime import datetime, timedelta

import pytest

from models.core import OccupantType, RoomAllocation, RoomStatus
from services.errors import ValidationError
from services.occupancy import (
    Occupant,
    available_slots,
    duration_days,
    duration_hours,
    is_available,
    is_empty,
    is_full,
    occupancy_percentage,
    occupancy_rate,
)
from services.room_status import find_inconsistent_rooms, refresh_room_status, status_for


class TestOccupant:
    def test_from_employee_id(self):
        occupant = Occupant.from_ids(7, None)
        assert occupant == Occupant.employee(7)
        assert occupant.field == "employee_id"
        assert occupant.as_columns() == {"employee_id": 7, "guest_id": None}

    def test_from_guest_id(self):
        occupant = Occupant.from_ids(None, 3)
        assert occupant.type == OccupantType.GUEST
        assert occupant.field == "guest_id"
        assert occupant.as_columns() == {"employee_id": None, "guest_id": 3}

    @pytest.mark.parametrize("employee_id, guest_id", [(1, 2), (None, None)])
    def test_exactly_one_required(self, employee_id, guest_id):
        with pytest.raises(ValidationError) as exc:
            Occupant.from_ids(employee_id, guest_id)
        assert set(exc.value.errors) == {"employee_id", "guest_id"}
        assert exc.value.field is None

    def test_is_immutable(self):
        occupant = Occupant.employee(1)
        with pytest.raises(AttributeError):
            occupant.id = 2


class TestCapacity:
    def test_available_slots(self):
        assert available_slots(2, 0) == 2
        assert available_slots(2, 1) == 1
        assert available_slots(1, 1) == 0
        assert available_slots(1, 3) == 0

    def test_availability(self):
        assert is_available(2, 1)
        assert not is_available(1, 1)
        assert is_full(2, 2)
        assert not is_full(2, 1)
        assert is_empty(0)
        assert not is_empty(1)

    def test_percentages(self):
        assert occupancy_percentage(2, 1) == 50.0
        assert occupancy_percentage(0, 0) == 0.0
        assert occupancy_rate(1, 3) == 33.3
        assert occupancy_rate(5, 0) == 0


class TestDurations:
    allocated_at = datetime(2025, 1, 1, 8, 0, 0)

    def test_released_allocation_ignores_now(self):
        released_at = self.allocated_at + timedelta(days=2, hours=23, minutes=59)
        now = self.allocated_at + timedelta(days=40)
        assert duration_days(self.allocated_at, released_at, now) == 2
        assert duration_hours(self.allocated_at, released_at, now) == 71

    def test_active_allocation_uses_now(self):
        now = self.allocated_at + timedelta(hours=5)
        assert duration_days(self.allocated_at, None, now) == 0
        assert duration_hours(self.allocated_at, None, now) == 5

    def test_never_negative(self):
        now = self.allocated_at - timedelta(hours=1)
        assert duration_days(self.allocated_at, None, now) == 0


class TestRoomStatusProjection:
    def test_status_for(self):
        assert status_for(0) == RoomStatus.EMPTY
        assert status_for(1) == RoomStatus.OCCUPIED
        assert status_for(2) == RoomStatus.OCCUPIED

    def test_refresh_writes_only_on_change(self, db, clock, make_room, make_guest):
        room = make_room("R2-01", 2)
        assert refresh_room_status(db, room) is False

        db.add(RoomAllocation(room_id=room.id, guest_id=make_guest().id, allocated_at=clock.now()))
        assert refresh_room_status(db, room) is True
        assert room.status == RoomStatus.OCCUPIED

        db.add(RoomAllocation(room_id=room.id, guest_id=make_guest("Yuki Sato").id, allocated_at=clock.now()))
        assert refresh_room_status(db, room) is False

    def test_detects_drift(self, db, make_room):
        room = make_room()
        room.status = RoomStatus.OCCUPIED
        db.commit()
        assert [r.id for r in find_inconsistent_rooms(db)] == [room.id]
