"""
Tests for the allocation engine: allocate, release, bulk release
"""

import pytest
from sqlalchemy.exc import OperationalError

from models.core import EmployeeStatus, RoomAllocation, RoomStatus
from services.allocation_service import merge_notes
from services.errors import (
    AlreadyAllocatedError,
    AlreadyReleasedError,
    CapacityExceededError,
    InactiveOccupantError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from services.occupancy import allocation_durations
from services.room_status import active_allocation_count, find_inconsistent_rooms


class TestAllocate:
    def test_single_room_fills_up(self, service, make_room, make_employee):
        room = make_room("R1-01", capacity=1)
        first = make_employee("Budi Santoso")
        second = make_employee("Dewi Lestari")

        allocation = service.allocate(room.id, employee_id=first.id)

        assert allocation.id is not None
        assert allocation.released_at is None
        assert allocation.allocated_at == service.clock.now()
        assert room.status == RoomStatus.OCCUPIED

        with pytest.raises(CapacityExceededError) as exc:
            service.allocate(room.id, employee_id=second.id)
        assert exc.value.occupancy == 1
        assert exc.value.capacity == 1
        assert exc.value.field == "room_id"

    def test_double_room_takes_two(self, service, make_room, make_employee, make_guest):
        room = make_room("R2-01", capacity=2)
        service.allocate(room.id, employee_id=make_employee().id)
        service.allocate(room.id, guest_id=make_guest().id)

        assert active_allocation_count(service.db, room.id) == 2
        with pytest.raises(CapacityExceededError):
            service.allocate(room.id, employee_id=make_employee("Eko Pratama").id)

    def test_both_occupants_rejected(self, service, make_room, make_employee, make_guest):
        room = make_room()
        with pytest.raises(ValidationError) as exc:
            service.allocate(room.id, employee_id=make_employee().id, guest_id=make_guest().id)
        assert set(exc.value.errors) == {"employee_id", "guest_id"}

    def test_no_occupant_rejected(self, service, make_room):
        room = make_room()
        with pytest.raises(ValidationError) as exc:
            service.allocate(room.id)
        assert set(exc.value.errors) == {"employee_id", "guest_id"}

    def test_employee_already_allocated_names_room(self, service, make_room, make_employee):
        first_room = make_room("R1-01")
        second_room = make_room("R1-02")
        employee = make_employee()
        service.allocate(first_room.id, employee_id=employee.id)

        with pytest.raises(AlreadyAllocatedError) as exc:
            service.allocate(second_room.id, employee_id=employee.id)
        assert exc.value.room_code == "R1-01"
        assert "R1-01" in exc.value.message
        assert exc.value.field == "employee_id"

    def test_guest_already_allocated(self, service, make_room, make_guest):
        guest = make_guest()
        service.allocate(make_room("R2-01", 2).id, guest_id=guest.id)
        with pytest.raises(AlreadyAllocatedError) as exc:
            service.allocate(make_room("R2-02", 2).id, guest_id=guest.id)
        assert exc.value.field == "guest_id"

    def test_inactive_employee_rejected(self, service, make_room, make_employee):
        room = make_room()
        inactive = make_employee("Joko Widodo", status=EmployeeStatus.INACTIVE)
        with pytest.raises(InactiveOccupantError) as exc:
            service.allocate(room.id, employee_id=inactive.id)
        assert exc.value.field == "employee_id"
        assert room.status == RoomStatus.EMPTY

    def test_missing_room(self, service, make_employee):
        with pytest.raises(NotFoundError) as exc:
            service.allocate(999, employee_id=make_employee().id)
        assert exc.value.field == "room_id"

    def test_deleted_room_is_not_found(self, db, service, make_room, make_employee):
        room = make_room()
        room.deleted = True
        db.commit()
        with pytest.raises(NotFoundError):
            service.allocate(room.id, employee_id=make_employee().id)

    def test_missing_employee_and_guest(self, service, make_room):
        room = make_room("R2-01", 2)
        with pytest.raises(NotFoundError) as exc:
            service.allocate(room.id, employee_id=404)
        assert exc.value.field == "employee_id"
        with pytest.raises(NotFoundError) as exc:
            service.allocate(room.id, guest_id=404)
        assert exc.value.field == "guest_id"

    def test_room_checked_before_occupant(self, service, make_employee, make_guest):
        with pytest.raises(NotFoundError):
            service.allocate(999, employee_id=make_employee().id, guest_id=make_guest().id)

    def test_capacity_checked_before_occupant_status(self, service, make_room, make_employee):
        room = make_room()
        service.allocate(room.id, employee_id=make_employee().id)
        inactive = make_employee("Joko Widodo", status=EmployeeStatus.INACTIVE)
        with pytest.raises(CapacityExceededError):
            service.allocate(room.id, employee_id=inactive.id)

    def test_failed_allocation_leaves_no_row(self, db, service, make_room, make_employee):
        room = make_room()
        inactive = make_employee(status=EmployeeStatus.INACTIVE)
        with pytest.raises(InactiveOccupantError):
            service.allocate(room.id, employee_id=inactive.id)
        assert db.query(RoomAllocation).count() == 0

    def test_notes_are_trimmed(self, service, make_room, make_guest):
        allocation = service.allocate(make_room().id, guest_id=make_guest().id, notes="  late arrival  ")
        assert allocation.notes == "late arrival"

    def test_audit_event_recorded(self, service, audit, make_room, make_employee):
        allocation = service.allocate(make_room().id, employee_id=make_employee().id)
        assert audit.actions == ["Allocate room"]
        detail = audit.events[0]["detail"]
        assert f"allocation_id={allocation.id}" in detail
        assert "occupant_type=employee" in detail
        assert "room_code=R1-01" in detail


class TestRelease:
    def test_release_empties_room(self, service, clock, make_room, make_employee):
        room = make_room()
        allocation = service.allocate(room.id, employee_id=make_employee().id)
        clock.advance(days=2, hours=5)

        released = service.release(allocation.id)

        assert released.released_at == clock.now()
        assert room.status == RoomStatus.EMPTY

    def test_release_twice_keeps_first_timestamp(self, service, clock, make_room, make_employee):
        allocation = service.allocate(make_room().id, employee_id=make_employee().id)
        clock.advance(hours=3)
        service.release(allocation.id)
        first_release = allocation.released_at

        clock.advance(hours=3)
        with pytest.raises(AlreadyReleasedError) as exc:
            service.release(allocation.id)
        assert exc.value.released_at == first_release
        assert first_release.strftime("%Y-%m-%d %H:%M:%S") in exc.value.message
        assert allocation.released_at == first_release

    def test_release_missing_allocation(self, service):
        with pytest.raises(NotFoundError) as exc:
            service.release(12345)
        assert exc.value.field == "allocation_id"

    def test_release_appends_notes(self, service, make_room, make_guest):
        allocation = service.allocate(make_room().id, guest_id=make_guest().id, notes="Booked by HR")
        service.release(allocation.id, notes="Checked out early")
        assert allocation.notes == "Booked by HR\nChecked out early"

    def test_release_keeps_room_occupied_while_others_remain(self, service, make_room, make_employee):
        room = make_room("R2-01", 2)
        first = service.allocate(room.id, employee_id=make_employee().id)
        service.allocate(room.id, employee_id=make_employee("Eko Pratama").id)

        service.release(first.id)

        assert room.status == RoomStatus.OCCUPIED
        assert active_allocation_count(service.db, room.id) == 1

    def test_occupant_can_be_allocated_again_after_release(self, service, make_room, make_employee):
        employee = make_employee()
        allocation = service.allocate(make_room("R1-01").id, employee_id=employee.id)
        service.release(allocation.id)
        again = service.allocate(make_room("R1-02").id, employee_id=employee.id)
        assert again.is_active()

    def test_round_trip_durations(self, service, clock, make_room, make_employee):
        allocation = service.allocate(make_room().id, employee_id=make_employee().id)
        clock.advance(days=3, hours=4)
        service.release(allocation.id)
        clock.advance(days=10)

        assert allocation.released_at > allocation.allocated_at
        durations = allocation_durations(allocation, clock.now())
        assert durations == {"duration_days": 3, "duration_hours": 76}

    def test_active_duration_uses_clock(self, service, clock, make_room, make_employee):
        allocation = service.allocate(make_room().id, employee_id=make_employee().id)
        clock.advance(hours=30)
        assert allocation_durations(allocation, clock.now()) == {"duration_days": 1, "duration_hours": 30}


class TestBulkRelease:
    def test_mixed_batch(self, service, make_room, make_employee):
        room = make_room("R2-01", 2)
        first = service.allocate(room.id, employee_id=make_employee().id)
        second = service.allocate(room.id, employee_id=make_employee("Eko Pratama").id)
        service.release(second.id)

        result = service.bulk_release([first.id, second.id, 999, first.id], notes="Site closed")

        assert result["released_ids"] == [first.id]
        assert result["skipped_ids"] == [second.id]
        assert result["total_requested"] == 3
        assert result["released_count"] == 1
        assert len(result["errors"]) == 1
        assert "999" in result["errors"][0]
        assert room.status == RoomStatus.EMPTY
        assert first.notes == "Site closed"

    def test_storage_failure_is_not_collected(self, db, service, monkeypatch, make_room, make_employee):
        room = make_room()
        allocation = service.allocate(room.id, employee_id=make_employee().id)

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "commit", failing_commit)
        with pytest.raises(StorageError):
            service.bulk_release([allocation.id])
        monkeypatch.undo()

        db.expire_all()
        assert db.get(RoomAllocation, allocation.id).released_at is None
        assert room.status == RoomStatus.OCCUPIED
        assert "Bulk release" not in service.audit.actions


class TestAtomicity:
    def test_failing_audit_sink_keeps_mutation(self, db, clock, make_room, make_employee):
        from services.allocation_service import AllocationService

        def broken_sink(*args, **kwargs):
            raise RuntimeError("audit backend down")

        service = AllocationService(db, clock=clock, audit=broken_sink)
        room = make_room()
        allocation = service.allocate(room.id, employee_id=make_employee().id)

        db.expire_all()
        assert db.get(RoomAllocation, allocation.id) is not None
        assert room.status == RoomStatus.OCCUPIED

    def test_storage_failure_rolls_back(self, db, service, monkeypatch, make_room, make_employee):
        room = make_room()
        employee = make_employee()

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db, "commit", failing_commit)
        with pytest.raises(StorageError):
            service.allocate(room.id, employee_id=employee.id)
        monkeypatch.undo()

        db.expire_all()
        assert db.query(RoomAllocation).count() == 0
        assert room.status == RoomStatus.EMPTY
        assert service.audit.events == []

    def test_status_projection_never_disagrees(self, db, service, make_room, make_employee, make_guest):
        rooms = [make_room("R1-01", 1), make_room("R2-01", 2), make_room("R2-02", 2)]
        first = service.allocate(rooms[0].id, employee_id=make_employee().id)
        service.allocate(rooms[1].id, guest_id=make_guest().id)
        second = service.allocate(rooms[1].id, employee_id=make_employee("Eko Pratama").id)
        service.transfer(second.id, rooms[2].id)
        service.release(first.id)

        assert find_inconsistent_rooms(db) == []


class TestMergeNotes:
    def test_merge(self):
        assert merge_notes(None, None) is None
        assert merge_notes("a", None) == "a"
        assert merge_notes("a", "   ") == "a"
        assert merge_notes(None, " b ") == "b"
        assert merge_notes("a", "b") == "a\nb"
