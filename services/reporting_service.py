"""
Read-only queries consumed by the dashboard and the allocation screens.
Nothing here mutates state.
"""

from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

import pytz
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, joinedload

import config
from models.core import (
    Department,
    Employee,
    EmployeeStatus,
    Guest,
    OccupantType,
    Room,
    RoomAllocation,
    RoomStatus,
)
from services.errors import NotFoundError
from services.occupancy import (
    available_slots,
    duration_days,
    is_available,
    occupancy_percentage,
    occupancy_rate,
)
from utils.clock import Clock, format_timestamp, get_clock


def humanize_delta(delta: timedelta) -> str:
    seconds = int(delta.total_seconds())
    if seconds < 60:
        return "just now"
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            amount = seconds // size
            return f"{amount} {unit}{'s' if amount != 1 else ''} ago"
    return "just now"


class ReportingService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or get_clock()

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def _live_rooms(self):
        return self.db.query(Room).filter(Room.deleted.is_(False))

    def _active_counts(self) -> Dict[int, int]:
        return dict(
            self.db.query(RoomAllocation.room_id, func.count(RoomAllocation.id))
            .filter(RoomAllocation.released_at.is_(None))
            .group_by(RoomAllocation.room_id)
            .all()
        )

    def _room_view(self, room: Room, occupancy: int) -> dict:
        return {
            "id": room.id,
            "room_code": room.room_code,
            "capacity": room.capacity,
            "status": room.status,
            "notes": room.notes,
            "created_at": room.created_at,
            "current_occupancy": occupancy,
            "available_slots": available_slots(room.capacity, occupancy),
            "occupancy_percentage": occupancy_percentage(room.capacity, occupancy),
            "is_available": is_available(room.capacity, occupancy),
        }

    def list_rooms(self) -> List[dict]:
        counts = self._active_counts()
        rooms = self._live_rooms().order_by(Room.room_code).all()
        return [self._room_view(room, counts.get(room.id, 0)) for room in rooms]

    def room_detail(self, room_id: int) -> dict:
        room = self._live_rooms().filter(Room.id == room_id).first()
        if not room:
            raise NotFoundError("room", room_id, field="room_id")
        active = (
            self.db.query(RoomAllocation)
            .options(joinedload(RoomAllocation.employee), joinedload(RoomAllocation.guest))
            .filter(RoomAllocation.room_id == room.id, RoomAllocation.released_at.is_(None))
            .order_by(RoomAllocation.allocated_at.desc())
            .all()
        )
        view = self._room_view(room, len(active))
        view["current_occupants"] = [
            {
                "allocation_id": a.id,
                "type": a.occupant_type.value,
                "name": a.occupant_name,
                "allocated_at": a.allocated_at,
            }
            for a in active
        ]
        return view

    def find_available_rooms(self, capacity: Optional[int] = None) -> List[dict]:
        counts = self._active_counts()
        query = self._live_rooms()
        if capacity:
            query = query.filter(Room.capacity == capacity)
        result = []
        for room in query.order_by(Room.room_code).all():
            occupancy = counts.get(room.id, 0)
            if not is_available(room.capacity, occupancy):
                continue
            slots = available_slots(room.capacity, occupancy)
            result.append({
                "id": room.id,
                "room_code": room.room_code,
                "capacity": room.capacity,
                "available_slots": slots,
                "current_occupancy": occupancy,
                "display_text": f"{room.room_code} (Available: {slots}/{room.capacity})",
            })
        return result

    def auto_assign_room(self, preferred_capacity: int = 1) -> Optional[Room]:
        """
        Pick a room with free slots: preferred capacity first, otherwise the
        smallest available room. Only a suggestion, nothing is reserved.
        """
        available = self.find_available_rooms()
        if not available:
            return None
        preferred = [r for r in available if r["capacity"] == preferred_capacity]
        chosen = preferred[0] if preferred else sorted(available, key=lambda r: (r["capacity"], r["room_code"]))[0]
        return self.db.query(Room).filter(Room.id == chosen["id"]).first()

    def room_statistics(self) -> dict:
        rooms = self._live_rooms()
        total_rooms = rooms.count()
        occupied_rooms = rooms.filter(Room.status == RoomStatus.OCCUPIED).count()
        by_capacity = dict(
            rooms.with_entities(Room.capacity, func.count(Room.id)).group_by(Room.capacity).all()
        )
        return {
            "total_rooms": total_rooms,
            "occupied_rooms": occupied_rooms,
            "empty_rooms": rooms.filter(Room.status == RoomStatus.EMPTY).count(),
            "occupancy_rate": occupancy_rate(occupied_rooms, total_rooms),
            "capacity_1_rooms": by_capacity.get(1, 0),
            "capacity_2_rooms": by_capacity.get(2, 0),
            "total_capacity": self._total_capacity(),
            "total_occupied_slots": self._active_count(),
        }

    # ------------------------------------------------------------------
    # Allocations
    # ------------------------------------------------------------------

    def _allocations(self):
        return self.db.query(RoomAllocation).options(
            joinedload(RoomAllocation.room),
            joinedload(RoomAllocation.employee),
            joinedload(RoomAllocation.guest),
        )

    @staticmethod
    def _of_occupant_type(query, occupant_type: Optional[OccupantType]):
        if occupant_type == OccupantType.EMPLOYEE:
            return query.filter(RoomAllocation.employee_id.isnot(None))
        if occupant_type == OccupantType.GUEST:
            return query.filter(RoomAllocation.guest_id.isnot(None))
        return query

    def get_allocation(self, allocation_id: int) -> RoomAllocation:
        allocation = self._allocations().filter(RoomAllocation.id == allocation_id).first()
        if not allocation:
            raise NotFoundError("allocation", allocation_id, field="allocation_id")
        return allocation

    def active_allocations(self) -> List[RoomAllocation]:
        return (
            self._allocations()
            .filter(RoomAllocation.released_at.is_(None))
            .order_by(RoomAllocation.allocated_at.desc())
            .all()
        )

    def allocation_history(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        room_id: Optional[int] = None,
        occupant_type: Optional[OccupantType] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[RoomAllocation], int]:
        """Released allocations, most recently released first"""
        query = self._allocations().filter(RoomAllocation.released_at.isnot(None))
        if start_date:
            query = query.filter(RoomAllocation.allocated_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(RoomAllocation.released_at <= datetime.combine(end_date, time.max))
        if room_id:
            query = query.filter(RoomAllocation.room_id == room_id)
        query = self._of_occupant_type(query, occupant_type)

        total = query.order_by(None).count()
        items = (
            query.order_by(RoomAllocation.released_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return items, total

    def _active_count(self, *criteria) -> int:
        return (
            self.db.query(func.count(RoomAllocation.id))
            .filter(RoomAllocation.released_at.is_(None), *criteria)
            .scalar()
            or 0
        )

    def _total_capacity(self) -> int:
        return self._live_rooms().with_entities(func.coalesce(func.sum(Room.capacity), 0)).scalar() or 0

    def allocation_summary(self) -> dict:
        active = self._active_count()
        total_capacity = self._total_capacity()
        return {
            "active_allocations": active,
            "employee_allocations": self._active_count(RoomAllocation.employee_id.isnot(None)),
            "guest_allocations": self._active_count(RoomAllocation.guest_id.isnot(None)),
            "total_capacity": total_capacity,
            "available_slots": max(0, total_capacity - active),
            "occupancy_rate": occupancy_rate(active, total_capacity),
        }

    def allocation_statistics(self) -> dict:
        stats = self.allocation_summary()
        by_capacity = dict(
            self.db.query(Room.capacity, func.count(RoomAllocation.id))
            .join(RoomAllocation, RoomAllocation.room_id == Room.id)
            .filter(RoomAllocation.released_at.is_(None))
            .group_by(Room.capacity)
            .all()
        )
        stats.update({
            "occupied_slots": stats["active_allocations"],
            "capacity_1_allocations": by_capacity.get(1, 0),
            "capacity_2_allocations": by_capacity.get(2, 0),
            "historical_total": (
                self.db.query(func.count(RoomAllocation.id))
                .filter(RoomAllocation.released_at.isnot(None))
                .scalar()
                or 0
            ),
        })
        return stats

    def occupancy_report(
        self,
        start_date: date,
        end_date: date,
        occupant_type: Optional[OccupantType] = None,
    ) -> dict:
        """
        Allocations started within [start_date, end_date], optionally only
        employees or only guests, with a summary and one row per allocation.
        """
        query = self._allocations().filter(
            RoomAllocation.allocated_at >= datetime.combine(start_date, time.min),
            RoomAllocation.allocated_at <= datetime.combine(end_date, time.max),
        )
        allocations = (
            self._of_occupant_type(query, occupant_type)
            .order_by(RoomAllocation.allocated_at, RoomAllocation.id)
            .all()
        )
        now = self.clock.now()
        released = [a for a in allocations if a.is_released()]
        average = (
            sum(duration_days(a.allocated_at, a.released_at, now) for a in released) / len(released)
            if released
            else 0
        )
        by_capacity: Dict[int, int] = {}
        for allocation in allocations:
            by_capacity[allocation.room.capacity] = by_capacity.get(allocation.room.capacity, 0) + 1

        employee_count = sum(1 for a in allocations if a.employee_id is not None)
        return {
            "period": {
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "type": occupant_type.value if occupant_type else None,
            },
            "summary": {
                "total_allocations": len(allocations),
                "employee_allocations": employee_count,
                "guest_allocations": len(allocations) - employee_count,
                "released_allocations": len(released),
                "active_allocations": len(allocations) - len(released),
                "average_duration_days": round(average, 1),
            },
            "by_room_capacity": by_capacity,
            "allocations": [
                {
                    "id": a.id,
                    "room_code": a.room.room_code,
                    "occupant": a.occupant_info,
                    "type": a.occupant_type.value,
                    "allocated_at": format_timestamp(a.allocated_at),
                    "released_at": format_timestamp(a.released_at),
                    "duration_days": duration_days(a.allocated_at, a.released_at, now),
                }
                for a in allocations
            ],
        }

    # ------------------------------------------------------------------
    # Occupants
    # ------------------------------------------------------------------

    def _has_active_allocation(self, column):
        return (
            self.db.query(RoomAllocation.id)
            .filter(column, RoomAllocation.released_at.is_(None))
            .exists()
        )

    def _live_employees(self):
        return self.db.query(Employee).filter(Employee.deleted.is_(False))

    def _live_guests(self):
        return self.db.query(Guest).filter(Guest.deleted.is_(False))

    def _occupancy_of(self, column) -> dict:
        """Current room and released allocations (newest first) of one occupant"""
        allocations = self._allocations().filter(column).order_by(RoomAllocation.allocated_at.desc()).all()
        now = self.clock.now()
        active = next((a for a in allocations if a.is_active()), None)
        current_room = None
        if active is not None:
            current_room = {
                "id": active.room.id,
                "room_code": active.room.room_code,
                "capacity": active.room.capacity,
                "allocation_id": active.id,
                "allocated_at": active.allocated_at,
                "duration_days": duration_days(active.allocated_at, None, now),
            }
        return {
            "has_active_allocation": active is not None,
            "current_room": current_room,
            "allocation_history": [
                {
                    "allocation_id": a.id,
                    "room_code": a.room.room_code,
                    "allocated_at": a.allocated_at,
                    "released_at": a.released_at,
                    "duration_days": duration_days(a.allocated_at, a.released_at, now),
                    "notes": a.notes,
                }
                for a in allocations
                if a.is_released()
            ],
        }

    def employee_detail(self, employee_id: int) -> dict:
        employee = self._live_employees().filter(Employee.id == employee_id).first()
        if not employee:
            raise NotFoundError("employee", employee_id, field="employee_id")
        return {"employee": employee, **self._occupancy_of(RoomAllocation.employee_id == employee.id)}

    def guest_detail(self, guest_id: int) -> dict:
        guest = self._live_guests().filter(Guest.id == guest_id).first()
        if not guest:
            raise NotFoundError("guest", guest_id, field="guest_id")
        return {"guest": guest, **self._occupancy_of(RoomAllocation.guest_id == guest.id)}

    def available_employees(self) -> List[Employee]:
        """Active employees without an active allocation"""
        return (
            self._live_employees()
            .filter(
                Employee.status == EmployeeStatus.ACTIVE,
                ~self._has_active_allocation(RoomAllocation.employee_id == Employee.id),
            )
            .order_by(Employee.name)
            .all()
        )

    def _current_guest_filter(self, today: date):
        return and_(
            Guest.visit_date <= today,
            or_(Guest.checkout_date.is_(None), Guest.checkout_date >= today),
        )

    def current_guests(self) -> List[Guest]:
        today = self.clock.today()
        return self._live_guests().filter(self._current_guest_filter(today)).order_by(Guest.name).all()

    def upcoming_guests(self) -> List[Guest]:
        today = self.clock.today()
        return self._live_guests().filter(Guest.visit_date > today).order_by(Guest.visit_date).all()

    def _past_guest_filter(self, today: date, stale_days: int):
        return or_(
            Guest.checkout_date < today,
            and_(Guest.checkout_date.is_(None), Guest.visit_date < today - timedelta(days=stale_days)),
        )

    def past_guests(self, stale_days: Optional[int] = None) -> List[Guest]:
        """
        Guests whose visit is over: checkout date already passed, or no
        checkout date and the visit started more than ``stale_days`` ago.
        """
        stale_days = config.PAST_GUEST_STALE_DAYS if stale_days is None else stale_days
        today = self.clock.today()
        return (
            self._live_guests()
            .filter(self._past_guest_filter(today, stale_days))
            .order_by(Guest.visit_date.desc())
            .all()
        )

    def available_guests(self) -> List[Guest]:
        """Current guests without an active allocation"""
        today = self.clock.today()
        return (
            self._live_guests()
            .filter(
                self._current_guest_filter(today),
                ~self._has_active_allocation(RoomAllocation.guest_id == Guest.id),
            )
            .order_by(Guest.name)
            .all()
        )

    def guest_statistics(self) -> dict:
        today = self.clock.today()
        guests = self._live_guests()
        return {
            "total_guests": guests.count(),
            "current_guests": guests.filter(self._current_guest_filter(today)).count(),
            "upcoming_guests": guests.filter(Guest.visit_date > today).count(),
            "past_guests": guests.filter(self._past_guest_filter(today, config.PAST_GUEST_STALE_DAYS)).count(),
            "guests_with_allocation": guests.filter(
                self._has_active_allocation(RoomAllocation.guest_id == Guest.id)
            ).count(),
        }

    def employee_status_breakdown(self) -> List[dict]:
        rows = (
            self._live_employees()
            .with_entities(Employee.status, func.count(Employee.id))
            .group_by(Employee.status)
            .all()
        )
        return [{"status": status.value.capitalize(), "count": count} for status, count in rows]

    def department_stats(self) -> List[dict]:
        rows = (
            self._live_employees()
            .with_entities(Employee.department, Employee.status, func.count(Employee.id))
            .group_by(Employee.department, Employee.status)
            .all()
        )
        allocated = dict(
            self._live_employees()
            .with_entities(Employee.department, func.count(Employee.id))
            .filter(self._has_active_allocation(RoomAllocation.employee_id == Employee.id))
            .group_by(Employee.department)
            .all()
        )
        stats: Dict[Department, dict] = {}
        for department, status, count in rows:
            entry = stats.setdefault(department, {
                "department": department.value,
                "total": 0,
                "active": 0,
                "inactive": 0,
                "with_allocation": allocated.get(department, 0),
            })
            entry["total"] += count
            entry["active" if status == EmployeeStatus.ACTIVE else "inactive"] += count
        return [stats[d] for d in Department if d in stats]

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def dashboard_statistics(self) -> dict:
        employees = self._live_employees()
        total_employees = employees.count()
        active_employees = employees.filter(Employee.status == EmployeeStatus.ACTIVE).count()
        employees_with_allocation = employees.filter(
            self._has_active_allocation(RoomAllocation.employee_id == Employee.id)
        ).count()

        room_stats = self.room_statistics()
        summary = self.allocation_statistics()
        guest_stats = self.guest_statistics()

        return {
            "total_employees": total_employees,
            "active_employees": active_employees,
            "inactive_employees": total_employees - active_employees,
            "employees_with_allocation": employees_with_allocation,
            "employee_allocation_rate": occupancy_rate(employees_with_allocation, active_employees),
            "total_rooms": room_stats["total_rooms"],
            "occupied_rooms": room_stats["occupied_rooms"],
            "empty_rooms": room_stats["empty_rooms"],
            "total_capacity": room_stats["total_capacity"],
            "capacity_1_rooms": room_stats["capacity_1_rooms"],
            "capacity_2_rooms": room_stats["capacity_2_rooms"],
            "room_occupancy_rate": room_stats["occupancy_rate"],
            "total_guests": guest_stats["total_guests"],
            "current_guests": guest_stats["current_guests"],
            "guests_with_allocation": guest_stats["guests_with_allocation"],
            "active_allocations": summary["active_allocations"],
            "employee_allocations": summary["employee_allocations"],
            "guest_allocations": summary["guest_allocations"],
            "historical_allocations": summary["historical_total"],
            "available_slots": summary["available_slots"],
            "occupancy_rate": summary["occupancy_rate"],
            "department_stats": self.department_stats(),
        }

    def _end_of_site_day(self, day: date) -> datetime:
        local_end = self.clock.tz.localize(datetime.combine(day, time.max))
        return local_end.astimezone(pytz.utc).replace(tzinfo=None)

    def occupancy_trend(self, days: int = 7) -> List[dict]:
        """Allocations active at the end of each of the last ``days`` site days"""
        today = self.clock.today()
        total_capacity = self._total_capacity()
        trend = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            day_end = self._end_of_site_day(day)
            count = (
                self.db.query(func.count(RoomAllocation.id))
                .filter(
                    RoomAllocation.allocated_at <= day_end,
                    or_(RoomAllocation.released_at.is_(None), RoomAllocation.released_at > day_end),
                )
                .scalar()
                or 0
            )
            trend.append({
                "date": day.isoformat(),
                "date_formatted": day.strftime("%b %d"),
                "occupancy": count,
                "occupancy_rate": occupancy_rate(count, total_capacity),
            })
        return trend

    def recent_activities(self, limit: int = 10) -> List[dict]:
        last_change = func.coalesce(RoomAllocation.released_at, RoomAllocation.allocated_at)
        allocations = self._allocations().order_by(last_change.desc()).limit(limit).all()
        now = self.clock.now()
        activities = []
        for allocation in allocations:
            active = allocation.is_active()
            moment = allocation.allocated_at if active else allocation.released_at
            room_code = allocation.room.room_code
            activities.append({
                "type": "allocation" if active else "release",
                "allocation_id": allocation.id,
                "message": (
                    f"Room {room_code} allocated to {allocation.occupant_name}"
                    if active
                    else f"Room {room_code} released by {allocation.occupant_name}"
                ),
                "time": humanize_delta(now - moment),
                "timestamp": format_timestamp(moment),
            })
        return activities
