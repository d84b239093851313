#!/usr/bin/env python3
"""
Seed data for a fresh database: employees, rooms and a handful of guests
around today. Does nothing when employees already exist.

Usage:
    python seed.py
"""

import random
from datetime import timedelta

from database.connection import Base, SessionLocal, engine
from models.core import Department, Employee, EmployeeStatus, Guest, Room, RoomStatus
from utils.clock import get_clock
from utils.logging_utils import log_event

ACTIVE_EMPLOYEES = 60
INACTIVE_EMPLOYEES = 12
SINGLE_ROOMS = 20
DOUBLE_ROOMS = 25

FIRST_NAMES = [
    "Agus", "Budi", "Citra", "Dewi", "Eko", "Fajar", "Gita", "Hendra", "Indah", "Joko",
    "Kartika", "Lestari", "Made", "Nur", "Oka", "Putri", "Rizky", "Sari", "Teguh", "Wahyu",
]
LAST_NAMES = [
    "Santoso", "Wijaya", "Pratama", "Saputra", "Hidayat", "Kusuma", "Nugroho", "Siregar",
    "Halim", "Gunawan", "Setiawan", "Purnomo",
]

GUESTS = [
    # name, company, visit offset (days from today), stay length (None = open)
    ("Michael Tan", "PT Sinar Jaya", -3, 5),
    ("Sarah Lim", "CV Mitra Abadi", -1, 3),
    ("Andreas Weber", "Weber Engineering", 0, 7),
    ("Yuki Sato", "Sato Consulting", 0, None),
    ("Rina Marlina", "PT Bumi Karya", 2, 4),
    ("David Chen", "Chen Logistics", 5, 2),
    ("Laura Smith", "Global Audit Ltd", -12, 3),
    ("Ahmad Fauzi", None, -10, None),
]


def _employee_name(rng: random.Random) -> str:
    return f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"


def seed_employees(session, rng: random.Random) -> int:
    departments = list(Department)
    total = ACTIVE_EMPLOYEES + INACTIVE_EMPLOYEES
    for n in range(1, total + 1):
        session.add(Employee(
            employee_code=f"EMP{n:04d}",
            name=_employee_name(rng),
            department=departments[(n - 1) % len(departments)],
            status=EmployeeStatus.ACTIVE if n <= ACTIVE_EMPLOYEES else EmployeeStatus.INACTIVE,
        ))
    return total


def seed_rooms(session) -> int:
    for n in range(1, SINGLE_ROOMS + 1):
        session.add(Room(room_code=f"R1-{n:02d}", capacity=1, status=RoomStatus.EMPTY))
    for n in range(1, DOUBLE_ROOMS + 1):
        session.add(Room(room_code=f"R2-{n:02d}", capacity=2, status=RoomStatus.EMPTY))
    return SINGLE_ROOMS + DOUBLE_ROOMS


def seed_guests(session, today) -> int:
    for name, company, offset, stay in GUESTS:
        visit_date = today + timedelta(days=offset)
        session.add(Guest(
            name=name,
            company=company,
            visit_date=visit_date,
            checkout_date=visit_date + timedelta(days=stay) if stay else None,
        ))
    return len(GUESTS)


def main():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        if session.query(Employee.id).first():
            print("[SKIP] Data already exists, nothing to seed")
            return

        rng = random.Random(42)
        employees = seed_employees(session, rng)
        rooms = seed_rooms(session)
        guests = seed_guests(session, get_clock().today())
        session.commit()

        log_event("seed", "system", "Seed database", f"employees={employees}, rooms={rooms}, guests={guests}")
        print(f"[OK] Seeded {employees} employees, {rooms} rooms, {guests} guests")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
