"""
Models package.
Importing 'models' registers every table on Base.metadata.
"""

from .core import (
    RoomStatus,
    RoomCapacity,
    EmployeeStatus,
    Department,
    OccupantType,
    Room,
    Employee,
    Guest,
    RoomAllocation,
)

__all__ = [
    "RoomStatus", "RoomCapacity", "EmployeeStatus", "Department", "OccupantType",
    "Room", "Employee", "Guest", "RoomAllocation",
]
