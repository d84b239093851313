"""
Business services for room allocation
"""

from .allocation_service import AllocationService
from .registry_service import RegistryService
from .reporting_service import ReportingService
from .errors import (
    AllocationError,
    NotFoundError,
    ValidationError,
    CapacityExceededError,
    InactiveOccupantError,
    AlreadyAllocatedError,
    AlreadyReleasedError,
    OccupiedRecordError,
    StorageError,
)

__all__ = [
    "AllocationService",
    "RegistryService",
    "ReportingService",
    "AllocationError",
    "NotFoundError",
    "ValidationError",
    "CapacityExceededError",
    "InactiveOccupantError",
    "AlreadyAllocatedError",
    "AlreadyReleasedError",
    "OccupiedRecordError",
    "StorageError",
]
