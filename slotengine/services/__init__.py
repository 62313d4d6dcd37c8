"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityService, ProviderDirectoryProtocol
from .booking import BookingService
from .conflict_guard import BookingConflictGuard, BookingStoreProtocol

__all__ = [
    "AvailabilityService",
    "BookingConflictGuard",
    "BookingService",
    "BookingStoreProtocol",
    "ProviderDirectoryProtocol",
]
