"""
Domain layer - Pure business logic without external dependencies.
"""

from .cancellation_policy import CancellationPolicy
from .capacity_filter import DailyCapacityFilter
from .conflict_classifier import ConflictClassifier
from .models import (
    AvailabilityEntry,
    BlockedInterval,
    Booking,
    BookingStatus,
    CandidateWindow,
    OfferingPolicy,
    ProviderSchedule,
    ReservationRequest,
    SlotStatus,
    TimeSlot,
)
from .range_scheduler import RangeScheduler
from .rule_expander import RuleExpander

__all__ = [
    "AvailabilityEntry",
    "BlockedInterval",
    "Booking",
    "BookingStatus",
    "CancellationPolicy",
    "CandidateWindow",
    "ConflictClassifier",
    "DailyCapacityFilter",
    "OfferingPolicy",
    "ProviderSchedule",
    "RangeScheduler",
    "ReservationRequest",
    "RuleExpander",
    "SlotStatus",
    "TimeSlot",
]
