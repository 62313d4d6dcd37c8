"""
Core business logic for computing time slots across a date range.

This is the heart of the application - pure domain logic without any
external dependencies (no database, no I/O). Callers pass in rules, blocks
and bookings and get a fresh, ordered list of slots back.
"""

import logging
from datetime import date
from typing import Callable, Iterable, List, Optional

import pendulum
from pendulum import DateTime

from .capacity_filter import DailyCapacityFilter
from .conflict_classifier import ConflictClassifier
from .interval_math import iter_dates
from .models import (
    AvailabilityEntry,
    Booking,
    BlockedInterval,
    OfferingPolicy,
    SlotStatus,
    TimeSlot,
)
from .rule_expander import RuleExpander

logger = logging.getLogger(__name__)

Clock = Callable[[], DateTime]


class RangeScheduler:
    """
    Computes the slot list for a provider over an inclusive date range.

    Algorithm, per calendar date:
    1. Expand every weekly rule matching the weekday into candidate windows
    2. Classify candidates as blocked, booked or available
    3. Cap available slots at the policy's daily maximum
    4. Suppress available slots on dates before today

    "Today" comes from the injected clock in the business timezone. Today
    itself is expanded in full; elapsed start times are only rejected when a
    reservation is attempted.
    """

    def __init__(
        self,
        policy: OfferingPolicy,
        timezone: str = "Europe/Zurich",
        clock: Optional[Clock] = None,
        mark_unavailable_days: bool = True,
    ):
        self.policy = policy
        self.timezone = timezone
        self.clock = clock or (lambda: pendulum.now(timezone))
        self.mark_unavailable_days = mark_unavailable_days
        self._expander = RuleExpander(policy)
        self._classifier = ConflictClassifier()
        self._capacity = DailyCapacityFilter(policy.max_slots_per_day)

    def today(self) -> date:
        return self.clock().in_timezone(self.timezone).date()

    def compute(
        self,
        weekly_availability: Iterable[AvailabilityEntry],
        blocked_intervals: Iterable[BlockedInterval],
        bookings: Iterable[Booking],
        start_date: date,
        end_date: date,
    ) -> List[TimeSlot]:
        """
        Compute all slots from start_date to end_date inclusive.

        Args:
            weekly_availability: Recurring weekly rules of the provider
            blocked_intervals: Date-range blocks overriding the rules
            bookings: Existing bookings; only confirmed ones are considered
            start_date: First date of the range
            end_date: Last date of the range

        Returns:
            Slots in date-then-time order
        """
        entries = list(weekly_availability)
        blocked = list(blocked_intervals)
        confirmed = [booking for booking in bookings if booking.is_confirmed]
        today = self.today()

        slots: List[TimeSlot] = []
        for day in iter_dates(start_date, end_date):
            slots.extend(self._compute_day(day, entries, blocked, confirmed, is_past=day < today))

        logger.debug(
            "Computed %d slots from %s to %s (today=%s)",
            len(slots), start_date, end_date, today,
        )
        return slots

    def _compute_day(
        self,
        day: date,
        entries: List[AvailabilityEntry],
        blocked: List[BlockedInterval],
        bookings: List[Booking],
        is_past: bool,
    ) -> List[TimeSlot]:
        candidates = self._expander.expand_day(entries, day)

        if not candidates:
            if self.mark_unavailable_days and not is_past and not any(e.applies_to(day) for e in entries):
                return [TimeSlot.unavailable_day(day)]
            return []

        day_bookings = [booking for booking in bookings if booking.date == day]
        classified = self._classifier.classify(candidates, blocked, day_bookings)
        capped = self._capacity.apply(classified)

        if is_past:
            # History stays inspectable, but the past is never offered
            return [slot for slot in capped if slot.status != SlotStatus.AVAILABLE]

        return capped
