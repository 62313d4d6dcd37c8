"""
Application service for slot queries.

The service validates the query at the boundary, loads the provider's rules
and confirmed bookings through protocol-typed collaborators and delegates
the computation to the domain-level ``RangeScheduler``. This keeps the CLI
thin and lets tests plug in in-memory collaborators.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Protocol, Union

from ..domain.exceptions import ProviderNotFound, ValidationError
from ..domain.interval_math import parse_date
from ..domain.models import OfferingPolicy, ProviderSchedule, TimeSlot
from ..domain.range_scheduler import Clock, RangeScheduler
from .conflict_guard import BookingStoreProtocol

logger = logging.getLogger(__name__)

DateInput = Union[str, date]


class ProviderDirectoryProtocol(Protocol):
    """Protocol describing where provider schedules come from."""

    def get_schedule(self, provider_id: str) -> Optional[ProviderSchedule]:
        """Return weekly rules and blocked intervals, or None if unknown."""


def require_schedule(providers: ProviderDirectoryProtocol, provider_id: str) -> ProviderSchedule:
    schedule = providers.get_schedule(provider_id)
    if schedule is None:
        raise ProviderNotFound(f"Provider not found: '{provider_id}'")
    return schedule


class AvailabilityService:
    """
    Answers ``get_slots(provider, start, end, policy)`` queries.

    Each call builds its own scheduler and reads fresh data, so identical
    inputs always produce identical output.
    """

    def __init__(
        self,
        providers: ProviderDirectoryProtocol,
        bookings: BookingStoreProtocol,
        timezone: str,
        default_policy: Optional[OfferingPolicy] = None,
        clock: Optional[Clock] = None,
        max_range_days: int = 92,
        mark_unavailable_days: bool = True,
    ) -> None:
        self._providers = providers
        self._bookings = bookings
        self.timezone = timezone
        self.default_policy = default_policy or OfferingPolicy()
        self._clock = clock
        self.max_range_days = max_range_days
        self.mark_unavailable_days = mark_unavailable_days

    def get_slots(
        self,
        provider_id: str,
        start_date: DateInput,
        end_date: DateInput,
        policy: Optional[OfferingPolicy] = None,
    ) -> List[TimeSlot]:
        """
        Compute the slot list for a provider.

        Raises:
            ValidationError: If a date is malformed or the range is inverted or too long
            ProviderNotFound: If the provider has no configured schedule
        """
        start, end = self.validate_range(start_date, end_date)
        schedule = require_schedule(self._providers, provider_id)
        confirmed = self._bookings.list_confirmed(provider_id, start, end)

        scheduler = RangeScheduler(
            policy=policy or self.default_policy,
            timezone=self.timezone,
            clock=self._clock,
            mark_unavailable_days=self.mark_unavailable_days,
        )
        slots = scheduler.compute(
            weekly_availability=schedule.weekly_availability,
            blocked_intervals=schedule.blocked_intervals,
            bookings=confirmed,
            start_date=start,
            end_date=end,
        )

        logger.info(
            "Provider %s: %d slots between %s and %s", provider_id, len(slots), start, end,
        )
        return slots

    def validate_range(self, start_date: DateInput, end_date: DateInput):
        """Parse and check a query range; the range is never partially processed."""
        start = parse_date(start_date)
        end = parse_date(end_date)

        if start > end:
            raise ValidationError("startDate must be before or equal to endDate")

        span_days = (end - start).days + 1
        if span_days > self.max_range_days:
            raise ValidationError(
                f"Date range spans {span_days} days; at most {self.max_range_days} days can be queried"
            )

        return start, end
