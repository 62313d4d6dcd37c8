"""
Shared fixtures for the test suite.
"""

from datetime import date, time

import pendulum
import pytest

from slotengine.adapters.memory_booking_store import InMemoryBookingStore
from slotengine.adapters.provider_directory import ProviderDirectory
from slotengine.adapters.sql_booking_store import SqlBookingStore
from slotengine.domain.models import (
    AvailabilityEntry,
    Booking,
    BookingStatus,
    OfferingPolicy,
    ProviderSchedule,
)

TZ = "Europe/Zurich"

# Monday, 1 December 2025, 08:00 business time
FROZEN_NOW = pendulum.datetime(2025, 12, 1, 8, 0, tz=TZ)

MONDAY = date(2025, 12, 15)


def make_booking(
    booking_id: str = "b1",
    day: date = MONDAY,
    start: str = "10:30",
    end: str = "11:30",
    status: BookingStatus = BookingStatus.CONFIRMED,
    provider_id: str = "dr-meier",
) -> Booking:
    return Booking(
        booking_id=booking_id,
        provider_id=provider_id,
        date=day,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        cancellation_token=f"token-{booking_id}",
        status=status,
    )


@pytest.fixture
def clock():
    return lambda: FROZEN_NOW


@pytest.fixture
def wide_policy():
    """60/30 sizing with a cap high enough to see every window."""
    return OfferingPolicy(session_minutes=60, break_minutes=30, max_slots_per_day=10)


@pytest.fixture
def monday_nine_to_five():
    return AvailabilityEntry(day_of_week=1, start_time=time(9, 0), end_time=time(17, 0))


@pytest.fixture
def provider_directory(monday_nine_to_five):
    schedule = ProviderSchedule(
        provider_id="dr-meier",
        name="Dr. Anna Meier",
        weekly_availability=[monday_nine_to_five],
        blocked_intervals=[],
    )
    return ProviderDirectory([schedule])


@pytest.fixture(params=["memory", "sql"])
def booking_store(request, tmp_path):
    """Every store implementation must honour the same contract."""
    if request.param == "memory":
        return InMemoryBookingStore()
    return SqlBookingStore.from_url(f"sqlite:///{tmp_path / 'bookings.db'}")
