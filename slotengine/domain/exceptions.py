"""
Domain-specific exception hierarchy for the scheduling engine.

Every rejected operation raises a distinct type so callers can render a
precise message instead of a generic failure.
"""

from datetime import date, time, timedelta
from typing import Optional


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class ValidationError(SchedulingError, ValueError):
    """Raised when input is malformed or violates a model invariant."""


class ConfigError(SchedulingError):
    """Raised when the configuration file cannot be loaded or is invalid."""


class SlotUnavailable(SchedulingError):
    """Raised when a requested slot is no longer free for reservation."""

    def __init__(self, provider_id: str, day: date, start_time: time, reason: str = "already booked"):
        self.provider_id = provider_id
        self.date = day
        self.start_time = start_time
        self.reason = reason
        super().__init__(
            f"Slot {day.isoformat()} {start_time.strftime('%H:%M')} for provider "
            f"'{provider_id}' is unavailable: {reason}"
        )


class BookingNotFound(SchedulingError):
    """Raised when a booking reference or cancellation token is unknown."""


class AlreadyCancelled(SchedulingError):
    """Raised when a booking has already been cancelled."""

    def __init__(self, booking_id: Optional[str] = None):
        self.booking_id = booking_id
        label = f"Booking {booking_id}" if booking_id else "Booking"
        super().__init__(f"{label} is already cancelled")


class NoticeWindowViolation(SchedulingError):
    """Raised when a cancellation arrives inside the notice window."""

    def __init__(self, booking_id: Optional[str], remaining: timedelta, notice_window: timedelta):
        self.booking_id = booking_id
        self.remaining = remaining
        self.notice_window = notice_window
        hours = notice_window.total_seconds() / 3600
        super().__init__(
            f"Booking {booking_id} can no longer be cancelled: "
            f"cancellations require {hours:g} hours notice"
        )


class ProviderNotFound(SchedulingError):
    """Raised when no schedule is configured for a provider."""
