"""
Notice-window rule applied before a booking may be cancelled.
"""

from datetime import timedelta

from pendulum import DateTime

from .exceptions import AlreadyCancelled, NoticeWindowViolation
from .models import Booking

DEFAULT_NOTICE_WINDOW = timedelta(hours=24)


class CancellationPolicy:
    """
    Permits a cancellation only while the appointment is at least
    ``notice_window`` away.

    Already-cancelled bookings are rejected with ``AlreadyCancelled`` so a
    repeated request never looks like a second success.
    """

    def __init__(self, timezone: str, notice_window: timedelta = DEFAULT_NOTICE_WINDOW):
        if notice_window < timedelta(0):
            raise ValueError("notice_window must not be negative")
        self.timezone = timezone
        self.notice_window = notice_window

    def lead_time(self, booking: Booking, now: DateTime) -> timedelta:
        """Time remaining until the appointment starts."""
        return booking.appointment_datetime(self.timezone) - now

    def check(self, booking: Booking, now: DateTime) -> None:
        """
        Raise if the booking may not be cancelled at ``now``.

        Raises:
            AlreadyCancelled: If the booking is no longer confirmed
            NoticeWindowViolation: If the appointment is too close
        """
        if not booking.is_confirmed:
            raise AlreadyCancelled(booking.booking_id)

        remaining = self.lead_time(booking, now)
        if remaining < self.notice_window:
            raise NoticeWindowViolation(booking.booking_id, remaining, self.notice_window)
