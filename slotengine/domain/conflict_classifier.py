"""
Classification of candidate windows against blocks and bookings.
"""

from typing import Iterable, List, Optional

from .interval_math import ranges_overlap
from .models import Booking, BlockedInterval, CandidateWindow, SlotStatus, TimeSlot


class ConflictClassifier:
    """
    Tags each candidate window as available, booked or blocked.

    Blocks are tested against the whole window ``[session_start, break_end)``.
    Bookings are tested against the session only, ``[session_start, session_end)``,
    since the break is provider buffer and may coincide with a neighbouring
    booking's buffer. Blocked takes precedence over booked, and cancelled
    bookings never participate.
    """

    def classify(
        self,
        windows: Iterable[CandidateWindow],
        blocked_intervals: Iterable[BlockedInterval],
        bookings: Iterable[Booking],
    ) -> List[TimeSlot]:
        blocked = list(blocked_intervals)
        confirmed = [booking for booking in bookings if booking.is_confirmed]

        slots: List[TimeSlot] = []
        for window in windows:
            if self._is_blocked(window, blocked):
                slots.append(TimeSlot.from_window(window, SlotStatus.BLOCKED))
                continue

            booking = self._find_booking(window, confirmed)
            if booking is not None:
                slots.append(
                    TimeSlot.from_window(window, SlotStatus.BOOKED, booking_ref=booking.booking_id)
                )
                continue

            slots.append(TimeSlot.from_window(window, SlotStatus.AVAILABLE))

        return slots

    @staticmethod
    def _is_blocked(window: CandidateWindow, blocked_intervals: List[BlockedInterval]) -> bool:
        return any(
            block.covers(window.date)
            and ranges_overlap(window.session_start, window.break_end, block.start_time, block.end_time)
            for block in blocked_intervals
        )

    @staticmethod
    def _find_booking(window: CandidateWindow, bookings: List[Booking]) -> Optional[Booking]:
        for booking in bookings:
            if booking.date != window.date:
                continue
            if ranges_overlap(window.session_start, window.session_end, booking.start_time, booking.end_time):
                return booking
        return None
