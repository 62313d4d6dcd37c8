"""
In-memory booking store for tests and local runs without a database.
"""

import threading
from dataclasses import replace
from datetime import date, time
from typing import Dict, List, Optional

import pendulum

from ..domain.exceptions import AlreadyCancelled, SlotUnavailable
from ..domain.interval_math import ranges_overlap
from ..domain.models import Booking, BookingStatus


class InMemoryBookingStore:
    """
    Mock store that keeps bookings in a dict.

    Check-and-insert runs under one lock, which makes it atomic within a
    single process. It offers no guarantee across processes; use
    ``SqlBookingStore`` for that.
    """

    def __init__(self, bookings: Optional[List[Booking]] = None):
        self._lock = threading.Lock()
        self._bookings: Dict[str, Booking] = {}
        for booking in bookings or []:
            self._bookings[booking.booking_id] = booking

    def insert_confirmed(self, booking: Booking) -> Booking:
        with self._lock:
            self._reject_overlap(booking.provider_id, booking.date, booking.start_time, booking.end_time)
            now = pendulum.now("UTC")
            stored = replace(booking, status=BookingStatus.CONFIRMED, created_at=now, updated_at=now)
            self._bookings[stored.booking_id] = stored
            return replace(stored)

    def list_confirmed(self, provider_id: str, start_date: date, end_date: date) -> List[Booking]:
        with self._lock:
            matches = [
                replace(booking) for booking in self._bookings.values()
                if booking.provider_id == provider_id
                and booking.is_confirmed
                and start_date <= booking.date <= end_date
            ]
        return sorted(matches, key=lambda b: (b.date, b.start_time))

    def get(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            booking = self._bookings.get(booking_id)
            return replace(booking) if booking is not None else None

    def get_by_token(self, token: str) -> Optional[Booking]:
        with self._lock:
            for booking in self._bookings.values():
                if booking.cancellation_token == token:
                    return replace(booking)
        return None

    def mark_cancelled(self, booking_id: str) -> bool:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None or not booking.is_confirmed:
                return False
            self._bookings[booking_id] = replace(
                booking, status=BookingStatus.CANCELLED, updated_at=pendulum.now("UTC"),
            )
            return True

    def move(self, booking_id: str, new_date: date, start_time: time, end_time: time) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None or not booking.is_confirmed:
                raise AlreadyCancelled(booking_id)

            self._reject_overlap(booking.provider_id, new_date, start_time, end_time, exclude_id=booking_id)
            moved = replace(
                booking,
                date=new_date,
                start_time=start_time,
                end_time=end_time,
                updated_at=pendulum.now("UTC"),
            )
            self._bookings[booking_id] = moved
            return replace(moved)

    def _reject_overlap(
        self,
        provider_id: str,
        day: date,
        start_time: time,
        end_time: time,
        exclude_id: Optional[str] = None,
    ) -> None:
        for other in self._bookings.values():
            if other.booking_id == exclude_id or not other.is_confirmed:
                continue
            if other.provider_id != provider_id or other.date != day:
                continue
            if other.start_time == start_time:
                raise SlotUnavailable(provider_id, day, start_time)
            if ranges_overlap(start_time, end_time, other.start_time, other.end_time):
                raise SlotUnavailable(provider_id, day, start_time, reason=f"overlaps booking {other.booking_id}")
