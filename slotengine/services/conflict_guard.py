"""
Atomic check-and-reserve at booking-creation time.

The guard never reads first and writes later: it hands a fully formed
booking to the store, and the store performs the existence check and the
insert as one storage operation. A concurrent request for the same
``(provider, date, start)`` therefore fails with ``SlotUnavailable`` instead
of producing a double booking.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import date, time
from typing import Callable, List, Optional, Protocol

from ..domain.exceptions import SlotUnavailable
from ..domain.models import Booking, BookingStatus, ReservationRequest

logger = logging.getLogger(__name__)


class BookingStoreProtocol(Protocol):
    """Persistence behaviour needed by the booking services."""

    def insert_confirmed(self, booking: Booking) -> Booking:
        """Atomically insert a confirmed booking or raise ``SlotUnavailable``."""

    def list_confirmed(self, provider_id: str, start_date: date, end_date: date) -> List[Booking]:
        """Return confirmed bookings of a provider within an inclusive date range."""

    def get(self, booking_id: str) -> Optional[Booking]:
        """Return a booking by reference."""

    def get_by_token(self, token: str) -> Optional[Booking]:
        """Return a booking by cancellation token."""

    def mark_cancelled(self, booking_id: str) -> bool:
        """Flip confirmed to cancelled; False if the booking was not confirmed."""

    def move(self, booking_id: str, new_date: date, start_time: time, end_time: time) -> Booking:
        """Atomically move a confirmed booking or raise ``SlotUnavailable``."""


def generate_cancellation_token(length: int = 32) -> str:
    """Cryptographically secure, URL-safe hex token."""
    return secrets.token_hex(length)


def generate_booking_id() -> str:
    return uuid.uuid4().hex


class BookingConflictGuard:
    """
    Guarantees at most one confirmed booking per (provider, date, start time).

    The caller must not retry on ``SlotUnavailable``; the right reaction is to
    re-query availability and let the patient pick another slot.
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        id_factory: Callable[[], str] = generate_booking_id,
        token_factory: Callable[[], str] = generate_cancellation_token,
    ) -> None:
        self._store = store
        self._id_factory = id_factory
        self._token_factory = token_factory

    def reserve(self, request: ReservationRequest) -> Booking:
        """
        Reserve the requested slot.

        Returns:
            The persisted booking, carrying its reference and cancellation token

        Raises:
            SlotUnavailable: If the slot is already held by a confirmed booking
        """
        booking = Booking(
            booking_id=self._id_factory(),
            provider_id=request.provider_id,
            date=request.date,
            start_time=request.start_time,
            end_time=request.end_time,
            cancellation_token=self._token_factory(),
            status=BookingStatus.CONFIRMED,
            patient_name=request.patient_name,
            patient_email=request.patient_email,
        )

        try:
            stored = self._store.insert_confirmed(booking)
        except SlotUnavailable as exc:
            logger.warning("Reservation rejected: %s", exc)
            raise

        logger.info(
            "Reserved %s %s for provider %s (booking %s)",
            stored.date, stored.start_time.strftime("%H:%M"), stored.provider_id, stored.booking_id,
        )
        return stored

    def move(self, booking: Booking, new_date: date, start_time: time, end_time: time) -> Booking:
        """Move a confirmed booking to a new slot under the same uniqueness guarantee."""
        try:
            moved = self._store.move(booking.booking_id, new_date, start_time, end_time)
        except SlotUnavailable as exc:
            logger.warning("Reschedule of booking %s rejected: %s", booking.booking_id, exc)
            raise

        logger.info(
            "Moved booking %s to %s %s", moved.booking_id, moved.date, moved.start_time.strftime("%H:%M"),
        )
        return moved
