"""
Booking creation, cancellation and rescheduling.
"""

from __future__ import annotations

import logging
from datetime import date, time, timedelta
from typing import Optional, Tuple, Union

import pendulum
from pendulum import DateTime

from ..domain.cancellation_policy import DEFAULT_NOTICE_WINDOW, CancellationPolicy
from ..domain.exceptions import AlreadyCancelled, BookingNotFound, ValidationError
from ..domain.interval_math import add_minutes, format_time, parse_date, parse_time
from ..domain.models import Booking, OfferingPolicy, ReservationRequest
from ..domain.range_scheduler import Clock
from .availability import DateInput, ProviderDirectoryProtocol, require_schedule
from .conflict_guard import BookingConflictGuard, BookingStoreProtocol

logger = logging.getLogger(__name__)

TimeInput = Union[str, time]


class BookingService:
    """
    Entry point for the booking mutations.

    Validation happens here, before the guard is invoked: formats are
    checked, past dates and elapsed start times are rejected, and the end
    time is always derived from the offering policy rather than trusted from
    the client.
    """

    def __init__(
        self,
        providers: ProviderDirectoryProtocol,
        store: BookingStoreProtocol,
        timezone: str,
        default_policy: Optional[OfferingPolicy] = None,
        clock: Optional[Clock] = None,
        notice_window: timedelta = DEFAULT_NOTICE_WINDOW,
        guard: Optional[BookingConflictGuard] = None,
    ) -> None:
        self._providers = providers
        self._store = store
        self.timezone = timezone
        self.default_policy = default_policy or OfferingPolicy()
        self._clock = clock or (lambda: pendulum.now(timezone))
        self._guard = guard or BookingConflictGuard(store)
        self.cancellation_policy = CancellationPolicy(timezone, notice_window)

    def now(self) -> DateTime:
        return self._clock().in_timezone(self.timezone)

    def reserve(
        self,
        provider_id: str,
        day: DateInput,
        start_time: TimeInput,
        policy: Optional[OfferingPolicy] = None,
        patient_name: Optional[str] = None,
        patient_email: Optional[str] = None,
    ) -> Booking:
        """
        Reserve one session for a patient.

        Raises:
            ValidationError: On malformed input, past dates or elapsed start times
            ProviderNotFound: If the provider is unknown
            SlotUnavailable: If the slot was taken concurrently
        """
        require_schedule(self._providers, provider_id)
        slot_date, start, end = self._resolve_slot(day, start_time, policy or self.default_policy)

        request = ReservationRequest(
            provider_id=provider_id,
            date=slot_date,
            start_time=start,
            end_time=end,
            patient_name=patient_name,
            patient_email=patient_email,
        )
        return self._guard.reserve(request)

    def cancel(self, booking_ref: str, now: Optional[DateTime] = None) -> Booking:
        """
        Cancel a booking by reference.

        Raises:
            BookingNotFound: If the reference is unknown
            AlreadyCancelled: If the booking was cancelled before
            NoticeWindowViolation: If the appointment is too close
        """
        booking = self._store.get(booking_ref)
        if booking is None:
            raise BookingNotFound(f"Booking not found: '{booking_ref}'")
        return self._cancel(booking, now)

    def cancel_by_token(self, token: str, now: Optional[DateTime] = None) -> Booking:
        """Cancel a booking through the token handed to the patient."""
        if not token:
            raise ValidationError("Cancellation token is required")
        booking = self._store.get_by_token(token)
        if booking is None:
            raise BookingNotFound("Invalid cancellation token")
        return self._cancel(booking, now)

    def reschedule(
        self,
        booking_ref: str,
        new_date: DateInput,
        new_start: TimeInput,
        policy: Optional[OfferingPolicy] = None,
    ) -> Booking:
        """
        Move a confirmed booking to another slot.

        Raises:
            BookingNotFound: If the reference is unknown
            AlreadyCancelled: If the booking is no longer confirmed
            ValidationError: On malformed input or a target in the past
            SlotUnavailable: If the target slot is taken
        """
        booking = self._store.get(booking_ref)
        if booking is None:
            raise BookingNotFound(f"Booking not found: '{booking_ref}'")
        if not booking.is_confirmed:
            raise AlreadyCancelled(booking.booking_id)

        slot_date, start, end = self._resolve_slot(new_date, new_start, policy or self.default_policy)
        return self._guard.move(booking, slot_date, start, end)

    def _cancel(self, booking: Booking, now: Optional[DateTime]) -> Booking:
        moment = now if now is not None else self.now()
        self.cancellation_policy.check(booking, moment)

        if not self._store.mark_cancelled(booking.booking_id):
            # Lost a race against another cancellation
            raise AlreadyCancelled(booking.booking_id)

        logger.info("Cancelled booking %s for provider %s", booking.booking_id, booking.provider_id)
        cancelled = self._store.get(booking.booking_id)
        return cancelled if cancelled is not None else booking

    def _resolve_slot(
        self,
        day: DateInput,
        start_time: TimeInput,
        policy: OfferingPolicy,
    ) -> Tuple[date, time, time]:
        slot_date = parse_date(day)
        start = parse_time(start_time)
        now = self.now()
        today = now.date()

        if slot_date < today:
            raise ValidationError("Cannot book appointments in the past")
        if slot_date == today and start <= now.time():
            raise ValidationError(f"Start time {format_time(start)} has already passed today")

        try:
            end = add_minutes(start, policy.session_minutes)
        except ValidationError as exc:
            raise ValidationError(
                f"A {policy.session_minutes} minute session starting at {format_time(start)} ends after midnight"
            ) from exc

        return slot_date, start, end
