"""
Domain models for availability rules, bookings and computed slots.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import pendulum
from pendulum import DateTime

from .exceptions import ValidationError
from .interval_math import (
    add_minutes,
    format_date,
    format_time,
    parse_date,
    parse_time,
    time_to_minutes,
    weekday_index,
)

# Bounds enforced by the offering editor
MIN_SESSION_MINUTES = 15
MAX_SESSION_MINUTES = 240
MAX_BREAK_MINUTES = 60


class SlotStatus(str, Enum):
    """Status of a computed time slot."""
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"
    UNAVAILABLE = "unavailable"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present key, accepting camelCase and snake_case spellings."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    raise ValidationError(f"Missing required field: {keys[0]}")


@dataclass(frozen=True)
class AvailabilityEntry:
    """
    A recurring weekly open-hours rule for one weekday.

    Invariant: start_time must be before end_time.
    """
    day_of_week: int  # 0=Sunday, 6=Saturday
    start_time: time
    end_time: time

    def __post_init__(self):
        if not isinstance(self.day_of_week, int) or not 0 <= self.day_of_week <= 6:
            raise ValidationError(f"dayOfWeek must be between 0 and 6, got {self.day_of_week!r}")
        if self.start_time >= self.end_time:
            raise ValidationError(
                f"Start time {format_time(self.start_time)} must be before end time {format_time(self.end_time)}"
            )

    def applies_to(self, day: date) -> bool:
        """Check if this rule covers the weekday of the given date."""
        return weekday_index(day) == self.day_of_week

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AvailabilityEntry":
        return cls(
            day_of_week=_first(data, "dayOfWeek", "day_of_week"),
            start_time=parse_time(_first(data, "startTime", "start_time")),
            end_time=parse_time(_first(data, "endTime", "end_time")),
        )


@dataclass(frozen=True)
class BlockedInterval:
    """
    A provider-declared, time-bounded block across an inclusive date range.

    Invariants: from_date <= to_date and start_time < end_time.
    """
    from_date: date
    to_date: date
    start_time: time
    end_time: time

    def __post_init__(self):
        if self.from_date > self.to_date:
            raise ValidationError(
                f"fromDate {format_date(self.from_date)} must not be after toDate {format_date(self.to_date)}"
            )
        if self.start_time >= self.end_time:
            raise ValidationError(
                f"Start time {format_time(self.start_time)} must be before end time {format_time(self.end_time)}"
            )

    def covers(self, day: date) -> bool:
        return self.from_date <= day <= self.to_date

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BlockedInterval":
        """
        Build a blocked interval from a mapping.

        Accepts the range shape ``{fromDate, toDate, ...}`` and the legacy
        single-day shape ``{date, ...}``.
        """
        legacy_day = data.get("date")
        from_value = data.get("fromDate") or data.get("from_date") or legacy_day
        to_value = data.get("toDate") or data.get("to_date") or legacy_day
        if from_value is None or to_value is None:
            raise ValidationError("Blocked interval requires fromDate/toDate or date")
        return cls(
            from_date=parse_date(from_value),
            to_date=parse_date(to_value),
            start_time=parse_time(_first(data, "startTime", "start_time")),
            end_time=parse_time(_first(data, "endTime", "end_time")),
        )


@dataclass(frozen=True)
class OfferingPolicy:
    """
    Slot sizing and capacity for one service type.

    Every generated window is session_minutes + break_minutes long.
    """
    session_minutes: int = 60
    break_minutes: int = 30
    max_slots_per_day: int = 2

    def __post_init__(self):
        if not MIN_SESSION_MINUTES <= self.session_minutes <= MAX_SESSION_MINUTES:
            raise ValidationError(
                f"Session duration must be between {MIN_SESSION_MINUTES} and "
                f"{MAX_SESSION_MINUTES} minutes, got {self.session_minutes}"
            )
        if not 0 <= self.break_minutes <= MAX_BREAK_MINUTES:
            raise ValidationError(
                f"Break duration must be between 0 and {MAX_BREAK_MINUTES} minutes, got {self.break_minutes}"
            )
        if self.max_slots_per_day < 1:
            raise ValidationError(f"maxSlotsPerDay must be at least 1, got {self.max_slots_per_day}")

    @property
    def step_minutes(self) -> int:
        return self.session_minutes + self.break_minutes


@dataclass
class Booking:
    """
    A reservation of one session for a provider.

    Status moves from confirmed to cancelled exactly once.
    """
    booking_id: str
    provider_id: str
    date: date
    start_time: time
    end_time: time
    cancellation_token: str
    status: BookingStatus = BookingStatus.CONFIRMED
    patient_name: Optional[str] = None
    patient_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    def appointment_datetime(self, timezone: str) -> DateTime:
        """Start of the appointment as an aware datetime in the business timezone."""
        return pendulum.datetime(
            self.date.year,
            self.date.month,
            self.date.day,
            self.start_time.hour,
            self.start_time.minute,
            tz=timezone,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], provider_id: str = "") -> "Booking":
        """Build a booking from the boundary shape ``{date, startTime, endTime, status}``."""
        return cls(
            booking_id=str(data.get("id") or data.get("bookingId") or data.get("_id") or ""),
            provider_id=str(data.get("providerId") or data.get("provider_id") or provider_id),
            date=parse_date(_first(data, "date", "appointmentDate")),
            start_time=parse_time(_first(data, "startTime", "start_time")),
            end_time=parse_time(_first(data, "endTime", "end_time")),
            cancellation_token=str(data.get("cancellationToken") or ""),
            status=BookingStatus(data.get("status", BookingStatus.CONFIRMED.value)),
        )


@dataclass(frozen=True)
class ReservationRequest:
    """A request to hold one slot; end_time is computed from the offering policy."""
    provider_id: str
    date: date
    start_time: time
    end_time: time
    patient_name: Optional[str] = None
    patient_email: Optional[str] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValidationError(
                f"Start time {format_time(self.start_time)} must be before end time {format_time(self.end_time)}"
            )


@dataclass(frozen=True)
class CandidateWindow:
    """A provisional session + break block before conflict classification."""
    date: date
    session_start: time
    session_end: time
    break_start: time
    break_end: time

    @classmethod
    def starting_at(cls, day: date, start: time, policy: OfferingPolicy) -> "CandidateWindow":
        session_end = add_minutes(start, policy.session_minutes)
        return cls(
            date=day,
            session_start=start,
            session_end=session_end,
            break_start=session_end,
            break_end=add_minutes(start, policy.step_minutes),
        )


@dataclass(frozen=True)
class TimeSlot:
    """
    A computed slot offered to patients or shown on the provider calendar.

    Produced fresh on every query and never persisted.
    """
    date: date
    start_time: time
    end_time: time
    status: SlotStatus
    session_start: Optional[time] = None
    session_end: Optional[time] = None
    break_start: Optional[time] = None
    break_end: Optional[time] = None
    booking_ref: Optional[str] = None

    @classmethod
    def from_window(
        cls,
        window: CandidateWindow,
        status: SlotStatus,
        booking_ref: Optional[str] = None,
    ) -> "TimeSlot":
        return cls(
            date=window.date,
            start_time=window.session_start,
            end_time=window.break_end,
            status=status,
            session_start=window.session_start,
            session_end=window.session_end,
            break_start=window.break_start,
            break_end=window.break_end,
            booking_ref=booking_ref,
        )

    @classmethod
    def unavailable_day(cls, day: date) -> "TimeSlot":
        """Marker for a date without any weekly availability."""
        midnight = time(0, 0)
        return cls(date=day, start_time=midnight, end_time=midnight, status=SlotStatus.UNAVAILABLE)

    @property
    def sort_key(self):
        return (self.date, time_to_minutes(self.start_time))

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to the camelCase wire shape consumed by the booking UI."""
        data: Dict[str, Any] = {
            "date": format_date(self.date),
            "startTime": format_time(self.start_time),
            "endTime": format_time(self.end_time),
            "status": self.status.value,
        }
        optional = {
            "sessionStart": self.session_start,
            "sessionEnd": self.session_end,
            "breakStart": self.break_start,
            "breakEnd": self.break_end,
        }
        for key, value in optional.items():
            if value is not None:
                data[key] = format_time(value)
        if self.booking_ref is not None:
            data["bookingRef"] = self.booking_ref
        return data


@dataclass
class ProviderSchedule:
    """Weekly rules and blocked intervals declared by one provider."""
    provider_id: str
    weekly_availability: List[AvailabilityEntry] = field(default_factory=list)
    blocked_intervals: List[BlockedInterval] = field(default_factory=list)
    name: Optional[str] = None
