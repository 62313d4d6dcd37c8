"""
Primitive day/time arithmetic and overlap tests.

Times of day are ``datetime.time`` values in local business time; arithmetic
is done in minutes since midnight so a whole day fits in ``0..1439``.
"""

import re
from datetime import date, time
from typing import Iterator

import pendulum

from .exceptions import ValidationError

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MINUTES_PER_DAY = 24 * 60


def parse_time(value: str) -> time:
    """Parse a ``HH:MM`` string into a time of day."""
    if isinstance(value, time):
        return value
    match = TIME_PATTERN.match(str(value).strip())
    if not match:
        raise ValidationError(f"Invalid time format '{value}'. Use HH:MM")
    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a calendar date."""
    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)
    text = str(value).strip()
    if not DATE_PATTERN.match(text):
        raise ValidationError(f"Invalid date format '{value}'. Use YYYY-MM-DD")
    try:
        return pendulum.from_format(text, "YYYY-MM-DD").date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{value}': {exc}") from exc


def format_date(value: date) -> str:
    return value.isoformat()


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValidationError(f"{minutes} minutes does not fall within a single day")
    return time(hour=minutes // 60, minute=minutes % 60)


def add_minutes(value: time, minutes: int) -> time:
    """Shift a time of day; the result must stay on the same day."""
    return minutes_to_time(time_to_minutes(value) + minutes)


def ranges_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    """
    Half-open overlap test for ``[start1, end1)`` and ``[start2, end2)``.

    Touching ranges such as 10:30-11:30 and 11:30-12:30 do not overlap.
    """
    return time_to_minutes(start1) < time_to_minutes(end2) and time_to_minutes(start2) < time_to_minutes(end1)


def weekday_index(day: date) -> int:
    """Day of week with 0=Sunday through 6=Saturday."""
    return day.isoweekday() % 7


def iter_dates(start_date: date, end_date: date) -> Iterator[date]:
    """Yield every calendar date from start_date to end_date inclusive."""
    current = pendulum.date(start_date.year, start_date.month, start_date.day)
    while current <= end_date:
        yield current
        current = current.add(days=1)
