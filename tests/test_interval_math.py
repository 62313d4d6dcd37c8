"""
Tests for day/time arithmetic helpers.
"""

from datetime import date, time

import pytest

from slotengine.domain.exceptions import ValidationError
from slotengine.domain.interval_math import (
    add_minutes,
    iter_dates,
    parse_date,
    parse_time,
    ranges_overlap,
    weekday_index,
)


class TestParsing:
    """Tests for HH:MM and YYYY-MM-DD parsing."""

    def test_parse_time(self):
        """HH:MM strings become times."""
        assert parse_time("09:30") == time(9, 30)
        assert parse_time("23:59") == time(23, 59)

    @pytest.mark.parametrize("value", ["9:30", "24:00", "12:60", "noon", ""])
    def test_parse_time_rejects_malformed(self, value):
        """Malformed times are refused."""
        with pytest.raises(ValidationError, match="Invalid time format"):
            parse_time(value)

    def test_parse_date(self):
        """YYYY-MM-DD strings become dates."""
        assert parse_date("2025-12-15") == date(2025, 12, 15)

    @pytest.mark.parametrize("value", ["2025-12-5", "15.12.2025", "2025-13-01", "2025-02-30"])
    def test_parse_date_rejects_malformed(self, value):
        """Malformed dates are refused."""
        with pytest.raises(ValidationError):
            parse_date(value)


class TestArithmetic:
    """Tests for minute arithmetic and overlap detection."""

    def test_add_minutes(self):
        """Minutes are added within the day."""
        assert add_minutes(time(16, 30), 90) == time(18, 0)

    def test_add_minutes_past_midnight_raises(self):
        """Times do not wrap past midnight."""
        with pytest.raises(ValidationError):
            add_minutes(time(23, 30), 60)

    def test_partial_overlap(self):
        """Partially overlapping ranges overlap."""
        assert ranges_overlap(time(9, 0), time(11, 0), time(10, 0), time(12, 0))

    def test_containment(self):
        """A contained range overlaps."""
        assert ranges_overlap(time(9, 0), time(12, 0), time(10, 0), time(11, 0))

    def test_touching_ranges_do_not_overlap(self):
        """Ranges are half-open."""
        assert not ranges_overlap(time(10, 30), time(11, 30), time(11, 30), time(12, 30))


class TestCalendar:
    """Tests for weekday numbering and date iteration."""

    def test_weekday_index_starts_on_sunday(self):
        """Sunday is 0 and Saturday is 6."""
        assert weekday_index(date(2025, 12, 14)) == 0  # Sunday
        assert weekday_index(date(2025, 12, 15)) == 1  # Monday
        assert weekday_index(date(2025, 12, 20)) == 6  # Saturday

    def test_iter_dates_is_inclusive(self):
        """Both range ends are yielded."""
        days = list(iter_dates(date(2025, 12, 30), date(2026, 1, 2)))

        assert days == [date(2025, 12, 30), date(2025, 12, 31), date(2026, 1, 1), date(2026, 1, 2)]

    def test_iter_dates_single_day(self):
        """A one-day range yields one date."""
        assert list(iter_dates(date(2025, 12, 15), date(2025, 12, 15))) == [date(2025, 12, 15)]
