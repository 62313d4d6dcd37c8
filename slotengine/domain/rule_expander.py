"""
Expansion of weekly availability rules into candidate appointment windows.
"""

from datetime import date
from typing import Iterable, List

from .exceptions import ValidationError
from .interval_math import format_date, minutes_to_time, time_to_minutes
from .models import AvailabilityEntry, CandidateWindow, OfferingPolicy


class RuleExpander:
    """
    Turns availability rules for a calendar date into candidate windows.

    Each window is session + break long and must fit, break included,
    inside the declared availability. A provider open 09:00-18:00 with 60/30
    sizing yields 09:00, 10:30, 12:00, 13:30, 15:00 and 16:30; a 17:30 start
    would end at 19:00 and is not emitted.
    """

    def __init__(self, policy: OfferingPolicy):
        self.policy = policy

    def expand(self, entry: AvailabilityEntry, day: date) -> List[CandidateWindow]:
        """Expand one rule against a date whose weekday it matches."""
        if not entry.applies_to(day):
            raise ValidationError(
                f"Availability for weekday {entry.day_of_week} does not apply to {format_date(day)}"
            )

        step = self.policy.step_minutes
        cursor = time_to_minutes(entry.start_time)
        end = time_to_minutes(entry.end_time)

        windows: List[CandidateWindow] = []
        while cursor + step <= end:
            windows.append(
                CandidateWindow.starting_at(day, minutes_to_time(cursor), self.policy)
            )
            cursor += step

        return windows

    def expand_day(self, entries: Iterable[AvailabilityEntry], day: date) -> List[CandidateWindow]:
        """
        Expand every rule matching the date's weekday.

        Sequences are concatenated and sorted by session start; overlapping
        rules produce overlapping candidates which later stages reconcile.
        """
        windows: List[CandidateWindow] = []
        for entry in entries:
            if entry.applies_to(day):
                windows.extend(self.expand(entry, day))

        return sorted(windows, key=lambda w: time_to_minutes(w.session_start))
