"""
Daily capacity enforcement for classified slots.
"""

from typing import Iterable, List

from .models import SlotStatus, TimeSlot


class DailyCapacityFilter:
    """
    Keeps at most ``max_slots_per_day`` available slots for one date.

    Surplus available slots are dropped, not relabelled. Booked, blocked and
    unavailable slots always pass through so the provider's calendar still
    shows existing commitments.
    """

    def __init__(self, max_slots_per_day: int):
        self.max_slots_per_day = max_slots_per_day

    def apply(self, slots: Iterable[TimeSlot]) -> List[TimeSlot]:
        ordered = sorted(slots, key=lambda s: s.sort_key)

        kept: List[TimeSlot] = []
        offered = 0
        for slot in ordered:
            if slot.status == SlotStatus.AVAILABLE:
                if offered >= self.max_slots_per_day:
                    continue
                offered += 1
            kept.append(slot)

        return kept
