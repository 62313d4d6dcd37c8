"""
Provider schedules loaded from configuration.
"""

from typing import Dict, Iterable, Optional

from ..domain.models import ProviderSchedule


class ProviderDirectory:
    """
    Read-only lookup of provider schedules.

    Schedules are maintained by the availability-update collaborator; this
    adapter only serves the snapshot it was built from.
    """

    def __init__(self, schedules: Iterable[ProviderSchedule] = ()):
        self._schedules: Dict[str, ProviderSchedule] = {}
        for schedule in schedules:
            self._schedules[schedule.provider_id] = schedule

    @classmethod
    def from_config(cls, config) -> "ProviderDirectory":
        """Build the directory from an AppConfig's provider section."""
        return cls(provider.to_schedule() for provider in config.providers)

    def get_schedule(self, provider_id: str) -> Optional[ProviderSchedule]:
        return self._schedules.get(provider_id)
