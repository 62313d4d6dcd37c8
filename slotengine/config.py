"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator, model_validator

from .domain.exceptions import ConfigError
from .domain.models import (
    MAX_BREAK_MINUTES,
    MAX_SESSION_MINUTES,
    MIN_SESSION_MINUTES,
    AvailabilityEntry,
    BlockedInterval,
    OfferingPolicy,
    ProviderSchedule,
)


class OfferingConfig(BaseModel):
    """Default slot sizing and daily capacity."""
    session_minutes: int = 60
    break_minutes: int = 30
    max_slots_per_day: int = 2

    @field_validator("session_minutes")
    @classmethod
    def validate_session(cls, value: int) -> int:
        """Ensure session duration stays within the offering bounds."""
        if not MIN_SESSION_MINUTES <= value <= MAX_SESSION_MINUTES:
            raise ValueError(
                f"session_minutes must be between {MIN_SESSION_MINUTES} and {MAX_SESSION_MINUTES}, got {value}"
            )
        return value

    @field_validator("break_minutes")
    @classmethod
    def validate_break(cls, value: int) -> int:
        if not 0 <= value <= MAX_BREAK_MINUTES:
            raise ValueError(f"break_minutes must be between 0 and {MAX_BREAK_MINUTES}, got {value}")
        return value

    @field_validator("max_slots_per_day")
    @classmethod
    def validate_max_slots(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_slots_per_day must be at least 1")
        return value

    def to_policy(self) -> OfferingPolicy:
        return OfferingPolicy(
            session_minutes=self.session_minutes,
            break_minutes=self.break_minutes,
            max_slots_per_day=self.max_slots_per_day,
        )


class ProviderConfig(BaseModel):
    """Provider schedule as declared in the config file."""
    id: str
    name: str = ""
    weekly_availability: List[Dict[str, Any]] = Field(default_factory=list)
    blocked_intervals: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("weekly_availability")
    @classmethod
    def validate_weekly_availability(cls, value: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Each entry needs dayOfWeek 0-6 and startTime before endTime."""
        for entry in value:
            AvailabilityEntry.from_dict(entry)
        return value

    @field_validator("blocked_intervals")
    @classmethod
    def validate_blocked_intervals(cls, value: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        for entry in value:
            BlockedInterval.from_dict(entry)
        return value

    def display_name(self) -> str:
        return self.name or self.id

    def to_schedule(self) -> ProviderSchedule:
        return ProviderSchedule(
            provider_id=self.id,
            name=self.display_name(),
            weekly_availability=[AvailabilityEntry.from_dict(e) for e in self.weekly_availability],
            blocked_intervals=[BlockedInterval.from_dict(b) for b in self.blocked_intervals],
        )


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Zurich"
    database_url: str = "sqlite:///slotengine.db"
    offering: OfferingConfig = Field(default_factory=OfferingConfig)
    notice_window_hours: float = 24
    max_range_days: int = 92
    providers: List[ProviderConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the business timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("notice_window_hours")
    @classmethod
    def validate_notice_window(cls, value: float) -> float:
        if value < 0:
            raise ValueError("notice_window_hours must not be negative")
        return value

    @field_validator("max_range_days")
    @classmethod
    def validate_max_range_days(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_range_days must be at least 1")
        return value

    @model_validator(mode="after")
    def validate_unique_providers(self) -> "AppConfig":
        """Ensure provider ids are unique."""
        seen: set[str] = set()
        for provider in self.providers:
            if provider.id in seen:
                raise ValueError(f"Duplicate provider id detected: {provider.id}")
            seen.add(provider.id)
        return self

    def notice_window(self) -> timedelta:
        return timedelta(hours=self.notice_window_hours)

    def find_provider(self, provider_id: str) -> Optional[ProviderConfig]:
        for provider in self.providers:
            if provider.id == provider_id:
                return provider
        return None

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping at the root level.")

        try:
            return cls(**data)
        except PydanticValidationError as exc:
            raise ConfigError(f"Invalid configuration in {config_path}:\n{exc}") from exc


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of slotengine/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
