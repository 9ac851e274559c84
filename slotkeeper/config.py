"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import timedelta
from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .adapters.database import DEFAULT_DATABASE_URL


class SchedulingConfig(BaseModel):
    """Business rules for slots, lead time and expiry."""
    slot_minutes: int = 15
    lead_time_hours: int = 24
    grace_minutes: int = 30
    strict_confirm: bool = True  # re-check confirmed conflicts at confirm time
    require_availability: bool = False  # reservations must lie inside a window

    @field_validator("slot_minutes", "grace_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations are positive."""
        if value <= 0:
            raise ValueError(f"Duration must be greater than zero, got {value}")
        return value

    @field_validator("lead_time_hours")
    @classmethod
    def validate_lead_time(cls, value: int) -> int:
        """Lead time may be zero but not negative."""
        if value < 0:
            raise ValueError(f"lead_time_hours must not be negative, got {value}")
        return value

    def slot_duration(self) -> timedelta:
        return pendulum.duration(minutes=self.slot_minutes)

    def lead_time(self) -> timedelta:
        return pendulum.duration(hours=self.lead_time_hours)

    def grace_period(self) -> timedelta:
        return pendulum.duration(minutes=self.grace_minutes)


class AppConfig(BaseModel):
    """Application configuration."""
    database_url: str = DEFAULT_DATABASE_URL
    timezone: str = "UTC"  # used to read and display CLI timestamps
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject unknown IANA timezone names early."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

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
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.cwd() / "config.yaml"


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load the given config file, or ./config.yaml if present.

    Without an explicit path a missing default file means built-in defaults.
    """
    if config_path is not None:
        return AppConfig.load_from_yaml(config_path)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()
