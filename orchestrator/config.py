"""
Application configuration using Pydantic settings.

All configurable values are loaded from environment variables with sensible defaults.
This centralizes scheduling knobs (pin times, slack defaults, repair strategy)
alongside the usual application metadata.
"""
from datetime import time
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the directory containing this config file (orchestrator/)
_PACKAGE_DIR = Path(__file__).parent.resolve()

# Repair strategies known to the resolution factory
REPAIR_STRATEGIES = ("shift_earlier", "none")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App metadata
    app_name: str = "Meal Orchestrator API"
    app_version: str = "0.1.0"
    debug: bool = False

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    # Timezone applied to naive meal times entered on the CLI
    timezone: str = "UTC"

    # CORS - development defaults, override via CORS_ORIGINS env var for production
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # Backward solver
    pin_time_of_day: time = time(10, 0)  # Start time for nights-before-serving steps
    planning_horizon_days: int = 7  # Feasible origin when no kitchen-open time is given

    # Conflict resolution
    default_max_wait_minutes: int = 60  # Slack for steps that declare no max wait
    repair_strategy: str = "shift_earlier"

    # Allocation
    allocator_max_workers: int = 1  # >1 allocates oven and stovetop classes concurrently

    # Default equipment when a request omits it
    default_rack_positions: int = 5
    default_physical_racks: int = 2
    default_stovetop_burners: int = 4

    model_config = SettingsConfigDict(
        env_file=_PACKAGE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("repair_strategy")
    @classmethod
    def repair_strategy_must_be_known(cls, v: str) -> str:
        name = v.strip().lower()
        if name not in REPAIR_STRATEGIES:
            raise ValueError(
                f"Unknown repair strategy '{v}'. Expected one of: {', '.join(REPAIR_STRATEGIES)}"
            )
        return name

    @field_validator("timezone")
    @classmethod
    def timezone_must_exist(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown IANA timezone '{v}'")
        return v

    @field_validator("planning_horizon_days", "allocator_max_workers")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("default_max_wait_minutes")
    @classmethod
    def must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Value cannot be negative")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """ZoneInfo for the configured timezone."""
        return ZoneInfo(self.timezone)


def get_settings(**overrides) -> Settings:
    """
    Factory function to create Settings instance.

    Useful for testing where you need to override specific values
    without modifying environment variables.

    Args:
        **overrides: Key-value pairs to override default settings

    Returns:
        Settings instance with overrides applied

    Example:
        test_settings = get_settings(repair_strategy="none", allocator_max_workers=2)
    """
    return Settings(**overrides)


# Global settings instance (lazy initialization for testability)
# In tests, you can reload this module or use get_settings() directly
settings = get_settings()
