"""
Tests for application configuration and settings validation.

Tests the Settings class behavior including:
- Default values
- Environment variable overrides
- Validation of scheduling knobs
"""
import pytest
from datetime import time
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from orchestrator.config import REPAIR_STRATEGIES, Settings, get_settings


class TestSettingsDefaults:
    """Tests for default configuration values."""

    def test_app_name_default(self):
        assert get_settings().app_name == "Meal Orchestrator API"

    def test_app_version_default(self):
        assert get_settings().app_version == "0.1.0"

    def test_scheduling_defaults(self, monkeypatch):
        monkeypatch.delenv("REPAIR_STRATEGY", raising=False)
        settings = get_settings()

        assert settings.pin_time_of_day == time(10, 0)
        assert settings.planning_horizon_days == 7
        assert settings.default_max_wait_minutes == 60
        assert settings.repair_strategy == "shift_earlier"
        assert settings.allocator_max_workers == 1

    def test_equipment_defaults(self):
        settings = get_settings()

        assert settings.default_physical_racks == 2
        assert settings.default_rack_positions == 5
        assert settings.default_stovetop_burners == 4

    def test_cors_origins_default(self):
        assert "http://localhost:3000" in get_settings().cors_origins


class TestSettingsOverrides:
    """Environment variables and explicit overrides."""

    def test_env_var_override(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_MAX_WAIT_MINUTES", "25")
        monkeypatch.setenv("PIN_TIME_OF_DAY", "08:30")

        settings = Settings()

        assert settings.default_max_wait_minutes == 25
        assert settings.pin_time_of_day == time(8, 30)

    def test_env_vars_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("repair_strategy", "none")

        assert Settings().repair_strategy == "none"

    def test_get_settings_overrides(self):
        settings = get_settings(allocator_max_workers=3, log_level="DEBUG")

        assert settings.allocator_max_workers == 3
        assert settings.log_level == "DEBUG"


class TestSettingsValidation:
    """Invalid values are rejected at load time."""

    def test_repair_strategy_normalized(self):
        assert get_settings(repair_strategy=" Shift_Earlier ").repair_strategy == "shift_earlier"

    def test_unknown_repair_strategy(self):
        with pytest.raises(ValidationError, match="Unknown repair strategy"):
            get_settings(repair_strategy="backtracking")

    def test_known_strategies(self):
        for name in REPAIR_STRATEGIES:
            assert get_settings(repair_strategy=name).repair_strategy == name

    def test_timezone(self):
        settings = get_settings(timezone="America/Chicago")

        assert settings.tzinfo == ZoneInfo("America/Chicago")

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError, match="Unknown IANA timezone"):
            get_settings(timezone="Mars/Olympus_Mons")

    @pytest.mark.parametrize("field", ["planning_horizon_days", "allocator_max_workers"])
    def test_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            get_settings(**{field: 0})

    def test_negative_default_wait(self):
        with pytest.raises(ValidationError):
            get_settings(default_max_wait_minutes=-5)
