"""Tests for configuration validation."""

import pytest
from pydantic import ValidationError

from src.core.config import Constants, Settings


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test settings are loaded from environment variables case-insensitively."""
    monkeypatch.setenv("REMINDER_INTERVAL_MINUTES", "5")
    monkeypatch.setenv("remote_base_url", "https://tasks.example.test")

    settings = Settings()

    assert settings.reminder_interval_minutes == 5
    assert settings.remote_base_url == "https://tasks.example.test"


def test_engine_tuning_is_validated() -> None:
    """Test non-positive intervals and timeouts are rejected."""
    with pytest.raises(ValidationError, match="reminder_interval_minutes"):
        Settings(reminder_interval_minutes=0)

    with pytest.raises(ValidationError, match="sync_timeout_seconds"):
        Settings(sync_timeout_seconds=0)


def test_urgency_windows() -> None:
    assert Constants.NEAR_WINDOW_HOURS == 24
    assert Constants.UPCOMING_WINDOW_DAYS == 3
