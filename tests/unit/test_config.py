"""Unit tests for Settings environment parsing."""
from __future__ import annotations

import pytest

from uptime_engine.config import Settings


@pytest.mark.unit
def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.min_check_interval == 30
    assert settings.storage_write_retries == 3
    assert "webhook" in settings.allowed_channel_types


@pytest.mark.unit
def test_comma_separated_lists_from_env(monkeypatch) -> None:
    monkeypatch.setenv("ALLOWED_CHANNEL_TYPES", "Email, webhook,,slack")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com")

    settings = Settings(_env_file=None)

    assert settings.allowed_channel_types == ["email", "webhook", "slack"]
    assert settings.cors_origins == ["https://a.example.com", "https://b.example.com"]


@pytest.mark.unit
def test_invalid_values_rejected(monkeypatch) -> None:
    monkeypatch.setenv("SCHEDULER_JITTER_RATIO", "0.9")

    with pytest.raises(ValueError):
        Settings(_env_file=None)
