"""Tests for settings loading and validation."""

import pytest
from pydantic import ValidationError

from mailwatch.core.config import Settings


def test_defaults(monkeypatch):
    """Test the defaults that shape sync behavior."""
    for name in ("GMAIL_API_BASE_URL", "LOG_LEVEL", "GMAIL_ACCESS_TOKEN"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.GMAIL_API_BASE_URL == "https://gmail.googleapis.com/gmail/v1"
    assert settings.GMAIL_LABEL_ID == "INBOX"
    assert settings.DETAIL_FETCH_CONCURRENCY == 16
    assert settings.OUTPUT_CHANNEL_CAPACITY == 32
    assert settings.OUTPUT_CHANNEL_POLICY == "block"
    assert settings.GMAIL_ACCESS_TOKEN is None


def test_environment_overrides(monkeypatch):
    """Test that environment variables override defaults."""
    monkeypatch.setenv("DETAIL_FETCH_CONCURRENCY", "4")
    monkeypatch.setenv("OUTPUT_CHANNEL_POLICY", "drop")
    monkeypatch.setenv("SYNC_INTERVAL_SECONDS", "2.5")

    settings = Settings(_env_file=None)

    assert settings.DETAIL_FETCH_CONCURRENCY == 4
    assert settings.OUTPUT_CHANNEL_POLICY == "drop"
    assert settings.SYNC_INTERVAL_SECONDS == 2.5


def test_base_url_and_log_level_are_normalized():
    """Test that the trailing slash is stripped and the level uppercased."""
    settings = Settings(
        _env_file=None, GMAIL_API_BASE_URL="https://gmail.test/gmail/v1/", LOG_LEVEL="debug"
    )

    assert settings.GMAIL_API_BASE_URL == "https://gmail.test/gmail/v1"
    assert settings.LOG_LEVEL == "DEBUG"


@pytest.mark.parametrize(
    "overrides",
    [
        {"DETAIL_FETCH_CONCURRENCY": 0},
        {"OUTPUT_CHANNEL_CAPACITY": -1},
        {"HTTP_MAX_ATTEMPTS": 0},
        {"SYNC_INTERVAL_SECONDS": 0},
        {"GMAIL_RATE_LIMIT_RPS": -5},
        {"OUTPUT_CHANNEL_POLICY": "overwrite"},
    ],
)
def test_invalid_values_are_rejected(overrides):
    """Test that non-positive limits and unknown policies fail validation."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)
