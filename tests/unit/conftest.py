"""Unit test conftest for setting up test environment."""

import os

# Set environment before importing any mailwatch modules; settings are read once at import
os.environ.setdefault("GMAIL_ACCESS_TOKEN", "test-access-token")
os.environ.setdefault("GMAIL_API_BASE_URL", "https://gmail.test/gmail/v1")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest  # noqa: E402

from mailwatch.platform.rate_limiters import GmailRateLimiter  # noqa: E402


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Give every test a fresh process-wide rate limiter window."""
    GmailRateLimiter.reset()
    yield
    GmailRateLimiter.reset()
