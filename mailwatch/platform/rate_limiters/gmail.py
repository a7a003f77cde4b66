"""Gmail API rate limiter."""

from typing import Optional

from mailwatch.core.config import settings
from mailwatch.core.logging import logger

from ._base import BaseRateLimiter


class GmailRateLimiter(BaseRateLimiter):
    """Per-process rate limiter for the Gmail API.

    Gmail allows 250 quota units per user per second; history.list and
    messages.get cost 2 and 5 units, so a detail-fetch burst at full concurrency
    can exceed it. The client-side ceiling is ``settings.GMAIL_RATE_LIMIT_RPS``.
    """

    RATE_LIMIT_RPS = settings.GMAIL_RATE_LIMIT_RPS
    RATE_LIMIT_WINDOW_SECONDS = 1.0
    MAX_WAIT_FOR_SLOT_SECONDS = 30.0
    POLL_INTERVAL_SECONDS = 0.05

    _instance: Optional["GmailRateLimiter"] = None

    def _log_initialization(self):
        """Log Gmail-specific initialization message."""
        logger.debug(
            f"Gmail rate limiter initialized: {self.RATE_LIMIT_RPS:.1f} RPS "
            f"(window {self.RATE_LIMIT_WINDOW_SECONDS:.1f}s)"
        )
