"""Rate limiters for API clients."""

from ._base import BaseRateLimiter
from .gmail import GmailRateLimiter

__all__ = ["BaseRateLimiter", "GmailRateLimiter"]
