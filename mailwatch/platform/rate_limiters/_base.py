"""Client-side request throttling shared by every request to one API."""

import asyncio
import time
from collections import deque
from typing import Deque, Optional

from mailwatch.core.logging import logger


class BaseRateLimiter:
    """Sliding-window limiter with one instance per process and limiter type.

    Quotas such as Gmail's are charged per project and user, not per HTTP
    connection, so every client in the process draws from the same window.
    Slots are timestamps on the monotonic clock; a waiter sleeps until the oldest
    slot leaves the window (at most ``POLL_INTERVAL_SECONDS`` at a time).
    """

    RATE_LIMIT_RPS: float = NotImplemented
    RATE_LIMIT_WINDOW_SECONDS: float = 1.0
    MAX_WAIT_FOR_SLOT_SECONDS: float = 30.0
    POLL_INTERVAL_SECONDS: float = 0.05

    _instance: Optional["BaseRateLimiter"] = None

    def __new__(cls):
        """Return the shared instance for this limiter type."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._slots: Deque[float] = deque()
        self._lock = asyncio.Lock()
        self._initialized = True

        self._log_initialization()

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance so the next construction starts with an empty window."""
        cls._instance = None

    @property
    def requests_per_window(self) -> float:
        """Requests allowed within one sliding window."""
        return self.RATE_LIMIT_RPS * self.RATE_LIMIT_WINDOW_SECONDS

    def _log_initialization(self):
        logger.debug(f"{self.__class__.__name__} initialized: {self.RATE_LIMIT_RPS:.1f} RPS")

    def _try_claim(self, now: float) -> float:
        """Claim a slot if the window has room.

        Returns:
            0 if a slot was claimed, otherwise seconds until the oldest slot expires
        """
        cutoff = now - self.RATE_LIMIT_WINDOW_SECONDS
        while self._slots and self._slots[0] <= cutoff:
            self._slots.popleft()

        if len(self._slots) < self.requests_per_window:
            self._slots.append(now)
            return 0.0
        return self._slots[0] - cutoff

    async def acquire(self) -> None:
        """Wait for a slot in the current window.

        Raises:
            TimeoutError: If no slot frees up within ``MAX_WAIT_FOR_SLOT_SECONDS``
        """
        deadline = time.monotonic() + self.MAX_WAIT_FOR_SLOT_SECONDS

        while True:
            now = time.monotonic()
            async with self._lock:
                delay = self._try_claim(now)
            if not delay:
                return

            if now + delay > deadline:
                raise TimeoutError(
                    f"No {self.__class__.__name__} slot within "
                    f"{self.MAX_WAIT_FOR_SLOT_SECONDS}s"
                )
            await asyncio.sleep(min(delay, self.POLL_INTERVAL_SECONDS))
