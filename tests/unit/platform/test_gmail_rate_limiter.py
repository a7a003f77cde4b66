"""Tests for the per-process Gmail rate limiter."""

import time

import pytest

from mailwatch.platform.rate_limiters import GmailRateLimiter


class TinyLimiter(GmailRateLimiter):
    """Two requests per 50ms window with a short slot timeout."""

    RATE_LIMIT_RPS = 40.0
    RATE_LIMIT_WINDOW_SECONDS = 0.05
    MAX_WAIT_FOR_SLOT_SECONDS = 0.02
    POLL_INTERVAL_SECONDS = 0.005
    _instance = None


@pytest.fixture(autouse=True)
def reset_tiny_limiter():
    """Start each test with an empty window."""
    TinyLimiter.reset()
    yield
    TinyLimiter.reset()


def test_limiter_is_process_singleton():
    """Test that every construction returns the shared instance."""
    assert GmailRateLimiter() is GmailRateLimiter()


def test_reset_drops_shared_instance():
    """Test that reset() gives the next construction a fresh instance."""
    first = GmailRateLimiter()
    GmailRateLimiter.reset()

    assert GmailRateLimiter() is not first


def test_subclasses_do_not_share_instance():
    """Test that limiters of different types keep separate windows."""
    assert TinyLimiter() is not GmailRateLimiter()
    assert TinyLimiter().requests_per_window == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_acquire_within_limit_does_not_wait():
    """Test that requests under the window limit are granted immediately."""
    limiter = GmailRateLimiter()

    start = time.monotonic()
    for _ in range(5):
        await limiter.acquire()

    assert time.monotonic() - start < 0.5


@pytest.mark.asyncio
async def test_acquire_times_out_when_window_full():
    """Test that a full window raises TimeoutError once the max wait passes."""
    limiter = TinyLimiter()
    await limiter.acquire()
    await limiter.acquire()

    with pytest.raises(TimeoutError):
        await limiter.acquire()


@pytest.mark.asyncio
async def test_acquire_succeeds_after_window_slides():
    """Test that a slot frees up once the oldest request leaves the window."""
    limiter = TinyLimiter()
    TinyLimiter.MAX_WAIT_FOR_SLOT_SECONDS = 1.0
    try:
        await limiter.acquire()
        await limiter.acquire()

        start = time.monotonic()
        await limiter.acquire()

        assert time.monotonic() - start >= 0.03
    finally:
        TinyLimiter.MAX_WAIT_FOR_SLOT_SECONDS = 0.02
