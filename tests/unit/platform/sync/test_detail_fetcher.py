"""Tests for DetailFetcher bounded fan-out and failure isolation."""

import asyncio

import pytest

from mailwatch.platform.sync.detail_fetcher import (
    DetailFetcher,
    DetailResult,
    raise_for_cycle_abort,
    successes,
)
from mailwatch.platform.sync.exceptions import (
    AuthorizationRequiredError,
    FatalSyncError,
    RetryLaterError,
    SyncErrorKind,
    SyncStateError,
)


@pytest.mark.asyncio
async def test_never_exceeds_concurrency_limit(mailbox):
    """Test that 100 pending fetches with a limit of 16 never run more than 16 at once."""
    for n in range(100):
        mailbox.add(f"M{n}")
    mailbox.detail_delay = 0.001
    fetcher = DetailFetcher(mailbox, concurrency=16)

    results = await fetcher.fetch(list(mailbox.messages))

    assert len(results) == 100
    assert all(r.ok for r in results)
    assert mailbox.max_in_flight <= 16
    assert mailbox.max_in_flight > 1


@pytest.mark.asyncio
async def test_results_keep_input_order(mailbox):
    """Test that results come back in the order the IDs were given."""
    for message_id in ("A", "B", "C"):
        mailbox.add(message_id)
    fetcher = DetailFetcher(mailbox, concurrency=2)

    results = await fetcher.fetch(["C", "A", "B"])

    assert [r.message_id for r in results] == ["C", "A", "B"]
    assert results[0].headers.subject == "Subject C"


@pytest.mark.asyncio
async def test_failures_do_not_cancel_siblings(mailbox):
    """Test that failed items are reported while the rest still succeed."""
    for n in range(10):
        mailbox.add(f"M{n}")
    mailbox.detail_errors["M2"] = FatalSyncError("gone", status_code=404)
    mailbox.detail_errors["M5"] = RetryLaterError("slow down", status_code=429)
    fetcher = DetailFetcher(mailbox, concurrency=3)

    results = await fetcher.fetch([f"M{n}" for n in range(10)])

    failed = {r.message_id: r.error.kind for r in results if not r.ok}
    assert failed == {"M2": SyncErrorKind.FATAL, "M5": SyncErrorKind.RETRY_LATER}
    assert len(successes(results)) == 8
    assert mailbox.calls["detail"] == 10


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_fatal_result(mailbox):
    """Test that a non-classified exception is recorded as a fatal item failure."""
    mailbox.add("A")
    mailbox.add("B")
    mailbox.detail_errors["A"] = KeyError("payload")
    fetcher = DetailFetcher(mailbox)

    results = await fetcher.fetch(["A", "B"])

    assert isinstance(results[0].error, FatalSyncError)
    assert results[1].ok


@pytest.mark.asyncio
async def test_duplicate_ids_fetched_once(mailbox):
    """Test that an ID listed twice is fetched and reported once."""
    mailbox.add("A")
    fetcher = DetailFetcher(mailbox)

    results = await fetcher.fetch(["A", "A"])

    assert [r.message_id for r in results] == ["A"]
    assert mailbox.detail_calls == ["A"]


@pytest.mark.asyncio
async def test_empty_input_returns_no_results(mailbox):
    """Test that an empty ID set makes no requests."""
    fetcher = DetailFetcher(mailbox)

    assert await fetcher.fetch([]) == []
    assert mailbox.calls["detail"] == 0


@pytest.mark.asyncio
async def test_missing_id_set_raises_state_error(mailbox):
    """Test that calling without an ID set is a programming error."""
    fetcher = DetailFetcher(mailbox)

    with pytest.raises(SyncStateError):
        await fetcher.fetch(None)


@pytest.mark.asyncio
async def test_empty_id_raises_state_error(mailbox):
    """Test that an empty message ID is rejected before any request."""
    fetcher = DetailFetcher(mailbox)

    with pytest.raises(SyncStateError):
        await fetcher.fetch(["A", ""])
    assert mailbox.calls["detail"] == 0


@pytest.mark.asyncio
async def test_cancellation_propagates(mailbox):
    """Test that cancelling the caller cancels outstanding fetches."""
    for n in range(8):
        mailbox.add(f"M{n}")
    mailbox.detail_delay = 10
    fetcher = DetailFetcher(mailbox, concurrency=4)

    task = asyncio.create_task(fetcher.fetch(list(mailbox.messages)))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0)
    assert mailbox.in_flight == 0
    assert mailbox.calls["detail"] == 4


def test_rejects_non_positive_concurrency(mailbox):
    """Test that a concurrency limit below 1 is rejected."""
    with pytest.raises(ValueError):
        DetailFetcher(mailbox, concurrency=0)


def test_result_without_headers_is_not_ok():
    """Test that a result carrying neither headers nor error does not count as success."""
    assert DetailResult(message_id="A").ok is False


def test_cycle_abort_prefers_authorization_over_rate_limit():
    """Test that rejected credentials win over a rate limit in the same batch."""
    results = [
        DetailResult(message_id="A", error=RetryLaterError("slow down", status_code=429)),
        DetailResult(message_id="B", error=AuthorizationRequiredError("expired", status_code=401)),
    ]

    with pytest.raises(AuthorizationRequiredError):
        raise_for_cycle_abort(results)


def test_cycle_abort_tolerates_fatal_item_failures():
    """Test that fatal item failures alone do not abort the cycle."""
    results = [
        DetailResult(message_id="A", error=FatalSyncError("gone", status_code=404)),
        DetailResult(message_id="B"),
    ]

    raise_for_cycle_abort(results)
