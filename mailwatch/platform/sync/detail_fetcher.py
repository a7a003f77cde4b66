"""Bounded-concurrency message detail fetching.

Fetches headers for a batch of message IDs with at most ``concurrency`` requests in
flight. A failed item never cancels its siblings; cancelling the caller cancels the
whole batch. Callers decide from the recorded errors whether the batch is usable
(see ``raise_for_cycle_abort``).
"""

import asyncio
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from mailwatch.core.config import settings
from mailwatch.core.logging import ContextualLogger
from mailwatch.core.logging import logger as default_logger
from mailwatch.platform.entities.gmail import MessageHeaders
from mailwatch.platform.sync.exceptions import (
    FatalSyncError,
    SyncError,
    SyncErrorKind,
    SyncStateError,
)
from mailwatch.platform.sync.transport import MailboxTransport


@dataclass(frozen=True)
class DetailResult:
    """Outcome of one detail fetch: headers on success, the classified error otherwise."""

    message_id: str
    headers: Optional[MessageHeaders] = None
    error: Optional[SyncError] = None

    @property
    def ok(self) -> bool:
        """Whether the fetch succeeded."""
        return self.error is None and self.headers is not None


class DetailFetcher:
    """Fetches message headers with bounded fan-out.

    Every input ID appears exactly once in the output, in input order. Duplicate
    IDs in the input are fetched once.
    """

    def __init__(
        self,
        transport: MailboxTransport,
        concurrency: Optional[int] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the fetcher.

        Args:
            transport: Authenticated mailbox transport
            concurrency: Max in-flight requests, defaults to ``settings.DETAIL_FETCH_CONCURRENCY``
            logger: Optional contextual logger
        """
        concurrency = concurrency if concurrency is not None else settings.DETAIL_FETCH_CONCURRENCY
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.transport = transport
        self.concurrency = concurrency
        self.logger = logger or default_logger.with_context(component="detail_fetcher")

    async def fetch(self, message_ids: Iterable[str]) -> List[DetailResult]:
        """Fetch headers for every ID.

        Args:
            message_ids: IDs to fetch

        Returns:
            One ``DetailResult`` per distinct ID

        Raises:
            SyncStateError: If ``message_ids`` is None or contains an empty ID
            asyncio.CancelledError: If the caller is cancelled; no result is returned
        """
        if message_ids is None:
            raise SyncStateError("detail fetch invoked without an id set")

        unique_ids = list(dict.fromkeys(message_ids))
        if any(not message_id for message_id in unique_ids):
            raise SyncStateError("detail fetch invoked with an empty message id")
        if not unique_ids:
            return []

        self.logger.debug(
            f"Fetching details for {len(unique_ids)} messages "
            f"(concurrency={self.concurrency})"
        )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _fetch_with_semaphore(message_id: str) -> DetailResult:
            async with semaphore:
                try:
                    headers = await self.transport.get_message_headers(message_id)
                    return DetailResult(message_id=message_id, headers=headers)
                except SyncError as e:
                    self.logger.warning(
                        f"Detail fetch failed for message {message_id} ({e.kind.value}): {e}"
                    )
                    return DetailResult(message_id=message_id, error=e)
                except Exception as e:
                    # Transports should only raise SyncError; anything else is fatal for the item
                    self.logger.warning(
                        f"Unexpected error fetching message {message_id}: {e}", exc_info=True
                    )
                    return DetailResult(
                        message_id=message_id,
                        error=FatalSyncError(f"Unexpected error fetching {message_id}: {e!r}"),
                    )

        results = await asyncio.gather(*[_fetch_with_semaphore(m) for m in unique_ids])

        succeeded = sum(1 for r in results if r.ok)
        self.logger.debug(f"Detail fetch complete: {succeeded}/{len(results)} successful")
        return list(results)


def successes(results: Iterable[DetailResult]) -> List[Tuple[str, MessageHeaders]]:
    """Return ``(message_id, headers)`` for each successful result, in order."""
    return [(r.message_id, r.headers) for r in results if r.ok]


def raise_for_cycle_abort(results: Iterable[DetailResult]) -> None:
    """Raise the first item error that must abort the whole cycle.

    Only ``FATAL`` item failures are tolerated. Rejected credentials and rate limits
    apply to every item, so the cycle fails before anything is committed.

    Raises:
        AuthorizationRequiredError: If any item was rejected for credentials
        RetryLaterError: Otherwise, if any item was rate limited or hit a transient failure
    """
    errors = [r.error for r in results if r.error is not None]
    for kind in (SyncErrorKind.AUTHORIZATION_REQUIRED, SyncErrorKind.RETRY_LATER):
        for error in errors:
            if error.kind == kind:
                raise error
