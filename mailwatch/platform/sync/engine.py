"""Incremental mailbox sync engine.

Keeps an in-memory cache of message headers consistent with a remote mailbox using
the mailbox's history ID as the change-log cursor.

Strategies:
- Full sync: list the whole mailbox, fetch every message's headers, then replace
  the cache in one step and store a new baseline history ID.
- Partial sync: list additions since the stored history ID, fetch their headers,
  append them, and advance the history ID to the highest one observed.

A partial sync whose start point has expired falls back to exactly one full sync.
All strategies run under one lock held for the whole cycle.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from mailwatch.core.logging import ContextualLogger
from mailwatch.core.logging import logger as default_logger
from mailwatch.platform.cursors.gmail import GmailCursor
from mailwatch.platform.entities.gmail import CachedMessage
from mailwatch.platform.sync.channel import MessageChannel
from mailwatch.platform.sync.detail_fetcher import (
    DetailFetcher,
    raise_for_cycle_abort,
    successes,
)
from mailwatch.platform.sync.exceptions import (
    FatalSyncError,
    ResyncRequiredError,
    SyncStateError,
)
from mailwatch.platform.sync.transport import MailboxTransport


class SyncStrategy(str, Enum):
    """Strategy a sync cycle ended up running."""

    FULL = "full"
    PARTIAL = "partial"


@dataclass
class SyncResult:
    """Summary of one successful sync cycle."""

    strategy: SyncStrategy
    history_id: Optional[int]
    new_messages: List[CachedMessage] = field(default_factory=list)
    listed: int = 0
    failed: int = 0
    fell_back: bool = False


class SyncEngine:
    """Owns the sync cursor and message cache for one mailbox.

    The cursor and cache are only mutated while ``_lock`` is held, and the lock is
    held for a whole cycle. Readers that only want new messages consume
    ``channel`` instead of taking the lock.

    Publishing happens inside the cycle, so with the ``block`` channel policy a
    cycle that finds more new messages than the channel has room for waits for a
    consumer while holding the lock. Callers that never read ``channel`` should
    pass a ``drop`` channel.

    Any detail fetch rejected for credentials or rate limiting fails the whole
    cycle before the cache or history ID change; only fatal item failures are
    skipped.
    """

    def __init__(
        self,
        transport: MailboxTransport,
        detail_fetcher: Optional[DetailFetcher] = None,
        channel: Optional[MessageChannel] = None,
        cursor: Optional[GmailCursor] = None,
        publish_initial: bool = False,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the engine.

        Args:
            transport: Authenticated mailbox transport
            detail_fetcher: Fetcher for message headers, built from ``transport`` if omitted
            channel: Output channel for newly cached messages, created if omitted
            cursor: Starting cursor, a fresh (never synced) one if omitted
            publish_initial: Also publish the messages of the first cache population;
                by default only messages discovered after it are published
            logger: Optional contextual logger
        """
        self.transport = transport
        self.publish_initial = publish_initial
        self.logger = logger or default_logger.with_context(component="sync_engine")
        self.detail_fetcher = detail_fetcher or DetailFetcher(transport, logger=self.logger)
        self.channel = channel if channel is not None else MessageChannel(logger=self.logger)

        self._lock = asyncio.Lock()
        self._cursor = cursor or GmailCursor()
        self._messages: List[CachedMessage] = []
        self._index: Dict[str, CachedMessage] = {}
        # Whether a cycle has committed a cache; a baseline from initialize() alone
        # does not make the (empty) cache consistent with the mailbox.
        self._populated = False

    # -----------------------
    # Read-only views
    # -----------------------
    @property
    def history_id(self) -> Optional[int]:
        """Highest history ID observed by the last successful cycle."""
        return self._cursor.history_id

    @property
    def initialized(self) -> bool:
        """Whether a history ID has been established."""
        return self._cursor.initialized

    @property
    def cursor(self) -> GmailCursor:
        """Copy of the current cursor."""
        return self._cursor.snapshot()

    @property
    def messages(self) -> Tuple[CachedMessage, ...]:
        """Snapshot of the cache in insertion order."""
        return tuple(self._messages)

    def get(self, message_id: str) -> Optional[CachedMessage]:
        """Return the cached message with this ID, if any."""
        return self._index.get(message_id)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._index

    # -----------------------
    # Public operations
    # -----------------------
    async def initialize(self) -> None:
        """Establish the first history ID from the mailbox profile.

        Raises:
            SyncError: Classified failure of the profile call
        """
        async with self._lock:
            history_id = await self.transport.get_current_history_id()
            self._cursor.establish(history_id)
            self.logger.info(f"Initialized mailbox sync at history ID {history_id}")

    async def sync(self) -> SyncResult:
        """Run one sync cycle.

        Runs a full sync when the mailbox was never synced, a partial sync otherwise.
        A partial sync that reports an expired start point is followed by exactly
        one full sync; its outcome is the outcome of the cycle.

        Raises:
            AuthorizationRequiredError: Credentials rejected
            RetryLaterError: Rate limited or transient failure
            FatalSyncError: Anything else
        """
        async with self._lock:
            if self._cursor.history_id is None or not self._populated:
                self.logger.debug("No previous sync cycle, running full sync")
                return await self._run_full_sync()

            try:
                return await self._run_partial_sync()
            except ResyncRequiredError as e:
                self.logger.warning(
                    f"History ID {self._cursor.history_id} expired ({e}), "
                    "falling back to full sync"
                )

            result = await self._run_full_sync()
            result.fell_back = True
            return result

    async def full_sync(self) -> SyncResult:
        """Run a full sync cycle regardless of the stored history ID."""
        async with self._lock:
            return await self._run_full_sync()

    async def partial_sync(self) -> SyncResult:
        """Run a partial sync cycle.

        Raises:
            SyncStateError: If no history ID has been established
            ResyncRequiredError: If the stored history ID has expired; nothing is mutated
        """
        async with self._lock:
            return await self._run_partial_sync()

    # -----------------------
    # Strategies (lock held)
    # -----------------------
    async def _run_full_sync(self) -> SyncResult:
        """List everything, fetch details, then swap the cache in one step."""
        self.logger.info("Starting full sync")

        try:
            # Captured before listing so additions made while listing stay in the change log
            current_history_id = await self.transport.get_current_history_id()
            message_ids, listed_history_id = await self._list_all_messages()
        except ResyncRequiredError as e:
            raise FatalSyncError(f"Unexpected resync signal during full sync: {e}") from e

        baseline = listed_history_id if listed_history_id is not None else current_history_id

        results = await self.detail_fetcher.fetch(message_ids)
        raise_for_cycle_abort(results)
        fetched = successes(results)

        new_cache = [CachedMessage.from_headers(mid, headers) for mid, headers in fetched]
        previous_ids = set(self._index)

        previous_history_id = self._cursor.history_id
        if previous_history_id is not None and baseline < previous_history_id:
            self.logger.warning(
                f"Full sync baseline {baseline} is lower than previous history ID "
                f"{previous_history_id}"
            )

        first_population = not self._populated
        self._messages = new_cache
        self._index = {m.message_id: m for m in new_cache}
        self._cursor.establish(baseline)
        self._populated = True

        new_messages = [m for m in new_cache if m.message_id not in previous_ids]
        failed = len(results) - len(fetched)
        self.logger.info(
            f"Full sync complete: {len(new_cache)}/{len(message_ids)} messages cached, "
            f"{len(new_messages)} new, {failed} failed, history ID {baseline}"
        )

        if self.publish_initial or not first_population:
            await self._publish(new_messages)
        return SyncResult(
            strategy=SyncStrategy.FULL,
            history_id=baseline,
            new_messages=new_messages,
            listed=len(message_ids),
            failed=failed,
        )

    async def _run_partial_sync(self) -> SyncResult:
        """Fetch additions since the stored history ID and append them."""
        if not self._cursor.initialized or self._cursor.history_id is None:
            raise SyncStateError("partial sync attempted before a history ID was established")

        start_history_id = self._cursor.history_id
        self.logger.info(f"Starting partial sync from history ID {start_history_id}")

        added_ids, max_history_id = await self._list_all_history(start_history_id)

        pending_ids = [mid for mid in added_ids if mid not in self._index]
        results = await self.detail_fetcher.fetch(pending_ids)
        raise_for_cycle_abort(results)
        fetched = successes(results)

        new_messages: List[CachedMessage] = []
        for message_id, headers in fetched:
            if message_id in self._index:
                continue
            message = CachedMessage.from_headers(message_id, headers)
            self._messages.append(message)
            self._index[message_id] = message
            new_messages.append(message)

        self._cursor.advance(max_history_id)

        failed = len(results) - len(fetched)
        self.logger.info(
            f"Partial sync complete: {len(new_messages)} new messages, {failed} failed, "
            f"history ID {start_history_id} -> {self._cursor.history_id}"
        )

        await self._publish(new_messages)
        return SyncResult(
            strategy=SyncStrategy.PARTIAL,
            history_id=self._cursor.history_id,
            new_messages=new_messages,
            listed=len(added_ids),
            failed=failed,
        )

    # -----------------------
    # Listing helpers
    # -----------------------
    async def _list_all_messages(self) -> Tuple[List[str], Optional[int]]:
        """Follow listing pages until exhausted.

        Returns:
            Distinct message IDs in listing order, and the highest history ID any
            page reported (None if no page carried one)
        """
        message_ids: Dict[str, None] = {}
        history_id: Optional[int] = None
        page_token: Optional[str] = None
        page_count = 0

        while True:
            page_count += 1
            page = await self.transport.list_messages(page_token)
            message_ids.update(dict.fromkeys(page.message_ids))
            if page.history_id is not None and (
                history_id is None or page.history_id > history_id
            ):
                history_id = page.history_id

            self.logger.debug(
                f"Listing page #{page_count}: {len(page.message_ids)} messages"
            )
            if not page.next_page_token:
                break
            page_token = page.next_page_token

        return list(message_ids), history_id

    async def _list_all_history(self, start_history_id: int) -> Tuple[List[str], Optional[int]]:
        """Follow history pages since ``start_history_id`` until exhausted.

        Returns:
            Distinct added message IDs in change-log order, and the highest history
            ID any page reported (None if no page carried one)
        """
        added_ids: Dict[str, None] = {}
        max_history_id: Optional[int] = None
        page_token: Optional[str] = None
        page_count = 0

        while True:
            page_count += 1
            page = await self.transport.list_history(start_history_id, page_token)
            added_ids.update(dict.fromkeys(page.added_message_ids))
            if page.history_id is not None and (
                max_history_id is None or page.history_id > max_history_id
            ):
                max_history_id = page.history_id

            self.logger.debug(
                f"History page #{page_count}: {len(page.added_message_ids)} added messages"
            )
            if not page.next_page_token:
                break
            page_token = page.next_page_token

        return list(added_ids), max_history_id

    async def _publish(self, messages: List[CachedMessage]) -> None:
        """Hand committed messages to the output channel, each exactly once."""
        for message in messages:
            await self.channel.put(message)
