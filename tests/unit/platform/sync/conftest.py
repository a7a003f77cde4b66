"""Fixtures for sync engine tests: an in-memory mailbox implementing the transport."""

import asyncio
from collections import Counter
from typing import Dict, List, Optional, Tuple

import pytest

from mailwatch.platform.entities.gmail import MessageHeaders
from mailwatch.platform.sync.exceptions import FatalSyncError, ResyncRequiredError
from mailwatch.platform.sync.transport import HistoryPage, MessageListPage


class FakeMailbox:
    """In-memory mailbox with a change log, paging and failure injection.

    Counts concurrent detail fetches so tests can observe the fan-out bound.
    """

    def __init__(self, history_id: int = 100, page_size: int = 2):
        self.history_id = history_id
        self.page_size = page_size
        self.messages: Dict[str, MessageHeaders] = {}
        self.changes: List[Tuple[int, str]] = []
        # Change-log entries older than this start point are pruned
        self.oldest_history_id = 0

        # History ID the listing reports; Gmail's listing reports none
        self.listing_history_id: Optional[int] = None
        self.history_reports_id = True

        self.profile_error: Optional[BaseException] = None
        self.list_error: Optional[BaseException] = None
        self.history_error: Optional[BaseException] = None
        self.detail_errors: Dict[str, BaseException] = {}
        self.detail_delay = 0.0

        self.calls: Counter = Counter()
        self.detail_calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    # -----------------------
    # Test setup helpers
    # -----------------------
    def add(self, message_id: str, subject: str = "", sender: str = "", to: str = "",
            history_id: Optional[int] = None) -> None:
        self.history_id = history_id if history_id is not None else self.history_id + 1
        self.messages[message_id] = MessageHeaders(
            to=to or "me@example.com",
            sender=sender or f"{message_id.lower()}@example.com",
            subject=subject or f"Subject {message_id}",
        )
        self.changes.append((self.history_id, message_id))

    def remove(self, message_id: str) -> None:
        self.messages.pop(message_id, None)

    def expire_history(self) -> None:
        """Prune the change log so only the current history ID is a valid start."""
        self.oldest_history_id = self.history_id

    # -----------------------
    # MailboxTransport
    # -----------------------
    async def get_current_history_id(self) -> int:
        self.calls["profile"] += 1
        if self.profile_error:
            raise self.profile_error
        return self.history_id

    async def list_messages(self, page_token: Optional[str] = None) -> MessageListPage:
        self.calls["list_messages"] += 1
        if self.list_error:
            raise self.list_error
        ids, next_token = self._page(list(self.messages), page_token)
        return MessageListPage(
            message_ids=ids, next_page_token=next_token, history_id=self.listing_history_id
        )

    async def list_history(
        self, start_history_id: int, page_token: Optional[str] = None
    ) -> HistoryPage:
        self.calls["list_history"] += 1
        if self.history_error:
            raise self.history_error
        if start_history_id < self.oldest_history_id:
            raise ResyncRequiredError(
                f"history {start_history_id} expired", status_code=404
            )
        added = [mid for hid, mid in self.changes if hid > start_history_id]
        ids, next_token = self._page(added, page_token)
        return HistoryPage(
            added_message_ids=ids,
            next_page_token=next_token,
            history_id=self.history_id if self.history_reports_id else None,
        )

    async def get_message_headers(self, message_id: str) -> MessageHeaders:
        self.calls["detail"] += 1
        self.detail_calls.append(message_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.detail_delay)
            if message_id in self.detail_errors:
                raise self.detail_errors[message_id]
            if message_id not in self.messages:
                raise FatalSyncError(f"message {message_id} not found", status_code=404)
            return self.messages[message_id]
        finally:
            self.in_flight -= 1

    def _page(self, ids: List[str], page_token: Optional[str]) -> Tuple[List[str], Optional[str]]:
        start = int(page_token or 0)
        end = start + self.page_size
        return ids[start:end], (str(end) if end < len(ids) else None)


@pytest.fixture
def mailbox():
    """Create an empty in-memory mailbox at history ID 100."""
    return FakeMailbox()
