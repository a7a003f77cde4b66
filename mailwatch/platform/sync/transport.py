"""Transport interface consumed by the sync engine.

The engine never talks HTTP itself. It receives an already-authenticated object
implementing ``MailboxTransport`` and relies on it to raise only classified
``SyncError`` subclasses for remote failures.
"""

from typing import List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from mailwatch.platform.entities.gmail import MessageHeaders


class MessageListPage(BaseModel):
    """One page of the full message listing."""

    message_ids: List[str] = Field(default_factory=list)
    next_page_token: Optional[str] = None
    history_id: Optional[int] = Field(
        default=None, description="History ID reported with the listing, if the API carries one"
    )


class HistoryPage(BaseModel):
    """One page of the change log since a history ID (additions only)."""

    added_message_ids: List[str] = Field(default_factory=list)
    next_page_token: Optional[str] = None
    history_id: Optional[int] = Field(
        default=None, description="Mailbox history ID at the time of this page"
    )


@runtime_checkable
class MailboxTransport(Protocol):
    """Authenticated access to a remote mailbox.

    Raises:
        AuthorizationRequiredError: credentials rejected
        RetryLaterError: rate limited or transient failure
        ResyncRequiredError: ``list_history`` start point expired
        FatalSyncError: anything else
    """

    async def list_messages(self, page_token: Optional[str] = None) -> MessageListPage:
        """List one page of the current mailbox contents."""
        ...

    async def list_history(
        self, start_history_id: int, page_token: Optional[str] = None
    ) -> HistoryPage:
        """List one page of message additions since ``start_history_id``."""
        ...

    async def get_message_headers(self, message_id: str) -> MessageHeaders:
        """Fetch the To/From/Subject headers of one message."""
        ...

    async def get_current_history_id(self) -> int:
        """Return the mailbox's current history ID."""
        ...
