"""Gmail cursor schema for incremental sync."""

from typing import Optional

from pydantic import Field

from ._base import BaseCursor


class GmailCursor(BaseCursor):
    """Gmail incremental sync cursor using the History API.

    Gmail's History API provides incremental changes using a history ID.
    Each mailbox state is associated with a history ID that can be used
    to fetch only changes since that point.

    ``history_id`` of ``None`` means the mailbox was never synced. ``initialized``
    is only set once a history ID was established by a profile call or a full
    listing; the history endpoint must not be queried before that.

    Reference: https://developers.google.com/gmail/api/guides/sync
    """

    history_id: Optional[int] = Field(
        default=None, description="Highest Gmail history ID observed; change log valid from here"
    )
    initialized: bool = Field(
        default=False, description="Whether a history ID was established for this mailbox"
    )

    def establish(self, history_id: int) -> None:
        """Store a new baseline history ID, replacing any previous one.

        Used by initialization and full sync, which start a new change-log position.
        """
        self.history_id = history_id
        self.initialized = True

    def advance(self, history_id: Optional[int]) -> bool:
        """Move the cursor forward, never backward.

        Returns:
            True if the stored history ID changed
        """
        if history_id is None:
            return False
        if self.history_id is not None and history_id <= self.history_id:
            return False
        self.history_id = history_id
        return True

    def clear(self) -> None:
        """Forget the stored history ID so the next sync starts from a full listing."""
        self.history_id = None
        self.initialized = False
