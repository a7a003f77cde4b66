"""Base cursor class for incremental sync tracking."""

from pydantic import BaseModel, ConfigDict


class BaseCursor(BaseModel):
    """Base cursor class for incremental sync tracking.

    A cursor is the mutable position of a sync in the remote change log. It is
    owned by a single sync engine and only mutated while that engine holds its
    lock; readers get copies via ``snapshot()``.

    Assignments are validated so a malformed value (e.g. a non-numeric history ID)
    fails where it is stored rather than on the next request.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
    )

    def snapshot(self) -> "BaseCursor":
        """Return an independent copy of the current position."""
        return self.model_copy()
