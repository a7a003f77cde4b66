"""Sync-specific exceptions for error handling.

Remote failures are classified once, at the call site, into four kinds. The engine
reacts to the kind and never re-classifies an error it receives.
"""

from enum import Enum
from typing import Optional


class SyncErrorKind(str, Enum):
    """Classification of a remote failure."""

    AUTHORIZATION_REQUIRED = "authorization_required"
    RETRY_LATER = "retry_later"
    RESYNC_REQUIRED = "resync_required"
    FATAL = "fatal"


class SyncError(Exception):
    """Base class for classified remote failures.

    Every error raised by a transport or surfaced by ``SyncEngine.sync()`` for a
    remote failure is an instance of one of the subclasses below.
    """

    kind: SyncErrorKind = SyncErrorKind.FATAL

    def __init__(self, message: str, status_code: Optional[int] = None):
        """Initialize the error.

        Args:
            message: Human-readable description
            status_code: HTTP status that produced the error, if any
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status={self.status_code})"
        return self.message


class AuthorizationRequiredError(SyncError):
    """Raised when credentials are rejected or expired.

    Not retried. The caller must refresh credentials before the next tick.
    """

    kind = SyncErrorKind.AUTHORIZATION_REQUIRED


class RetryLaterError(SyncError):
    """Raised on rate limiting or transient server failure.

    Cache and history id are left unchanged; the next scheduled tick tries again.
    """

    kind = SyncErrorKind.RETRY_LATER

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        """Initialize the error.

        Args:
            message: Human-readable description
            status_code: HTTP status that produced the error, if any
            retry_after: Server-suggested delay in seconds, if any
        """
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class ResyncRequiredError(SyncError):
    """Raised when the change-log starting point is no longer valid.

    Only the history listing raises this (the history id was pruned). It triggers
    the single Full Sync fallback and never escapes ``SyncEngine.sync()``.
    """

    kind = SyncErrorKind.RESYNC_REQUIRED


class FatalSyncError(SyncError):
    """Raised for anything else: malformed responses, transport errors, exhausted retries.

    Fatal for the current cycle only; cache and history id are left unchanged.
    """

    kind = SyncErrorKind.FATAL


class SyncStateError(RuntimeError):
    """Raised when a caller breaks the engine's contract.

    This is a programming error, not a runtime condition. Examples:
    - Partial Sync before ``initialize()`` established a history id
    - Detail fetch invoked without a valid id set

    Usage:
        raise SyncStateError("partial sync attempted before initialize()")
    """

    pass
