"""Sync module for mailwatch.

Provides:
- SyncEngine: Owns the cursor and message cache, runs full and partial syncs
- DetailFetcher: Fetches message headers with bounded concurrency
- MessageChannel: Bounded output of newly cached messages
- MailboxMonitor: Polling loop around the engine
"""

from .channel import MessageChannel
from .detail_fetcher import DetailFetcher, DetailResult
from .engine import SyncEngine, SyncResult, SyncStrategy
from .exceptions import (
    AuthorizationRequiredError,
    FatalSyncError,
    ResyncRequiredError,
    RetryLaterError,
    SyncError,
    SyncErrorKind,
    SyncStateError,
)
from .monitor import MailboxMonitor

__all__ = [
    "AuthorizationRequiredError",
    "DetailFetcher",
    "DetailResult",
    "FatalSyncError",
    "MailboxMonitor",
    "MessageChannel",
    "ResyncRequiredError",
    "RetryLaterError",
    "SyncEngine",
    "SyncError",
    "SyncErrorKind",
    "SyncResult",
    "SyncStateError",
    "SyncStrategy",
]
