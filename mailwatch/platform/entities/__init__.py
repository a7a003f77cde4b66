"""Entity schemas held by the sync cache."""

from .gmail import METADATA_HEADERS, CachedMessage, MessageHeaders

__all__ = ["CachedMessage", "METADATA_HEADERS", "MessageHeaders"]
