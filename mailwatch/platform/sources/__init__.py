"""Mailbox sources."""

from .gmail import GmailSource

__all__ = ["GmailSource"]
