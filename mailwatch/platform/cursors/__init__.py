"""Cursors for incremental sync tracking."""

from ._base import BaseCursor
from .gmail import GmailCursor

__all__ = ["BaseCursor", "GmailCursor"]
