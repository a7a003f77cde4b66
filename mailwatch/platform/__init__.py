"""Mailbox sync platform: sources, cursors, entities and the sync engine."""
