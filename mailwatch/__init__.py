"""mailwatch: incremental Gmail mailbox sync engine."""

__version__ = "0.1.0"
