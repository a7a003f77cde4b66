"""Tests for the console entry point."""

from unittest.mock import MagicMock, patch

from mailwatch import __main__ as entry


def test_main_without_token_exits_with_error(monkeypatch):
    """Test that a missing access token fails fast with exit status 1."""
    monkeypatch.setattr("mailwatch.core.credentials.settings.GMAIL_ACCESS_TOKEN", None)

    with patch.object(entry, "configure_logging"), patch.object(entry.asyncio, "run") as run:
        assert entry.main() == 1

    run.assert_not_called()


def test_main_runs_monitor_until_interrupted():
    """Test that Ctrl-C ends the run loop with exit status 0."""
    with patch.object(entry, "configure_logging"), patch.object(
        entry, "run", new=MagicMock(return_value="coroutine")
    ), patch.object(entry.asyncio, "run", side_effect=KeyboardInterrupt) as run:
        assert entry.main() == 0

    run.assert_called_once_with("coroutine")
