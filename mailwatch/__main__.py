"""Run the mailbox monitor: ``python -m mailwatch``.

Uses a static bearer token from ``GMAIL_ACCESS_TOKEN``; obtaining and refreshing
tokens is left to the caller.
"""

import asyncio
import contextlib
import sys

from mailwatch.core.config import settings
from mailwatch.core.credentials import CredentialProvider, StaticTokenProvider
from mailwatch.core.logging import configure_logging, logger
from mailwatch.platform.sources.gmail import GmailSource
from mailwatch.platform.sync.engine import SyncEngine
from mailwatch.platform.sync.monitor import MailboxMonitor


async def _consume(monitor: MailboxMonitor) -> None:
    async for message in monitor.messages():
        logger.info(
            f"New message from {message.sender or '<unknown>'}: "
            f"{message.subject or '(no subject)'}"
        )


async def run(credentials: CredentialProvider) -> None:
    """Poll the mailbox until cancelled."""
    async with GmailSource(credentials) as source:
        engine = SyncEngine(source)
        monitor = MailboxMonitor(engine, credentials=credentials)
        consumer = asyncio.create_task(_consume(monitor), name="mailwatch-consumer")
        try:
            await monitor.watch()
        finally:
            monitor.stop()
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer


def main() -> int:
    """Console entry point."""
    configure_logging()

    try:
        credentials = StaticTokenProvider()
    except ValueError as e:
        logger.error(str(e))
        return 1

    logger.info(
        f"Watching label {settings.GMAIL_LABEL_ID} every {settings.SYNC_INTERVAL_SECONDS:g}s"
    )
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run(credentials))
    return 0


if __name__ == "__main__":
    sys.exit(main())
