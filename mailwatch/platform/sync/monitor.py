"""Polling loop around the sync engine.

Ticks once eagerly, then on a fixed interval. A failed tick is logged and the next
tick tries again; the engine's state is never left half-applied by a failure.
"""

import asyncio
from typing import AsyncIterator, Optional

from mailwatch.core.config import settings
from mailwatch.core.credentials import CredentialProvider
from mailwatch.core.logging import ContextualLogger
from mailwatch.core.logging import logger as default_logger
from mailwatch.platform.entities.gmail import CachedMessage
from mailwatch.platform.sync.engine import SyncEngine, SyncResult
from mailwatch.platform.sync.exceptions import AuthorizationRequiredError, SyncError


class MailboxMonitor:
    """Drives ``SyncEngine.sync()`` on a fixed interval.

    Only one tick runs at a time. Consumers read new messages with
    ``async for message in monitor.messages()``.
    """

    def __init__(
        self,
        engine: SyncEngine,
        credentials: Optional[CredentialProvider] = None,
        interval_seconds: Optional[float] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the monitor.

        Args:
            engine: Engine to drive
            credentials: Notified when the mailbox rejects credentials
            interval_seconds: Delay between ticks, defaults to ``settings.SYNC_INTERVAL_SECONDS``
            logger: Optional contextual logger
        """
        self.engine = engine
        self.credentials = credentials
        self.interval_seconds = interval_seconds or settings.SYNC_INTERVAL_SECONDS
        self.logger = logger or default_logger.with_context(component="mailbox_monitor")
        self._tick_lock = asyncio.Lock()
        self._stopped = asyncio.Event()

    async def watch(self) -> None:
        """Tick now, then every ``interval_seconds`` until ``stop()`` or cancellation."""
        self.logger.debug(f"Starting mailbox monitor (interval={self.interval_seconds}s)")

        while not self._stopped.is_set():
            await self.check_now()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

        self.logger.debug("Mailbox monitor stopped")

    async def check_now(self) -> Optional[SyncResult]:
        """Run one tick: initialize if needed, then sync.

        Returns:
            The cycle's result, or None if the tick failed
        """
        async with self._tick_lock:
            try:
                if not self.engine.initialized:
                    await self.engine.initialize()
                result = await self.engine.sync()
            except SyncError as e:
                await self._handle_error(e)
                return None

        if result.new_messages:
            self.logger.info(f"Received {len(result.new_messages)} new messages")
        for message in result.new_messages:
            self.logger.debug(
                f"New message {message.message_id}: to={message.to!r} "
                f"from={message.sender!r} subject={message.subject!r}"
            )
        return result

    async def _handle_error(self, error: SyncError) -> None:
        self.logger.error(f"Sync tick failed ({error.kind.value}): {error}")
        if isinstance(error, AuthorizationRequiredError) and self.credentials is not None:
            await self.credentials.on_authorization_required()

    def messages(self) -> AsyncIterator[CachedMessage]:
        """Iterate newly cached messages until the monitor is stopped and drained."""
        return self.engine.channel.__aiter__()

    def stop(self) -> None:
        """Stop the polling loop and close the output channel."""
        self._stopped.set()
        self.engine.channel.close()
