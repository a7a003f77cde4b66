"""Bounded output channel for newly cached messages.

The sync engine publishes here after a cycle commits; consumers (notification
pipeline) read without ever touching the engine's lock.

Full-channel policies:
- ``block``: the producer waits until a consumer makes room (backpressure)
- ``drop``: the new message is discarded and a warning is logged

Un-consumed entries are never overwritten.
"""

import asyncio
from typing import AsyncIterator, Optional

from mailwatch.core.config import settings
from mailwatch.core.logging import ContextualLogger
from mailwatch.core.logging import logger as default_logger
from mailwatch.platform.entities.gmail import CachedMessage

POLICY_BLOCK = "block"
POLICY_DROP = "drop"


class ChannelClosedError(Exception):
    """Raised when reading from a closed, drained channel."""

    pass


class MessageChannel:
    """Bounded FIFO of ``CachedMessage`` with an explicit full-channel policy."""

    def __init__(
        self,
        capacity: Optional[int] = None,
        policy: Optional[str] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the channel.

        Args:
            capacity: Max buffered messages, defaults to ``settings.OUTPUT_CHANNEL_CAPACITY``
            policy: ``block`` or ``drop``, defaults to ``settings.OUTPUT_CHANNEL_POLICY``
            logger: Optional contextual logger
        """
        capacity = capacity if capacity is not None else settings.OUTPUT_CHANNEL_CAPACITY
        policy = policy or settings.OUTPUT_CHANNEL_POLICY
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        if policy not in (POLICY_BLOCK, POLICY_DROP):
            raise ValueError(f"unknown channel policy: {policy!r}")

        self.capacity = capacity
        self.policy = policy
        self.logger = logger or default_logger.with_context(component="message_channel")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = asyncio.Event()
        self.dropped = 0

    @property
    def closed(self) -> bool:
        """Whether ``close()`` was called."""
        return self._closed.is_set()

    def qsize(self) -> int:
        """Number of buffered messages."""
        return self._queue.qsize()

    async def put(self, message: CachedMessage) -> bool:
        """Publish one message according to the channel policy.

        Returns:
            True if the message was enqueued, False if it was dropped
        """
        if self.closed:
            self.logger.warning(f"Channel closed, dropping message {message.message_id}")
            self.dropped += 1
            return False

        if self.policy == POLICY_DROP:
            try:
                self._queue.put_nowait(message)
                return True
            except asyncio.QueueFull:
                self.dropped += 1
                self.logger.warning(
                    f"Channel full (capacity={self.capacity}), dropping message "
                    f"{message.message_id}"
                )
                return False

        put_task = asyncio.ensure_future(self._queue.put(message))
        closed_task = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({put_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed_task.cancel()
            if not put_task.done():
                put_task.cancel()

        if put_task.done() and not put_task.cancelled():
            return True

        self.dropped += 1
        self.logger.warning(f"Channel closed while blocked, dropping message {message.message_id}")
        return False

    async def get(self) -> CachedMessage:
        """Wait for the next message.

        Raises:
            ChannelClosedError: If the channel is closed and drained
        """
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self.closed:
                raise ChannelClosedError("channel is closed")

            get_task = asyncio.ensure_future(self._queue.get())
            closed_task = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait({get_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                closed_task.cancel()
                if not get_task.done():
                    get_task.cancel()

            if get_task.done() and not get_task.cancelled():
                return get_task.result()

    def get_nowait(self) -> CachedMessage:
        """Return a buffered message or raise ``asyncio.QueueEmpty``."""
        return self._queue.get_nowait()

    def close(self) -> None:
        """Stop accepting messages and wake blocked producers and consumers.

        Buffered messages can still be drained.
        """
        self._closed.set()

    def __aiter__(self) -> AsyncIterator[CachedMessage]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[CachedMessage]:
        while True:
            try:
                yield await self.get()
            except ChannelClosedError:
                return
