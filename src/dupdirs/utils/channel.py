"""Bounded producer/consumer channel between pipeline stages."""

import asyncio
import logging
from typing import AsyncIterator, Generic, TypeVar

from .cancellation import CancellationToken, OperationCancelled

logger = logging.getLogger(__name__)

T = TypeVar('T')

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised when sending to a channel that has already been closed."""


class Channel(Generic[T]):
    """Bounded queue with single close and cancellation-aware operations.

    Any number of producers and consumers may share a channel. Sends block
    while the channel is full; receives block while it is empty. Both raise
    OperationCancelled as soon as the run's token fires.

    The channel is closed once, by whoever knows that every producer is done.
    Consumers then drain the remaining items and stop iterating; the close
    marker is handed on so every consumer sees it.
    """

    def __init__(self, token: CancellationToken, capacity: int = 1, name: str = 'channel'):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self._token = token
        self._queue: asyncio.Queue = asyncio.Queue(capacity)
        self._closed = False
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, item: T):
        if self._closed:
            raise ChannelClosed(f"{self._name} is closed")

        await self._token.race(self._queue.put(item))

    async def receive(self) -> T:
        """Take the next item.

        Raises:
            StopAsyncIteration: The channel is closed and drained.
            OperationCancelled: The run was cancelled while waiting.
        """
        item = await self._token.race(self._queue.get())
        if item is _CLOSED:
            # A slot was just freed and producers are done, so this cannot block.
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    async def close(self):
        """Mark the end of the stream. Only the first call has an effect."""
        if self._closed:
            return

        self._closed = True
        try:
            await self._token.race(self._queue.put(_CLOSED))
        except OperationCancelled:
            logger.debug(f"{self._name} closed after cancellation; consumers are leaving on their own")
        else:
            logger.debug(f"{self._name} closed")

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        return await self.receive()
