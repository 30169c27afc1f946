"""Cooperative cancellation for the duplicate-detection pipeline.

A run owns exactly one CancellationToken and one FirstError slot. Every stage
races its blocking operations against the token, so firing the token once
unblocks the whole pipeline:

    token = CancellationToken()
    try:
        item = await token.race(queue.get())
    except OperationCancelled:
        return  # leave voluntarily
"""

import asyncio
import logging
import threading
from typing import Awaitable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class OperationCancelled(Exception):
    """Raised from a blocking operation interrupted by the run's token."""


class CancellationToken:
    """Broadcast signal fired at most once per run.

    Must be created and used inside a running event loop.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        """Fire the token. Calling it again is a no-op."""
        if not self._event.is_set():
            logger.debug("Cancellation token fired")
            self._event.set()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        Returns the awaitable's result. When the token fires before the
        awaitable completes, the awaitable is cancelled and OperationCancelled
        is raised. A result that is already available wins over a token fired
        in the same step, so a completed ``get()`` never loses its item.
        """
        operation = asyncio.ensure_future(awaitable)
        if self.cancelled and not operation.done():
            operation.cancel()
            raise OperationCancelled()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({operation, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for future in (operation, waiter):
                if not future.done():
                    future.cancel()

        if operation.done() and not operation.cancelled():
            return operation.result()

        raise OperationCancelled()


class FirstError:
    """Single-assignment error slot; the first error wins.

    Thread-safe so it can be offered errors from executor threads as well as
    from coroutines.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._error: BaseException | None = None

    @property
    def error(self) -> BaseException | None:
        return self._error

    def offer(self, error: BaseException) -> bool:
        """Record ``error`` if the slot is still empty.

        Returns:
            True if this error was recorded, False if an earlier one already won.
        """
        with self._lock:
            if self._error is None:
                self._error = error
                return True

        logger.debug(f"Discarding error after the first one: {error}")
        return False

    def raise_if_set(self):
        if self._error is not None:
            raise self._error
