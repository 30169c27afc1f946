import logging
from asyncio import TaskGroup
from typing import Awaitable, Callable

from .cancellation import OperationCancelled
from .channel import Channel

logger = logging.getLogger(__name__)


async def run_workers(name: str, concurrency: int, work: Callable[[], Awaitable[None]], output: Channel):
    """Run ``concurrency`` copies of ``work`` and close ``output`` once all of them finish.

    Each worker pulls from a shared input channel and sends into ``output``.
    A worker interrupted by cancellation leaves quietly; any other exception
    fails the TaskGroup and propagates. The output channel is closed exactly
    once, after the TaskGroup has joined, so no worker can send after closure.

    Args:
        name: Label used for task names and log messages
        concurrency: Number of parallel workers, at least 1
        work: Coroutine function run by every worker
        output: Merged output channel of the pool
    """
    if concurrency < 1:
        raise ValueError(f"{name}: concurrency must be at least 1, got {concurrency}")

    async def worker(index: int):
        try:
            await work()
        except OperationCancelled:
            logger.debug(f"{name} worker {index} stopped by cancellation")
        else:
            logger.debug(f"{name} worker {index} finished")

    async with TaskGroup() as tg:
        for i in range(concurrency):
            tg.create_task(worker(i), name=f"{name}-{i}")

    await output.close()
