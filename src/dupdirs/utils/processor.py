import asyncio
import hashlib
import logging
import multiprocessing
from multiprocessing.pool import Pool
from typing import Awaitable

import mmh3

logger = logging.getLogger(__name__)

# Digest size in bytes for each supported fingerprint algorithm
HASH_ALGORITHMS = {
    'md5': 16,
    'sha256': 32,
    'mmh3': 16,
}
DEFAULT_HASH_ALGORITHM = 'md5'


def compute_fingerprint(path: str, algorithm: str) -> bytes:
    """Digest the full content of a file, streamed in chunks."""
    if algorithm == 'md5':
        factory = lambda: hashlib.md5(usedforsecurity=False)
    elif algorithm == 'sha256':
        factory = hashlib.sha256
    elif algorithm == 'mmh3':
        factory = mmh3.mmh3_x64_128
    else:
        raise ValueError(f"Unknown hash algorithm: {algorithm}")

    with open(path, "rb") as f:
        # noinspection PyTypeChecker
        return hashlib.file_digest(f, factory).digest()


def match_fingerprints(a: list[bytes], b: list[bytes]) -> list[tuple[int, int]]:
    """Pair up equal fingerprints between two lists.

    :return: (index in a, index in b) for every equal pair, ordered by index in a, then index in b."""
    buckets: dict[bytes, list[int]] = {}
    for i, fingerprint in enumerate(a):
        buckets.setdefault(fingerprint, []).append(i)

    found = []
    for j, fingerprint in enumerate(b):
        for i in buckets.get(fingerprint, ()):
            found.append((i, j))

    found.sort()
    return found


class Processor:
    """Process pool doing the heavy lifting of a run: reading and hashing files, matching fingerprints.

    Work submitted from a coroutine comes back as an awaitable resolved on the
    submitting event loop.
    """
    def __init__(self, concurrency: int | None = None):
        if concurrency is None:
            concurrency = multiprocessing.cpu_count()

        self._pool: Pool = Pool(concurrency)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
        else:
            self.terminate()

    def close(self):
        """Wait for submitted work to finish and shut the pool down."""
        self._pool.close()
        self._pool.join()

    def terminate(self):
        """Shut the pool down without waiting for outstanding work."""
        self._pool.terminate()
        self._pool.join()

    def fingerprint(self, path: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> Awaitable[bytes]:
        """Fingerprint the full content of a file.

        The awaitable raises OSError when the file cannot be read.
        """
        if algorithm not in HASH_ALGORITHMS:
            raise ValueError(f"Unknown hash algorithm: {algorithm}")

        logger.debug(f"Starting {algorithm} fingerprint for: {path}")

        async def log_and_compute():
            result = await self._evaluate(compute_fingerprint, path, algorithm)
            logger.debug(f"Completed {algorithm} fingerprint for: {path}")
            return result

        return log_and_compute()

    def match(self, a: list[bytes], b: list[bytes]) -> Awaitable[list[tuple[int, int]]]:
        """Find equal fingerprints across two lists, see match_fingerprints()."""
        return self._evaluate(match_fingerprints, a, b)

    def _evaluate(self, func, *args):
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def settle(setter, value):
            if not future.done():
                setter(value)

        self._pool.apply_async(func, args=args,
                               callback=lambda v: loop.call_soon_threadsafe(settle, future.set_result, v),
                               error_callback=lambda e: loop.call_soon_threadsafe(settle, future.set_exception, e))

        return future
