"""First half of the pipeline: traversal, hashing and grouping by directory.

    walk_candidates() --paths--> HashWorkers --records--> group_by_directory()

The traversal and the grouper are single coroutines; hashing fans out to a
bounded number of workers backed by the Processor's process pool.
"""

import logging
from pathlib import Path

from ..errors import ReadError, WalkError
from ..index.records import DirectoryGroups, FileRecord
from ..utils.cancellation import FirstError, OperationCancelled
from ..utils.channel import Channel
from ..utils.processor import Processor
from ..utils.sizes import format_size
from ..utils.walker import TraversalPolicy, walk_candidates
from ..utils.worker_pool import run_workers

logger = logging.getLogger(__name__)


async def traverse(root: Path, policy: TraversalPolicy, paths: Channel[str], failure: FirstError):
    """Send every candidate file under root into ``paths``, then close it.

    Traversal failures do not raise: they are offered to ``failure`` and end the
    walk. Paths sent before the failure stay in flight for the next stage.
    """
    logger.info(f"Walking {root} for files from {format_size(policy.min_size)} to {format_size(policy.max_size)}")
    emitted = 0
    candidates = walk_candidates(root, policy)
    try:
        for file_path, _ in candidates:
            await paths.send(str(file_path))
            emitted += 1
    except OperationCancelled:
        logger.debug(f"Walk of {root} canceled after {emitted} files")
        failure.offer(WalkError("walk canceled"))
    except OSError as e:
        error = WalkError(f"{e.filename or root}: {e.strerror or e}")
        error.__cause__ = e
        if failure.offer(error):
            logger.error(f"Walk of {root} failed: {error}")
    else:
        logger.info(f"Walk of {root} found {emitted} candidate files")
    finally:
        candidates.close()

    await paths.close()


class HashWorkers:
    """Bounded pool of workers turning paths into FileRecords."""

    def __init__(self, processor: Processor, algorithm: str):
        self._processor = processor
        self._algorithm = algorithm

    async def run(self, paths: Channel[str], records: Channel[FileRecord], concurrency: int):
        """Hash until ``paths`` is drained, then close ``records``."""
        async def work():
            async for path in paths:
                await records.send(await self.fingerprint(path))

        await run_workers('hash', concurrency, work, records)

    async def fingerprint(self, path: str) -> FileRecord:
        """Fingerprint one file. A read failure is returned in the record, not raised."""
        try:
            fingerprint = await self._processor.fingerprint(path, self._algorithm)
        except OSError as e:
            error = ReadError(path, e.strerror or str(e))
            error.__cause__ = e
            logger.debug(f"Cannot read {path}: {e}")
            return FileRecord.failed(path, error)

        return FileRecord.hashed(path, fingerprint)


async def group_by_directory(records: Channel[FileRecord]) -> DirectoryGroups:
    """Fold the record stream into directory -> records.

    Records keep their arrival order within a directory.

    Raises:
        ReadError: The first record that carries an error; the partial grouping is discarded
    """
    groups: DirectoryGroups = {}
    count = 0

    async for record in records:
        if record.error is not None:
            raise record.error

        groups.setdefault(record.directory, []).append(record)
        count += 1

    logger.info(f"Grouped {count} files into {len(groups)} directories")
    return groups
