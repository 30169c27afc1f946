"""Second half of the pipeline: pairwise directory comparison.

    enumerate_pairs() --pairs--> ComparisonWorkers --results--> caller

For D directories exactly D * (D - 1) / 2 pairs are compared.
"""

import logging

from ..index.records import DirectoryGroups
from ..report.match import DirectoryPair, MatchResult
from ..utils.cancellation import OperationCancelled
from ..utils.channel import Channel
from ..utils.processor import Processor
from ..utils.worker_pool import run_workers

logger = logging.getLogger(__name__)


async def enumerate_pairs(groups: DirectoryGroups, pairs: Channel[DirectoryPair]):
    """Send every unordered pair of distinct directories once, then close ``pairs``.

    Directories are taken in sorted order so pair ``(a, b)`` always has ``a < b``.
    """
    directories = sorted(groups)
    sent = 0

    try:
        for i, directory_a in enumerate(directories):
            for directory_b in directories[i + 1:]:
                await pairs.send(DirectoryPair(directory_a, groups[directory_a], directory_b, groups[directory_b]))
                sent += 1
    except OperationCancelled:
        logger.debug(f"Pair enumeration canceled after {sent} pairs")
    else:
        logger.info(f"Enumerated {sent} directory pairs")

    await pairs.close()


class ComparisonWorkers:
    """Bounded pool of workers turning directory pairs into MatchResults."""

    def __init__(self, processor: Processor):
        self._processor = processor

    async def run(self, pairs: Channel[DirectoryPair], results: Channel[MatchResult], concurrency: int):
        """Compare until ``pairs`` is drained, then close ``results``."""
        async def work():
            async for pair in pairs:
                await results.send(await self.compare(pair))

        await run_workers('compare', concurrency, work, results)

    async def compare(self, pair: DirectoryPair) -> MatchResult:
        indices = await self._processor.match(
            [record.fingerprint for record in pair.files_a],
            [record.fingerprint for record in pair.files_b])

        return MatchResult(
            pair.directory_a,
            pair.directory_b,
            [(pair.files_a[i], pair.files_b[j]) for i, j in indices])
