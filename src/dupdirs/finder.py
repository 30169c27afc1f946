import asyncio
import logging
from asyncio import TaskGroup
from typing import BinaryIO, TextIO

from .commands.compare import ComparisonWorkers, enumerate_pairs
from .commands.scan import HashWorkers, group_by_directory, traverse
from .errors import ReadError
from .index.records import DirectoryGroups
from .index.settings import RunConfig
from .report.formatter import MsgpackReportWriter, ReportFormatter
from .report.match import MatchResult
from .utils.cancellation import CancellationToken, FirstError
from .utils.channel import Channel
from .utils.processor import Processor
from .utils.profiling import RunProfiler

logger = logging.getLogger(__name__)


class DuplicateFinder:
    """Runs the whole duplicate-directory pipeline for one RunConfig.

    The run is split in two phases joined by the directory map:

    - scan: traversal, hash workers and the grouper run concurrently until every
      candidate file is fingerprinted and grouped
    - compare: the pair enumerator and the comparison workers run concurrently
      until every directory pair has a MatchResult

    One CancellationToken and one FirstError slot are shared by all stages. The
    first WalkError or ReadError wins the slot, fires the token so that every
    stage leaves at its next channel operation, and becomes the result of the
    run. The token is also fired when the run ends normally.
    """

    def __init__(self, processor: Processor, config: RunConfig, profiler: RunProfiler | None = None):
        """Initialize the finder.

        Args:
            processor: Process pool used for hashing and fingerprint matching
            config: Validated run configuration
            profiler: Receives the scan, compare and report phases; profiling is off when omitted
        """
        self._processor = processor
        self._config = config
        self._profiler = profiler if profiler is not None else RunProfiler()

    @property
    def config(self) -> RunConfig:
        return self._config

    def run(self) -> list[MatchResult]:
        """Compute a MatchResult for every pair of directories holding candidate files.

        Raises:
            WalkError: Traversal failed
            ReadError: A candidate file could not be read
        """
        return asyncio.run(self.find())

    def report(self, out: TextIO | BinaryIO) -> int:
        """Run the pipeline and write the report to ``out``.

        ``out`` is a text stream for the text format and a binary stream for msgpack.
        Nothing is written when the run fails.

        Returns:
            Number of directory pairs reported

        Raises:
            WalkError, ReadError: The run failed
            OutputError: The report could not be written
        """
        results = self.run()
        with self._profiler.phase('report'):
            if self._config.report_format == 'msgpack':
                return MsgpackReportWriter(self._config.repeated).write(out, results)
            return ReportFormatter(self._config.repeated).write(out, results)

    async def find(self) -> list[MatchResult]:
        token = CancellationToken()
        failure = FirstError()
        try:
            with self._profiler.phase('scan'):
                groups = await self._scan(token, failure)
            with self._profiler.phase('compare'):
                return await self._compare(groups, token)
        finally:
            token.cancel()

    async def _scan(self, token: CancellationToken, failure: FirstError) -> DirectoryGroups:
        paths: Channel[str] = Channel(token, name='paths')
        records = Channel(token, name='records')
        hashing = HashWorkers(self._processor, self._config.algorithm)

        groups: DirectoryGroups = {}
        async with TaskGroup() as tg:
            tg.create_task(traverse(self._config.directory, self._config.policy, paths, failure), name='traverse')
            tg.create_task(hashing.run(paths, records, self._config.workers), name='hash')
            try:
                groups = await group_by_directory(records)
            except ReadError as e:
                failure.offer(e)
                token.cancel()

        # A walk failure is only looked at once the paths it already emitted are grouped.
        if failure.error is not None:
            logger.error(f"Aborting run: {failure.error}")
            token.cancel()
            failure.raise_if_set()

        return groups

    async def _compare(self, groups: DirectoryGroups, token: CancellationToken) -> list[MatchResult]:
        pairs = Channel(token, name='pairs')
        results: Channel[MatchResult] = Channel(token, name='results')
        comparison = ComparisonWorkers(self._processor)

        collected = []
        async with TaskGroup() as tg:
            tg.create_task(enumerate_pairs(groups, pairs), name='pairs')
            tg.create_task(comparison.run(pairs, results, self._config.workers), name='compare')
            async for result in results:
                collected.append(result)

        logger.info(f"Compared {len(collected)} directory pairs")
        return collected
