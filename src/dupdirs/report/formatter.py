import logging
from typing import BinaryIO, Iterable, Iterator, TextIO

import msgpack

from ..errors import OutputError
from .match import MatchResult

logger = logging.getLogger(__name__)


def select_results(results: Iterable[MatchResult], repeated: int) -> list[MatchResult]:
    """Keep results with at least ``repeated`` matches, ordered by directory pair."""
    return sorted((r for r in results if r.count >= repeated), key=lambda r: r.sort_key)


class ReportFormatter:
    """Render qualifying directory pairs as ASCII boxes.

    One block per pair:

        +--------------+
        |dir/a == dir/b|
        +--------------+
        |a.txt == a.txt|
        |b.txt == b.txt|
        +--------------+

    The left column is right-aligned and the right column left-aligned. Each
    column is as wide as its directory path or its longest matched file name.
    """

    def __init__(self, repeated: int = 1):
        self._repeated = repeated

    @property
    def repeated(self) -> int:
        return self._repeated

    def render(self, result: MatchResult) -> Iterator[str]:
        """Yield the lines of one block, without line terminators."""
        names = sorted((a.name, b.name) for a, b in result.matches)

        width_a = max([len(result.directory_a)] + [len(a) for a, _ in names])
        width_b = max([len(result.directory_b)] + [len(b) for _, b in names])

        divider = f"+{'-' * (width_a + width_b + 4)}+"

        yield divider
        yield f"|{result.directory_a:>{width_a}} == {result.directory_b:<{width_b}}|"
        yield divider
        for name_a, name_b in names:
            yield f"|{name_a:>{width_a}} == {name_b:<{width_b}}|"
        yield divider

    def write(self, out: TextIO, results: Iterable[MatchResult]) -> int:
        """Write every qualifying result to ``out``.

        Returns:
            Number of blocks written

        Raises:
            OutputError: The sink could not be written
        """
        selected = select_results(results, self._repeated)
        try:
            for result in selected:
                out.write(''.join(f"{line}\n" for line in self.render(result)))
            out.flush()
        except OSError as e:
            raise OutputError(f"cannot write report: {e}") from e

        logger.info(f"Reported {len(selected)} directory pairs with at least {self._repeated} repeated files")
        return len(selected)


class MsgpackReportWriter:
    """Write qualifying results as a stream of msgpack objects, one per pair."""

    def __init__(self, repeated: int = 1):
        self._repeated = repeated

    def write(self, out: BinaryIO, results: Iterable[MatchResult]) -> int:
        selected = select_results(results, self._repeated)
        try:
            for result in selected:
                out.write(result.to_msgpack())
            out.flush()
        except OSError as e:
            raise OutputError(f"cannot write report: {e}") from e

        logger.info(f"Reported {len(selected)} directory pairs with at least {self._repeated} repeated files")
        return len(selected)


def read_msgpack_report(stream: BinaryIO) -> Iterator[MatchResult]:
    """Read back a report written by MsgpackReportWriter."""
    for data in msgpack.Unpacker(stream, raw=False):
        yield MatchResult.from_unpacked(data)
