"""Phase-by-phase cProfile capture of one duplicate-directory run.

When DUPDIRS_PROFILE names a directory, a run records the event loop side of
each pipeline phase (scan, compare, report) separately and writes, under
``$DUPDIRS_PROFILE/<timestamp_ms>_<pid>/``:

    scan.prof, compare.prof, report.prof   one file per phase
    run.prof                               all phases merged

The files load with ``pstats.Stats``. Hashing and matching inside the process
pool are not profiled; their cost shows up as time spent awaiting the pool.
"""
import contextlib
import cProfile
import logging
import os
import pstats
import time
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

PROFILE_ENV = 'DUPDIRS_PROFILE'
RUN_PROFILE = 'run'


class RunProfiler:
    """Collects one cProfile per pipeline phase and dumps them when the run ends.

    A profiler created without a directory is disabled and ``phase()`` costs nothing.
    """

    def __init__(self, directory: Path | None = None):
        self._directory = directory
        self._phases: dict[str, pstats.Stats] = {}

    @classmethod
    def from_environment(cls) -> "RunProfiler":
        base = os.environ.get(PROFILE_ENV)
        if not base:
            return cls()
        return cls(Path(base) / f"{int(time.time() * 1000)}_{os.getpid()}")

    @property
    def enabled(self) -> bool:
        return self._directory is not None

    @property
    def directory(self) -> Path | None:
        return self._directory

    @property
    def phases(self) -> list[str]:
        return list(self._phases)

    @contextlib.contextmanager
    def phase(self, name: str) -> Iterator[None]:
        """Profile the enclosed block as phase ``name``.

        Phases must not nest. Running a phase name twice merges both captures.
        """
        if not self.enabled:
            yield
            return

        profiler = cProfile.Profile()
        profiler.enable()
        try:
            yield
        finally:
            profiler.disable()
            stats = pstats.Stats(profiler)
            if name in self._phases:
                self._phases[name].add(stats)
            else:
                self._phases[name] = stats

    def dump(self) -> list[Path]:
        """Write every captured phase and the merged run profile.

        Returns:
            Paths written, phase files first and run.prof last; empty when disabled or nothing ran
        """
        if not self.enabled or not self._phases:
            return []

        self._directory.mkdir(parents=True, exist_ok=True)

        written = []
        merged: pstats.Stats | None = None
        for name, stats in self._phases.items():
            path = self._directory / f"{name}.prof"
            stats.dump_stats(path)
            written.append(path)

            if merged is None:
                merged = pstats.Stats(str(path))
            else:
                merged.add(stats)

        run_path = self._directory / f"{RUN_PROFILE}.prof"
        merged.dump_stats(run_path)
        written.append(run_path)

        logger.info(f"Wrote {len(self._phases)} phase profiles to {self._directory}")
        return written
