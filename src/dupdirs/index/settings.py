import os
import re
import tomllib
from pathlib import Path
from typing import NamedTuple

from ..errors import ConfigError
from ..utils.processor import DEFAULT_HASH_ALGORITHM, HASH_ALGORITHMS
from ..utils.sizes import parse_size
from ..utils.walker import TraversalPolicy

CONFIG_ENV = 'DUPDIRS_CONFIG'

# Settings key constants
SETTING_AVOID = 'scan.avoid'
SETTING_MIN = 'scan.min'
SETTING_MAX = 'scan.max'
SETTING_THREADS = 'scan.threads'
SETTING_ALGORITHM = 'scan.algorithm'
SETTING_REPEATED = 'report.repeated'
SETTING_FORMAT = 'report.format'
SETTING_LOG_PATH = 'logging.path'
SETTING_LOG_LEVEL = 'logging.level'

DEFAULT_MIN = '0B'
DEFAULT_MAX = '1GB'
DEFAULT_THREADS = 8
DEFAULT_REPEATED = 1
REPORT_FORMATS = ('text', 'msgpack')


class Settings:
    """Read-only view of a TOML settings file.

    The file is optional: without one every get() returns its default. Keys use
    dot notation for nested tables, e.g. ``scan.threads`` reads
    ``settings['scan']['threads']``.

    Example settings file:

        [scan]
        avoid = '/\\.git(/|$)'
        max = '100MB'
        threads = 4

        [report]
        repeated = 3
    """

    def __init__(self, path: str | os.PathLike | None = None):
        """Load settings from ``path``.

        Raises:
            ConfigError: The file cannot be read or is not valid TOML
        """
        self._path = None if path is None else Path(path)
        self._settings = {}

        if self._path is not None:
            try:
                with open(self._path, 'rb') as f:
                    self._settings = tomllib.load(f)
            except OSError as e:
                raise ConfigError(f"cannot read settings file {self._path}: {e.strerror}") from e
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"invalid settings file {self._path}: {e}") from e

    @classmethod
    def from_environment(cls, path: str | os.PathLike | None = None) -> "Settings":
        """Load from ``path``, else from $DUPDIRS_CONFIG, else use empty settings."""
        if path is None:
            path = os.environ.get(CONFIG_ENV) or None
        return cls(path)

    @property
    def path(self) -> Path | None:
        return self._path

    def get(self, key: str, default=None):
        keys = key.split('.')
        value = self._settings

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value


class RunConfig(NamedTuple):
    """Everything the pipeline needs to know about one run."""
    directory: Path  # Root of the traversal
    policy: TraversalPolicy  # Exclusion pattern and size window
    workers: int = DEFAULT_THREADS  # Size of the hash and comparison pools
    repeated: int = DEFAULT_REPEATED  # Minimum matches for a pair to be reported
    algorithm: str = DEFAULT_HASH_ALGORITHM  # Fingerprint algorithm
    report_format: str = 'text'  # 'text' or 'msgpack'


def resolve_run_config(settings: Settings, *, directory: str | None, avoid: str | None = None,
                       min_size: str | None = None, max_size: str | None = None, threads: int | None = None,
                       repeated: int | None = None, algorithm: str | None = None,
                       report_format: str | None = None) -> RunConfig:
    """Merge explicit values over settings over built-in defaults.

    Every keyword left as None falls back to the settings file, then to the
    default.

    Raises:
        ConfigError: A value is missing or invalid
    """
    if not directory:
        raise ConfigError("directory must be provided")

    def pick(value, key, default):
        return value if value is not None else settings.get(key, default)

    avoid = pick(avoid, SETTING_AVOID, None)
    exclude = None
    if avoid:
        try:
            exclude = re.compile(avoid)
        except re.error as e:
            raise ConfigError(f"invalid exclusion pattern {avoid!r}: {e}") from e

    low = parse_size(str(pick(min_size, SETTING_MIN, DEFAULT_MIN)))
    high = parse_size(str(pick(max_size, SETTING_MAX, DEFAULT_MAX)))
    if low > high:
        raise ConfigError(f"minimum size ({low}B) is greater than maximum size ({high}B)")

    workers = pick(threads, SETTING_THREADS, DEFAULT_THREADS)
    if not isinstance(workers, int) or workers < 1:
        raise ConfigError(f"number of threads must be a positive integer, got {workers!r}")

    threshold = pick(repeated, SETTING_REPEATED, DEFAULT_REPEATED)
    if not isinstance(threshold, int) or threshold < 0:
        raise ConfigError(f"repeated files threshold must be a non-negative integer, got {threshold!r}")

    algorithm = pick(algorithm, SETTING_ALGORITHM, DEFAULT_HASH_ALGORITHM)
    if algorithm not in HASH_ALGORITHMS:
        raise ConfigError(f"unknown hash algorithm {algorithm!r}, expected one of {sorted(HASH_ALGORITHMS)}")

    report_format = pick(report_format, SETTING_FORMAT, 'text')
    if report_format not in REPORT_FORMATS:
        raise ConfigError(f"unknown report format {report_format!r}, expected one of {list(REPORT_FORMATS)}")

    return RunConfig(
        directory=Path(directory),
        policy=TraversalPolicy(exclude, low, high),
        workers=workers,
        repeated=threshold,
        algorithm=algorithm,
        report_format=report_format,
    )
