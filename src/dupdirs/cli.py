import argparse
import contextlib
import logging
import sys
import textwrap
from typing import TextIO

from .errors import ConfigError, DupdirsError
from .finder import DuplicateFinder
from .index.settings import (
    REPORT_FORMATS, SETTING_LOG_LEVEL, SETTING_LOG_PATH, Settings, resolve_run_config)
from .utils.processor import HASH_ALGORITHMS, Processor
from .utils.profiling import RunProfiler

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dupdirs',
        description='Find pairs of directories that contain identical files. Files are compared by a fingerprint '
                    'of their full content; every pair of directories is checked.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent('''
            Examples:
              dupdirs --directory ~/backups
              dupdirs --directory ~/src --avoid '/\\.git(/|$)' --repeated 3
              dupdirs --directory /data --min 1KB --max 100MB --output report.txt

            Sizes are a number followed by B, KB, MB, GB, TB, PB or EB (multiples of 1024).
            Exit status: 0 on success, 1 when the run failed, 2 on invalid configuration.
            ''').strip()
    )
    parser.add_argument(
        '--directory',
        metavar='PATH',
        help='Directory to evaluate (required)')
    parser.add_argument(
        '--output',
        metavar='PATH',
        help='File to write the report to (default: standard output)')
    parser.add_argument(
        '--avoid',
        metavar='REGEX',
        help='Skip every file or directory whose path matches this regular expression')
    parser.add_argument(
        '--min',
        metavar='SIZE',
        help='Minimum file size to analyze (default: 0B)')
    parser.add_argument(
        '--max',
        metavar='SIZE',
        help='Maximum file size to analyze (default: 1GB)')
    parser.add_argument(
        '--threads',
        type=int,
        metavar='N',
        help='Number of parallel workers for hashing and comparing (default: 8)')
    parser.add_argument(
        '--repeated',
        type=int,
        metavar='N',
        help='Minimum number of repeated files in two different directories (default: 1)')
    parser.add_argument(
        '--algorithm',
        choices=sorted(HASH_ALGORITHMS),
        help='Content fingerprint (default: md5)')
    parser.add_argument(
        '--format',
        dest='report_format',
        choices=REPORT_FORMATS,
        help='Report format: text boxes (default) or a stream of msgpack objects')
    parser.add_argument(
        '--config',
        metavar='PATH',
        help='TOML settings file. If not provided, uses the DUPDIRS_CONFIG environment variable if set.')
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log progress to standard error')
    parser.add_argument(
        '--log-file',
        metavar='PATH',
        help='Path to log file. Diagnostics go to standard error when not provided.')
    parser.add_argument(
        '--log-level',
        metavar='LEVEL',
        choices=LOG_LEVELS,
        help='Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Defaults to INFO when logging to a file.')
    return parser


def configure_logging(settings: Settings, log_file: str | None, log_level: str | None, verbose: bool):
    """Send diagnostics to a log file, or to standard error so they never mix with the report."""
    log_file = log_file or settings.get(SETTING_LOG_PATH)
    log_level = log_level or settings.get(SETTING_LOG_LEVEL)
    if log_level is not None:
        log_level = str(log_level).upper()
        if log_level not in LOG_LEVELS:
            raise ConfigError(f"unknown log level {log_level!r}, expected one of {LOG_LEVELS}")

    if log_file:
        logging.basicConfig(
            filename=log_file,
            level=getattr(logging, log_level or 'INFO'),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
    else:
        if log_level is None:
            log_level = 'INFO' if verbose else 'WARNING'

        logging.basicConfig(
            stream=sys.stderr,
            level=getattr(logging, log_level),
            format='%(message)s'
        )


def run(argv: list[str] | None = None, stdout: TextIO | None = None) -> int:
    """Run the command line and return the exit status."""
    if stdout is None:
        stdout = sys.stdout

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_environment(args.config)
        configure_logging(settings, args.log_file, args.log_level, args.verbose)
        config = resolve_run_config(
            settings,
            directory=args.directory,
            avoid=args.avoid,
            min_size=args.min,
            max_size=args.max,
            threads=args.threads,
            repeated=args.repeated,
            algorithm=args.algorithm,
            report_format=args.report_format,
        )
    except ConfigError as e:
        if not args.directory:
            parser.print_usage(sys.stderr)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    binary = config.report_format == 'msgpack'

    with contextlib.ExitStack() as stack:
        if args.output:
            try:
                out = stack.enter_context(
                    open(args.output, 'wb') if binary else open(args.output, 'w', encoding='utf-8'))
            except OSError as e:
                print(f"error: cannot create output file {args.output}: {e.strerror}", file=sys.stderr)
                return EXIT_CONFIG
        else:
            out = stdout.buffer if binary else stdout

        profiler = RunProfiler.from_environment()
        try:
            with Processor(config.workers) as processor:
                DuplicateFinder(processor, config, profiler).report(out)
        except DupdirsError as e:
            print(f"error: {e}", file=sys.stderr)
            return EXIT_FAILURE
        except KeyboardInterrupt:
            print("error: interrupted", file=sys.stderr)
            return EXIT_INTERRUPTED
        finally:
            try:
                profiler.dump()
            except OSError as e:
                logger.warning(f"Cannot write profiles to {profiler.directory}: {e}")

    return EXIT_OK


def dupdirs_main():
    sys.exit(run())


if __name__ == '__main__':
    dupdirs_main()
