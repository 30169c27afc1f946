"""Directory traversal feeding the hash stage.

Entries come from ``os.scandir`` and are never resolved through symlinks: a
symlink is reported as a symlink, whatever it points to.
"""
import logging
import os
import re
from pathlib import Path
from typing import Generator, Iterator, NamedTuple

logger = logging.getLogger(__name__)

DEFAULT_MIN_SIZE = 0
DEFAULT_MAX_SIZE = 1 << 30


def walk(path: Path) -> Generator[tuple[Path, os.DirEntry], None | bool, None]:
    """Recursively traverse a directory in name order.

    Sending False back after a directory is yielded prunes it.

    Raises:
        OSError: A directory could not be listed or an entry could not be stat'ed
    """
    with os.scandir(path) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        child = path / entry.name
        descend = yield child, entry

        if descend is False:
            continue

        if entry.is_dir(follow_symlinks=False):
            yield from walk(child)


class TraversalPolicy(NamedTuple):
    """Which regular files a traversal emits.

    Attributes:
        exclude: Paths whose full path string matches (re.search) are skipped; matching
                 directories are not descended. None disables exclusion.
        min_size: Smallest accepted file size in bytes, inclusive
        max_size: Largest accepted file size in bytes, inclusive
    """
    exclude: re.Pattern | None = None
    min_size: int = DEFAULT_MIN_SIZE
    max_size: int = DEFAULT_MAX_SIZE

    def excludes(self, path: Path) -> bool:
        return self.exclude is not None and self.exclude.search(str(path)) is not None

    def accepts_size(self, size: int) -> bool:
        return self.min_size <= size <= self.max_size


def walk_candidates(root: Path, policy: TraversalPolicy) -> Iterator[tuple[Path, int]]:
    """Yield (path, size) for every regular file under root that passes the policy.

    Symlinks, devices, sockets and fifos are ignored. Files outside the size
    window are skipped with a warning on this module's logger.

    Raises:
        OSError: Traversal failed; the walk ends at that point
    """
    gen = walk(root)
    pending = None

    try:
        while True:
            file_path, entry = gen.send(pending)
            pending = None

            if policy.excludes(file_path):
                logger.debug(f"Skipping excluded path: {file_path}")
                pending = False
                continue

            if entry.is_dir(follow_symlinks=False):
                continue

            if not entry.is_file(follow_symlinks=False):
                logger.debug(f"Skipping non-regular file: {file_path}")
                continue

            size = entry.stat(follow_symlinks=False).st_size
            if not policy.accepts_size(size):
                logger.warning(f"{file_path} ({size}B) is out of bounds "
                               f"({policy.min_size}B - {policy.max_size}B). Will skip it.")
                continue

            yield file_path, size
    except StopIteration:
        pass
    finally:
        gen.close()
