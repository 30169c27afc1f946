from pathlib import PurePath
from typing import NamedTuple

from ..errors import ReadError


class FileRecord(NamedTuple):
    """A fingerprinted file as produced by the hash workers.

    Attributes:
        path: File path as emitted by the traversal (relative if the root was relative)
        directory: Immediate parent directory of path, the grouping key
        fingerprint: Content digest; empty when error is set
        error: Read failure for this file, terminal for the run
    """
    path: str
    directory: str
    fingerprint: bytes
    error: ReadError | None = None

    @classmethod
    def hashed(cls, path: str, fingerprint: bytes) -> "FileRecord":
        return cls(path, parent_directory(path), fingerprint)

    @classmethod
    def failed(cls, path: str, error: ReadError) -> "FileRecord":
        return cls(path, parent_directory(path), b'', error)

    @property
    def name(self) -> str:
        return PurePath(self.path).name


def parent_directory(path: str) -> str:
    return str(PurePath(path).parent)


# Directory -> records seen for it, in arrival order
DirectoryGroups = dict[str, list[FileRecord]]
