"""DirectoryPair and MatchResult, the units of work and output of the comparison stage."""

from typing import NamedTuple

import msgpack

from ..index.records import FileRecord


class DirectoryPair(NamedTuple):
    """Two distinct directories to compare, with their fingerprinted files."""
    directory_a: str
    files_a: list[FileRecord]
    directory_b: str
    files_b: list[FileRecord]


class MatchResult:
    """Files with equal fingerprints found across one pair of directories.

    Attributes:
        directory_a: First directory of the pair
        directory_b: Second directory of the pair
        matches: (record from directory_a, record from directory_b) for every equal fingerprint
    """

    def __init__(self, directory_a: str, directory_b: str, matches: list[tuple[FileRecord, FileRecord]]):
        self.directory_a = directory_a
        self.directory_b = directory_b
        self.matches = matches

    @property
    def count(self) -> int:
        return len(self.matches)

    @property
    def sort_key(self) -> tuple[str, str]:
        return self.directory_a, self.directory_b

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MatchResult):
            return False
        return (self.directory_a == other.directory_a and
                self.directory_b == other.directory_b and
                self.matches == other.matches)

    def __repr__(self) -> str:
        return f"MatchResult({self.directory_a!r}, {self.directory_b!r}, count={self.count})"

    def to_msgpack(self) -> bytes:
        """Serialize to msgpack.

        Layout: [directory_a, directory_b, [[path_a, path_b, fingerprint], ...]].
        The fingerprint is stored once per match since both sides share it.
        """
        return msgpack.dumps(
            [
                self.directory_a,
                self.directory_b,
                [[a.path, b.path, a.fingerprint] for a, b in self.matches],
            ],
            use_bin_type=True,
        )

    @classmethod
    def from_msgpack(cls, data: bytes) -> "MatchResult":
        return cls.from_unpacked(msgpack.loads(data, raw=False))

    @classmethod
    def from_unpacked(cls, data: list) -> "MatchResult":
        """Build from an already decoded msgpack object, see to_msgpack()."""
        directory_a, directory_b, matches = data
        return cls(
            directory_a,
            directory_b,
            [(FileRecord.hashed(path_a, fingerprint), FileRecord.hashed(path_b, fingerprint))
             for path_a, path_b, fingerprint in matches],
        )
