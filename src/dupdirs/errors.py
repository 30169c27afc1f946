"""Error kinds surfaced by a duplicate-directory run."""


class DupdirsError(Exception):
    """Base class for every terminal error of a run."""


class ConfigError(DupdirsError):
    """Invalid run configuration, detected before the pipeline starts."""


class WalkError(DupdirsError):
    """Filesystem traversal failed or was aborted by cancellation."""


class ReadError(DupdirsError):
    """A discovered file could not be read for fingerprinting.

    Attributes:
        path: Path of the file that failed. The underlying OSError, when there
              is one, is available as ``__cause__``.
    """

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class OutputError(DupdirsError):
    """The report sink could not be written."""
