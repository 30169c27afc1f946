from .errors import ConfigError, DupdirsError, OutputError, ReadError, WalkError
from .finder import DuplicateFinder
from .index.records import FileRecord
from .index.settings import RunConfig, Settings, resolve_run_config
from .report.formatter import ReportFormatter
from .report.match import DirectoryPair, MatchResult
from .utils.processor import Processor
