"""Top level package for the exclusion list library.

Coverage tools record intentionally excluded coverage points (code
blocks, signal toggles, FSM states and transitions, conditions) in
line oriented ``.el`` exclusion list files.  This package reads those
files into memory, lets callers query and merge them, and writes them
back out.

Key concepts:

* **Model classes** represent the database, its scopes and the four
  kinds of exclusion record.  See :mod:`ellang.model`.
* **Parser** turns ``.el`` text into a database.  See :mod:`ellang.parser`.
* **Writer** is the inverse of the parser.  See :mod:`ellang.writer`.
* **Data manager** searches, merges and validates a database.
  See :mod:`ellang.manager`.
* **Renderers** provide pluggable report formats (text, Markdown, CSV,
  HTML).  See :mod:`ellang.renderers`.
"""

from .errors import ErrorCode, ExclusionError, InvalidScopeError, error_code_for
from .model import (
    TRANSITION_GROUP,
    BlockExclusion,
    ConditionExclusion,
    Exclusion,
    ExclusionDatabase,
    ExclusionKind,
    ExclusionScope,
    FsmExclusion,
    FsmState,
    FsmTransition,
    ToggleDirection,
    ToggleExclusion,
)
from .config import ParserConfig, WriterConfig
from .results import ParseResult, WriteResult
from .fs import FileSystem, LocalFileSystem
from .manager import ExclusionDataManager, ExclusionStatistics, PatternMatcher, SearchCriteria
from .parser import ExclusionParser
from .writer import ExclusionWriter, generate_scope_checksum
from .registry import Registry
from .renderers import ReportRenderer, renderer_registry

__all__ = [
    "ErrorCode",
    "ExclusionError",
    "InvalidScopeError",
    "error_code_for",
    "TRANSITION_GROUP",
    "BlockExclusion",
    "ConditionExclusion",
    "Exclusion",
    "ExclusionDatabase",
    "ExclusionKind",
    "ExclusionScope",
    "FsmExclusion",
    "FsmState",
    "FsmTransition",
    "ToggleDirection",
    "ToggleExclusion",
    "ParserConfig",
    "WriterConfig",
    "ParseResult",
    "WriteResult",
    "FileSystem",
    "LocalFileSystem",
    "ExclusionDataManager",
    "ExclusionStatistics",
    "PatternMatcher",
    "SearchCriteria",
    "ExclusionParser",
    "ExclusionWriter",
    "generate_scope_checksum",
    "Registry",
    "ReportRenderer",
    "renderer_registry",
]
