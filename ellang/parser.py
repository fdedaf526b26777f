"""Exclusion list parser.

The :class:`ExclusionParser` class reads ``.el`` exclusion list files
into an :class:`ellang.model.ExclusionDatabase`.  The format is line
oriented, so the parser is a classifier: every trimmed line is offered
to a fixed sequence of line handlers and the first handler that
recognises it wins.  The order is

1. blank lines and comments,
2. header fields (``Format Version:`` ...),
3. ``CHECKSUM:``, ``INSTANCE:``/``MODULE:`` and ``ANNOTATION`` lines,
4. the exclusion records ``Block``, ``Toggle``, ``Fsm``, ``Condition``
   and ``Transition``.

Anything left over is reported as unrecognized, which is a warning by
default and a hard failure in strict mode.  Inside an
``ANNOTATION_BEGIN`` ... ``ANNOTATION_END`` block leftover lines are
annotation text and are skipped quietly; records there still parse.

State that spans lines (current scope, buffered checksum, pending
annotation) lives in a :class:`ParseSession` created for each call, so
a parser object can be reused freely.  Each call also fills a fresh
staging database that only replaces (or, with ``merge_on_load``, is
merged into) the parser's database once the whole input was read.

Example usage::

    from ellang import ExclusionParser

    parser = ExclusionParser()
    result = parser.parse_file("exclusions.el")
    if not result.success:
        raise SystemExit(result.error_message)
    for scope in parser.get_data().scopes.values():
        print(scope, scope.total_exclusion_count())
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

from .config import ParserConfig
from .fs import FileSystem, LocalFileSystem
from .lines import (
    comment_body,
    extract_bit_index,
    extract_quoted,
    extract_word,
    is_comment,
    is_valid_checksum,
    split_condition_text,
    strip_quotes,
    trim,
)
from .manager import ExclusionDataManager, ExclusionStatistics
from .model import (
    BlockExclusion,
    ConditionExclusion,
    Exclusion,
    ExclusionDatabase,
    FsmState,
    FsmTransition,
    ToggleDirection,
    ToggleExclusion,
)
from .results import ParseResult

logger = logging.getLogger(__name__)

# Header keys mapped to ExclusionDatabase attributes
HEADER_FIELDS = (
    ("Generated By User:", "generated_by"),
    ("Format Version:", "format_version"),
    ("Date:", "generation_date"),
    ("ExclMode:", "exclusion_mode"),
)

# Markers that identify an exclusion list without parsing it
HEADER_MARKERS = ("This file contains the Excluded objects", "Format Version:")
VALIDATE_SCAN_LINES = 20

_SCOPE_KEYWORDS = (("INSTANCE:", False), ("MODULE:", True))
_DIRECTION_TOKENS = (ToggleDirection.ZERO_TO_ONE.token, ToggleDirection.ONE_TO_ZERO.token)
_SIGNAL_RE = re.compile(r'[^\s\["]+')


@dataclass
class ParseSession:
    """Mutable state for one parse call."""

    database: ExclusionDatabase
    result: ParseResult
    scope_name: str = ""
    scope_checksum: str = ""
    is_module: bool = False
    buffered_checksum: str = ""
    pending_annotation: Optional[str] = None
    line_number: int = 0
    # Line of the open ANNOTATION_BEGIN, 0 when no block is open
    annotation_block_line: int = 0

    def take_annotation(self) -> Optional[str]:
        """Return the pending annotation and clear it."""
        annotation, self.pending_annotation = self.pending_annotation, None
        return annotation

    def warn(self, message: str) -> None:
        self.result.add_warning(message)
        logger.debug(message)


class ExclusionParser:
    """Parser for exclusion list files, strings and streams."""

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        fs: Optional[FileSystem] = None,
    ) -> None:
        self.config = config or ParserConfig()
        self.fs = fs or LocalFileSystem()
        self._data = ExclusionDatabase()
        self._manager = ExclusionDataManager(self._data)
        self.last_result = ParseResult()
        self._line_handlers: Sequence[Callable[[ParseSession, str], bool]] = (
            self._parse_header,
            self._parse_checksum,
            self._parse_scope,
            self._parse_annotation,
            self._parse_block,
            self._parse_toggle,
            self._parse_fsm,
            self._parse_condition,
            self._parse_transition,
        )

    def set_config(self, config: ParserConfig) -> None:
        self.config = config

    # ------------------------------------------------------------------
    # Entry points

    def parse_file(self, path: str) -> ParseResult:
        """Parse an exclusion list file.

        The file is checked for existence and against
        ``config.max_file_size`` before any state changes.

        Args:
            path: File system path of the ``.el`` file.

        Returns:
            The :class:`ParseResult` for this call.
        """
        return self._parse_file(path, merge=self.config.merge_on_load)

    def parse_string(self, content: str, source: str = "string") -> ParseResult:
        """Parse exclusion list text held in a string."""
        return self.parse_stream(io.StringIO(content), source=source)

    def parse_stream(self, stream: Iterable[str], source: str = "stream") -> ParseResult:
        """Parse exclusion list text from any iterable of lines.

        Args:
            stream: An open text file, ``io.StringIO`` or list of lines.
            source: Name used in log messages.
        """
        logger.debug("Parsing exclusion list from %s", source)
        session = self._run(stream, ExclusionDatabase())
        self._install(session, merge=self.config.merge_on_load)
        return session.result

    def parse_files(self, paths: Iterable[str], continue_on_error: bool = True) -> ParseResult:
        """Parse several files into one database.

        Unless ``merge_on_load`` is set the current database is replaced
        once, before the first file.  Each file is then merged into the
        accumulated database.

        Args:
            paths: Files to parse, in order.
            continue_on_error: When False the first failing file aborts
                the batch; otherwise its error is recorded as a warning.

        Returns:
            One result combining the counts and warnings of every file.
        """
        paths = list(paths)
        logger.debug("Parsing %d exclusion files", len(paths))
        combined = ParseResult()

        if not self.config.merge_on_load:
            self._set_database(ExclusionDatabase())

        for path in paths:
            result = self._parse_file(path, merge=True)
            combined.merge(result)
            if not result.success:
                message = f"Failed to parse {path}: {result.error_message}"
                if not continue_on_error:
                    combined.error_message = message
                    self.last_result = combined
                    return combined
                combined.add_warning(message)

        combined.success = True
        self.last_result = combined
        return combined

    def validate_file(self, path: str) -> bool:
        """Return True if ``path`` looks like an exclusion list.

        Only the first few lines are inspected for the usual header
        markers; the file is not parsed.
        """
        if not self.fs.exists(path):
            return False
        try:
            head = self.fs.read_head(path, VALIDATE_SCAN_LINES)
        except OSError as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            return False

        for raw in head:
            line = trim(raw)
            if any(marker in line for marker in HEADER_MARKERS):
                return True
        return False

    # ------------------------------------------------------------------
    # Database access

    def get_data(self) -> ExclusionDatabase:
        return self._data

    def set_data(self, database: Optional[ExclusionDatabase]) -> None:
        self._set_database(database if database is not None else ExclusionDatabase())

    def clear(self) -> None:
        self._data.clear()

    def has_data(self) -> bool:
        return bool(self._data.scopes)

    @property
    def data_manager(self) -> ExclusionDataManager:
        return self._manager

    @property
    def last_format_version(self) -> str:
        return self._data.format_version

    def get_last_parse_statistics(self) -> ExclusionStatistics:
        return self._manager.get_statistics()

    # ------------------------------------------------------------------
    # Driver

    def _parse_file(self, path: str, merge: bool) -> ParseResult:
        logger.debug("Parsing exclusion file %s", path)

        if not self.fs.exists(path):
            return self._io_failure(f"File does not exist: {path}")

        size = self.fs.size(path)
        if size > self.config.max_file_size:
            return self._io_failure(
                f"File too large: {size} bytes (max: {self.config.max_file_size})"
            )

        try:
            text = self.fs.read_text(path)
        except OSError as exc:
            return self._io_failure(f"Cannot open file: {path} ({exc})")

        session = self._run(text.splitlines(), ExclusionDatabase(file_name=path))
        self._install(session, merge=merge)
        return session.result

    def _io_failure(self, message: str) -> ParseResult:
        logger.warning(message)
        result = ParseResult(error_message=message)
        self.last_result = result
        return result

    def _run(self, lines: Iterable[str], database: ExclusionDatabase) -> ParseSession:
        session = ParseSession(database=database, result=ParseResult())
        result = session.result

        for raw in lines:
            session.line_number += 1
            result.lines_processed += 1
            if not self._process_line(session, trim(raw)):
                return session

        if session.annotation_block_line:
            session.warn(
                f"ANNOTATION_BEGIN at line {session.annotation_block_line} "
                "has no matching ANNOTATION_END"
            )

        result.success = True
        logger.debug(
            "Parsed %d exclusions from %d lines",
            result.exclusions_parsed,
            result.lines_processed,
        )
        return session

    def _process_line(self, session: ParseSession, line: str) -> bool:
        """Classify one trimmed line.  Returns False on a hard failure."""
        if not line:
            return True

        if session.annotation_block_line and line.startswith("ANNOTATION_END"):
            session.annotation_block_line = 0
            return True

        if is_comment(line):
            self._parse_comment(session, line)
            return True

        for handler in self._line_handlers:
            if handler(session, line):
                return True

        # Continuation text of an ANNOTATION_BEGIN block is not captured
        if session.annotation_block_line:
            return True

        n = session.line_number
        session.warn(f"Unrecognized line format at line {n}: {line}")
        if self.config.strict_mode:
            session.result.error_message = f"Line {n}: Unrecognized line format: {line}"
            return False
        return True

    def _install(self, session: ParseSession, merge: bool) -> None:
        staged = session.database
        if session.result.success:
            if merge:
                self._adopt_metadata(staged)
                self._data.merge(staged)
            else:
                self._set_database(staged)
        elif not merge:
            self._set_database(ExclusionDatabase(file_name=staged.file_name))
        self.last_result = session.result

    def _adopt_metadata(self, staged: ExclusionDatabase) -> None:
        for attr in ("file_name", "generated_by", "format_version",
                     "generation_date", "exclusion_mode"):
            value = getattr(staged, attr)
            if value:
                setattr(self._data, attr, value)

    def _set_database(self, database: ExclusionDatabase) -> None:
        self._data = database
        self._manager.set_data(database)

    # ------------------------------------------------------------------
    # Line handlers

    def _parse_comment(self, session: ParseSession, line: str) -> None:
        if self.config.preserve_comments:
            session.result.comments.append(line)
        # Header fields are normally written inside '//' comments
        body = comment_body(line)
        if body:
            self._parse_header(session, body)

    def _parse_header(self, session: ParseSession, line: str) -> bool:
        for prefix, attr in HEADER_FIELDS:
            if line.startswith(prefix):
                setattr(session.database, attr, trim(line[len(prefix):]))
                return True
        return False

    def _parse_checksum(self, session: ParseSession, line: str) -> bool:
        if not line.startswith("CHECKSUM:"):
            return False
        checksum = strip_quotes(trim(line[len("CHECKSUM:"):]))
        session.buffered_checksum = checksum
        self._check_checksum(session, checksum)
        return True

    def _parse_scope(self, session: ParseSession, line: str) -> bool:
        for keyword, is_module in _SCOPE_KEYWORDS:
            if line.startswith(keyword):
                break
        else:
            return False

        # INSTANCE:top.u_core "1234" carries its checksum inline
        rest = line[len(keyword):]
        name, _ = extract_word(rest)
        name = name.split('"', 1)[0]

        checksum = session.buffered_checksum
        session.buffered_checksum = ""
        if '"' in rest:
            checksum, _ = extract_quoted(rest)
            self._check_checksum(session, checksum)

        if not name:
            session.warn(
                f"Line {session.line_number}: {keyword} declaration without a scope name ignored"
            )
            session.scope_name = ""
            return True

        session.scope_name = name
        session.scope_checksum = checksum
        session.is_module = is_module
        session.database.get_or_create_scope(name, checksum=checksum, is_module=is_module)
        return True

    def _parse_annotation(self, session: ParseSession, line: str) -> bool:
        if line.startswith("ANNOTATION_BEGIN:"):
            session.pending_annotation = self._annotation_text(line[len("ANNOTATION_BEGIN:"):])
            session.annotation_block_line = session.line_number
            return True
        if line.startswith("ANNOTATION:"):
            session.pending_annotation = self._annotation_text(line[len("ANNOTATION:"):])
            return True
        # A stray END closes nothing
        return line.startswith("ANNOTATION_END")

    def _parse_block(self, session: ParseSession, line: str) -> bool:
        # Block 161 "1104666086" "do_db_reg_update = 1'b0;"
        if not line.startswith("Block "):
            return False
        block_id, pos = extract_word(line, len("Block "))
        checksum, pos = extract_quoted(line, pos)
        source_code, _ = extract_quoted(line, pos)
        self._store(session, BlockExclusion(
            block_id,
            checksum=checksum,
            source_code=source_code,
            annotation=session.take_annotation(),
        ))
        return True

    def _parse_toggle(self, session: ParseSession, line: str) -> bool:
        # Toggle 1to0 carry "net carry"
        # Toggle cnt_frac [0] "net cnt_frac[16:0]"
        if not line.startswith("Toggle "):
            return False
        rest = trim(line[len("Toggle "):])

        direction = ToggleDirection.BOTH
        token, end = extract_word(rest)
        if token in _DIRECTION_TOKENS:
            direction = ToggleDirection.from_token(token)
            rest = rest[end:].lstrip()

        m = _SIGNAL_RE.match(rest)
        signal_name = m.group(0) if m else ""
        bit_index, rest = extract_bit_index(rest[len(signal_name):])
        net_description, _ = extract_quoted(rest)

        self._store(session, ToggleExclusion(
            signal_name,
            direction=direction,
            bit_index=bit_index,
            net_description=net_description,
            annotation=session.take_annotation(),
        ))
        return True

    def _parse_fsm(self, session: ParseSession, line: str) -> bool:
        # Fsm state "85815111"
        if not line.startswith("Fsm "):
            return False
        fsm_name, pos = extract_word(line, len("Fsm "))
        checksum, _ = extract_quoted(line, pos)
        self._store(session, FsmState(
            fsm_name,
            checksum=checksum,
            annotation=session.take_annotation(),
        ))
        return True

    def _parse_condition(self, session: ParseSession, line: str) -> bool:
        # Condition 2 "2940925445" "(a && b) 1 -1" (1 "01")
        if not line.startswith("Condition "):
            return False
        condition_id, pos = extract_word(line, len("Condition "))
        checksum, pos = extract_quoted(line, pos)
        body, pos = extract_quoted(line, pos)
        expression, parameters = split_condition_text(body)

        trailer = trim(line[pos:])
        coverage = ""
        if len(trailer) >= 2 and trailer[0] == "(" and trailer[-1] == ")":
            coverage = trailer[1:-1]

        self._store(session, ConditionExclusion(
            condition_id,
            checksum=checksum,
            expression=expression,
            parameters=parameters,
            coverage=coverage,
            annotation=session.take_annotation(),
        ))
        return True

    def _parse_transition(self, session: ParseSession, line: str) -> bool:
        # Transition SND_RD_ADDR1->IDLE "11->0"
        if not line.startswith("Transition "):
            return False
        rest = line[len("Transition "):]
        arrow = rest.find("->")
        if arrow == -1:
            return False

        from_state = trim(rest[:arrow])
        to_state, _ = extract_word(rest, arrow + 2)
        to_state = to_state.split('"', 1)[0]
        transition_id, _ = extract_quoted(rest, arrow + 2)

        self._store(session, FsmTransition(
            from_state,
            to_state,
            transition_id=transition_id,
            annotation=session.take_annotation(),
        ))
        return True

    # ------------------------------------------------------------------
    # Helpers

    def _store(self, session: ParseSession, record: Exclusion) -> None:
        if not session.scope_name:
            session.warn(
                f"Line {session.line_number}: {record.kind} exclusion outside of "
                "any INSTANCE/MODULE scope ignored"
            )
            return
        scope = session.database.get_or_create_scope(
            session.scope_name,
            checksum=session.scope_checksum,
            is_module=session.is_module,
        )
        scope.add(record)
        session.result.exclusions_parsed += 1
        session.result.count(record.kind)

    def _check_checksum(self, session: ParseSession, checksum: str) -> None:
        if self.config.validate_checksums and not is_valid_checksum(checksum):
            session.warn(f"Line {session.line_number}: Invalid checksum format: {checksum}")

    @staticmethod
    def _annotation_text(rest: str) -> Optional[str]:
        rest = trim(rest)
        if rest.startswith('"'):
            text, end = extract_quoted(rest)
            if end == len(rest) and not rest.endswith('"'):
                text = rest[1:]
        else:
            text = rest
        return text or None


__all__: List[str] = ["ExclusionParser", "ParseSession", "HEADER_FIELDS", "HEADER_MARKERS"]
