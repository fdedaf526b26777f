"""Exclusion list writer.

:class:`ExclusionWriter` is the inverse of
:class:`ellang.parser.ExclusionParser`: it emits an
:class:`ellang.model.ExclusionDatabase` as ``.el`` text that parses back
to an equivalent database.

Every scope is written as::

    CHECKSUM: "<checksum>"
    INSTANCE:<scope name>          (or MODULE:<scope name>)
    Block ...
    Toggle ...
    Fsm ... / Transition ...
    Condition ...

with an ``ANNOTATION:`` line directly before any record that carries
one.  The single-record formatters are exposed as module functions so
other tools can produce individual lines in the same format.

Only ``sort_exclusions`` mode gives byte-stable output.  Without it,
scopes and records come out in insertion order.
"""

from __future__ import annotations

import hashlib
import io
import logging
import os
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Sequence, TextIO

from .config import WriterConfig
from .lines import escape_quotes
from .model import (
    BlockExclusion,
    ConditionExclusion,
    Exclusion,
    ExclusionDatabase,
    ExclusionKind,
    ExclusionScope,
    FsmExclusion,
    ToggleExclusion,
)
from .results import WriteResult

logger = logging.getLogger(__name__)

DIVIDER = "//" + "=" * 50
HEADER_TITLE = "This file contains the Excluded objects"
DEFAULT_GENERATED_BY = "elkit"
DEFAULT_FORMAT_VERSION = "2"
DEFAULT_EXCLUSION_MODE = "default"
DATE_FORMAT = "%a %b %d %H:%M:%S %Y"

_CHECKSUM_MASK = 0xFFFFFFFF


def _quoted(text: str) -> str:
    return f'"{escape_quotes(text)}"'


# ----------------------------------------------------------------------
# Record formatters


def format_annotation(annotation: str) -> str:
    return f"ANNOTATION: {_quoted(annotation)}"


def _block_line(block: BlockExclusion) -> str:
    return f"Block {block.block_id} {_quoted(block.checksum)} {_quoted(block.source_code)}"


def _toggle_line(toggle: ToggleExclusion) -> str:
    parts = ["Toggle"]
    if toggle.direction.token:
        parts.append(toggle.direction.token)
    parts.append(toggle.signal_name)
    if toggle.bit_index is not None:
        parts.append(f"[{toggle.bit_index}]")
    parts.append(_quoted(toggle.net_description))
    return " ".join(parts)


def _fsm_line(fsm: FsmExclusion) -> str:
    if fsm.is_transition:
        return f"Transition {fsm.from_state}->{fsm.to_state} {_quoted(fsm.transition_id)}"
    return f"Fsm {fsm.fsm_name} {_quoted(fsm.checksum)}"


def _condition_line(condition: ConditionExclusion) -> str:
    body = condition.expression
    if condition.parameters:
        body = f"{body} {condition.parameters}"
    line = f"Condition {condition.condition_id} {_quoted(condition.checksum)} {_quoted(body)}"
    if condition.coverage:
        line = f"{line} ({condition.coverage})"
    return line


def record_line(record: Exclusion) -> str:
    """Format a single record as one line, without its annotation."""
    if record.kind is ExclusionKind.BLOCK:
        return _block_line(record)
    if record.kind is ExclusionKind.TOGGLE:
        return _toggle_line(record)
    if record.kind is ExclusionKind.FSM:
        return _fsm_line(record)
    if record.kind is ExclusionKind.CONDITION:
        return _condition_line(record)
    raise ValueError(f"unknown exclusion kind: {record.kind!r}")


def _with_annotation(record: Exclusion, line: str, include_annotation: bool) -> str:
    if include_annotation and record.annotation:
        return f"{format_annotation(record.annotation)}\n{line}"
    return line


def format_block(block: BlockExclusion, include_annotation: bool = True) -> str:
    return _with_annotation(block, _block_line(block), include_annotation)


def format_toggle(toggle: ToggleExclusion, include_annotation: bool = True) -> str:
    return _with_annotation(toggle, _toggle_line(toggle), include_annotation)


def format_fsm(fsm: FsmExclusion, include_annotation: bool = True) -> str:
    return _with_annotation(fsm, _fsm_line(fsm), include_annotation)


def format_condition(condition: ConditionExclusion, include_annotation: bool = True) -> str:
    return _with_annotation(condition, _condition_line(condition), include_annotation)


def format_scope_header(scope: ExclusionScope, checksum: Optional[str] = None) -> str:
    """Format the CHECKSUM and declaration lines of a scope.

    Args:
        scope: The scope to describe.
        checksum: Overrides ``scope.checksum`` when given.
    """
    checksum = scope.checksum if checksum is None else checksum
    declaration = f"{scope.keyword}:{scope.scope_name}"
    if checksum:
        return f'CHECKSUM: "{checksum}"\n{declaration}'
    return declaration


def format_file_header(database: ExclusionDatabase, now: Optional[datetime] = None) -> str:
    """Format the comment block written at the top of every file.

    Missing metadata is filled with defaults; a missing date becomes
    ``now`` (the current local time when not given).
    """
    date = database.generation_date
    if not date:
        date = (now or datetime.now()).strftime(DATE_FORMAT)
    return "\n".join([
        DIVIDER,
        f"// {HEADER_TITLE}",
        f"// Generated By User: {database.generated_by or DEFAULT_GENERATED_BY}",
        f"// Format Version: {database.format_version or DEFAULT_FORMAT_VERSION}",
        f"// Date: {date}",
        f"// ExclMode: {database.exclusion_mode or DEFAULT_EXCLUSION_MODE}",
        DIVIDER,
    ])


def generate_scope_checksum(scope: ExclusionScope) -> str:
    """Derive a checksum from the identifiers held by ``scope``.

    Each ``kind:identifier`` token is hashed on its own and the hashes
    are added modulo 2**32, so the result depends only on which
    identifiers are present and never on container order.  An empty
    scope yields ``"0"``.
    """
    total = 0
    for token in _checksum_tokens(scope):
        digest = hashlib.sha1(token.encode("utf-8")).digest()
        total = (total + int.from_bytes(digest[:4], "big")) & _CHECKSUM_MASK
    return str(total)


def _checksum_tokens(scope: ExclusionScope) -> Iterator[str]:
    for kind, container in (
        (ExclusionKind.BLOCK, scope.blocks),
        (ExclusionKind.TOGGLE, scope.toggles),
        (ExclusionKind.FSM, scope.fsms),
        (ExclusionKind.CONDITION, scope.conditions),
    ):
        for key in container:
            yield f"{kind}:{key}"


# ----------------------------------------------------------------------
# Writer


class ExclusionWriter:
    """Writes exclusion databases to files, strings and streams."""

    def __init__(self, config: Optional[WriterConfig] = None) -> None:
        self.config = config or WriterConfig()
        self.last_result = WriteResult()

    def set_config(self, config: WriterConfig) -> None:
        self.config = config

    # ------------------------------------------------------------------
    # Whole-database output

    def write_file(self, path: str, database: ExclusionDatabase) -> WriteResult:
        """Write ``database`` to ``path``, replacing any existing file."""
        return self._write_path(path, database, mode="w", include_header=self.config.include_comments)

    def append_to_file(self, path: str, database: ExclusionDatabase) -> WriteResult:
        """Append the scopes of ``database`` to ``path`` without a header."""
        return self._write_path(path, database, mode="a", include_header=False)

    def write_string(self, database: ExclusionDatabase) -> str:
        buf = io.StringIO()
        self.write_stream(buf, database)
        return buf.getvalue()

    def write_stream(self, stream: TextIO, database: ExclusionDatabase) -> WriteResult:
        return self._emit(stream, database, include_header=self.config.include_comments)

    # ------------------------------------------------------------------
    # Partial and batch output

    def write_scopes(
        self, path: str, database: ExclusionDatabase, scope_names: Iterable[str]
    ) -> WriteResult:
        """Write only the named scopes.  Unknown names are reported as warnings."""
        subset = _empty_like(database)
        missing: List[str] = []
        for name in scope_names:
            scope = database.scopes.get(name)
            if scope is None:
                missing.append(name)
            else:
                subset.scopes[name] = scope

        result = self.write_file(path, subset)
        for name in missing:
            result.add_warning(f"Scope not found: {name}")
        return result

    def write_filtered_by_kind(
        self, path: str, database: ExclusionDatabase, kinds: Iterable[ExclusionKind]
    ) -> WriteResult:
        """Write every scope, keeping only records of the given kinds."""
        kinds = set(kinds)
        filtered = database.copy()
        for scope in filtered.scopes.values():
            if ExclusionKind.BLOCK not in kinds:
                scope.blocks.clear()
            if ExclusionKind.TOGGLE not in kinds:
                scope.toggles.clear()
            if ExclusionKind.FSM not in kinds:
                scope.fsms.clear()
            if ExclusionKind.CONDITION not in kinds:
                scope.conditions.clear()
        return self.write_file(path, filtered)

    def write_multiple_files(
        self, base_path: str, databases: Sequence[ExclusionDatabase]
    ) -> WriteResult:
        """Write one file per database, named ``<base>_<i><ext>``.

        Stops at the first file that cannot be written.
        """
        combined = WriteResult()
        root, ext = os.path.splitext(base_path)

        for i, database in enumerate(databases):
            path = f"{root}_{i}{ext}"
            result = self.write_file(path, database)
            combined.merge(result)
            if not result.success:
                combined.error_message = f"Failed to write {path}: {result.error_message}"
                self.last_result = combined
                return combined

        combined.success = True
        self.last_result = combined
        return combined

    # ------------------------------------------------------------------
    # Inspection

    def validate_for_writing(self, database: ExclusionDatabase) -> List[str]:
        """Return the problems that would make the output unparsable."""
        issues: List[str] = []
        for name, scope in database.scopes.items():
            if not name:
                issues.append("Scope with empty name found")
            if any(not key for key in scope.blocks):
                issues.append(f"Block exclusion with empty ID in scope: {name}")
            if any(not key for key in scope.toggles):
                issues.append(f"Toggle exclusion with empty signal name in scope: {name}")
            if any(not key for key in scope.fsms):
                issues.append(f"FSM exclusion with empty name in scope: {name}")
            if any(not key for key in scope.conditions):
                issues.append(f"Condition exclusion with empty ID in scope: {name}")
        return issues

    def preview(self, database: ExclusionDatabase, max_lines: int = 50) -> str:
        """Return at most ``max_lines`` lines of the output, plus a marker if cut."""
        lines = self.write_string(database).splitlines()
        shown = lines[:max_lines]
        if len(lines) > max_lines:
            shown.append(f"... (truncated, {max_lines} lines shown)")
        return "".join(f"{line}\n" for line in shown)

    def estimate_output_size(self, database: ExclusionDatabase) -> int:
        """Rough size in characters of the text :meth:`write_string` would produce."""
        size = 500 if self.config.include_comments else 0
        for name, scope in database.scopes.items():
            size += 100 + len(name)
            for record in scope.iter_exclusions():
                overhead = 100 if record.kind is ExclusionKind.CONDITION else 50
                size += overhead + sum(len(text) for text in _text_fields(record))
        return size

    # ------------------------------------------------------------------
    # Emission

    def _write_path(
        self, path: str, database: ExclusionDatabase, mode: str, include_header: bool
    ) -> WriteResult:
        logger.debug("Writing exclusion file %s (mode %s)", path, mode)
        try:
            # newline="" so that config.line_ending is written untranslated
            fh = open(path, mode, encoding="utf-8", newline="")
        except OSError as exc:
            action = "append to" if mode == "a" else "create"
            message = f"Cannot {action} file: {path} ({exc})"
            logger.warning(message)
            result = WriteResult(error_message=message)
            self.last_result = result
            return result

        with fh:
            return self._emit(fh, database, include_header)

    def _emit(self, stream: TextIO, database: ExclusionDatabase, include_header: bool) -> WriteResult:
        result = WriteResult()

        if include_header:
            for line in format_file_header(database).splitlines():
                self._write_line(stream, line)
                result.lines_written += 1

        for i, name in enumerate(self._scope_order(database)):
            scope = database.scopes[name]
            if (i or include_header) and not self.config.compact_format:
                stream.write(self.config.line_ending)
                result.lines_written += 1

            result.lines_written += self._write_scope(stream, name, scope)
            result.scopes_written += 1
            result.exclusions_written += scope.total_exclusion_count()
            for kind in ExclusionKind:
                result.count(kind, scope.count(kind))

        result.success = True
        logger.debug(
            "Wrote %d exclusions in %d scopes",
            result.exclusions_written,
            result.scopes_written,
        )
        self.last_result = result
        return result

    def _write_scope(self, stream: TextIO, name: str, scope: ExclusionScope) -> int:
        checksum = scope.checksum
        if not checksum and self.config.generate_checksums:
            checksum = generate_scope_checksum(scope)

        lines: List[str] = []
        if checksum:
            lines.append(f'CHECKSUM: "{checksum}"')
        lines.append(f"{scope.keyword}:{name}")

        for record in self._record_order(scope):
            if self.config.include_annotations and record.annotation:
                lines.append(format_annotation(record.annotation))
            lines.append(record_line(record))

        for line in lines:
            self._write_line(stream, line)
        return len(lines)

    def _write_line(self, stream: TextIO, line: str) -> None:
        stream.write(f"{self.config.indentation}{line}{self.config.line_ending}")

    def _scope_order(self, database: ExclusionDatabase) -> List[str]:
        if self.config.sort_exclusions:
            return sorted(database.scopes)
        return list(database.scopes)

    def _record_order(self, scope: ExclusionScope) -> Iterator[Exclusion]:
        order = sorted if self.config.sort_exclusions else list
        for key in order(scope.blocks):
            yield scope.blocks[key]
        for key in order(scope.toggles):
            yield from scope.toggles[key]
        for key in order(scope.fsms):
            yield from scope.fsms[key]
        for key in order(scope.conditions):
            yield scope.conditions[key]


def _empty_like(database: ExclusionDatabase) -> ExclusionDatabase:
    return ExclusionDatabase(
        file_name=database.file_name,
        generated_by=database.generated_by,
        format_version=database.format_version,
        generation_date=database.generation_date,
        exclusion_mode=database.exclusion_mode,
    )


def _text_fields(record: Exclusion) -> Iterator[str]:
    for value in vars(record).values():
        if isinstance(value, str):
            yield value
