"""Query, merge and maintenance operations over an exclusion database.

:class:`ExclusionDataManager` wraps one
:class:`ellang.model.ExclusionDatabase` and answers questions about it:
searching by :class:`SearchCriteria`, wildcard lookup of scope names,
statistics, annotation search, duplicate detection and structural
validation.  It only relies on the public shape of the data model.
"""

from __future__ import annotations

import dataclasses
import logging
import re
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from .model import Exclusion, ExclusionDatabase, ExclusionKind, ExclusionScope

logger = logging.getLogger(__name__)

# Characters PatternMatcher.escape protects
_ESCAPED_CHARS = frozenset("*?[](){}+.^$|\\")


class PatternMatcher:
    """Shell-style wildcard matching for hierarchical names.

    ``*`` matches any run of characters (including none) and ``?``
    exactly one character.  The pattern must match the whole name.  A
    backslash makes the following character literal.
    """

    @staticmethod
    def to_regex(pattern: str) -> str:
        parts: List[str] = []
        i = 0
        while i < len(pattern):
            ch = pattern[i]
            if ch == "\\" and i + 1 < len(pattern):
                parts.append(re.escape(pattern[i + 1]))
                i += 2
                continue
            if ch == "*":
                parts.append(".*")
            elif ch == "?":
                parts.append(".")
            else:
                parts.append(re.escape(ch))
            i += 1
        return "".join(parts)

    @classmethod
    def matches(cls, pattern: str, text: str, case_sensitive: bool = True) -> bool:
        flags = re.DOTALL if case_sensitive else re.DOTALL | re.IGNORECASE
        return re.fullmatch(cls.to_regex(pattern), text, flags) is not None

    @staticmethod
    def escape(text: str) -> str:
        """Escape ``text`` so that :meth:`matches` treats it literally."""
        return "".join(f"\\{ch}" if ch in _ESCAPED_CHARS else ch for ch in text)


@dataclass
class SearchCriteria:
    """Filters for :meth:`ExclusionDataManager.search`.

    Every filter is optional and all given filters must hold.  String
    filters are substring matches.  ``signal_name`` only ever matches
    toggle records.
    """

    kind: Optional[ExclusionKind] = None
    scope_name: str = ""
    annotation: str = ""
    signal_name: str = ""
    is_module: Optional[bool] = None

    def matches_scope(self, name: str, scope: ExclusionScope) -> bool:
        if self.scope_name and self.scope_name not in name:
            return False
        if self.is_module is not None and scope.is_module != self.is_module:
            return False
        return True

    def matches_record(self, record: Exclusion) -> bool:
        if self.kind is not None and record.kind is not self.kind:
            return False
        if self.signal_name:
            if record.kind is not ExclusionKind.TOGGLE or self.signal_name not in record.signal_name:
                return False
        if self.annotation and self.annotation not in (record.annotation or ""):
            return False
        return True


@dataclass
class ExclusionStatistics:
    total_scopes: int = 0
    module_scopes: int = 0
    instance_scopes: int = 0
    total_exclusions: int = 0
    exclusions_by_kind: Dict[ExclusionKind, int] = field(
        default_factory=lambda: {kind: 0 for kind in ExclusionKind}
    )
    exclusions_by_scope: Dict[str, int] = field(default_factory=dict)
    annotated_exclusions: int = 0


class ExclusionDataManager:
    """Operations over a managed :class:`ExclusionDatabase`."""

    def __init__(self, database: Optional[ExclusionDatabase] = None) -> None:
        self._data = database if database is not None else ExclusionDatabase()

    # ------------------------------------------------------------------
    # Managed database

    def set_data(self, database: Optional[ExclusionDatabase]) -> None:
        self._data = database if database is not None else ExclusionDatabase()

    def get_data(self) -> ExclusionDatabase:
        return self._data

    def clear(self) -> None:
        self._data.clear()

    def merge_data(self, other: ExclusionDatabase, overwrite_existing: bool = False) -> bool:
        logger.debug("Merging %d scopes", other.scope_count())
        self._data.merge(other, overwrite_existing=overwrite_existing)
        return True

    def clone_data(self) -> ExclusionDatabase:
        return self._data.copy()

    def is_empty(self) -> bool:
        return not self._data.scopes

    # ------------------------------------------------------------------
    # Queries

    def search(self, criteria: SearchCriteria) -> List[Tuple[str, ExclusionKind]]:
        """Return one ``(scope_name, kind)`` pair per matching record."""
        matches: List[Tuple[str, ExclusionKind]] = []
        for name, scope in self._data.scopes.items():
            if not criteria.matches_scope(name, scope):
                continue
            for record in scope.iter_exclusions(criteria.kind):
                if criteria.matches_record(record):
                    matches.append((name, record.kind))
        return matches

    def find_scope(self, scope_name: str) -> Optional[ExclusionScope]:
        return self._data.scopes.get(scope_name)

    def find_scopes_matching(self, pattern: str, case_sensitive: bool = True) -> List[str]:
        """Return the scope names matching the wildcard ``pattern``."""
        return [
            name for name in self._data.scopes
            if PatternMatcher.matches(pattern, name, case_sensitive)
        ]

    def get_statistics(self) -> ExclusionStatistics:
        stats = ExclusionStatistics(total_scopes=len(self._data.scopes))
        for name, scope in self._data.scopes.items():
            if scope.is_module:
                stats.module_scopes += 1
            else:
                stats.instance_scopes += 1

            total = scope.total_exclusion_count()
            stats.total_exclusions += total
            stats.exclusions_by_scope[name] = total
            stats.annotated_exclusions += sum(
                1 for record in scope.iter_exclusions() if record.annotation
            )
        stats.exclusions_by_kind = self._data.exclusion_counts_by_kind()
        return stats

    def get_all_signal_names(self) -> Set[str]:
        return {signal for scope in self._data.scopes.values() for signal in scope.toggles}

    def get_all_fsm_names(self) -> Set[str]:
        return {fsm for scope in self._data.scopes.values() for fsm in scope.fsms}

    def find_by_annotation(self, text: str, case_sensitive: bool = False) -> List[Tuple[str, str]]:
        """Find records whose annotation contains ``text``.

        Returns:
            ``(scope_name, locator)`` pairs where the locator reads
            ``Block <id>``, ``Toggle <signal>[<i>]``, ``FSM <name>[<i>]``
            or ``Condition <id>``; ``i`` is the position within the
            signal's or FSM's list.
        """
        needle = text if case_sensitive else text.lower()

        def hit(annotation: Optional[str]) -> bool:
            if not annotation:
                return False
            haystack = annotation if case_sensitive else annotation.lower()
            return needle in haystack

        results: List[Tuple[str, str]] = []
        for name, scope in self._data.scopes.items():
            for block_id, block in scope.blocks.items():
                if hit(block.annotation):
                    results.append((name, f"Block {block_id}"))
            for signal, toggles in scope.toggles.items():
                for i, toggle in enumerate(toggles):
                    if hit(toggle.annotation):
                        results.append((name, f"Toggle {signal}[{i}]"))
            for fsm_name, fsms in scope.fsms.items():
                for i, fsm in enumerate(fsms):
                    if hit(fsm.annotation):
                        results.append((name, f"FSM {fsm_name}[{i}]"))
            for cond_id, condition in scope.conditions.items():
                if hit(condition.annotation):
                    results.append((name, f"Condition {cond_id}"))
        return results

    def find_potential_duplicates(self) -> Dict[str, List[str]]:
        """Map each scope checksum shared by several scopes to their names."""
        by_checksum: Dict[str, List[str]] = {}
        for name, scope in self._data.scopes.items():
            if scope.checksum:
                by_checksum.setdefault(scope.checksum, []).append(name)
        return {checksum: names for checksum, names in by_checksum.items() if len(names) > 1}

    def validate_data(self) -> List[str]:
        """Report empty scope names and empty record identifiers."""
        errors: List[str] = []
        for name, scope in self._data.scopes.items():
            if not name or not scope.scope_name:
                errors.append("Found scope with empty name")
            if any(not key for key in scope.blocks):
                errors.append(f"Found block exclusion with empty ID in scope: {name}")
            if any(not key for key in scope.toggles):
                errors.append(f"Found toggle exclusion with empty signal name in scope: {name}")
            if any(not key for key in scope.fsms):
                errors.append(f"Found FSM exclusion with empty name in scope: {name}")
            if any(not key for key in scope.conditions):
                errors.append(f"Found condition exclusion with empty ID in scope: {name}")
        return errors

    def for_each_exclusion(
        self,
        kind: Optional[ExclusionKind],
        func: Callable[[str, Exclusion], None],
    ) -> None:
        """Call ``func(scope_name, record)`` for every record of ``kind`` (all when None)."""
        for name, scope in self._data.scopes.items():
            for record in scope.iter_exclusions(kind):
                func(name, record)

    # ------------------------------------------------------------------
    # Maintenance

    def remove_exclusions(self, criteria: SearchCriteria) -> int:
        """Remove every record :meth:`search` would report for ``criteria``.

        Toggle and FSM groups left empty are dropped.  Scopes are kept.

        Returns:
            The number of records removed.
        """
        removed = 0
        for name, scope in self._data.scopes.items():
            if not criteria.matches_scope(name, scope):
                continue

            for container in (scope.blocks, scope.conditions):
                doomed = [key for key, record in container.items() if criteria.matches_record(record)]
                for key in doomed:
                    del container[key]
                removed += len(doomed)

            for groups in (scope.toggles, scope.fsms):
                for key in list(groups):
                    records = groups[key]
                    kept = [record for record in records if not criteria.matches_record(record)]
                    removed += len(records) - len(kept)
                    if kept:
                        groups[key] = kept
                    else:
                        del groups[key]

        logger.debug("Removed %d exclusions", removed)
        return removed

    def get_memory_usage(self) -> int:
        """Approximate memory held by the database, in bytes."""
        usage = sys.getsizeof(self._data)
        for name, scope in self._data.scopes.items():
            usage += sys.getsizeof(name) + sys.getsizeof(scope) + sys.getsizeof(scope.checksum)
            for container in (scope.blocks, scope.toggles, scope.fsms, scope.conditions):
                usage += sys.getsizeof(container)
            for record in scope.iter_exclusions():
                usage += sys.getsizeof(record)
                usage += sum(
                    sys.getsizeof(getattr(record, f.name)) for f in dataclasses.fields(record)
                )
        return usage
