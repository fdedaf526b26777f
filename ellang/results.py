"""Outcome records for parse and write operations.

Recoverable problems are never raised.  They are collected here, so a
caller always gets a result back and can inspect ``success``,
``error_message`` and ``warnings`` afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from .model import ExclusionKind


def _empty_counts() -> Dict[ExclusionKind, int]:
    return {kind: 0 for kind in ExclusionKind}


@dataclass
class _OperationResult:
    success: bool = False
    error_message: str = ""
    exclusion_counts: Dict[ExclusionKind, int] = field(default_factory=_empty_counts)
    warnings: List[str] = field(default_factory=list)

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def count(self, kind: ExclusionKind, amount: int = 1) -> None:
        self.exclusion_counts[kind] = self.exclusion_counts.get(kind, 0) + amount

    def __bool__(self) -> bool:
        return self.success

    def _summary_lines(self, title: str) -> List[str]:
        return [f"{title}: {'SUCCESS' if self.success else 'FAILED'}"]

    def _summary_tail(self) -> List[str]:
        lines: List[str] = []
        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            lines.extend(f"  - {w}" for w in self.warnings)
        if not self.success and self.error_message:
            lines.append(f"Error: {self.error_message}")
        return lines


@dataclass
class ParseResult(_OperationResult):
    """Statistics and diagnostics for one parse call."""

    lines_processed: int = 0
    exclusions_parsed: int = 0
    comments: List[str] = field(default_factory=list)

    def merge(self, other: "ParseResult") -> None:
        """Accumulate the counts and warnings of ``other`` (batch parsing)."""
        self.lines_processed += other.lines_processed
        self.exclusions_parsed += other.exclusions_parsed
        for kind, amount in other.exclusion_counts.items():
            self.count(kind, amount)
        self.warnings.extend(other.warnings)
        self.comments.extend(other.comments)

    def summary(self) -> str:
        lines = self._summary_lines("Parse Result")
        lines.append(f"Lines processed: {self.lines_processed}")
        lines.append(f"Exclusions parsed: {self.exclusions_parsed}")
        lines.extend(self._summary_tail())
        return "\n".join(lines)


@dataclass
class WriteResult(_OperationResult):
    """Statistics and diagnostics for one write call."""

    lines_written: int = 0
    exclusions_written: int = 0
    scopes_written: int = 0

    def merge(self, other: "WriteResult") -> None:
        self.lines_written += other.lines_written
        self.exclusions_written += other.exclusions_written
        self.scopes_written += other.scopes_written
        for kind, amount in other.exclusion_counts.items():
            self.count(kind, amount)
        self.warnings.extend(other.warnings)

    def summary(self) -> str:
        lines = self._summary_lines("Write Result")
        lines.append(f"Lines written: {self.lines_written}")
        lines.append(f"Exclusions written: {self.exclusions_written}")
        lines.append(f"Scopes written: {self.scopes_written}")
        lines.extend(self._summary_tail())
        return "\n".join(lines)
