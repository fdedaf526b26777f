"""Plain text renderer, the default output of the command line."""

from __future__ import annotations

from typing import Iterable, List

from ..manager import ExclusionStatistics
from ..model import ExclusionScope
from .base import SCOPE_HEADERS, ReportRenderer, renderer_registry, scope_row


@renderer_registry.register("text")
class TextReportRenderer(ReportRenderer):
    """Indented plain text with space aligned tables."""

    def render_statistics(self, stats: ExclusionStatistics) -> str:
        lines = [
            "Exclusion Statistics:",
            f"  Total Scopes: {stats.total_scopes}",
            f"    Modules: {stats.module_scopes}",
            f"    Instances: {stats.instance_scopes}",
            f"  Total Exclusions: {stats.total_exclusions}",
            f"    Annotated: {stats.annotated_exclusions}",
            "  By Type:",
        ]
        lines.extend(f"    {kind}: {count}" for kind, count in stats.exclusions_by_kind.items())
        return "\n".join(lines)

    def render_scope_table(self, scopes: Iterable[ExclusionScope]) -> str:
        rows: List[List[str]] = [SCOPE_HEADERS] + [scope_row(scope) for scope in scopes]
        widths = [max(len(row[col]) for row in rows) for col in range(len(SCOPE_HEADERS))]
        return "\n".join(
            "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
            for row in rows
        )
