"""GitHub Flavoured Markdown renderer."""

from __future__ import annotations

from typing import Iterable, List

from ..manager import ExclusionStatistics
from ..model import ExclusionScope
from .base import SCOPE_HEADERS, ReportRenderer, renderer_registry, scope_row


def _table(headers: List[str], rows: Iterable[List[str]]) -> str:
    header_line = "| " + " | ".join(headers) + " |"
    align_line = "|" + "|".join([":" + "-" * (len(h) + 1) for h in headers]) + "|"
    lines = [header_line, align_line]
    for row in rows:
        cells = [cell.replace("|", "\\|") for cell in row]
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)


@renderer_registry.register("markdown")
class MarkdownReportRenderer(ReportRenderer):
    """Render reports as Markdown tables."""

    def render_statistics(self, stats: ExclusionStatistics) -> str:
        rows = [
            ["Scopes", str(stats.total_scopes)],
            ["Modules", str(stats.module_scopes)],
            ["Instances", str(stats.instance_scopes)],
            ["Exclusions", str(stats.total_exclusions)],
            ["Annotated", str(stats.annotated_exclusions)],
        ]
        rows.extend([str(kind), str(count)] for kind, count in stats.exclusions_by_kind.items())
        return _table(["Metric", "Count"], rows)

    def render_scope_table(self, scopes: Iterable[ExclusionScope]) -> str:
        return _table(SCOPE_HEADERS, (scope_row(scope) for scope in scopes))

    def render_report(self, title: str, stats: ExclusionStatistics, scopes: Iterable[ExclusionScope]) -> str:
        return (
            f"# {title}\n\n"
            f"## Statistics\n\n{self.render_statistics(stats)}\n\n"
            f"## Scopes\n\n{self.render_scope_table(scopes)}"
        )
