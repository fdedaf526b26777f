"""HTML report renderer.

Builds a standalone page from ``templates/report.html.jinja2``.  The
table markup lives in a macro (``templates/macros.html.jinja2``) shared
by the page and the single-table methods.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..manager import ExclusionStatistics
from ..model import ExclusionScope
from .base import SCOPE_HEADERS, ReportRenderer, renderer_registry, scope_row

# Template directory
TEMPLATES_DIR = Path(__file__).parent / "templates"

STATISTICS_HEADERS = ["Metric", "Count"]


@renderer_registry.register("html")
class HtmlReportRenderer(ReportRenderer):
    """Render reports as an HTML page with embedded styling."""

    def __init__(self) -> None:
        self._env = Environment(
            loader=FileSystemLoader(TEMPLATES_DIR),
            autoescape=select_autoescape(["html", "jinja2"]),
        )

    def _table(self, headers: List[str], rows: List[List[str]]) -> str:
        macros = self._env.get_template("macros.html.jinja2").module
        return str(macros.table(headers, rows))

    def _statistics_rows(self, stats: ExclusionStatistics) -> List[List[str]]:
        rows = [
            ["Total Scopes", str(stats.total_scopes)],
            ["Modules", str(stats.module_scopes)],
            ["Instances", str(stats.instance_scopes)],
            ["Total Exclusions", str(stats.total_exclusions)],
            ["Annotated", str(stats.annotated_exclusions)],
        ]
        rows.extend([str(kind), str(count)] for kind, count in stats.exclusions_by_kind.items())
        return rows

    def render_statistics(self, stats: ExclusionStatistics) -> str:
        return self._table(STATISTICS_HEADERS, self._statistics_rows(stats))

    def render_scope_table(self, scopes: Iterable[ExclusionScope]) -> str:
        return self._table(SCOPE_HEADERS, [scope_row(scope) for scope in scopes])

    def render_report(self, title: str, stats: ExclusionStatistics, scopes: Iterable[ExclusionScope]) -> str:
        template = self._env.get_template("report.html.jinja2")
        return template.render(
            title=title,
            stats_headers=STATISTICS_HEADERS,
            stats_rows=self._statistics_rows(stats),
            scope_headers=SCOPE_HEADERS,
            scope_rows=[scope_row(scope) for scope in scopes],
        )
