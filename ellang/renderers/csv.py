"""CSV renderer.

Statistics are written as ``Metric,Count`` rows and the scope table as
one row per scope, both with a header row.
"""

from __future__ import annotations

import csv
import io
from typing import Iterable, List

from ..manager import ExclusionStatistics
from ..model import ExclusionScope
from .base import SCOPE_HEADERS, ReportRenderer, renderer_registry, scope_row


def _to_csv(rows: Iterable[List[str]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerows(rows)
    return output.getvalue().rstrip("\r\n")


@renderer_registry.register("csv")
class CsvReportRenderer(ReportRenderer):
    """Render reports as comma separated values."""

    def render_statistics(self, stats: ExclusionStatistics) -> str:
        rows = [
            ["Metric", "Count"],
            ["Total Scopes", stats.total_scopes],
            ["Modules", stats.module_scopes],
            ["Instances", stats.instance_scopes],
            ["Total Exclusions", stats.total_exclusions],
            ["Annotated", stats.annotated_exclusions],
        ]
        rows.extend([str(kind), count] for kind, count in stats.exclusions_by_kind.items())
        return _to_csv(rows)

    def render_scope_table(self, scopes: Iterable[ExclusionScope]) -> str:
        return _to_csv([SCOPE_HEADERS] + [scope_row(scope) for scope in scopes])
