"""Base renderer class and registry.

Renderers turn :class:`ellang.manager.ExclusionStatistics` and lists of
scopes into human readable reports.  Concrete classes register
themselves in :data:`renderer_registry` under their format key.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List

from ..manager import ExclusionStatistics
from ..model import ExclusionKind, ExclusionScope
from ..registry import Registry

# Registry for renderer implementations
renderer_registry = Registry("renderer")

SCOPE_HEADERS = ["Scope", "Type", "Checksum"] + [str(kind) for kind in ExclusionKind] + ["Total"]


def scope_row(scope: ExclusionScope) -> List[str]:
    """Return the cells of one scope table row, in :data:`SCOPE_HEADERS` order."""
    counts = [str(scope.count(kind)) for kind in ExclusionKind]
    return [scope.scope_name, scope.keyword, scope.checksum] + counts + [str(scope.total_exclusion_count())]


class ReportRenderer(ABC):
    """Abstract base class for statistics and scope reports."""

    @abstractmethod
    def render_statistics(self, stats: ExclusionStatistics) -> str:
        """Render aggregate statistics.

        Args:
            stats: Statistics from :meth:`ExclusionDataManager.get_statistics`.

        Returns:
            The formatted statistics.
        """
        raise NotImplementedError

    @abstractmethod
    def render_scope_table(self, scopes: Iterable[ExclusionScope]) -> str:
        """Render one row per scope with its per-kind exclusion counts."""
        raise NotImplementedError

    def render_report(self, title: str, stats: ExclusionStatistics, scopes: Iterable[ExclusionScope]) -> str:
        """Render a complete report; statistics followed by the scope table."""
        return f"{self.render_statistics(stats)}\n\n{self.render_scope_table(scopes)}"
