"""Report renderers for exclusion statistics.

This package contains the available output formats:
- text: indented plain text (default)
- markdown: GitHub Flavoured Markdown tables
- csv: comma separated values
- html: standalone HTML page rendered with Jinja2

All renderers are automatically registered via decorators.
"""

from .base import ReportRenderer, renderer_registry
from .text import TextReportRenderer
from .markdown import MarkdownReportRenderer
from .csv import CsvReportRenderer
from .html import HtmlReportRenderer

__all__ = [
    "ReportRenderer",
    "renderer_registry",
    "TextReportRenderer",
    "MarkdownReportRenderer",
    "CsvReportRenderer",
    "HtmlReportRenderer",
]
