"""Reporters for rendering and publishing coverage results."""

from __future__ import annotations

from prcov.agents.reporters.markdown import (
    FormattedTable,
    format_average_table,
    format_files_table,
    render_summary,
    to_percent,
)
from prcov.agents.reporters.publisher import (
    CheckPublisher,
    CommentPublisher,
    Publisher,
    create_publisher,
)
from prcov.agents.reporters.terminal import reporter

__all__ = [
    "CheckPublisher",
    "CommentPublisher",
    "FormattedTable",
    "Publisher",
    "create_publisher",
    "format_average_table",
    "format_files_table",
    "render_summary",
    "reporter",
    "to_percent",
]
