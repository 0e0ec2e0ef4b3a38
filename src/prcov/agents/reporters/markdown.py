"""Markdown rendering of coverage tables and the PR summary message."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from prcov.agents.analyzers.threshold import section_passes
from prcov.models.coverage import AverageCoverage, GateMode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from prcov.models.coverage import ClassifiedCoverage, FilesCoverage, ScoreResult

PASS_ICON = "✅"
FAIL_ICON = "❌"
PROJECT_URL = "https://github.com/prcov/prcov"

NO_NEW_FILES = "No new covered files..."
NO_MODIFIED_FILES = "No covered modified files..."


@dataclass(frozen=True)
class FormattedTable:
    """A rendered markdown table and the verdict it displays."""

    table: str
    passed: bool


def to_percent(ratio: float) -> str:
    """Render a ratio (0.0 to 1.0) as a percentage with one decimal, e.g. ``83.3%``."""
    return f"{ratio * 100:.1f}%"


def _status(passed: bool) -> str:
    return PASS_ICON if passed else FAIL_ICON


def _escape_cell(text: str) -> str:
    # GitHub splits table rows on pipes, even inside code spans.
    return text.replace("|", "\\|")


def format_average_table(avg: AverageCoverage) -> FormattedTable:
    """Render an aggregate as a one-row markdown table."""
    lines = [
        "| Lines Covered | Lines Total | Coverage | Threshold | Status |",
        "| :-----------: | :---------: | :------: | :-------: | :----: |",
        f"| {avg.covered} | {avg.total} | {to_percent(avg.ratio)} | "
        f"{to_percent(avg.threshold)} | {_status(avg.passed)} |",
    ]
    return FormattedTable(table="\n".join(lines), passed=avg.passed)


def format_files_table(
    files: Sequence[ClassifiedCoverage], gate_mode: GateMode = GateMode.AGGREGATE
) -> FormattedTable:
    """Render one row per file, in the given order, followed by the section aggregate.

    The returned verdict follows the same section rule as the scorer.
    """
    if not files:
        return FormattedTable(table="", passed=True)

    threshold = files[0].threshold
    average = AverageCoverage.from_records(files, threshold)

    lines = [
        "| File | Lines Covered | Coverage | Status |",
        "| :--- | :-----------: | :------: | :----: |",
    ]
    lines.extend(
        f"| `{_escape_cell(entry.path)}` | {entry.lines_covered}/{entry.lines_total} | "
        f"{to_percent(entry.ratio)} | {_status(entry.passed)} |"
        for entry in files
    )
    lines.append(
        f"| **Total** | **{average.covered}/{average.total}** | "
        f"**{to_percent(average.ratio)}** | {_status(average.passed)} |"
    )
    lines.append("")
    lines.append(f"_Threshold: {to_percent(threshold)}_")

    return FormattedTable(
        table="\n".join(lines),
        passed=section_passes(files, average, gate_mode),
    )


def render_summary(
    files_coverage: FilesCoverage,
    result: ScoreResult,
    *,
    head_sha: str = "",
    gate_mode: GateMode = GateMode.AGGREGATE,
) -> str:
    """Render the full summary message published to the PR.

    Args:
        files_coverage: Aggregated coverage.
        result: Verdict computed by the scorer.
        head_sha: Head commit shown in the footer (abbreviated to 7 chars).
        gate_mode: Gate mode used for the per-section verdicts.

    Returns:
        Markdown text, identical for identical inputs.
    """
    sections: list[str] = [f"> current status: {_status(result.pass_overall)}", ""]

    sections.append("## Overall Coverage")
    sections.append(format_average_table(files_coverage.average_cover).table)
    sections.append("")

    sections.append("## New Files")
    if files_coverage.new_cover:
        sections.append(format_files_table(files_coverage.new_cover, gate_mode).table)
    else:
        sections.append(NO_NEW_FILES)
    sections.append("")

    sections.append("## Modified Files")
    if files_coverage.modified_cover:
        sections.append(format_files_table(files_coverage.modified_cover, gate_mode).table)
    else:
        sections.append(NO_MODIFIED_FILES)
    sections.append("")

    footer = f"by [prcov]({PROJECT_URL})"
    if head_sha:
        footer = f"updated for commit: `{head_sha[:7]}` {footer}"
    sections.append("---")
    sections.append(f"> **{footer}**")

    return "\n".join(sections)
