"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from prcov.agents.reporters.markdown import to_percent
from prcov.models.coverage import Classification

if TYPE_CHECKING:
    from prcov.models.coverage import AverageCoverage, FilesCoverage, ScoreResult

console = Console()

_HIGH_COVERAGE = 0.8
_MEDIUM_COVERAGE = 0.5


class CLIReporter:
    """Rich terminal output for coverage results."""

    def __init__(self, target: Console | None = None) -> None:
        """Initialize the CLI reporter."""
        self.console = target or console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def print_coverage_summary(self, files_coverage: FilesCoverage, result: ScoreResult) -> None:
        """Print one row per section, then the new and modified file tables."""
        table = Table(title="Coverage Summary", title_style="bold cyan")
        table.add_column("Section", style="bold")
        table.add_column("Lines", justify="right")
        table.add_column("Coverage", justify="right")
        table.add_column("Threshold", justify="right")
        table.add_column("Status", justify="center")

        for section in Classification:
            average = files_coverage.section_average(section)
            passed = result.pass_by_section.get(section.value, True)
            if average is None:
                table.add_row(section.value, "-", "-", "-", self._status(passed))
                continue
            table.add_row(
                section.value,
                f"{average.covered}/{average.total}",
                self._colored_ratio(average),
                to_percent(average.threshold),
                self._status(passed),
            )

        self.console.print(table)

        for section in (Classification.NEW, Classification.MODIFIED):
            files = files_coverage.section_files(section)
            if not files:
                self.print_info(f"No covered {section.value} files in this PR")
                continue

            file_table = Table(title=f"{section.value.capitalize()} Files", title_style="bold")
            file_table.add_column("File")
            file_table.add_column("Lines", justify="right")
            file_table.add_column("Coverage", justify="right")
            for entry in files:
                color = self._get_coverage_color(entry.ratio)
                file_table.add_row(
                    entry.path,
                    f"{entry.lines_covered}/{entry.lines_total}",
                    f"[{color}]{to_percent(entry.ratio)}[/{color}]",
                )
            self.console.print(file_table)

        if result.pass_overall:
            self.print_success("Coverage meets configured thresholds")
        else:
            self.print_error("Coverage is lower than configured threshold")

    def _colored_ratio(self, average: AverageCoverage) -> str:
        color = self._get_coverage_color(average.ratio)
        return f"[{color}]{to_percent(average.ratio)}[/{color}]"

    @staticmethod
    def _status(passed: bool) -> str:
        return "[green]✓[/green]" if passed else "[red]✗[/red]"

    @staticmethod
    def _get_coverage_color(ratio: float) -> str:
        """Get a color based on a coverage ratio."""
        if ratio >= _HIGH_COVERAGE:
            return "green"
        if ratio >= _MEDIUM_COVERAGE:
            return "yellow"
        return "red"


# Singleton instance for easy import
reporter = CLIReporter()
