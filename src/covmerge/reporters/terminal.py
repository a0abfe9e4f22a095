"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from covmerge.models.result import summarize

if TYPE_CHECKING:
    from collections.abc import Mapping

    from covmerge.models.result import MergeResult, MergeSummary

console = Console()
err_console = Console(stderr=True)

_GOOD_RATE = 80.0
_FAIR_RATE = 50.0


def _coverage_color(rate: float) -> str:
    """Return a Rich color name for a line-coverage percentage."""
    if rate >= _GOOD_RATE:
        return "green"
    if rate >= _FAIR_RATE:
        return "yellow"
    return "red"


class CLIReporter:
    """Rich terminal output for merge results."""

    def __init__(self, out: Console | None = None, err: Console | None = None) -> None:
        self.console = out or console
        self.err_console = err or err_console

    def print_success(self, message: str) -> None:
        """Print a success message to stderr."""
        self.err_console.print(f"[green]✓[/green] {escape(message)}")

    def print_error(self, message: str) -> None:
        """Print an error message to stderr."""
        self.err_console.print(f"[red]✗[/red] {escape(message)}")

    def print_results_table(self, results: Mapping[str, MergeResult]) -> None:
        """Print one row per file: existence, instrumented and covered lines."""
        table = Table(title="Merged coverage", show_lines=False)
        table.add_column("File", style="cyan")
        table.add_column("At base", justify="center")
        table.add_column("Instrumented", justify="right")
        table.add_column("Covered", justify="right")
        table.add_column("Coverage", justify="right")

        for path in sorted(results):
            result = results[path]
            if not result.file_exists:
                table.add_row(escape(path), "[red]no[/red]", "-", "-", "-")
                continue
            instrumented = result.instrumented_lines
            covered = result.covered_lines
            rate = (covered / instrumented * 100.0) if instrumented else 0.0
            table.add_row(
                escape(path),
                "[green]yes[/green]",
                str(instrumented),
                str(covered),
                f"[{_coverage_color(rate)}]{rate:.1f}%[/]",
            )

        self.console.print(table)
        self.print_summary(summarize(results))

    def print_summary(self, summary: MergeSummary) -> None:
        """Print run totals."""
        rate = summary.line_coverage_percentage
        self.console.print(
            f"[bold]{summary.files}[/bold] files "
            f"([dim]{summary.missing_files} missing at base[/dim]), "
            f"{summary.covered_lines}/{summary.instrumented_lines} lines covered "
            f"[{_coverage_color(rate)}]({rate:.1f}%)[/]"
        )


reporter = CLIReporter()
