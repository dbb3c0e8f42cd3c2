"""
CLI Reporter Module
===================

Rich terminal output for scans, hygiene scores and scan comparisons.

This module renders:
- A header panel naming the scan and its regions
- Resource counts by type and by region
- Score breakdown with the itemized issues
- The change summary between two scans
- The errors collected during a scan

Example
-------
>>> from cloudhygiene.reporters import CLIReporter
>>>
>>> reporter = CLIReporter()
>>> reporter.report_scan(scan)
>>> reporter.report_score(score)

See Also
--------
rich : Python library for rich text and formatting.
JSONReporter : For programmatic access.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from cloudhygiene.models.delta import Delta
from cloudhygiene.models.scan import ScanError, ScanResult
from cloudhygiene.models.score import ScoreResult, Severity

# Module logger
logger = logging.getLogger(__name__)

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}


def score_style(score: int) -> str:
    if score >= 80:
        return "green"
    if score >= 60:
        return "yellow"
    return "red"


class CLIReporter:
    """
    Reporter for displaying scan results in the terminal.

    Parameters
    ----------
    console : Console, optional
        Rich Console instance. If not provided, creates a new one.

    Examples
    --------
    >>> reporter = CLIReporter()
    >>> reporter.report_scan(scan)

    With a recording console (tests):

    >>> console = Console(record=True, width=120)
    >>> CLIReporter(console=console).report_score(score)
    >>> "Security" in console.export_text()
    True
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        logger.debug("Initialized CLIReporter")

    # =========================================================================
    # Scan
    # =========================================================================

    def report_scan(self, scan: ScanResult) -> None:
        """
        Display a scan: header, resource counts, cost and errors.

        Parameters
        ----------
        scan : ScanResult
            The scan to display.
        """
        self._print_header(f"Scan {scan.scan_id}", scan.regions)
        self._print_scan_summary(scan)

        if scan.summary.by_type:
            self._print_counts_table("Resources by Type", "Type", scan.summary.by_type)
        else:
            self.console.print("\n[yellow]No resources found.[/yellow]")

        if scan.summary.by_region:
            self._print_counts_table("Resources by Region", "Region", scan.summary.by_region)

        if scan.errors:
            self.print_errors(scan.errors)

    def _print_scan_summary(self, scan: ScanResult) -> None:
        summary = Table(show_header=False, box=None, padding=(0, 2))
        summary.add_column("Metric", style="cyan")
        summary.add_column("Value", style="white")

        summary.add_row("User:", scan.user_id)
        summary.add_row("Scan Time:", scan.timestamp)
        summary.add_row("Regions Scanned:", str(len(scan.regions)))
        summary.add_row("Total Resources:", str(scan.summary.total_resources))

        if scan.cost_data is not None:
            summary.add_row(
                "Estimated Monthly Cost:",
                f"{scan.cost_data.estimated_monthly:,.2f} {scan.cost_data.currency}",
            )
        else:
            summary.add_row("Estimated Monthly Cost:", "[dim]unavailable[/dim]")

        error_style = "yellow" if scan.errors else "green"
        summary.add_row("Errors:", f"[{error_style}]{len(scan.errors)}[/]")

        self.console.print("\n")
        self.console.print(summary)

    def _print_counts_table(self, title: str, label: str, counts: dict) -> None:
        table = Table(title=f"\n{title}", title_style="bold", show_lines=False)
        table.add_column(label, style="cyan", no_wrap=True)
        table.add_column("Count", justify="right")

        for key, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
            table.add_row(key.replace("_", " "), str(count))

        self.console.print(table)

    # =========================================================================
    # Score
    # =========================================================================

    def report_score(self, score: ScoreResult, show_fixes: bool = False) -> None:
        """
        Display a hygiene score with its category breakdown and issues.

        Parameters
        ----------
        score : ScoreResult
            The score to display.
        show_fixes : bool, default=False
            Also print the first fix command for each issue.
        """
        header = Text()
        header.append("\nHygiene Score: ", style="bold")
        header.append(f"{score.overall_score}/100\n", style=f"bold {score_style(score.overall_score)}")
        header.append(f"Scan: {score.scan_id}", style="dim")
        self.console.print(Panel(header, border_style="blue"))

        breakdown = Table(title="\nBreakdown", title_style="bold")
        breakdown.add_column("Category", style="cyan")
        breakdown.add_column("Score", justify="right")
        breakdown.add_column("Issues", justify="right")
        for name, category in score.breakdown.categories().items():
            breakdown.add_row(
                name.replace("_", " ").title(),
                f"{category.score}/{category.max_score}",
                str(len(category.issues)),
            )
        self.console.print(breakdown)

        issues = score.all_issues()
        if not issues:
            self.console.print("\n[green]No issues found.[/green]")
            return

        table = Table(title="\nIssues", title_style="bold", show_lines=False)
        table.add_column("Severity", no_wrap=True)
        table.add_column("Type", style="cyan")
        table.add_column("Resource", style="white")
        table.add_column("Points", justify="right")
        table.add_column("Description", style="dim", max_width=60)
        if show_fixes:
            table.add_column("Fix", style="green", max_width=60)

        for issue in issues:
            row = [
                f"[{SEVERITY_STYLES[issue.severity]}]{issue.severity.value}[/]",
                issue.type,
                issue.resource_id,
                f"-{issue.deduction}",
                self._truncate(issue.description, 60),
            ]
            if show_fixes:
                commands = issue.fix_guide.cli_commands if issue.fix_guide else []
                row.append(commands[0] if commands else "")
            table.add_row(*row)

        self.console.print(table)

    # =========================================================================
    # Delta
    # =========================================================================

    def report_delta(self, delta: Delta) -> None:
        """Display the changes since the previous scan."""
        style = "blue" if delta.is_initial_scan else "cyan"
        self.console.print(Panel(Text(delta.summary), title="Changes", border_style=style))

        if delta.new_security_issues:
            self.console.print("\n[red bold]New security issues:[/red bold]")
            for issue in delta.new_security_issues:
                self.console.print(f"  [red]• {issue.description}[/red]")

        if delta.resolved_security_issues:
            self.console.print("\n[green bold]Resolved security issues:[/green bold]")
            for issue in delta.resolved_security_issues:
                self.console.print(f"  [green]• {issue.description}[/green]")

    # =========================================================================
    # Errors and Messages
    # =========================================================================

    def print_errors(self, errors: List[ScanError]) -> None:
        """
        Print the non-fatal errors of a scan as a table.

        Parameters
        ----------
        errors : list of ScanError
            Errors to display.
        """
        if not errors:
            return

        table = Table(title="\nErrors encountered", title_style="yellow bold")
        table.add_column("Region", style="yellow", no_wrap=True)
        table.add_column("Service", style="cyan")
        table.add_column("Operation", style="dim")
        table.add_column("Kind", style="dim")
        table.add_column("Message", style="red", max_width=60)

        for error in sorted(errors, key=lambda e: (e.region, e.service)):
            table.add_row(
                error.region,
                error.service,
                error.operation or "",
                error.kind.value,
                self._truncate(error.message, 60),
            )

        self.console.print(table)

    def _print_header(self, title: str, regions: List[str]) -> None:
        region_text = ", ".join(regions) if len(regions) <= 5 else f"{len(regions)} regions"

        header_text = Text()
        header_text.append(f"\n{title}\n", style="bold blue")
        header_text.append(f"Regions: {region_text or 'none'}", style="dim")

        self.console.print(Panel(header_text, border_style="blue"))

    @staticmethod
    def _truncate(text: str, max_length: int) -> str:
        if len(text) <= max_length:
            return text
        return text[: max_length - 3] + "..."

    def create_progress(self) -> Progress:
        """Create a spinner progress indicator for long-running scans."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
        )

    def print_scanning_message(self, regions: Optional[List[str]]) -> None:
        if not regions:
            self.console.print("\n[bold]Scanning all enabled regions...[/bold]")
            return
        preview = ", ".join(regions[:5])
        if len(regions) > 5:
            preview += f"... ({len(regions)} total)"
        self.console.print(f"\n[bold]Scanning {len(regions)} region(s)...[/bold]")
        self.console.print(f"[dim]Regions: {preview}[/dim]")

    def print_completion_message(self, output_file: Optional[str] = None) -> None:
        self.console.print("\n[green bold]Scan complete![/green bold]")
        if output_file:
            self.console.print(f"[dim]Results saved to: {output_file}[/dim]")

    def print_error(self, message: str) -> None:
        self.console.print(f"\n[red bold]Error:[/red bold] {message}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"\n[yellow bold]Warning:[/yellow bold] {message}")

    def __repr__(self) -> str:
        return "CLIReporter()"
