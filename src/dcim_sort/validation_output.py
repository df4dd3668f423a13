from __future__ import annotations

from typing import Dict, List, Optional

from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .validation import ValidationIssue, ValidationReport, group_validation_issues

SECTION_TITLES: Dict[str, str] = {
    "settings": "Settings",
    "sorter": "Sorter",
    "<root>": "Document",
}


class ValidationFormatter:
    """Render a :class:`ValidationReport` as one rich panel per config section."""

    def __init__(self, console: Optional[Console] = None, show_suggestions: bool = True) -> None:
        self.console = console or Console()
        self.show_suggestions = show_suggestions

    def format_report(self, report: ValidationReport) -> None:
        if report.errors:
            self._print_group(report.errors, "error", "Validation Errors", "bold red")
        if report.warnings:
            self._print_group(report.warnings, "warning", "Validation Warnings", "bold yellow")

        if not report.errors and not report.warnings:
            self.console.print("[bold green]✓ Configuration passed validation.[/bold green]")
        elif not report.errors:
            self.console.print("[bold green]✓ Configuration passed validation (with warnings).[/bold green]")

    def _print_group(self, issues: List[ValidationIssue], severity: str, heading: str, style: str) -> None:
        self.console.print(f"\n[{style}]{heading}: {len(issues)} {severity}(s) detected[/{style}]")
        for section, section_issues in group_validation_issues(issues).items():
            title = SECTION_TITLES.get(section, section)
            body: List[RenderableType] = [self._issues_table(section_issues)]
            self.console.print(
                Panel(
                    Group(*body),
                    title=f"[bold]{title}[/bold]",
                    border_style="red" if severity == "error" else "yellow",
                    padding=(1, 2),
                )
            )

    def _issues_table(self, issues: List[ValidationIssue]) -> Table:
        table = Table(show_header=False, show_edge=False, pad_edge=False, box=None, padding=(0, 1))
        table.add_column("Path", style="cyan", overflow="fold")
        table.add_column("Message", overflow="fold")

        for issue in issues:
            message = Text(issue.message)
            message.append(f" ({issue.code})", style="dim")
            table.add_row(issue.path, message)
            if self.show_suggestions and issue.fix_suggestion:
                hint = Text()
                hint.append("hint: ", style="yellow")
                hint.append(issue.fix_suggestion, style="italic dim")
                table.add_row("", hint)
        return table


__all__ = [
    "ValidationFormatter",
]
