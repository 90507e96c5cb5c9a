"""Rich terminal renderer for timesheets, ledger entries and run reports.

Colour scheme
-------------
- green     : approved
- yellow    : finalized
- dim       : draft
- cyan      : manual entries
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from timesheet_gen.core.approval import token_payload
from timesheet_gen.models.ledger import EntrySource, PeriodStatus, TimeEntry
from timesheet_gen.models.period import period_label
from timesheet_gen.models.timesheet import ApprovalToken, RunReport, Timesheet

_STATUS_MARKUP: dict[PeriodStatus, str] = {
    PeriodStatus.DRAFT: "[dim]DRAFT[/dim]",
    PeriodStatus.FINALIZED: "[yellow]FINALIZED[/yellow]",
    PeriodStatus.APPROVED: "[bold green]APPROVED[/bold green]",
}


def format_duration(value: timedelta) -> str:
    """``7h 45m`` style, rounded to the minute."""
    minutes = round(value.total_seconds() / 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


def format_hours(value: timedelta) -> str:
    return f"{value.total_seconds() / 3600:.2f}"


class TimesheetRenderer:
    """Renders timesheets and ledger views as Rich output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Timesheet
    # ------------------------------------------------------------------

    def render_timesheet(
        self, sheet: Timesheet, token: ApprovalToken | None = None
    ) -> Panel:
        projects = Table(title="Projects", expand=False)
        projects.add_column("Project", style="cyan")
        projects.add_column("Entries", justify="right")
        projects.add_column("Hours", justify="right", style="green")
        for p in sheet.projects:
            projects.add_row(p.project_id, str(p.entry_count), format_hours(p.duration))
        projects.add_row(
            "[bold]Total[/bold]", "", f"[bold]{format_hours(sheet.total_duration)}[/bold]"
        )

        days = Table(title="Days worked", expand=False)
        days.add_column("Date")
        days.add_column("Hours", justify="right")
        for day in sheet.days:
            if day.duration:
                days.add_row(day.date.isoformat(), format_hours(day.duration))
            elif not day.weekend:
                days.add_row(f"[dim]{day.date.isoformat()}[/dim]", "[dim]-[/dim]")

        header: list[str] = [
            f"[bold]Period:[/bold]  {period_label(sheet.period)} ({sheet.period})",
            f"[bold]Client:[/bold]  {sheet.client.name if sheet.client and sheet.client.name else sheet.client_id}",
            f"[bold]Status:[/bold]  {_STATUS_MARKUP[sheet.status]}",
        ]
        if sheet.client and sheet.client.contact_person:
            header.append(f"[bold]Contact:[/bold] {sheet.client.contact_person}")
        if sheet.user and sheet.user.name:
            header.append(f"[bold]Worker:[/bold]  {sheet.user.name} <{sheet.user.email}>")
        if sheet.approver and sheet.approver.name:
            header.append(f"[bold]Approver:[/bold] {sheet.approver.name} <{sheet.approver.email}>")

        parts: list = [Text.from_markup("\n".join(header)), Text(""), projects, days]
        if token is not None:
            parts.extend([
                Text(""),
                Text.from_markup(f"[bold]Fingerprint:[/bold] {token.timesheet_fingerprint}"),
                Text.from_markup(f"[bold]Token:[/bold] {token_payload(token)}"),
            ])

        return Panel(
            Group(*parts),
            title=f"[bold]Timesheet {sheet.client_id}[/bold]",
            border_style="green" if sheet.status == PeriodStatus.APPROVED else "blue",
            padding=(1, 2),
        )

    def print_timesheet(self, sheet: Timesheet, token: ApprovalToken | None = None) -> None:
        self.console.print(self.render_timesheet(sheet, token))

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def render_entries(self, entries: Sequence[TimeEntry], *, title: str = "Entries") -> Table:
        table = Table(title=title)
        table.add_column("Entry", style="dim")
        table.add_column("Date")
        table.add_column("Client")
        table.add_column("Project", style="cyan")
        table.add_column("Duration", justify="right")
        table.add_column("Source")
        table.add_column("Edits", justify="right")
        for e in entries:
            source = (
                "[cyan]manual[/cyan]" if e.source == EntrySource.MANUAL else "derived"
            )
            if e.removed:
                source += " [red](removed)[/red]"
            table.add_row(
                e.entry_id,
                e.date.isoformat(),
                e.client_id,
                e.project_id,
                format_duration(e.duration),
                source,
                str(len(e.edit_history)),
            )
        return table

    def print_entries(self, entries: Sequence[TimeEntry], *, title: str = "Entries") -> None:
        if not entries:
            self.console.print("[dim]No entries.[/dim]")
            return
        self.console.print(self.render_entries(entries, title=title))

    # ------------------------------------------------------------------
    # Run report
    # ------------------------------------------------------------------

    def print_report(self, report: RunReport) -> None:
        self.console.print(
            f"[bold]{report.period}:[/bold] {len(report.repositories_processed)} "
            f"repositories, {report.sessions_built} sessions, "
            f"{report.entries_derived} entries derived"
        )
        if report.ok:
            return
        table = Table(title="Skipped repositories", title_style="bold yellow")
        table.add_column("Repository", style="cyan")
        table.add_column("Problem", style="yellow")
        table.add_column("Detail")
        for issue in report.issues:
            table.add_row(issue.repository_id, issue.kind.value, issue.message)
        self.console.print(table)
