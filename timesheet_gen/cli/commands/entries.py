"""Ledger entry commands: ``list``, ``add``, ``edit``, ``remove``.

Every change is recorded in the ledger with the configured editor
(``TIMESHEET_EDITOR``, defaulting to the login name).  Edits and
removals are refused once a client's period is finalized or approved;
reopen it first.
"""

from __future__ import annotations

from datetime import datetime

import typer

from timesheet_gen.cli.commands._common import (
    console,
    get_engine,
    handle_errors,
    parse_hours,
    resolve_period,
)
from timesheet_gen.models.ledger import EntrySource
from timesheet_gen.models.period import period_of
from timesheet_gen.render.renderer import TimesheetRenderer, format_duration


def list_cmd(
    ctx: typer.Context,
    client: str = typer.Option(None, "--client", "-c", help="Filter by client."),
    project: str = typer.Option(None, "--project", "-p", help="Filter by project."),
    source: EntrySource = typer.Option(None, "--source", help="derived or manual."),
    removed: bool = typer.Option(False, "--removed", help="Include removed entries."),
    month: int = typer.Option(None, "--month", "-m", min=1, max=12, help="Month (1-12)."),
    year: int = typer.Option(None, "--year", "-y", help="Year."),
) -> None:
    """List ledger entries for a month."""
    engine = get_engine(ctx)
    with handle_errors():
        period = resolve_period(month, year)
        entries = engine.ledger.list(
            period,
            client_id=client,
            project_id=project,
            source=source,
            include_removed=removed,
        )
    TimesheetRenderer(console).print_entries(entries, title=f"Entries {period}")


def add_cmd(
    ctx: typer.Context,
    client: str = typer.Option(..., "--client", "-c", help="Client id."),
    project: str = typer.Option(..., "--project", "-p", help="Project id."),
    day: datetime = typer.Option(..., "--date", "-d", formats=["%Y-%m-%d"], help="YYYY-MM-DD"),
    hours: float = typer.Option(..., "--hours", help="Hours worked."),
) -> None:
    """Add a manual entry."""
    engine = get_engine(ctx)
    with handle_errors():
        entry = engine.ledger.add_manual(
            period_of(day.date()),
            client_id=client,
            project_id=project,
            date=day.date(),
            duration=parse_hours(hours),
            editor=engine.settings.editor,
        )
    console.print(
        f"[green]Added[/green] {entry.entry_id}: {entry.date} {entry.client_id}/"
        f"{entry.project_id} {format_duration(entry.duration)}"
    )


def edit_cmd(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Entry id, as shown by 'list'."),
    hours: float = typer.Option(None, "--hours", help="New duration in hours."),
    project: str = typer.Option(None, "--project", "-p", help="New project id."),
    month: int = typer.Option(None, "--month", "-m", min=1, max=12, help="Month (1-12)."),
    year: int = typer.Option(None, "--year", "-y", help="Year."),
) -> None:
    """Change an entry's duration or project."""
    if hours is None and project is None:
        raise typer.BadParameter("Give --hours and/or --project.")
    engine = get_engine(ctx)
    with handle_errors():
        entry = engine.ledger.edit(
            resolve_period(month, year),
            entry_id,
            duration=parse_hours(hours) if hours is not None else None,
            project_id=project,
            editor=engine.settings.editor,
        )
    console.print(
        f"[green]Edited[/green] {entry.entry_id}: {entry.project_id} "
        f"{format_duration(entry.duration)} ({entry.source.value})"
    )


def remove_cmd(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Entry id, as shown by 'list'."),
    month: int = typer.Option(None, "--month", "-m", min=1, max=12, help="Month (1-12)."),
    year: int = typer.Option(None, "--year", "-y", help="Year."),
) -> None:
    """Remove an entry. Regeneration will not bring it back."""
    engine = get_engine(ctx)
    with handle_errors():
        entry = engine.ledger.remove(
            resolve_period(month, year), entry_id, editor=engine.settings.editor
        )
    console.print(f"[green]Removed[/green] {entry.entry_id}")
