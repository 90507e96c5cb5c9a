"""``timesheet-gen make`` — derive and show the month's timesheets."""

from __future__ import annotations

import typer

from timesheet_gen.cli.commands._common import (
    console,
    get_engine,
    handle_errors,
    latest_token,
    resolve_period,
)
from timesheet_gen.models.ledger import PeriodStatus
from timesheet_gen.render.renderer import TimesheetRenderer


def make_cmd(
    ctx: typer.Context,
    client: str = typer.Option(None, "--client", "-c", help="Only this client."),
    month: int = typer.Option(None, "--month", "-m", min=1, max=12, help="Month (1-12)."),
    year: int = typer.Option(None, "--year", "-y", help="Year."),
    regenerate: bool = typer.Option(
        True, "--regenerate/--no-regenerate", help="Re-read git history first."
    ),
    finalize: bool = typer.Option(
        False, "--finalize", help="Finalize draft timesheets and issue tokens."
    ),
) -> None:
    """Build timesheets for a month from git history and the ledger."""
    engine = get_engine(ctx)
    renderer = TimesheetRenderer(console)

    with handle_errors():
        period = resolve_period(month, year)
        if regenerate:
            result, report = engine.regenerate(period)
            renderer.print_report(report)
            console.print(
                f"[dim]{len(result.added)} added, {len(result.updated)} updated, "
                f"{len(result.retracted)} retracted, "
                f"{len(result.preserved_keys)} kept from manual edits[/dim]"
            )
            if result.skipped_clients:
                console.print(
                    "[yellow]Closed, not regenerated:[/yellow] "
                    + ", ".join(result.skipped_clients)
                )

        sheets = [engine.timesheet(period, client)] if client else engine.timesheets(period)
        if not sheets:
            console.print("[dim]No clients configured. Run 'timesheet-gen init' first.[/dim]")
            return

        for sheet in sheets:
            token = None
            if finalize and sheet.status == PeriodStatus.DRAFT:
                sheet, token = engine.finalize(period, sheet.client_id)
            elif sheet.status != PeriodStatus.DRAFT:
                token = latest_token(engine, period, sheet.client_id)
            renderer.print_timesheet(sheet, token)
