"""Period lifecycle commands.

``update``    regenerate from git without touching manual work
``finalize``  close a client's month and issue an approval token
``approve``   record the client's sign-off
``reopen``    back to draft; issued tokens are revoked
``verify``    check a token against the ledger's current content
"""

from __future__ import annotations

from pathlib import Path

import typer

from timesheet_gen.cli.commands._common import (
    console,
    get_engine,
    handle_errors,
    latest_token,
    resolve_period,
)
from timesheet_gen.core.errors import FingerprintMismatch
from timesheet_gen.models.timesheet import ApprovalToken
from timesheet_gen.render.renderer import TimesheetRenderer


def update_cmd(
    ctx: typer.Context,
    month: int = typer.Option(None, "--month", "-m", min=1, max=12, help="Month (1-12)."),
    year: int = typer.Option(None, "--year", "-y", help="Year."),
) -> None:
    """Re-derive a month from git history. Manual edits are kept."""
    engine = get_engine(ctx)
    with handle_errors():
        result, report = engine.regenerate(resolve_period(month, year))
    TimesheetRenderer(console).print_report(report)
    console.print(
        f"[green]Updated[/green] {result.period}: {len(result.added)} added, "
        f"{len(result.updated)} updated, {len(result.retracted)} retracted"
    )
    if result.skipped_clients:
        console.print(
            "[yellow]Closed, not regenerated:[/yellow] " + ", ".join(result.skipped_clients)
        )


def finalize_cmd(
    ctx: typer.Context,
    client: str = typer.Option(..., "--client", "-c", help="Client id."),
    month: int = typer.Option(None, "--month", "-m", min=1, max=12, help="Month (1-12)."),
    year: int = typer.Option(None, "--year", "-y", help="Year."),
    token_out: Path = typer.Option(
        None, "--token-out", help="Also write the token as JSON to this file."
    ),
) -> None:
    """Close the month for CLIENT and issue its approval token."""
    engine = get_engine(ctx)
    with handle_errors():
        sheet, token = engine.finalize(resolve_period(month, year), client)
    TimesheetRenderer(console).print_timesheet(sheet, token)
    if token_out is not None:
        token_out.write_text(token.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[dim]Token written to {token_out}[/dim]")


def approve_cmd(
    ctx: typer.Context,
    client: str = typer.Option(..., "--client", "-c", help="Client id."),
    month: int = typer.Option(None, "--month", "-m", min=1, max=12, help="Month (1-12)."),
    year: int = typer.Option(None, "--year", "-y", help="Year."),
) -> None:
    """Mark CLIENT's finalized month as approved."""
    engine = get_engine(ctx)
    with handle_errors():
        sheet = engine.approve(resolve_period(month, year), client)
    console.print(f"[bold green]Approved[/bold green] {sheet.period}/{sheet.client_id}")


def reopen_cmd(
    ctx: typer.Context,
    client: str = typer.Option(..., "--client", "-c", help="Client id."),
    month: int = typer.Option(None, "--month", "-m", min=1, max=12, help="Month (1-12)."),
    year: int = typer.Option(None, "--year", "-y", help="Year."),
) -> None:
    """Return CLIENT's month to draft so it can be edited again."""
    engine = get_engine(ctx)
    with handle_errors():
        period = resolve_period(month, year)
        revoked = engine.reopen(period, client)
    console.print(f"[yellow]Reopened[/yellow] {period}/{client}")
    for token_id in revoked:
        console.print(f"  [red]revoked[/red] {token_id}")


def verify_cmd(
    ctx: typer.Context,
    client: str = typer.Option(None, "--client", "-c", help="Client id."),
    token_file: Path = typer.Option(
        None, "--token", help="Token JSON written by 'finalize --token-out'."
    ),
    month: int = typer.Option(None, "--month", "-m", min=1, max=12, help="Month (1-12)."),
    year: int = typer.Option(None, "--year", "-y", help="Year."),
) -> None:
    """Check that a token still matches the ledger.

    Without --token, the latest token issued for CLIENT is checked.
    """
    engine = get_engine(ctx)
    with handle_errors():
        if token_file is not None:
            token = ApprovalToken.model_validate_json(token_file.read_text(encoding="utf-8"))
        else:
            if not client:
                raise typer.BadParameter("Give --client or --token.")
            period = resolve_period(month, year)
            token = latest_token(engine, period, client)
            if token is None:
                raise FingerprintMismatch(f"No token was issued for {period}/{client}")
        engine.verify_current(token)
    console.print(
        f"[bold green]OK[/bold green] {token.token_id} matches "
        f"{token.period}/{token.client_id} ({token.timesheet_fingerprint})"
    )
