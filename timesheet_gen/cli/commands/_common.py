"""Helpers shared by CLI commands: settings, engine, period and errors."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, timedelta

import typer
from rich.console import Console
from rich.markup import escape

from timesheet_gen.config import Settings
from timesheet_gen.core.engine import TimesheetEngine
from timesheet_gen.core.errors import TimesheetError
from timesheet_gen.models.period import format_period
from timesheet_gen.models.timesheet import ApprovalToken

console = Console()


def resolve_period(month: int | None, year: int | None) -> str:
    """Period from ``--month``/``--year``, defaulting to today's."""
    today = date.today()
    return format_period(year or today.year, month or today.month)


def parse_hours(hours: float) -> timedelta:
    if hours < 0:
        raise typer.BadParameter("hours must not be negative")
    return timedelta(minutes=round(hours * 60))


def get_settings(ctx: typer.Context) -> Settings:
    obj = ctx.ensure_object(dict)
    if "settings" not in obj:
        obj["settings"] = Settings()
    return obj["settings"]


def get_engine(ctx: typer.Context) -> TimesheetEngine:
    """Engine for this invocation, built once and kept on the context.

    A ``source`` placed on ``ctx.obj`` by the caller replaces the git source.
    """
    obj = ctx.ensure_object(dict)
    if "engine" not in obj:
        obj["engine"] = TimesheetEngine(get_settings(ctx), source=obj.get("source"))
    return obj["engine"]


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn engine errors into a red message and exit code 1."""
    try:
        yield
    except TimesheetError as exc:
        console.print(f"[bold red]{type(exc).__name__}:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)
    except (ValueError, KeyError) as exc:
        console.print(f"[bold red]Invalid input:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=2)


def latest_token(engine: TimesheetEngine, period: str, client_id: str) -> ApprovalToken | None:
    """Most recently issued token for a client, revoked or not."""
    tokens = engine.ledger.tokens(period, client_id)
    return tokens[-1] if tokens else None
