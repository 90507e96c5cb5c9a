"""Main Typer application — imports and registers all CLI commands.

Entry point: ``timesheet-gen`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from timesheet_gen.cli.commands.client import client_app
from timesheet_gen.cli.commands.entries import add_cmd, edit_cmd, list_cmd, remove_cmd
from timesheet_gen.cli.commands.init import init_cmd
from timesheet_gen.cli.commands.lifecycle import (
    approve_cmd,
    finalize_cmd,
    reopen_cmd,
    update_cmd,
    verify_cmd,
)
from timesheet_gen.cli.commands.make import make_cmd
from timesheet_gen.config import Settings

app = typer.Typer(
    name="timesheet-gen",
    help="timesheet-gen: monthly client timesheets from git commit history.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Path = typer.Option(
        None, "--data-dir", help="Directory holding ledger.db and registry.json."
    ),
    log_level: str = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING..."),
) -> None:
    obj = ctx.ensure_object(dict)
    overrides: dict = {}
    if data_dir is not None:
        overrides["data_dir"] = data_dir
    if log_level is not None:
        overrides["log_level"] = log_level
    if "settings" in obj:
        settings = obj["settings"].model_copy(update=overrides)
    else:
        settings = Settings(**overrides)
    obj["settings"] = settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# Register subcommands
app.command(name="init", help="Register a git repository for a client.")(init_cmd)
app.command(name="make", help="Build the month's timesheets.")(make_cmd)
app.command(name="list", help="List ledger entries.")(list_cmd)
app.command(name="add", help="Add a manual entry.")(add_cmd)
app.command(name="edit", help="Edit an entry.")(edit_cmd)
app.command(name="remove", help="Remove an entry.")(remove_cmd)
app.command(name="update", help="Regenerate a month from git history.")(update_cmd)
app.command(name="finalize", help="Finalize a client's month and issue a token.")(finalize_cmd)
app.command(name="approve", help="Approve a finalized month.")(approve_cmd)
app.command(name="reopen", help="Reopen a month and revoke its tokens.")(reopen_cmd)
app.command(name="verify", help="Verify an approval token.")(verify_cmd)
app.add_typer(client_app, name="client")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
