"""``timesheet-gen init`` — register a repository and its client.

Discovers the git repository at ``--path`` (its top-level directory name
becomes the repository id unless ``--namespace`` is given), records the
developer from ``git config``, and maps the repository to a client and
default project.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from timesheet_gen.cli.commands._common import console, get_engine, handle_errors
from timesheet_gen.core.registry import ClientRecord, RepositoryRecord
from timesheet_gen.models.allocation import ProjectTag
from timesheet_gen.models.timesheet import PersonDetails
from timesheet_gen.sources.git_log import discover_repository, git_config_value


def _parse_tags(tags: list[str]) -> list[ProjectTag]:
    """``proj`` or ``proj=<regex>`` into ``ProjectTag``s."""
    parsed: list[ProjectTag] = []
    for raw in tags:
        project_id, sep, pattern = raw.partition("=")
        if not project_id:
            raise typer.BadParameter(f"Invalid --tag {raw!r}")
        parsed.append(ProjectTag(project_id=project_id, pattern=pattern if sep else None))
    return parsed


def init_cmd(
    ctx: typer.Context,
    client: str = typer.Option(..., "--client", "-c", help="Client id to bill."),
    project: str = typer.Option(..., "--project", "-p", help="Default project id."),
    path: Path = typer.Option(Path("."), "--path", help="Path inside the git repository."),
    namespace: str = typer.Option(
        None, "--namespace", "-n", help="Repository id. Defaults to the repository directory name."
    ),
    tag: list[str] = typer.Option(
        [], "--tag", "-t", help="Extra project, as 'id' or 'id=<regex>'. Repeatable."
    ),
    project_number: str = typer.Option("", "--project-number", help="Client's project number."),
    client_name: str = typer.Option("", "--client-name", help="Client display name."),
    client_address: str = typer.Option("", "--client-address", help="Client address."),
    contact: str = typer.Option("", "--contact", help="Client contact person."),
    approver_name: str = typer.Option("", "--approver-name", help="Who approves timesheets."),
    approver_email: str = typer.Option("", "--approver-email", help="Approver's email."),
    requires_approval: bool = typer.Option(
        False, "--requires-approval/--no-approval", help="Client signs off timesheets."
    ),
) -> None:
    """Register the repository at PATH for CLIENT."""
    engine = get_engine(ctx)
    with handle_errors():
        toplevel, discovered = discover_repository(path)
        repository_id = namespace or discovered

        name = git_config_value(toplevel, "user.name")
        email = git_config_value(toplevel, "user.email")
        if name or email:
            engine.registry.set_user(name, email)

        if engine.registry.get_client(client) is None or any(
            [client_name, client_address, contact, approver_name, approver_email, requires_approval]
        ):
            approver = (
                PersonDetails(name=approver_name, email=approver_email)
                if approver_name or approver_email
                else None
            )
            engine.registry.register_client(ClientRecord(
                client_id=client,
                name=client_name or client,
                address=client_address,
                contact_person=contact,
                requires_approval=requires_approval,
                approver=approver,
            ))

        engine.registry.register_repository(RepositoryRecord(
            repository_id=repository_id,
            path=str(toplevel),
            client_id=client,
            default_project_id=project,
            project_number=project_number,
            projects=_parse_tags(tag),
        ))

    console.print(
        Panel(
            "\n".join([
                "[bold green]Repository registered.[/bold green]",
                "",
                f"[bold]Repository:[/bold] {repository_id}",
                f"[bold]Path:[/bold]       {toplevel}",
                f"[bold]Client:[/bold]     {client}",
                f"[bold]Project:[/bold]    {project}",
            ]),
            title="[bold]timesheet-gen[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
