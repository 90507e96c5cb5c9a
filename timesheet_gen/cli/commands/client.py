"""``timesheet-gen client`` — maintain registered clients and repositories.

``client update -c CLIENT`` changes the client's details; with
``-n REPOSITORY`` it changes that repository instead.  ``client remove``
works the same way: a client is removed together with its repositories.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from timesheet_gen.cli.commands._common import console, get_engine, handle_errors
from timesheet_gen.core.registry import RepositoryRecord, RepositoryRegistry
from timesheet_gen.models.timesheet import PersonDetails

client_app = typer.Typer(
    help="Update or remove registered clients and repositories.",
    no_args_is_help=True,
)


def _owned_repository(
    registry: RepositoryRegistry, client_id: str, repository_id: str
) -> RepositoryRecord:
    record = registry.get_repository(repository_id)
    if record.client_id != client_id:
        raise ValueError(f"Repository {repository_id!r} is billed to {record.client_id!r}")
    return record


@client_app.command("update")
def client_update_cmd(
    ctx: typer.Context,
    client: str = typer.Option(..., "--client", "-c", help="Client id."),
    namespace: str = typer.Option(
        None, "--namespace", "-n", help="Repository id. Updates the repository instead."
    ),
    name: str = typer.Option(None, "--name", help="Client display name."),
    address: str = typer.Option(None, "--address", help="Client address."),
    contact: str = typer.Option(None, "--contact", help="Client contact person."),
    approver_name: str = typer.Option(None, "--approver-name", help="Who approves timesheets."),
    approver_email: str = typer.Option(None, "--approver-email", help="Approver's email."),
    requires_approval: Optional[bool] = typer.Option(
        None, "--requires-approval/--no-approval", help="Client signs off timesheets."
    ),
    project: str = typer.Option(None, "--project", "-p", help="Repository's default project."),
    project_number: str = typer.Option(
        None, "--project-number", help="Client's project number for the repository."
    ),
    path: str = typer.Option(None, "--path", help="New location of the repository."),
) -> None:
    """Update details for a client, or for one of its repositories."""
    engine = get_engine(ctx)
    registry = engine.registry
    changes: dict[str, Any] = {}

    with handle_errors():
        if namespace:
            _owned_repository(registry, client, namespace)
            if project is not None:
                changes["default_project_id"] = project
            if project_number is not None:
                changes["project_number"] = project_number
            if path is not None:
                changes["path"] = path
            if not changes:
                raise typer.BadParameter("Nothing to update for the repository")
            registry.update_repository(namespace, **changes)
            target = f"repository {namespace}"
        else:
            current = registry.get_client(client)
            if current is None:
                raise KeyError(f"Unknown client {client!r}")
            for key, value in (
                ("name", name),
                ("address", address),
                ("contact_person", contact),
                ("requires_approval", requires_approval),
            ):
                if value is not None:
                    changes[key] = value
            if approver_name is not None or approver_email is not None:
                approver = current.approver or PersonDetails()
                changes["approver"] = PersonDetails(
                    name=approver.name if approver_name is None else approver_name,
                    email=approver.email if approver_email is None else approver_email,
                )
            if not changes:
                raise typer.BadParameter("Nothing to update for the client")
            registry.update_client(client, **changes)
            target = f"client {client}"

    console.print(f"[green]Updated[/green] {target}: {', '.join(sorted(changes))}")


@client_app.command("remove")
def client_remove_cmd(
    ctx: typer.Context,
    client: str = typer.Option(..., "--client", "-c", help="Client id."),
    namespace: str = typer.Option(
        None, "--namespace", "-n", help="Repository id. Removes only that repository."
    ),
    yes: bool = typer.Option(False, "--yes", help="Do not ask before removing a client."),
) -> None:
    """Remove a client with its repositories, or a single repository."""
    engine = get_engine(ctx)
    registry = engine.registry

    with handle_errors():
        if namespace:
            _owned_repository(registry, client, namespace)
            registry.remove_repository(namespace)
            console.print(f"[green]Removed[/green] repository {namespace}")
            return

        if registry.get_client(client) is None:
            raise KeyError(f"Unknown client {client!r}")
        repositories = registry.repository_ids(client)
        if not yes:
            typer.confirm(
                f"Remove client {client} and {len(repositories)} repositories?", abort=True
            )
        removed = registry.remove_client(client)

    console.print(f"[green]Removed[/green] client {client}")
    for repository_id in removed:
        console.print(f"  removed repository {repository_id}")
