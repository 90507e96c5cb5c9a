"""Repository and client registry — which repository bills to whom.

The registry is a local JSON file (``.timesheet-gen/registry.json`` by
default).  Entries are stored as loosely as they were written; they are
only validated when resolved, so one malformed repository entry shows up
as ``UnconfiguredRepository`` for that repository instead of breaking
the whole run.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from timesheet_gen.core.errors import UnconfiguredRepository
from timesheet_gen.core.tag_parser import validate_pattern
from timesheet_gen.models.allocation import ProjectTag, RepositoryMapping
from timesheet_gen.models.timesheet import ClientDetails, PersonDetails

logger = logging.getLogger(__name__)


class ClientRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: str
    name: str = ""
    address: str = ""
    contact_person: str = ""
    requires_approval: bool = False
    approver: PersonDetails | None = None

    def details(self) -> ClientDetails:
        return ClientDetails(
            client_id=self.client_id,
            name=self.name,
            address=self.address,
            contact_person=self.contact_person,
            requires_approval=self.requires_approval,
        )


class RepositoryRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    repository_id: str
    path: str = ""
    client_id: str
    default_project_id: str
    project_number: str = ""
    projects: list[ProjectTag] = Field(default_factory=list)


class RepositoryRegistry:
    """Persists the user, clients and repositories.

    Parameters
    ----------
    registry_path:
        Path to the registry JSON file.  Created on first ``persist()``.
    tag_prefix:
        Marker prefix used for projects without an explicit pattern.
    """

    def __init__(
        self,
        registry_path: Path = Path(".timesheet-gen/registry.json"),
        *,
        tag_prefix: str = "#",
    ) -> None:
        self._registry_path = Path(registry_path)
        self._tag_prefix = tag_prefix
        self._user: dict[str, Any] = {}
        self._clients: dict[str, dict[str, Any]] = {}
        self._repositories: dict[str, dict[str, Any]] = {}
        self.load()

    # -- User ----------------------------------------------------------------

    @property
    def user(self) -> PersonDetails:
        return PersonDetails(**self._user)

    def set_user(self, name: str, email: str) -> None:
        self._user = {"name": name, "email": email}
        self.persist()

    # -- Clients -------------------------------------------------------------

    def register_client(self, client: ClientRecord) -> None:
        self._clients[client.client_id] = json.loads(client.model_dump_json())
        self.persist()
        logger.info("Registered client %s.", client.client_id)

    def update_client(self, client_id: str, **changes: Any) -> ClientRecord:
        current = self.get_client(client_id)
        if current is None:
            raise KeyError(f"Unknown client {client_id!r}")
        updated = ClientRecord.model_validate(
            {**current.model_dump(), **changes, "client_id": client_id}
        )
        self.register_client(updated)
        return updated

    def remove_client(self, client_id: str) -> list[str]:
        """Remove a client and every repository billed to it.

        Returns the ids of the repositories removed with it.
        """
        if client_id not in self._clients:
            raise KeyError(f"Unknown client {client_id!r}")
        del self._clients[client_id]
        orphans = [
            rid for rid, raw in self._repositories.items()
            if raw.get("client_id") == client_id
        ]
        for rid in orphans:
            del self._repositories[rid]
        self.persist()
        logger.info("Removed client %s with %d repositories.", client_id, len(orphans))
        return orphans

    def get_client(self, client_id: str) -> ClientRecord | None:
        raw = self._clients.get(client_id)
        if raw is None:
            return None
        try:
            return ClientRecord.model_validate({**raw, "client_id": client_id})
        except ValidationError:
            logger.warning("Client %s is malformed in %s.", client_id, self._registry_path)
            return None

    def client_ids(self) -> list[str]:
        return sorted(self._clients)

    # -- Repositories --------------------------------------------------------

    def register_repository(self, repository: RepositoryRecord) -> None:
        for tag in repository.projects:
            if tag.pattern and (err := validate_pattern(tag.pattern)):
                raise ValueError(f"Invalid pattern for {tag.project_id}: {err}")
        self._repositories[repository.repository_id] = json.loads(
            repository.model_dump_json()
        )
        self.persist()
        logger.info(
            "Registered repository %s for client %s.",
            repository.repository_id, repository.client_id,
        )

    def update_repository(self, repository_id: str, **changes: Any) -> RepositoryRecord:
        if repository_id not in self._repositories:
            raise KeyError(f"Unknown repository {repository_id!r}")
        updated = RepositoryRecord.model_validate(
            {**self._repositories[repository_id], **changes, "repository_id": repository_id}
        )
        self.register_repository(updated)
        return updated

    def remove_repository(self, repository_id: str) -> None:
        if repository_id not in self._repositories:
            raise KeyError(f"Unknown repository {repository_id!r}")
        del self._repositories[repository_id]
        self.persist()

    def repository_ids(self, client_id: str | None = None) -> list[str]:
        return sorted(
            rid for rid, raw in self._repositories.items()
            if client_id is None or raw.get("client_id") == client_id
        )

    def get_repository(self, repository_id: str) -> RepositoryRecord:
        """Return the validated record, or raise ``UnconfiguredRepository``."""
        raw = self._repositories.get(repository_id)
        if raw is None:
            raise UnconfiguredRepository(repository_id)
        try:
            record = RepositoryRecord.model_validate({**raw, "repository_id": repository_id})
        except ValidationError as exc:
            raise UnconfiguredRepository(
                repository_id, f"malformed entry ({exc.error_count()} error(s))"
            ) from exc
        if not record.default_project_id:
            raise UnconfiguredRepository(repository_id, "no default project")
        if record.client_id not in self._clients:
            raise UnconfiguredRepository(
                repository_id, f"unknown client {record.client_id!r}"
            )
        for tag in record.projects:
            if tag.pattern and (err := validate_pattern(tag.pattern)):
                raise UnconfiguredRepository(
                    repository_id, f"bad pattern for {tag.project_id}: {err}"
                )
        return record

    def mapping_for(self, repository_id: str) -> RepositoryMapping:
        """Resolve a repository's client/project mapping."""
        record = self.get_repository(repository_id)
        return RepositoryMapping(
            repository_id=repository_id,
            client_id=record.client_id,
            default_project_id=record.default_project_id,
            projects=tuple(record.projects),
            tag_prefix=self._tag_prefix,
        )

    # -- Persistence ---------------------------------------------------------

    def persist(self) -> None:
        """Write the registry to its JSON file, creating parent directories."""
        self._registry_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "user": self._user,
            "clients": self._clients,
            "repositories": self._repositories,
        }
        self._registry_path.write_text(
            json.dumps(data, indent=2, sort_keys=True, default=str),
            encoding="utf-8",
        )
        logger.debug("Persisted registry to %s.", self._registry_path)

    def load(self) -> None:
        """Load the registry from its JSON file, if it exists."""
        if not self._registry_path.exists():
            logger.debug("No registry file at %s, starting fresh.", self._registry_path)
            return
        raw = json.loads(self._registry_path.read_text(encoding="utf-8"))
        user = raw.get("user")
        self._user = dict(user) if isinstance(user, dict) else {}
        self._clients = {
            k: dict(v) if isinstance(v, dict) else {}
            for k, v in (raw.get("clients") or {}).items()
        }
        self._repositories = {
            k: dict(v) if isinstance(v, dict) else {}
            for k, v in (raw.get("repositories") or {}).items()
        }
        logger.info(
            "Loaded %d client(s) and %d repositories from %s.",
            len(self._clients), len(self._repositories), self._registry_path,
        )
