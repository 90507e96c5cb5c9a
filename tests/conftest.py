"""Shared test fixtures for timesheet-gen."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from timesheet_gen.config import Settings
from timesheet_gen.core.engine import TimesheetEngine
from timesheet_gen.core.registry import ClientRecord, RepositoryRecord, RepositoryRegistry
from timesheet_gen.core.time_ledger import TimeLedger
from timesheet_gen.models.allocation import ProjectTag
from timesheet_gen.models.commits import Commit
from timesheet_gen.models.timesheet import PersonDetails
from timesheet_gen.sources.git_log import StaticCommitSource


def _at(day: int, hour: int, minute: int = 0, month: int = 10) -> datetime:
    """UTC instant in 2021."""
    return datetime(2021, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def ledger(tmp_dir: Path) -> TimeLedger:
    """Provide a fresh TimeLedger backed by a temp SQLite database."""
    return TimeLedger(tmp_dir / "test_ledger.db")


@pytest.fixture
def registry(tmp_dir: Path) -> RepositoryRegistry:
    """Two clients: acme (webshop, two projects) and globex (intranet)."""
    reg = RepositoryRegistry(tmp_dir / "registry.json")
    reg.set_user("Dev Eloper", "dev@example.com")
    reg.register_client(ClientRecord(
        client_id="acme",
        name="ACME Corp",
        contact_person="Road Runner",
        requires_approval=True,
        approver=PersonDetails(name="Wile Coyote", email="wile@acme.test"),
    ))
    reg.register_client(ClientRecord(client_id="globex", name="Globex"))
    reg.register_repository(RepositoryRecord(
        repository_id="webshop",
        path="/src/webshop",
        client_id="acme",
        default_project_id="shop",
        projects=[ProjectTag(project_id="shop"), ProjectTag(project_id="api")],
    ))
    reg.register_repository(RepositoryRecord(
        repository_id="intranet",
        path="/src/intranet",
        client_id="globex",
        default_project_id="portal",
    ))
    return reg


@pytest.fixture
def settings(tmp_dir: Path) -> Settings:
    return Settings(data_dir=tmp_dir / "data", editor="tester", _env_file=None)


# ---------------------------------------------------------------------------
# Factories shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_commit() -> Callable[..., Commit]:
    """Factory fixture: build a Commit with sensible defaults."""

    def _factory(
        commit_id: str,
        timestamp: datetime | None,
        message: str = "",
        repository_id: str = "webshop",
        **overrides: Any,
    ) -> Commit:
        defaults: dict[str, Any] = {
            "commit_id": commit_id,
            "repository_id": repository_id,
            "timestamp": timestamp,
            "author": "dev",
            "message": message,
        }
        defaults.update(overrides)
        return Commit(**defaults)

    return _factory


@pytest.fixture
def make_engine(
    settings: Settings, registry: RepositoryRegistry, ledger: TimeLedger
) -> Callable[..., TimesheetEngine]:
    """Factory fixture: an engine reading commits from memory."""

    def _factory(
        commits: dict[str, Iterable[Commit]] | None = None,
        failing: Iterable[str] = (),
    ) -> TimesheetEngine:
        return TimesheetEngine(
            settings,
            registry=registry,
            source=StaticCommitSource(commits or {}, failing=failing),
            ledger=ledger,
        )

    return _factory


@pytest.fixture
def october_commits(make_commit) -> dict[str, list[Commit]]:
    """One webshop session split 2:1 between api and shop, one intranet commit."""
    return {
        "webshop": [
            make_commit("w1", _at(4, 9, 0), "#api add endpoint"),
            make_commit("w2", _at(4, 9, 30), "#api fix serializer"),
            make_commit("w3", _at(4, 10, 0), "tweak css"),
        ],
        "intranet": [
            make_commit("i1", _at(5, 13, 0), "update menu", repository_id="intranet"),
        ],
    }
