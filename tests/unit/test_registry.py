"""Tests for the repository/client registry."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from timesheet_gen.core.errors import UnconfiguredRepository
from timesheet_gen.core.registry import ClientRecord, RepositoryRecord, RepositoryRegistry
from timesheet_gen.models.allocation import ProjectTag


class TestRepositoryRegistry:
    def test_mapping_for(self, registry: RepositoryRegistry):
        mapping = registry.mapping_for("webshop")
        assert mapping.client_id == "acme"
        assert mapping.default_project_id == "shop"
        assert mapping.project_ids == ["shop", "api"]

    def test_unknown_repository(self, registry: RepositoryRegistry):
        with pytest.raises(UnconfiguredRepository, match="nope"):
            registry.get_repository("nope")

    def test_persist_and_reload(self, registry: RepositoryRegistry, tmp_dir: Path):
        reloaded = RepositoryRegistry(tmp_dir / "registry.json")
        assert reloaded.repository_ids() == ["intranet", "webshop"]
        assert reloaded.client_ids() == ["acme", "globex"]
        assert reloaded.user.email == "dev@example.com"
        assert reloaded.get_client("acme").approver.name == "Wile Coyote"

    def test_repository_ids_by_client(self, registry: RepositoryRegistry):
        assert registry.repository_ids("globex") == ["intranet"]

    def test_invalid_pattern_rejected_on_register(self, registry: RepositoryRegistry):
        with pytest.raises(ValueError, match="Invalid pattern"):
            registry.register_repository(RepositoryRecord(
                repository_id="broken",
                client_id="acme",
                default_project_id="shop",
                projects=[ProjectTag(project_id="x", pattern="(")],
            ))

    def test_repository_for_unknown_client(self, registry: RepositoryRegistry):
        registry.register_repository(RepositoryRecord(
            repository_id="orphan", client_id="initech", default_project_id="tps",
        ))
        with pytest.raises(UnconfiguredRepository, match="unknown client"):
            registry.mapping_for("orphan")

    def test_malformed_entry_isolated(self, registry: RepositoryRegistry, tmp_dir: Path):
        path = tmp_dir / "registry.json"
        raw = json.loads(path.read_text())
        raw["repositories"]["broken"] = {"client_id": "acme"}
        path.write_text(json.dumps(raw))

        reloaded = RepositoryRegistry(path)
        with pytest.raises(UnconfiguredRepository, match="malformed"):
            reloaded.get_repository("broken")
        assert reloaded.mapping_for("webshop").client_id == "acme"

    def test_update_client(self, registry: RepositoryRegistry):
        updated = registry.update_client("globex", contact_person="Hank Scorpio")
        assert updated.contact_person == "Hank Scorpio"
        assert registry.get_client("globex").contact_person == "Hank Scorpio"

    def test_update_unknown_client(self, registry: RepositoryRegistry):
        with pytest.raises(KeyError):
            registry.update_client("initech", name="Initech")

    def test_remove_client_removes_its_repositories(self, registry: RepositoryRegistry):
        assert registry.remove_client("globex") == ["intranet"]
        assert registry.repository_ids() == ["webshop"]
        assert registry.get_client("globex") is None

    def test_remove_repository(self, registry: RepositoryRegistry):
        registry.remove_repository("intranet")
        assert registry.repository_ids() == ["webshop"]
        with pytest.raises(KeyError):
            registry.remove_repository("intranet")

    def test_client_details(self, registry: RepositoryRegistry):
        details = registry.get_client("acme").details()
        assert details.name == "ACME Corp"
        assert details.requires_approval is True

    def test_tag_prefix_flows_into_mapping(self, tmp_dir: Path):
        reg = RepositoryRegistry(tmp_dir / "plus.json", tag_prefix="+")
        reg.register_client(ClientRecord(client_id="acme"))
        reg.register_repository(RepositoryRecord(
            repository_id="webshop", client_id="acme", default_project_id="shop",
        ))
        assert reg.mapping_for("webshop").tag_prefix == "+"

    def test_update_repository(self, registry: RepositoryRegistry):
        updated = registry.update_repository("webshop", project_number="PO-7")
        assert updated.project_number == "PO-7"
        assert registry.mapping_for("webshop").default_project_id == "shop"

    def test_update_unknown_repository(self, registry: RepositoryRegistry):
        with pytest.raises(KeyError):
            registry.update_repository("nope", project_number="PO-7")

    def test_malformed_client_and_user_do_not_break_load(self, tmp_dir: Path):
        path = tmp_dir / "hand-edited.json"
        path.write_text(json.dumps({
            "user": "Dev Eloper",
            "clients": {"acme": "ACME Corp", "globex": {"name": "Globex"}},
            "repositories": {"intranet": {"client_id": "globex", "default_project_id": "portal"}},
        }))
        registry = RepositoryRegistry(path)
        assert registry.client_ids() == ["acme", "globex"]
        assert registry.user.name == ""
        assert registry.mapping_for("intranet").client_id == "globex"
