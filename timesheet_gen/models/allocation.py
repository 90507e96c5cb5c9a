"""Allocation models — how a session's time is split across projects."""

from __future__ import annotations

import math
from datetime import date, timedelta

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from timesheet_gen.models.commits import WorkSession


class ProjectTag(BaseModel):
    """A project a repository can bill to.

    ``pattern`` is an optional regular expression; when absent, the
    project is recognised by the ``#<project_id>`` marker.
    """

    model_config = ConfigDict(frozen=True)

    project_id: str
    pattern: str | None = None


class RepositoryMapping(BaseModel):
    """Resolved client/project configuration for one repository."""

    model_config = ConfigDict(frozen=True)

    repository_id: str
    client_id: str
    default_project_id: str
    projects: tuple[ProjectTag, ...] = ()
    tag_prefix: str = "#"

    @property
    def project_ids(self) -> list[str]:
        ids = [self.default_project_id]
        ids.extend(p.project_id for p in self.projects if p.project_id not in ids)
        return ids

    @property
    def tags(self) -> tuple[ProjectTag, ...]:
        """Configured projects, plus the default project if not listed."""
        if any(p.project_id == self.default_project_id for p in self.projects):
            return self.projects
        return self.projects + (ProjectTag(project_id=self.default_project_id),)


class Allocation(BaseModel):
    """Share of one session attributed to a (client, project) pair."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    client_id: str
    project_id: str
    fraction: float

    @field_validator("fraction")
    @classmethod
    def _check_fraction(cls, value: float) -> float:
        if not 0.0 < value <= 1.0:
            raise ValueError(f"fraction must be in (0, 1], got {value}")
        return value


class SessionAllocation(BaseModel):
    """A session together with the complete set of its allocations."""

    model_config = ConfigDict(frozen=True)

    session: WorkSession
    allocations: tuple[Allocation, ...]

    @model_validator(mode="after")
    def _fractions_sum_to_one(self) -> SessionAllocation:
        total = math.fsum(a.fraction for a in self.allocations)
        if not math.isclose(total, 1.0, rel_tol=0.0, abs_tol=1e-9):
            raise ValueError(
                f"Allocations for session {self.session.session_id} "
                f"sum to {total}, expected 1.0"
            )
        for allocation in self.allocations:
            if allocation.session_id != self.session.session_id:
                raise ValueError(
                    f"Allocation for {allocation.session_id} attached to "
                    f"session {self.session.session_id}"
                )
        return self


class DerivedEntry(BaseModel):
    """Time derived from commits, rolled up to a ledger key."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    project_id: str
    date: date
    duration: timedelta

    @property
    def key(self) -> tuple[date, str, str]:
        return (self.date, self.client_id, self.project_id)
