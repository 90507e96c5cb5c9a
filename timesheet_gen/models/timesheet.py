"""Timesheet, approval token and run report models."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from timesheet_gen.models.ledger import PeriodStatus, TimeEntry


class ClientDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: str
    name: str = ""
    address: str = ""
    contact_person: str = ""
    requires_approval: bool = False


class PersonDetails(BaseModel):
    """The developer or the approver named on a timesheet."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: str = ""


class ProjectTotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    duration: timedelta
    entry_count: int


class DayTotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    weekend: bool
    duration: timedelta


class Timesheet(BaseModel):
    """Per-client summary of a period.

    Derived on demand from the ledger; never stored.  Once approved it
    survives only through the fingerprint carried by its token.
    """

    model_config = ConfigDict(frozen=True)

    period: str
    client_id: str
    entries: tuple[TimeEntry, ...] = ()
    projects: tuple[ProjectTotal, ...] = ()
    days: tuple[DayTotal, ...] = ()
    total_duration: timedelta = timedelta(0)
    generated_at: datetime
    status: PeriodStatus = PeriodStatus.DRAFT
    client: ClientDetails | None = None
    user: PersonDetails | None = None
    approver: PersonDetails | None = None


class ApprovalToken(BaseModel):
    """Tamper-evident proof of a finalized timesheet's content."""

    model_config = ConfigDict(frozen=True)

    token_id: str = Field(default_factory=lambda: f"tok-{uuid.uuid4().hex[:12]}")
    timesheet_fingerprint: str
    period: str
    client_id: str
    issued_at: datetime
    signature: str = ""  # hex Ed25519 signature of the fingerprint, optional
    public_key: str = ""


class IssueKind(str, Enum):
    INVALID_TIME_RANGE = "invalid_time_range"
    UNCONFIGURED_REPOSITORY = "unconfigured_repository"
    SOURCE_FAILURE = "source_failure"


class RunIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    repository_id: str
    kind: IssueKind
    message: str


class RunReport(BaseModel):
    """Per-repository outcome of one collection pass."""

    model_config = ConfigDict(frozen=True)

    period: str
    repositories_processed: tuple[str, ...] = ()
    sessions_built: int = 0
    entries_derived: int = 0
    issues: tuple[RunIssue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.issues
