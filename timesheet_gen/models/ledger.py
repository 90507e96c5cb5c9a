"""Time ledger models (append-only, hash-chained event log).

The ledger stores events, not entries.  A ``TimeEntry`` is what you get
by replaying the events for a period:
- Append-only (no UPDATE, no DELETE)
- Hash-chained per period (each event links to the previous via SHA-256)
- Every edit keeps the value it replaced in ``edit_history``
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EntrySource(str, Enum):
    DERIVED = "derived"
    MANUAL = "manual"


class PeriodStatus(str, Enum):
    """Lifecycle of a client's timesheet within a period."""

    DRAFT = "draft"
    FINALIZED = "finalized"
    APPROVED = "approved"


# Closed statuses reject edit/remove/add_manual until reopened.
CLOSED_STATUSES: frozenset[PeriodStatus] = frozenset(
    {PeriodStatus.FINALIZED, PeriodStatus.APPROVED}
)

VALID_STATUS_TRANSITIONS: dict[PeriodStatus, set[PeriodStatus]] = {
    PeriodStatus.DRAFT: {PeriodStatus.FINALIZED},
    PeriodStatus.FINALIZED: {PeriodStatus.APPROVED, PeriodStatus.DRAFT},
    PeriodStatus.APPROVED: {PeriodStatus.DRAFT},  # reopen only
}


class EventType(str, Enum):
    ENTRY_ADDED = "entry_added"
    ENTRY_EDITED = "entry_edited"
    ENTRY_REDERIVED = "entry_rederived"
    ENTRY_RETRACTED = "entry_retracted"
    ENTRY_REMOVED = "entry_removed"
    ENTRY_PURGED = "entry_purged"
    STATUS_CHANGED = "status_changed"
    TOKEN_ISSUED = "token_issued"
    TOKEN_REVOKED = "token_revoked"


class EditRecord(BaseModel):
    """One manual change to an entry, with the value it replaced."""

    model_config = ConfigDict(frozen=True)

    editor: str
    timestamp: datetime
    action: str  # "edit" | "remove"
    previous_value: dict[str, Any]


class TimeEntry(BaseModel):
    """Attributed time for one (date, client, project) in a period.

    Read-only snapshot.  Only ``TimeLedger`` operations change the
    underlying state.
    """

    model_config = ConfigDict(frozen=True)

    entry_id: str
    period: str
    client_id: str
    project_id: str
    date: date
    duration: timedelta
    source: EntrySource
    removed: bool = False
    derived_duration: timedelta | None = None
    derived_project_id: str | None = None
    edit_history: tuple[EditRecord, ...] = ()

    @property
    def key(self) -> tuple[date, str, str]:
        return (self.date, self.client_id, self.project_id)

    @property
    def derived_key(self) -> tuple[date, str, str] | None:
        """The key this entry held when it was derived, if it was."""
        if self.derived_project_id is None:
            return None
        return (self.date, self.client_id, self.derived_project_id)


class LedgerEvent(BaseModel):
    """A single event in the append-only time ledger."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    period: str
    client_id: str
    event_type: EventType
    entry_id: str = ""
    editor: str = ""
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    payload: dict[str, Any] = {}
    previous_event_hash: str = ""
    event_hash: str = ""  # computed on append, seals this event


class RegenerateResult(BaseModel):
    """What a regeneration changed."""

    model_config = ConfigDict(frozen=True)

    period: str
    added: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    retracted: tuple[str, ...] = ()
    preserved_keys: tuple[tuple[date, str, str], ...] = ()
    skipped_clients: tuple[str, ...] = ()
