"""Append-only, hash-chained time ledger backed by SQLite.

The ledger is the only owner of time entries.  It stores events, never
entries: the current state of a period is a replay of that period's
events, which gives the audit trail and reopen/revoke behaviour for free.

Design:
- Append-only: events are inserted, never updated or deleted.
- Hash-chained per period: each event includes SHA-256 of the previous one.
- WAL journal mode for concurrent readers.
- One writer lock per period; fraction and manual-precedence rules are
  not safe under interleaved writes.
- Status is tracked per (period, client): approving one client's
  timesheet does not freeze another client's entries.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any

from timesheet_gen.core.errors import (
    EntryNotFound,
    InvalidTransition,
    LedgerIntegrityError,
    PeriodClosed,
)
from timesheet_gen.core.hasher import (
    canonical_json_bytes,
    compute_event_hash,
    duration_micros,
    sha256_hex,
)
from timesheet_gen.models.allocation import DerivedEntry
from timesheet_gen.models.ledger import (
    CLOSED_STATUSES,
    VALID_STATUS_TRANSITIONS,
    EditRecord,
    EntrySource,
    EventType,
    LedgerEvent,
    PeriodStatus,
    RegenerateResult,
    TimeEntry,
)
from timesheet_gen.models.period import parse_period, period_bounds, period_of
from timesheet_gen.models.timesheet import ApprovalToken

logger = logging.getLogger(__name__)

Key = tuple[date, str, str]


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS time_ledger (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id              TEXT NOT NULL UNIQUE,
    period                TEXT NOT NULL,
    client_id             TEXT NOT NULL,
    event_type            TEXT NOT NULL,
    entry_id              TEXT NOT NULL DEFAULT '',
    editor                TEXT NOT NULL DEFAULT '',
    timestamp_utc         TEXT NOT NULL,
    payload_json          TEXT NOT NULL DEFAULT '{}',
    previous_event_hash   TEXT NOT NULL DEFAULT '',
    event_hash            TEXT NOT NULL UNIQUE
);
"""

_CREATE_IDX_PERIOD = """
CREATE INDEX IF NOT EXISTS idx_period ON time_ledger(period, id);
"""

_CREATE_IDX_PERIOD_CLIENT = """
CREATE INDEX IF NOT EXISTS idx_period_client ON time_ledger(period, client_id, id);
"""


def _micros(value: int) -> timedelta:
    return timedelta(microseconds=value)


# ---------------------------------------------------------------------------
# Replay state
# ---------------------------------------------------------------------------


@dataclass
class _EntryState:
    entry_id: str
    client_id: str
    project_id: str
    date: date
    duration: timedelta
    source: EntrySource
    derived_duration: timedelta | None = None
    derived_project_id: str | None = None
    removed: bool = False
    history: list[EditRecord] = field(default_factory=list)

    @property
    def key(self) -> Key:
        return (self.date, self.client_id, self.project_id)

    @property
    def derived_key(self) -> Key | None:
        if self.derived_project_id is None:
            return None
        return (self.date, self.client_id, self.derived_project_id)

    @property
    def untouched_derived(self) -> bool:
        return self.source == EntrySource.DERIVED and not self.history and not self.removed

    def snapshot(self) -> dict[str, Any]:
        return {
            "duration_us": duration_micros(self.duration),
            "project_id": self.project_id,
            "source": self.source.value,
        }

    def freeze(self, period: str) -> TimeEntry:
        return TimeEntry(
            entry_id=self.entry_id,
            period=period,
            client_id=self.client_id,
            project_id=self.project_id,
            date=self.date,
            duration=self.duration,
            source=self.source,
            removed=self.removed,
            derived_duration=self.derived_duration,
            derived_project_id=self.derived_project_id,
            edit_history=tuple(self.history),
        )


@dataclass
class _PeriodState:
    period: str
    entries: dict[str, _EntryState] = field(default_factory=dict)
    statuses: dict[str, PeriodStatus] = field(default_factory=dict)
    ever_finalized: set[str] = field(default_factory=set)
    purged_claims: set[Key] = field(default_factory=set)
    tokens: dict[str, ApprovalToken] = field(default_factory=dict)
    revoked: set[str] = field(default_factory=set)
    last_modified: dict[str, datetime] = field(default_factory=dict)

    def status(self, client_id: str) -> PeriodStatus:
        return self.statuses.get(client_id, PeriodStatus.DRAFT)

    def is_closed(self, client_id: str) -> bool:
        return self.status(client_id) in CLOSED_STATUSES

    def claimed_keys(self) -> set[Key]:
        """Keys where manual work takes precedence over derivation."""
        claimed = set(self.purged_claims)
        for entry in self.entries.values():
            if entry.source == EntrySource.MANUAL:
                claimed.add(entry.key)
            if entry.history or entry.removed:
                claimed.add(entry.key)
                if entry.derived_key is not None:
                    claimed.add(entry.derived_key)
        return claimed

    def apply(self, event: LedgerEvent) -> None:
        p = event.payload
        etype = event.event_type
        self.last_modified[event.client_id] = event.timestamp_utc

        if etype == EventType.ENTRY_ADDED:
            derived_us = p.get("derived_duration_us")
            self.entries[event.entry_id] = _EntryState(
                entry_id=event.entry_id,
                client_id=event.client_id,
                project_id=p["project_id"],
                date=date.fromisoformat(p["date"]),
                duration=_micros(p["duration_us"]),
                source=EntrySource(p["source"]),
                derived_duration=_micros(derived_us) if derived_us is not None else None,
                derived_project_id=p.get("derived_project_id"),
            )
        elif etype == EventType.ENTRY_EDITED:
            entry = self.entries[event.entry_id]
            entry.history.append(EditRecord(
                editor=event.editor,
                timestamp=event.timestamp_utc,
                action="edit",
                previous_value=p["previous"],
            ))
            entry.duration = _micros(p["duration_us"])
            entry.project_id = p["project_id"]
            entry.source = EntrySource(p["source"])
        elif etype == EventType.ENTRY_REDERIVED:
            entry = self.entries[event.entry_id]
            entry.duration = _micros(p["duration_us"])
            entry.derived_duration = entry.duration
        elif etype == EventType.ENTRY_RETRACTED:
            self.entries.pop(event.entry_id, None)
        elif etype == EventType.ENTRY_REMOVED:
            entry = self.entries[event.entry_id]
            entry.history.append(EditRecord(
                editor=event.editor,
                timestamp=event.timestamp_utc,
                action="remove",
                previous_value=p["previous"],
            ))
            entry.removed = True
        elif etype == EventType.ENTRY_PURGED:
            entry = self.entries.pop(event.entry_id, None)
            # only derived time stays suppressed; a purged manual entry frees its key
            if entry is not None and entry.derived_key is not None:
                self.purged_claims.add(entry.derived_key)
        elif etype == EventType.STATUS_CHANGED:
            target = PeriodStatus(p["to"])
            self.statuses[event.client_id] = target
            if target == PeriodStatus.FINALIZED:
                self.ever_finalized.add(event.client_id)
        elif etype == EventType.TOKEN_ISSUED:
            token = ApprovalToken.model_validate(p["token"])
            self.tokens[token.token_id] = token
        elif etype == EventType.TOKEN_REVOKED:
            self.revoked.add(p["token_id"])


class TimeLedger:
    """Event-sourced store of time entries, one hash chain per period.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_LEDGER)
            conn.execute(_CREATE_IDX_PERIOD)
            conn.execute(_CREATE_IDX_PERIOD_CLIENT)

    def _lock_for(self, period: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(period, threading.Lock())

    # ------------------------------------------------------------------
    # Event log: append-only write, ordered read
    # ------------------------------------------------------------------

    def _append(self, event: LedgerEvent) -> LedgerEvent:
        """Seal and persist one event.  Callers hold the period lock."""
        previous_hash = self._get_latest_hash(event.period)

        event_dict = event.model_dump(mode="json")
        event_dict["previous_event_hash"] = previous_hash
        event_dict["event_hash"] = ""
        event_hash = compute_event_hash(event_dict)

        sealed = event.model_copy(
            update={"previous_event_hash": previous_hash, "event_hash": event_hash}
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO time_ledger
                    (event_id, period, client_id, event_type, entry_id, editor,
                     timestamp_utc, payload_json, previous_event_hash, event_hash)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    sealed.event_id,
                    sealed.period,
                    sealed.client_id,
                    sealed.event_type.value,
                    sealed.entry_id,
                    sealed.editor,
                    sealed.timestamp_utc.isoformat(),
                    json.dumps(sealed.payload, sort_keys=True),
                    sealed.previous_event_hash,
                    sealed.event_hash,
                ),
            )
        logger.debug(
            "Appended %s for %s/%s (entry=%s).",
            sealed.event_type.value, sealed.period, sealed.client_id, sealed.entry_id or "-",
        )
        return sealed

    def _get_latest_hash(self, period: str) -> str:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT event_hash FROM time_ledger WHERE period = ? ORDER BY id DESC LIMIT 1",
                (period,),
            ).fetchone()
        return row[0] if row else ""

    def events(self, period: str) -> list[LedgerEvent]:
        """Return all events for a period, in append order."""
        parse_period(period)
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM time_ledger WHERE period = ? ORDER BY id ASC",
                (period,),
            ).fetchall()
        return [self._row_to_event(row) for row in rows]

    def periods(self) -> list[str]:
        """Return every period with at least one event, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT period FROM time_ledger ORDER BY period ASC"
            ).fetchall()
        return [row[0] for row in rows]

    def _state(self, period: str) -> _PeriodState:
        state = _PeriodState(period=period)
        for event in self.events(period):
            state.apply(event)
        return state

    # ------------------------------------------------------------------
    # Entry operations
    # ------------------------------------------------------------------

    def add(
        self, period: str, entries: Iterable[DerivedEntry], *, editor: str = "system"
    ) -> list[TimeEntry]:
        """Insert derived entries, each with a fresh id and ``source=derived``.

        Raises ``PeriodClosed`` if any entry's client is closed for *period*.
        """
        entries = list(entries)
        with self._lock_for(period):
            state = self._state(period)
            for entry in entries:
                self._check_in_period(period, entry.date)
                self._check_open(state, period, entry.client_id)
            added = [
                self._append_added(period, entry, EntrySource.DERIVED, editor)
                for entry in entries
            ]
            state = self._state(period)
        return [state.entries[event.entry_id].freeze(period) for event in added]

    def add_manual(
        self,
        period: str,
        *,
        client_id: str,
        project_id: str,
        date: date,
        duration: timedelta,
        editor: str,
    ) -> TimeEntry:
        """Insert an entry typed in by hand (``source=manual``)."""
        if duration < timedelta(0):
            raise ValueError("duration must not be negative")
        draft = DerivedEntry(
            client_id=client_id, project_id=project_id, date=date, duration=duration
        )
        with self._lock_for(period):
            self._check_in_period(period, date)
            self._check_open(self._state(period), period, client_id)
            event = self._append_added(period, draft, EntrySource.MANUAL, editor)
            entry = self._state(period).entries[event.entry_id].freeze(period)
        logger.info("Added manual entry %s to %s/%s.", entry.entry_id, period, client_id)
        return entry

    def _append_added(
        self, period: str, entry: DerivedEntry, source: EntrySource, editor: str
    ) -> LedgerEvent:
        payload: dict[str, Any] = {
            "project_id": entry.project_id,
            "date": entry.date.isoformat(),
            "duration_us": duration_micros(entry.duration),
            "source": source.value,
        }
        if source == EntrySource.DERIVED:
            payload["derived_duration_us"] = payload["duration_us"]
            payload["derived_project_id"] = entry.project_id
        return self._append(LedgerEvent(
            period=period,
            client_id=entry.client_id,
            event_type=EventType.ENTRY_ADDED,
            entry_id=f"ent-{uuid.uuid4().hex[:12]}",
            editor=editor,
            payload=payload,
        ))

    def edit(
        self,
        period: str,
        entry_id: str,
        *,
        duration: timedelta | None = None,
        project_id: str | None = None,
        editor: str,
    ) -> TimeEntry:
        """Change an entry's duration and/or project.

        The previous value goes into ``edit_history``.  The entry becomes
        ``manual`` unless the result equals what was derived.

        Raises ``EntryNotFound`` or ``PeriodClosed``.
        """
        if duration is None and project_id is None:
            raise ValueError("edit needs a new duration or a new project")
        if duration is not None and duration < timedelta(0):
            raise ValueError("duration must not be negative")

        with self._lock_for(period):
            state = self._state(period)
            entry = self._get_live(state, period, entry_id)
            self._check_open(state, period, entry.client_id)

            new_duration = entry.duration if duration is None else duration
            new_project = entry.project_id if project_id is None else project_id
            matches_derived = (
                entry.derived_project_id is not None
                and new_duration == entry.derived_duration
                and new_project == entry.derived_project_id
            )
            source = EntrySource.DERIVED if matches_derived else EntrySource.MANUAL

            self._append(LedgerEvent(
                period=period,
                client_id=entry.client_id,
                event_type=EventType.ENTRY_EDITED,
                entry_id=entry_id,
                editor=editor,
                payload={
                    "duration_us": duration_micros(new_duration),
                    "project_id": new_project,
                    "source": source.value,
                    "previous": entry.snapshot(),
                },
            ))
            edited = self._state(period).entries[entry_id].freeze(period)
        logger.info("Edited entry %s in %s (source=%s).", entry_id, period, source.value)
        return edited

    def remove(self, period: str, entry_id: str, *, editor: str) -> TimeEntry:
        """Remove an entry.

        Soft-removes (kept, flagged, recorded in ``edit_history``) when the
        client's period has ever been finalized; otherwise the entry is
        purged from the current state.  Returns the entry as it was before
        a purge, or the soft-removed entry.

        Raises ``EntryNotFound`` or ``PeriodClosed``.
        """
        with self._lock_for(period):
            state = self._state(period)
            entry = self._get_live(state, period, entry_id)
            self._check_open(state, period, entry.client_id)

            soft = entry.client_id in state.ever_finalized
            self._append(LedgerEvent(
                period=period,
                client_id=entry.client_id,
                event_type=EventType.ENTRY_REMOVED if soft else EventType.ENTRY_PURGED,
                entry_id=entry_id,
                editor=editor,
                payload={"previous": entry.snapshot()},
            ))
            if soft:
                result = self._state(period).entries[entry_id].freeze(period)
            else:
                result = entry.freeze(period)
        logger.info(
            "%s entry %s in %s.", "Soft-removed" if soft else "Purged", entry_id, period
        )
        return result

    def get(self, period: str, entry_id: str) -> TimeEntry:
        entry = self._state(period).entries.get(entry_id)
        if entry is None:
            raise EntryNotFound(period, entry_id)
        return entry.freeze(period)

    def list(
        self,
        period: str,
        *,
        client_id: str | None = None,
        project_id: str | None = None,
        source: EntrySource | None = None,
        include_removed: bool = False,
    ) -> tuple[TimeEntry, ...]:
        """Return a read-only, ordered view of a period's entries."""
        state = self._state(period)
        selected = [
            e for e in state.entries.values()
            if (include_removed or not e.removed)
            and (client_id is None or e.client_id == client_id)
            and (project_id is None or e.project_id == project_id)
            and (source is None or e.source == source)
        ]
        selected.sort(key=lambda e: (e.date, e.client_id, e.project_id, e.entry_id))
        return tuple(e.freeze(period) for e in selected)

    def clients(self, period: str) -> list[str]:
        """Clients with any event in *period*, sorted."""
        state = self._state(period)
        ids = {e.client_id for e in state.entries.values()} | set(state.statuses)
        return sorted(ids)

    # ------------------------------------------------------------------
    # Regeneration
    # ------------------------------------------------------------------

    def regenerate(
        self, period: str, derived: Iterable[DerivedEntry], *, editor: str = "system"
    ) -> RegenerateResult:
        """Merge a fresh derivation into the period.

        Manual work wins unconditionally: keys held by manual entries, or
        originally held by derived entries that were later edited or
        removed, are never overwritten, and an untouched derived entry
        sharing such a key is retracted.  Other untouched derived entries
        are updated or retracted to match *derived*; new keys are added.
        Clients whose period is closed are skipped entirely.
        """
        fresh: dict[Key, timedelta] = {}
        for entry in derived:
            self._check_in_period(period, entry.date)
            fresh[entry.key] = fresh.get(entry.key, timedelta(0)) + entry.duration

        added: list[str] = []
        updated: list[str] = []
        retracted: list[str] = []
        preserved: set[Key] = set()
        skipped: set[str] = set()

        with self._lock_for(period):
            state = self._state(period)
            claimed = state.claimed_keys()
            existing_derived: dict[Key, _EntryState] = {}

            for entry in list(state.entries.values()):
                if not entry.untouched_derived:
                    continue
                if state.is_closed(entry.client_id):
                    skipped.add(entry.client_id)
                    continue
                existing_derived[entry.key] = entry
                if entry.key in claimed or entry.key not in fresh:
                    self._append(LedgerEvent(
                        period=period,
                        client_id=entry.client_id,
                        event_type=EventType.ENTRY_RETRACTED,
                        entry_id=entry.entry_id,
                        editor=editor,
                        payload={"previous": entry.snapshot()},
                    ))
                    retracted.append(entry.entry_id)
                    if entry.key in claimed:
                        preserved.add(entry.key)
                elif fresh[entry.key] != entry.duration:
                    self._append(LedgerEvent(
                        period=period,
                        client_id=entry.client_id,
                        event_type=EventType.ENTRY_REDERIVED,
                        entry_id=entry.entry_id,
                        editor=editor,
                        payload={
                            "duration_us": duration_micros(fresh[entry.key]),
                            "previous": entry.snapshot(),
                        },
                    ))
                    updated.append(entry.entry_id)

            for key in sorted(fresh):
                day, client_id, project_id = key
                if state.is_closed(client_id):
                    skipped.add(client_id)
                    continue
                if key in claimed:
                    preserved.add(key)
                    continue
                if key in existing_derived:
                    continue
                event = self._append_added(
                    period,
                    DerivedEntry(
                        client_id=client_id, project_id=project_id,
                        date=day, duration=fresh[key],
                    ),
                    EntrySource.DERIVED,
                    editor,
                )
                added.append(event.entry_id)

        result = RegenerateResult(
            period=period,
            added=tuple(added),
            updated=tuple(updated),
            retracted=tuple(retracted),
            preserved_keys=tuple(sorted(preserved)),
            skipped_clients=tuple(sorted(skipped)),
        )
        logger.info(
            "Regenerated %s: %d added, %d updated, %d retracted, %d preserved.",
            period, len(added), len(updated), len(retracted), len(preserved),
        )
        return result

    # ------------------------------------------------------------------
    # Period lifecycle
    # ------------------------------------------------------------------

    def status(self, period: str, client_id: str) -> PeriodStatus:
        return self._state(period).status(client_id)

    def ever_finalized(self, period: str, client_id: str) -> bool:
        return client_id in self._state(period).ever_finalized

    def _transition(
        self, period: str, client_id: str, target: PeriodStatus, editor: str
    ) -> list[str]:
        """Record a status change; returns token ids revoked by a reopen."""
        with self._lock_for(period):
            state = self._state(period)
            current = state.status(client_id)
            if target not in VALID_STATUS_TRANSITIONS[current]:
                raise InvalidTransition(
                    f"Cannot move {period}/{client_id} from {current.value} "
                    f"to {target.value}"
                )
            self._append(LedgerEvent(
                period=period,
                client_id=client_id,
                event_type=EventType.STATUS_CHANGED,
                editor=editor,
                payload={"from": current.value, "to": target.value},
            ))
            revoked: list[str] = []
            if target == PeriodStatus.DRAFT:
                for token in state.tokens.values():
                    if token.client_id == client_id and token.token_id not in state.revoked:
                        self._append(LedgerEvent(
                            period=period,
                            client_id=client_id,
                            event_type=EventType.TOKEN_REVOKED,
                            editor=editor,
                            payload={"token_id": token.token_id},
                        ))
                        revoked.append(token.token_id)
        logger.info(
            "%s/%s: %s -> %s.", period, client_id, current.value, target.value
        )
        return revoked

    def finalize(self, period: str, client_id: str, *, editor: str) -> None:
        self._transition(period, client_id, PeriodStatus.FINALIZED, editor)

    def approve(self, period: str, client_id: str, *, editor: str) -> None:
        self._transition(period, client_id, PeriodStatus.APPROVED, editor)

    def reopen(self, period: str, client_id: str, *, editor: str) -> list[str]:
        """Return the period to draft and revoke its approval tokens."""
        return self._transition(period, client_id, PeriodStatus.DRAFT, editor)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def record_token(self, token: ApprovalToken, *, editor: str) -> None:
        """Keep an issued token so a later reopen can revoke it."""
        with self._lock_for(token.period):
            status = self._state(token.period).status(token.client_id)
            if status not in CLOSED_STATUSES:
                raise InvalidTransition(
                    f"Tokens can only be recorded for a closed period, "
                    f"{token.period}/{token.client_id} is {status.value}"
                )
            self._append(LedgerEvent(
                period=token.period,
                client_id=token.client_id,
                event_type=EventType.TOKEN_ISSUED,
                editor=editor,
                payload={"token": token.model_dump(mode="json")},
            ))

    def tokens(self, period: str, client_id: str) -> list[ApprovalToken]:
        state = self._state(period)
        return [t for t in state.tokens.values() if t.client_id == client_id]

    def is_token_revoked(self, token: ApprovalToken) -> bool:
        return token.token_id in self._state(token.period).revoked

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def last_modified(self, period: str, client_id: str) -> datetime:
        """Timestamp of the latest event for a client in *period*.

        Falls back to midnight UTC on the period's first day, so the
        result only ever depends on ledger content.
        """
        stamp = self._state(period).last_modified.get(client_id)
        if stamp is not None:
            return stamp
        first, _ = period_bounds(period)
        return datetime.combine(first, time(0), tzinfo=timezone.utc)

    # ------------------------------------------------------------------
    # Chain verification
    # ------------------------------------------------------------------

    def verify_chain(self, period: str) -> bool:
        """Verify the hash chain integrity for a period.

        Returns True if the chain is valid, raises LedgerIntegrityError otherwise.
        """
        prev_hash = ""
        for event in self.events(period):
            if event.previous_event_hash != prev_hash:
                raise LedgerIntegrityError(
                    f"Chain broken at event {event.event_id}: "
                    f"expected previous_hash={prev_hash!r}, "
                    f"got {event.previous_event_hash!r}"
                )
            expected_hash = compute_event_hash(event.model_dump(mode="json"))
            if event.event_hash != expected_hash:
                raise LedgerIntegrityError(
                    f"Tampered event {event.event_id}: "
                    f"expected hash={expected_hash!r}, "
                    f"got {event.event_hash!r}"
                )
            prev_hash = event.event_hash
        return True

    def export_anchor(self, period: str) -> dict[str, Any]:
        """Export the current chain head for external witnessing."""
        events = self.events(period)
        anchor: dict[str, Any] = {
            "period": period,
            "event_count": len(events),
            "root_hash": events[-1].event_hash if events else "",
            "first_event_hash": events[0].event_hash if events else "",
        }
        anchor["anchor_hash"] = sha256_hex(canonical_json_bytes(anchor)) if events else ""
        return anchor

    def verify_against_anchor(self, period: str, anchor: dict[str, Any]) -> bool:
        """Check that the period's chain still extends an exported anchor.

        Events appended after the anchor are fine; rewriting or dropping
        anything the anchor covered raises ``LedgerIntegrityError``.
        """
        events = self.events(period)
        expected = anchor.get("event_count", 0)
        if len(events) < expected:
            raise LedgerIntegrityError(
                f"Chain for {period} has {len(events)} events but "
                f"anchor expects at least {expected}"
            )
        if expected == 0:
            return True
        if events[0].event_hash != anchor.get("first_event_hash", ""):
            raise LedgerIntegrityError(
                f"First event of {period} does not match the anchor; "
                f"the chain was rewritten from the start"
            )
        if events[expected - 1].event_hash != anchor.get("root_hash", ""):
            raise LedgerIntegrityError(
                f"Event {expected} of {period} does not match the anchor root"
            )
        self.verify_chain(period)
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_in_period(period: str, day: date) -> None:
        if period_of(day) != period:
            raise ValueError(f"Date {day.isoformat()} is outside period {period}")

    @staticmethod
    def _check_open(state: _PeriodState, period: str, client_id: str) -> None:
        status = state.status(client_id)
        if status in CLOSED_STATUSES:
            raise PeriodClosed(period, client_id, status.value)

    @staticmethod
    def _get_live(state: _PeriodState, period: str, entry_id: str) -> _EntryState:
        entry = state.entries.get(entry_id)
        if entry is None or entry.removed:
            raise EntryNotFound(period, entry_id)
        return entry

    @staticmethod
    def _row_to_event(row: tuple) -> LedgerEvent:
        """Convert a SQLite row tuple to a LedgerEvent."""
        (
            _id,
            event_id,
            period,
            client_id,
            event_type,
            entry_id,
            editor,
            timestamp_utc,
            payload_json,
            previous_event_hash,
            event_hash,
        ) = row
        return LedgerEvent(
            event_id=event_id,
            period=period,
            client_id=client_id,
            event_type=EventType(event_type),
            entry_id=entry_id,
            editor=editor,
            timestamp_utc=timestamp_utc,
            payload=json.loads(payload_json),
            previous_event_hash=previous_event_hash,
            event_hash=event_hash,
        )
