"""Tests for the TimeLedger — event-sourced, hash-chained entry store."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, timedelta

import pytest

from timesheet_gen.core.errors import (
    EntryNotFound,
    InvalidTransition,
    PeriodClosed,
)
from timesheet_gen.core.time_ledger import TimeLedger
from timesheet_gen.models.allocation import DerivedEntry
from timesheet_gen.models.ledger import EntrySource, EventType, PeriodStatus

PERIOD = "2021-10"


def _derived(day: int, project: str = "shop", minutes: int = 60, client: str = "acme") -> DerivedEntry:
    return DerivedEntry(
        client_id=client,
        project_id=project,
        date=date(2021, 10, day),
        duration=timedelta(minutes=minutes),
    )


class TestEntries:
    def test_add_derived(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        assert entry.entry_id.startswith("ent-")
        assert entry.source == EntrySource.DERIVED
        assert entry.derived_duration == timedelta(minutes=60)
        assert ledger.get(PERIOD, entry.entry_id) == entry

    def test_add_manual(self, ledger: TimeLedger):
        entry = ledger.add_manual(
            PERIOD, client_id="acme", project_id="shop",
            date=date(2021, 10, 6), duration=timedelta(hours=2), editor="alice",
        )
        assert entry.source == EntrySource.MANUAL
        assert entry.derived_duration is None
        assert ledger.list(PERIOD) == (entry,)

    def test_date_outside_period_rejected(self, ledger: TimeLedger):
        with pytest.raises(ValueError, match="outside period"):
            ledger.add(PERIOD, [DerivedEntry(
                client_id="acme", project_id="shop",
                date=date(2021, 11, 1), duration=timedelta(hours=1),
            )])

    def test_negative_manual_duration_rejected(self, ledger: TimeLedger):
        with pytest.raises(ValueError):
            ledger.add_manual(
                PERIOD, client_id="acme", project_id="shop",
                date=date(2021, 10, 6), duration=timedelta(hours=-1), editor="alice",
            )

    def test_edit_records_history(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        edited = ledger.edit(PERIOD, entry.entry_id, duration=timedelta(minutes=90), editor="alice")
        assert edited.duration == timedelta(minutes=90)
        assert edited.source == EntrySource.MANUAL
        [record] = edited.edit_history
        assert record.editor == "alice"
        assert record.action == "edit"
        assert record.previous_value["duration_us"] == 3_600_000_000

    def test_edit_back_to_derived_value_stays_derived(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        ledger.edit(PERIOD, entry.entry_id, project_id="api", editor="alice")
        restored = ledger.edit(PERIOD, entry.entry_id, project_id="shop", editor="alice")
        assert restored.source == EntrySource.DERIVED
        assert len(restored.edit_history) == 2

    def test_edit_needs_a_change(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        with pytest.raises(ValueError):
            ledger.edit(PERIOD, entry.entry_id, editor="alice")

    def test_edit_unknown_entry(self, ledger: TimeLedger):
        with pytest.raises(EntryNotFound):
            ledger.edit(PERIOD, "ent-missing", duration=timedelta(hours=1), editor="alice")

    def test_remove_in_never_finalized_period_purges(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        ledger.remove(PERIOD, entry.entry_id, editor="alice")
        assert ledger.list(PERIOD, include_removed=True) == ()
        with pytest.raises(EntryNotFound):
            ledger.get(PERIOD, entry.entry_id)

    def test_remove_after_reopen_is_soft(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        ledger.finalize(PERIOD, "acme", editor="alice")
        ledger.reopen(PERIOD, "acme", editor="alice")
        ledger.remove(PERIOD, entry.entry_id, editor="alice")
        assert ledger.list(PERIOD) == ()
        [kept] = ledger.list(PERIOD, include_removed=True)
        assert kept.removed
        assert kept.edit_history[-1].action == "remove"

    def test_removed_entry_cannot_be_edited(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        ledger.remove(PERIOD, entry.entry_id, editor="alice")
        with pytest.raises(EntryNotFound):
            ledger.edit(PERIOD, entry.entry_id, duration=timedelta(hours=1), editor="alice")

    def test_list_filters_and_order(self, ledger: TimeLedger):
        ledger.add(PERIOD, [
            _derived(5, "shop"),
            _derived(4, "shop"),
            _derived(4, "api"),
            _derived(4, "portal", client="globex"),
        ])
        keys = [(e.date.day, e.client_id, e.project_id) for e in ledger.list(PERIOD)]
        assert keys == [(4, "acme", "api"), (4, "acme", "shop"), (4, "globex", "portal"), (5, "acme", "shop")]
        assert len(ledger.list(PERIOD, client_id="globex")) == 1
        assert len(ledger.list(PERIOD, project_id="shop")) == 2
        assert ledger.list(PERIOD, source=EntrySource.MANUAL) == ()

    def test_clients(self, ledger: TimeLedger):
        ledger.add(PERIOD, [_derived(4), _derived(4, "portal", client="globex")])
        assert ledger.clients(PERIOD) == ["acme", "globex"]


class TestLifecycle:
    def test_default_status_is_draft(self, ledger: TimeLedger):
        assert ledger.status(PERIOD, "acme") == PeriodStatus.DRAFT

    def test_finalize_then_approve(self, ledger: TimeLedger):
        ledger.finalize(PERIOD, "acme", editor="alice")
        assert ledger.status(PERIOD, "acme") == PeriodStatus.FINALIZED
        ledger.approve(PERIOD, "acme", editor="client")
        assert ledger.status(PERIOD, "acme") == PeriodStatus.APPROVED

    def test_approve_requires_finalized(self, ledger: TimeLedger):
        with pytest.raises(InvalidTransition):
            ledger.approve(PERIOD, "acme", editor="client")

    def test_reopen_draft_is_invalid(self, ledger: TimeLedger):
        with pytest.raises(InvalidTransition):
            ledger.reopen(PERIOD, "acme", editor="alice")

    def test_closed_period_refuses_mutation(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        ledger.finalize(PERIOD, "acme", editor="alice")
        with pytest.raises(PeriodClosed):
            ledger.edit(PERIOD, entry.entry_id, duration=timedelta(hours=3), editor="alice")
        with pytest.raises(PeriodClosed):
            ledger.remove(PERIOD, entry.entry_id, editor="alice")
        with pytest.raises(PeriodClosed):
            ledger.add(PERIOD, [_derived(6)])

    def test_status_is_per_client(self, ledger: TimeLedger):
        ledger.finalize(PERIOD, "acme", editor="alice")
        [entry] = ledger.add(PERIOD, [_derived(4, "portal", client="globex")])
        assert entry.client_id == "globex"
        assert ledger.status(PERIOD, "globex") == PeriodStatus.DRAFT

    def test_status_is_per_period(self, ledger: TimeLedger):
        ledger.finalize(PERIOD, "acme", editor="alice")
        assert ledger.status("2021-11", "acme") == PeriodStatus.DRAFT

    def test_ever_finalized(self, ledger: TimeLedger):
        assert not ledger.ever_finalized(PERIOD, "acme")
        ledger.finalize(PERIOD, "acme", editor="alice")
        ledger.reopen(PERIOD, "acme", editor="alice")
        assert ledger.ever_finalized(PERIOD, "acme")


class TestEventLog:
    def test_every_change_is_an_event(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        ledger.edit(PERIOD, entry.entry_id, duration=timedelta(hours=2), editor="alice")
        ledger.finalize(PERIOD, "acme", editor="alice")
        types = [e.event_type for e in ledger.events(PERIOD)]
        assert types == [EventType.ENTRY_ADDED, EventType.ENTRY_EDITED, EventType.STATUS_CHANGED]

    def test_hash_chain_links(self, ledger: TimeLedger):
        ledger.add(PERIOD, [_derived(4), _derived(5)])
        first, second = ledger.events(PERIOD)
        assert first.previous_event_hash == ""
        assert second.previous_event_hash == first.event_hash

    def test_chains_are_per_period(self, ledger: TimeLedger):
        ledger.add(PERIOD, [_derived(4)])
        [nov] = ledger.add("2021-11", [DerivedEntry(
            client_id="acme", project_id="shop",
            date=date(2021, 11, 2), duration=timedelta(hours=1),
        )])
        assert ledger.events("2021-11")[0].previous_event_hash == ""
        assert ledger.periods() == ["2021-10", "2021-11"]
        assert nov.period == "2021-11"

    def test_verify_chain_valid(self, ledger: TimeLedger):
        ledger.add(PERIOD, [_derived(4)])
        ledger.finalize(PERIOD, "acme", editor="alice")
        assert ledger.verify_chain(PERIOD) is True

    def test_verify_chain_empty(self, ledger: TimeLedger):
        assert ledger.verify_chain(PERIOD) is True

    def test_state_survives_reopen_of_database(self, ledger: TimeLedger):
        [entry] = ledger.add(PERIOD, [_derived(4)])
        ledger.edit(PERIOD, entry.entry_id, duration=timedelta(hours=2), editor="alice")
        reopened = TimeLedger(ledger.db_path)
        assert reopened.list(PERIOD) == ledger.list(PERIOD)
        assert reopened.verify_chain(PERIOD)

    def test_export_anchor(self, ledger: TimeLedger):
        ledger.add(PERIOD, [_derived(4), _derived(5)])
        anchor = ledger.export_anchor(PERIOD)
        assert anchor["event_count"] == 2
        assert anchor["root_hash"] == ledger.events(PERIOD)[-1].event_hash
        assert anchor["anchor_hash"]

    def test_last_modified_defaults_to_period_start(self, ledger: TimeLedger):
        stamp = ledger.last_modified(PERIOD, "acme")
        assert stamp.date() == date(2021, 10, 1)
        ledger.add(PERIOD, [_derived(4)])
        assert ledger.last_modified(PERIOD, "acme") == ledger.events(PERIOD)[-1].timestamp_utc

    def test_invalid_period_rejected(self, ledger: TimeLedger):
        with pytest.raises(ValueError):
            ledger.events("October")


class TestConcurrentWriters:
    """Writers on one period are serialised; the chain never forks."""

    def _assert_linear(self, ledger: TimeLedger) -> None:
        events = ledger.events(PERIOD)
        assert ledger.verify_chain(PERIOD)
        links = [e.previous_event_hash for e in events]
        assert len(set(links)) == len(links)

    def test_edits_and_regenerations(self, ledger: TimeLedger):
        fresh = [_derived(day) for day in range(1, 11)]
        ledger.regenerate(PERIOD, fresh)
        entries = ledger.list(PERIOD)

        def edit(i: int) -> None:
            ledger.edit(
                PERIOD, entries[i].entry_id,
                duration=timedelta(minutes=90 + i), editor=f"editor-{i}",
            )

        with ThreadPoolExecutor(max_workers=6) as executor:
            futures = [executor.submit(edit, i) for i in range(8)]
            futures += [executor.submit(ledger.regenerate, PERIOD, fresh) for _ in range(4)]
            for future in as_completed(futures):
                future.result()

        self._assert_linear(ledger)
        assert len(ledger.events(PERIOD)) == 10 + 8
        durations = {e.entry_id: e.duration for e in ledger.list(PERIOD)}
        for i in range(8):
            assert durations[entries[i].entry_id] == timedelta(minutes=90 + i)

    def test_manual_adds_across_clients(self, ledger: TimeLedger):
        def add(i: int) -> None:
            ledger.add_manual(
                PERIOD, client_id="acme" if i % 2 else "globex", project_id="shop",
                date=date(2021, 10, 1 + i), duration=timedelta(hours=1), editor="alice",
            )

        with ThreadPoolExecutor(max_workers=8) as executor:
            for future in as_completed([executor.submit(add, i) for i in range(20)]):
                future.result()

        self._assert_linear(ledger)
        assert len(ledger.list(PERIOD)) == 20
