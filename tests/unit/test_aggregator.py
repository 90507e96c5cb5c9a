"""Tests for the timesheet aggregator — a pure projection of ledger entries."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from timesheet_gen.core.aggregator import aggregate, aggregate_period
from timesheet_gen.models.ledger import EntrySource, PeriodStatus, TimeEntry

PERIOD = "2021-10"
GENERATED = datetime(2021, 10, 31, 18, 0, tzinfo=timezone.utc)


def _entry(
    entry_id: str,
    day: int,
    project: str = "shop",
    minutes: int = 60,
    client: str = "acme",
    removed: bool = False,
) -> TimeEntry:
    return TimeEntry(
        entry_id=entry_id,
        period=PERIOD,
        client_id=client,
        project_id=project,
        date=date(2021, 10, day),
        duration=timedelta(minutes=minutes),
        source=EntrySource.DERIVED,
        removed=removed,
    )


class TestAggregate:
    def test_totals_by_project(self):
        sheet = aggregate(
            [_entry("e1", 4, "shop", 60), _entry("e2", 5, "shop", 30), _entry("e3", 4, "api", 45)],
            PERIOD, "acme", generated_at=GENERATED,
        )
        assert [(p.project_id, p.duration, p.entry_count) for p in sheet.projects] == [
            ("api", timedelta(minutes=45), 1),
            ("shop", timedelta(minutes=90), 2),
        ]
        assert sheet.total_duration == timedelta(minutes=135)

    def test_entries_ordered_by_project_then_date(self):
        sheet = aggregate(
            [_entry("e1", 9, "shop"), _entry("e2", 4, "shop"), _entry("e3", 12, "api")],
            PERIOD, "acme", generated_at=GENERATED,
        )
        assert [e.entry_id for e in sheet.entries] == ["e3", "e2", "e1"]

    def test_other_clients_and_removed_entries_ignored(self):
        sheet = aggregate(
            [
                _entry("e1", 4),
                _entry("e2", 4, client="globex"),
                _entry("e3", 5, removed=True),
            ],
            PERIOD, "acme", generated_at=GENERATED,
        )
        assert [e.entry_id for e in sheet.entries] == ["e1"]
        assert sheet.total_duration == timedelta(hours=1)

    def test_empty_timesheet(self):
        sheet = aggregate([], PERIOD, "acme", generated_at=GENERATED)
        assert sheet.entries == ()
        assert sheet.projects == ()
        assert sheet.total_duration == timedelta(0)

    def test_days_cover_the_whole_month(self):
        sheet = aggregate([_entry("e1", 4, minutes=90)], PERIOD, "acme", generated_at=GENERATED)
        assert len(sheet.days) == 31
        by_day = {d.date.day: d for d in sheet.days}
        assert by_day[4].duration == timedelta(minutes=90)
        assert by_day[5].duration == timedelta(0)
        # 2021-10-02 was a Saturday, 2021-10-04 a Monday
        assert by_day[2].weekend and by_day[3].weekend
        assert not by_day[4].weekend

    def test_idempotent(self):
        entries = [_entry("e1", 4), _entry("e2", 5, "api", 20)]
        first = aggregate(entries, PERIOD, "acme", generated_at=GENERATED, status=PeriodStatus.FINALIZED)
        second = aggregate(list(reversed(entries)), PERIOD, "acme", generated_at=GENERATED, status=PeriodStatus.FINALIZED)
        assert first == second
        assert first.model_dump_json() == second.model_dump_json()

    def test_status_carried_through(self):
        sheet = aggregate([], PERIOD, "acme", generated_at=GENERATED, status=PeriodStatus.APPROVED)
        assert sheet.status == PeriodStatus.APPROVED


class TestAggregatePeriod:
    def test_one_sheet_per_client(self):
        sheets = aggregate_period(
            [_entry("e1", 4, client="globex"), _entry("e2", 4), _entry("e3", 5)],
            PERIOD,
            generated_at=GENERATED,
            statuses={"globex": PeriodStatus.FINALIZED},
        )
        assert [(s.client_id, s.status, len(s.entries)) for s in sheets] == [
            ("acme", PeriodStatus.DRAFT, 2),
            ("globex", PeriodStatus.FINALIZED, 1),
        ]
