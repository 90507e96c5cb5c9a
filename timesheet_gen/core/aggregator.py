"""Timesheet aggregator — a pure projection of ledger entries.

Groups a period's entries by client, then project, and sums them.  The
aggregator never reads the clock: ``generated_at`` comes from the caller
(normally ``TimeLedger.last_modified``), so two calls over the same
ledger state produce byte-identical timesheets.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from timesheet_gen.models.ledger import PeriodStatus, TimeEntry
from timesheet_gen.models.period import days_in_period
from timesheet_gen.models.timesheet import (
    ClientDetails,
    DayTotal,
    PersonDetails,
    ProjectTotal,
    Timesheet,
)


def _sort_key(entry: TimeEntry) -> tuple:
    return (entry.client_id, entry.project_id, entry.date, entry.entry_id)


def aggregate(
    entries: Iterable[TimeEntry],
    period: str,
    client_id: str,
    *,
    status: PeriodStatus = PeriodStatus.DRAFT,
    generated_at: datetime,
    client: ClientDetails | None = None,
    user: PersonDetails | None = None,
    approver: PersonDetails | None = None,
) -> Timesheet:
    """Build the timesheet for one client in one period.

    Removed entries and entries of other clients or periods are ignored.
    """
    selected = sorted(
        (
            e for e in entries
            if e.client_id == client_id and e.period == period and not e.removed
        ),
        key=_sort_key,
    )

    by_project: dict[str, list[TimeEntry]] = {}
    for entry in selected:
        by_project.setdefault(entry.project_id, []).append(entry)
    projects = tuple(
        ProjectTotal(
            project_id=project_id,
            duration=sum((e.duration for e in group), timedelta(0)),
            entry_count=len(group),
        )
        for project_id, group in sorted(by_project.items())
    )

    by_day: dict = {}
    for entry in selected:
        by_day[entry.date] = by_day.get(entry.date, timedelta(0)) + entry.duration
    days = tuple(
        DayTotal(
            date=day,
            weekend=day.isoweekday() >= 6,
            duration=by_day.get(day, timedelta(0)),
        )
        for day in days_in_period(period)
    )

    return Timesheet(
        period=period,
        client_id=client_id,
        entries=tuple(selected),
        projects=projects,
        days=days,
        total_duration=sum((p.duration for p in projects), timedelta(0)),
        generated_at=generated_at,
        status=status,
        client=client,
        user=user,
        approver=approver,
    )


def aggregate_period(
    entries: Iterable[TimeEntry],
    period: str,
    *,
    generated_at: datetime,
    statuses: dict[str, PeriodStatus] | None = None,
) -> list[Timesheet]:
    """One timesheet per client with entries in *period*, ordered by client."""
    entries = list(entries)
    statuses = statuses or {}
    client_ids = sorted({e.client_id for e in entries if e.period == period})
    return [
        aggregate(
            entries,
            period,
            client_id,
            status=statuses.get(client_id, PeriodStatus.DRAFT),
            generated_at=generated_at,
        )
        for client_id in client_ids
    ]
