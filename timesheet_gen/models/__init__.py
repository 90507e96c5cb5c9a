"""timesheet-gen data models — all Pydantic v2, all frozen (immutable)."""

from timesheet_gen.models.allocation import (
    Allocation,
    DerivedEntry,
    ProjectTag,
    RepositoryMapping,
    SessionAllocation,
)
from timesheet_gen.models.commits import Commit, SessionPolicy, WorkSession
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
from timesheet_gen.models.period import (
    days_in_period,
    format_period,
    parse_period,
    period_bounds,
    period_label,
    period_of,
)
from timesheet_gen.models.timesheet import (
    ApprovalToken,
    ClientDetails,
    DayTotal,
    IssueKind,
    PersonDetails,
    ProjectTotal,
    RunIssue,
    RunReport,
    Timesheet,
)

__all__ = [
    # commits
    "Commit",
    "SessionPolicy",
    "WorkSession",
    # allocation
    "Allocation",
    "DerivedEntry",
    "ProjectTag",
    "RepositoryMapping",
    "SessionAllocation",
    # ledger
    "CLOSED_STATUSES",
    "VALID_STATUS_TRANSITIONS",
    "EditRecord",
    "EntrySource",
    "EventType",
    "LedgerEvent",
    "PeriodStatus",
    "RegenerateResult",
    "TimeEntry",
    # periods
    "days_in_period",
    "format_period",
    "parse_period",
    "period_bounds",
    "period_label",
    "period_of",
    # timesheets
    "ApprovalToken",
    "ClientDetails",
    "DayTotal",
    "IssueKind",
    "PersonDetails",
    "ProjectTotal",
    "RunIssue",
    "RunReport",
    "Timesheet",
]
