"""Timesheet engine — the central coordinator.

Wires the commit source, repository registry, session builder,
allocation engine, time ledger, aggregator and token generator into one
pass per period.

Failures are isolated per repository: an unreadable repository, a bad
commit timestamp or a missing mapping is recorded in the ``RunReport``
and the other repositories carry on.  Ledger-state and verification
errors propagate to the caller.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from timesheet_gen.config import Settings
from timesheet_gen.core.aggregator import aggregate
from timesheet_gen.core.allocation_engine import AllocationEngine, to_derived_entries
from timesheet_gen.core.approval import issue_token, verify_token
from timesheet_gen.core.errors import (
    CommitSourceError,
    InvalidTimeRange,
    UnconfiguredRepository,
)
from timesheet_gen.core.registry import RepositoryRegistry
from timesheet_gen.core.session_builder import build_sessions
from timesheet_gen.core.time_ledger import TimeLedger
from timesheet_gen.models.allocation import DerivedEntry, SessionAllocation
from timesheet_gen.models.ledger import PeriodStatus, RegenerateResult
from timesheet_gen.models.period import period_bounds, period_of
from timesheet_gen.models.timesheet import (
    ApprovalToken,
    IssueKind,
    RunIssue,
    RunReport,
    Timesheet,
)
from timesheet_gen.sources.git_log import CommitSource, GitLogSource

logger = logging.getLogger(__name__)

# Commits are fetched with this much slack around the period so that
# timezone offsets cannot drop a session starting on the first or last day.
_FETCH_SLACK = timedelta(days=1)


class TimesheetEngine:
    """Central coordinator for building and approving timesheets.

    Parameters
    ----------
    settings:
        Runtime settings. Uses defaults if not provided.
    registry:
        Repository/client registry. Loaded from ``settings`` if not provided.
    source:
        Commit source.  A ``GitLogSource`` limited to the registered user's
        commits if not provided.
    ledger:
        Time ledger. Opened from ``settings`` if not provided.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: RepositoryRegistry | None = None,
        source: CommitSource | None = None,
        ledger: TimeLedger | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry or RepositoryRegistry(
            self.settings.resolved_registry_path, tag_prefix=self.settings.tag_prefix
        )
        user = self.registry.user
        self.source: CommitSource = source or GitLogSource(
            author=user.email or user.name or None
        )
        self.ledger = ledger or TimeLedger(self.settings.resolved_ledger_path)
        self.allocator = AllocationEngine(self.registry)
        self.policy = self.settings.session_policy()

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def _allocate_repository(
        self, repository_id: str, period: str
    ) -> list[SessionAllocation]:
        """Fetch, sessionize and allocate one repository's commits."""
        record = self.registry.get_repository(repository_id)
        first, last = period_bounds(period)
        commits = self.source.fetch(
            record, since=first - _FETCH_SLACK, until=last + _FETCH_SLACK
        )
        sessions = [
            s for s in build_sessions(commits, self.policy)
            if period_of(s.start_time) == period
        ]
        return self.allocator.allocate_all(sessions, commits)

    def collect(self, period: str) -> tuple[list[DerivedEntry], RunReport]:
        """Derive entries for every configured repository.

        Repositories are processed in id order; their results are merged
        in that order before being rolled up.
        """
        processed: list[str] = []
        issues: list[RunIssue] = []
        allocations: list[SessionAllocation] = []

        for repository_id in self.registry.repository_ids():
            try:
                repo_allocations = self._allocate_repository(repository_id, period)
            except CommitSourceError as exc:
                issues.append(RunIssue(
                    repository_id=repository_id,
                    kind=IssueKind.SOURCE_FAILURE,
                    message=str(exc),
                ))
                logger.warning("Skipping %s: %s", repository_id, exc)
                continue
            except InvalidTimeRange as exc:
                issues.append(RunIssue(
                    repository_id=repository_id,
                    kind=IssueKind.INVALID_TIME_RANGE,
                    message=str(exc),
                ))
                logger.warning("Skipping %s: %s", repository_id, exc)
                continue
            except UnconfiguredRepository as exc:
                issues.append(RunIssue(
                    repository_id=repository_id,
                    kind=IssueKind.UNCONFIGURED_REPOSITORY,
                    message=str(exc),
                ))
                logger.warning("Skipping %s: %s", repository_id, exc)
                continue
            processed.append(repository_id)
            allocations.extend(repo_allocations)

        derived = to_derived_entries(allocations)
        report = RunReport(
            period=period,
            repositories_processed=tuple(processed),
            sessions_built=len(allocations),
            entries_derived=len(derived),
            issues=tuple(issues),
        )
        logger.info(
            "Collected %s: %d repositories, %d sessions, %d entries, %d issue(s).",
            period, len(processed), len(allocations), len(derived), len(issues),
        )
        return derived, report

    def regenerate(self, period: str) -> tuple[RegenerateResult, RunReport]:
        """Re-derive a period from current commits and merge into the ledger."""
        derived, report = self.collect(period)
        result = self.ledger.regenerate(period, derived, editor=self.settings.editor)
        return result, report

    # ------------------------------------------------------------------
    # Timesheets
    # ------------------------------------------------------------------

    def timesheet(self, period: str, client_id: str) -> Timesheet:
        """Aggregate the current ledger state for one client."""
        client = self.registry.get_client(client_id)
        return aggregate(
            self.ledger.list(period, client_id=client_id),
            period,
            client_id,
            status=self.ledger.status(period, client_id),
            generated_at=self.ledger.last_modified(period, client_id),
            client=client.details() if client else None,
            user=self.registry.user,
            approver=client.approver if client else None,
        )

    def timesheets(self, period: str) -> list[Timesheet]:
        client_ids = sorted(
            set(self.ledger.clients(period)) | set(self.registry.client_ids())
        )
        return [self.timesheet(period, client_id) for client_id in client_ids]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def finalize(self, period: str, client_id: str) -> tuple[Timesheet, ApprovalToken]:
        """Close the period for a client and issue its approval token.

        The token is issued before the status changes, so a failure while
        signing leaves the period open.  Raises ``LedgerIntegrityError`` if
        the period's hash chain does not verify.
        """
        editor = self.settings.editor
        self.ledger.verify_chain(period)
        draft = self.timesheet(period, client_id)
        token = issue_token(
            draft.model_copy(update={"status": PeriodStatus.FINALIZED}),
            signing_key=self.settings.signing_key,
        )
        self.ledger.finalize(period, client_id, editor=editor)
        self.ledger.record_token(token, editor=editor)
        return self.timesheet(period, client_id), token

    def approve(self, period: str, client_id: str) -> Timesheet:
        self.ledger.approve(period, client_id, editor=self.settings.editor)
        return self.timesheet(period, client_id)

    def reopen(self, period: str, client_id: str) -> list[str]:
        return self.ledger.reopen(period, client_id, editor=self.settings.editor)

    def verify(self, timesheet: Timesheet, token: ApprovalToken) -> bool:
        """Verify a presented timesheet against a token.

        Raises ``FingerprintMismatch`` (or ``TokenRevoked``).
        """
        return verify_token(
            timesheet, token, revoked=self.ledger.is_token_revoked(token)
        )

    def verify_current(self, token: ApprovalToken) -> bool:
        """Verify a token against the ledger's current content.

        The period's hash chain is checked first; a tampered ledger raises
        ``LedgerIntegrityError``.
        """
        self.ledger.verify_chain(token.period)
        return self.verify(self.timesheet(token.period, token.client_id), token)
