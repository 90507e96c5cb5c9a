"""Error taxonomy.

Per-repository errors (``InvalidTimeRange``, ``UnconfiguredRepository``,
``CommitSourceError``) are isolated by the engine and collected into a
``RunReport``.  Ledger-state and verification errors always reach the
caller.
"""

from __future__ import annotations


class TimesheetError(RuntimeError):
    """Base class for every error the engine raises on purpose."""


class InvalidTimeRange(TimesheetError):
    """A commit timestamp is missing or unparseable."""

    def __init__(self, repository_id: str, commit_id: str, detail: str = "") -> None:
        self.repository_id = repository_id
        self.commit_id = commit_id
        msg = f"Commit {commit_id} in {repository_id} has no usable timestamp"
        super().__init__(f"{msg}: {detail}" if detail else msg)


class UnconfiguredRepository(TimesheetError):
    """No usable client/project mapping exists for a repository."""

    def __init__(self, repository_id: str, reason: str = "no mapping configured") -> None:
        self.repository_id = repository_id
        self.reason = reason
        super().__init__(f"Repository {repository_id!r} is not configured: {reason}")


class CommitSourceError(TimesheetError):
    """Fetching commits for a repository failed."""

    def __init__(self, repository_id: str, detail: str) -> None:
        self.repository_id = repository_id
        super().__init__(f"Could not read commits for {repository_id!r}: {detail}")


class EntryNotFound(TimesheetError):
    def __init__(self, period: str, entry_id: str) -> None:
        self.period = period
        self.entry_id = entry_id
        super().__init__(f"No entry {entry_id!r} in period {period}")


class PeriodClosed(TimesheetError):
    """Mutation attempted on a finalized or approved period."""

    def __init__(self, period: str, client_id: str, status: str) -> None:
        self.period = period
        self.client_id = client_id
        self.status = status
        super().__init__(
            f"Period {period} for client {client_id!r} is {status}; "
            f"reopen it before making changes"
        )


class InvalidTransition(TimesheetError):
    """Requested status change is not allowed from the current status."""


class FingerprintMismatch(TimesheetError):
    """Presented timesheet does not match the approved fingerprint."""


class TokenRevoked(FingerprintMismatch):
    """Token was revoked when its period was reopened."""


class LedgerIntegrityError(TimesheetError):
    """Raised when the hash chain is broken."""
