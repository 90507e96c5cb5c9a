"""Session builder — folds a repository's commits into work sessions.

Commits are walked in ``(timestamp, original index)`` order.  A commit
joins the open session unless the idle gap since the previous commit
exceeds the policy's threshold, or joining would stretch the session
past the maximum length.  Short sessions (single commits in particular)
are padded to the minimum duration so no session bills zero time.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from timesheet_gen.core.errors import InvalidTimeRange
from timesheet_gen.core.hasher import compute_session_id
from timesheet_gen.models.commits import Commit, SessionPolicy, WorkSession

logger = logging.getLogger(__name__)


def order_commits(commits: Sequence[Commit]) -> list[Commit]:
    """Total order over commits: timestamp, then position in the feed.

    Raises ``InvalidTimeRange`` on the first commit without a timestamp.
    """
    for commit in commits:
        if commit.timestamp is None:
            raise InvalidTimeRange(commit.repository_id, commit.commit_id)
    indexed = sorted(enumerate(commits), key=lambda pair: (pair[1].timestamp, pair[0]))
    return [commit for _, commit in indexed]


def _close(
    repository_id: str,
    start: datetime,
    last: datetime,
    commit_ids: list[str],
    policy: SessionPolicy,
) -> WorkSession:
    end = max(last, start + policy.min_session_duration)
    end = min(end, start + policy.max_session_length)
    return WorkSession(
        session_id=compute_session_id(repository_id, start, commit_ids),
        repository_id=repository_id,
        start_time=start,
        end_time=end,
        commit_ids=tuple(commit_ids),
    )


def build_sessions(
    commits: Sequence[Commit], policy: SessionPolicy | None = None
) -> list[WorkSession]:
    """Build work sessions for the commits of a single repository."""
    policy = policy or SessionPolicy()
    if not commits:
        return []

    repository_ids = {c.repository_id for c in commits}
    if len(repository_ids) != 1:
        raise ValueError(
            f"build_sessions expects one repository, got {sorted(repository_ids)}"
        )
    repository_id = next(iter(repository_ids))

    ordered = order_commits(commits)
    sessions: list[WorkSession] = []

    start = last = ordered[0].timestamp
    commit_ids = [ordered[0].commit_id]

    for commit in ordered[1:]:
        ts = commit.timestamp
        idle = ts - last > policy.idle_threshold
        too_long = ts - start > policy.max_session_length
        if idle or too_long:
            sessions.append(_close(repository_id, start, last, commit_ids, policy))
            start = ts
            commit_ids = []
        last = ts
        commit_ids.append(commit.commit_id)

    sessions.append(_close(repository_id, start, last, commit_ids, policy))

    logger.debug(
        "Built %d session(s) from %d commit(s) in %s.",
        len(sessions), len(ordered), repository_id,
    )
    return sessions
