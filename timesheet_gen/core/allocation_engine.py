"""Allocation engine — splits session time across (client, project) pairs.

Rules:
- One project configured: the whole session goes to it.
- Otherwise each commit counts for the project tagged in its message,
  or for the repository's default project if untagged, and the session
  splits in proportion to those counts.

Allocation never looks at the clock or at anything random, so the same
session and configuration always give the same allocations.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Protocol, runtime_checkable

from timesheet_gen.core.tag_parser import parse_project_tag
from timesheet_gen.models.allocation import (
    Allocation,
    DerivedEntry,
    RepositoryMapping,
    SessionAllocation,
)
from timesheet_gen.models.commits import Commit, WorkSession

logger = logging.getLogger(__name__)


@runtime_checkable
class MappingProvider(Protocol):
    """Anything that resolves a repository id to its mapping.

    Must raise ``UnconfiguredRepository`` when no usable mapping exists.
    """

    def mapping_for(self, repository_id: str) -> RepositoryMapping:
        ...


def split_fractions(counts: dict[str, int]) -> list[tuple[str, float]]:
    """Proportional fractions ordered by project id, summing to exactly 1.0.

    The last fraction absorbs floating-point rounding.
    """
    if not counts or any(n <= 0 for n in counts.values()):
        raise ValueError(f"counts must be positive, got {counts}")
    total = sum(counts.values())
    ordered = sorted(counts)
    fractions = [(pid, counts[pid] / total) for pid in ordered[:-1]]
    remainder = 1.0 - math.fsum(f for _, f in fractions)
    fractions.append((ordered[-1], remainder))
    return fractions


class AllocationEngine:
    """Produces ``SessionAllocation``s from sessions and repository mappings.

    Parameters
    ----------
    mappings:
        Resolves repository ids to their client/project mapping.
    """

    def __init__(self, mappings: MappingProvider) -> None:
        self._mappings = mappings

    def allocate(
        self, session: WorkSession, commits: Iterable[Commit]
    ) -> SessionAllocation:
        """Allocate one session.

        *commits* must include every commit named in ``session.commit_ids``;
        extra commits are ignored.

        Raises ``UnconfiguredRepository`` if the repository has no mapping.
        """
        mapping = self._mappings.mapping_for(session.repository_id)
        by_id = {c.commit_id: c for c in commits}

        counts: Counter[str] = Counter()
        if len(mapping.project_ids) == 1:
            counts[mapping.default_project_id] = 1
        else:
            for commit_id in session.commit_ids:
                commit = by_id.get(commit_id)
                if commit is None:
                    raise ValueError(
                        f"Commit {commit_id} of session {session.session_id} "
                        f"was not supplied"
                    )
                project = parse_project_tag(commit.message, mapping)
                counts[project or mapping.default_project_id] += 1

        allocations = tuple(
            Allocation(
                session_id=session.session_id,
                client_id=mapping.client_id,
                project_id=project_id,
                fraction=fraction,
            )
            for project_id, fraction in split_fractions(dict(counts))
        )
        return SessionAllocation(session=session, allocations=allocations)

    def allocate_all(
        self, sessions: Sequence[WorkSession], commits: Sequence[Commit]
    ) -> list[SessionAllocation]:
        return [self.allocate(session, commits) for session in sessions]


def to_derived_entries(
    session_allocations: Iterable[SessionAllocation],
) -> list[DerivedEntry]:
    """Roll allocations up to one entry per (date, client, project).

    The date is the session's start date in the commit's own offset.
    """
    totals: dict[tuple[date, str, str], timedelta] = {}
    for sa in session_allocations:
        day = sa.session.start_time.date()
        for allocation in sa.allocations:
            key = (day, allocation.client_id, allocation.project_id)
            share = sa.session.duration * allocation.fraction
            totals[key] = totals.get(key, timedelta(0)) + share

    return [
        DerivedEntry(client_id=client_id, project_id=project_id, date=day, duration=duration)
        for (day, client_id, project_id), duration in sorted(totals.items())
    ]
