"""Commit sources consumed by the engine.

Modules
-------
git_log
    ``CommitSource`` Protocol, ``GitLogSource`` (reads ``git log``) and
    ``StaticCommitSource`` (in-memory feed).
"""

from timesheet_gen.sources.git_log import (
    CommitSource,
    GitLogSource,
    StaticCommitSource,
    discover_repository,
    parse_git_log,
)

__all__ = [
    "CommitSource",
    "GitLogSource",
    "StaticCommitSource",
    "discover_repository",
    "parse_git_log",
]
