"""Commit sources — where commit records come from.

Defines the ``CommitSource`` Protocol the engine consumes, a
``GitLogSource`` that shells out to ``git log``, and an in-memory
``StaticCommitSource`` for demos and tests.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from timesheet_gen.core.errors import CommitSourceError
from timesheet_gen.core.registry import RepositoryRecord
from timesheet_gen.models.commits import Commit

logger = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"%H{_FIELD_SEP}%aI{_FIELD_SEP}%an{_FIELD_SEP}%B{_RECORD_SEP}"


@runtime_checkable
class CommitSource(Protocol):
    """Protocol for commit feeds.

    Implementations return the commits of one repository (any order;
    the session builder imposes its own) and raise ``CommitSourceError``
    when the repository cannot be read.
    """

    def fetch(
        self,
        repository: RepositoryRecord,
        *,
        since: date | None = None,
        until: date | None = None,
    ) -> list[Commit]:
        ...


def _parse_timestamp(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def parse_git_log(repository_id: str, output: str) -> list[Commit]:
    """Parse ``git log`` output produced with ``_LOG_FORMAT``.

    Unparseable dates become ``None`` timestamps rather than errors;
    the session builder decides what to do with them.
    """
    commits: list[Commit] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue
        fields = record.split(_FIELD_SEP, 3)
        if len(fields) != 4:
            logger.warning("Skipping malformed git log record in %s.", repository_id)
            continue
        commit_id, raw_date, author, message = fields
        timestamp = _parse_timestamp(raw_date)
        if timestamp is None:
            logger.warning(
                "Unparseable date %r on commit %s in %s.", raw_date, commit_id, repository_id
            )
        commits.append(Commit(
            commit_id=commit_id.strip(),
            repository_id=repository_id,
            timestamp=timestamp,
            author=author,
            message=message.strip(),
        ))
    commits.reverse()  # git log is newest first
    return commits


class GitLogSource:
    """Reads commits with ``git -C <path> log --all``.

    Parameters
    ----------
    author:
        Only commits whose author name or email contains this string
        (``git --author`` with ``--fixed-strings``).
    timeout:
        Seconds before the ``git`` call is abandoned.
    """

    def __init__(self, author: str | None = None, *, timeout: float = 60.0) -> None:
        self._author = author
        self._timeout = timeout

    @property
    def author(self) -> str | None:
        return self._author

    def fetch(
        self,
        repository: RepositoryRecord,
        *,
        since: date | None = None,
        until: date | None = None,
    ) -> list[Commit]:
        if not repository.path:
            raise CommitSourceError(repository.repository_id, "no repository path configured")
        if shutil.which("git") is None:
            raise CommitSourceError(repository.repository_id, "git not found on PATH")

        cmd = ["git", "-C", repository.path, "log", "--all", f"--format={_LOG_FORMAT}"]
        if self._author:
            cmd += ["--fixed-strings", f"--author={self._author}"]
        if since is not None:
            cmd.append(f"--since={since.isoformat()}")
        if until is not None:
            cmd.append(f"--until={until.isoformat()}")

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self._timeout, check=False
            )
        except (subprocess.SubprocessError, OSError) as exc:
            raise CommitSourceError(repository.repository_id, str(exc)) from exc
        if result.returncode != 0:
            raise CommitSourceError(
                repository.repository_id,
                result.stderr.strip() or f"git exited with {result.returncode}",
            )

        commits = parse_git_log(repository.repository_id, result.stdout)
        logger.debug("Read %d commit(s) from %s.", len(commits), repository.path)
        return commits


class StaticCommitSource:
    """In-memory commit feed keyed by repository id.

    Repositories listed in *failing* raise ``CommitSourceError`` on fetch.
    """

    def __init__(
        self,
        commits: Mapping[str, Iterable[Commit]],
        *,
        failing: Iterable[str] = (),
    ) -> None:
        self._commits = {rid: list(cs) for rid, cs in commits.items()}
        self._failing = set(failing)

    def fetch(
        self,
        repository: RepositoryRecord,
        *,
        since: date | None = None,
        until: date | None = None,
    ) -> list[Commit]:
        rid = repository.repository_id
        if rid in self._failing:
            raise CommitSourceError(rid, "configured to fail")
        commits = self._commits.get(rid, [])
        return [
            c for c in commits
            if c.timestamp is None
            or (
                (since is None or c.timestamp.date() >= since)
                and (until is None or c.timestamp.date() <= until)
            )
        ]


def discover_repository(path: Path | str) -> tuple[Path, str]:
    """Return ``(toplevel, namespace)`` for the git repository at *path*.

    The namespace is the top-level directory name, used as the
    repository id.
    """
    try:
        result = subprocess.run(
            ["git", "-C", str(path), "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (subprocess.SubprocessError, OSError) as exc:
        raise CommitSourceError(str(path), str(exc)) from exc
    if result.returncode != 0:
        raise CommitSourceError(str(path), result.stderr.strip() or "not a git repository")
    toplevel = Path(result.stdout.strip())
    return toplevel, toplevel.name


def git_config_value(path: Path | str, key: str) -> str:
    """Read a ``git config`` value (e.g. ``user.name``); empty if unset."""
    try:
        result = subprocess.run(
            ["git", "-C", str(path), "config", key],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (subprocess.SubprocessError, OSError):
        return ""
    return result.stdout.strip() if result.returncode == 0 else ""
