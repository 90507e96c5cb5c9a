"""Commit and work-session models.

Commits are sourced externally and never mutated.  Work sessions are
built once from a repository's commits and never mutated either.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class Commit(BaseModel):
    """A single commit as supplied by a commit source.

    ``timestamp`` is ``None`` when the source could not parse the
    commit date; the session builder rejects such repositories.
    """

    model_config = ConfigDict(frozen=True)

    commit_id: str
    repository_id: str
    timestamp: datetime | None
    author: str = ""
    message: str = ""

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SessionPolicy(BaseModel):
    """Thresholds used to fold commits into sessions."""

    model_config = ConfigDict(frozen=True)

    idle_threshold: timedelta = timedelta(hours=2)
    max_session_length: timedelta = timedelta(hours=8)
    min_session_duration: timedelta = timedelta(minutes=30)

    @model_validator(mode="after")
    def _check_thresholds(self) -> SessionPolicy:
        if self.idle_threshold <= timedelta(0):
            raise ValueError("idle_threshold must be positive")
        if self.max_session_length <= timedelta(0):
            raise ValueError("max_session_length must be positive")
        if self.min_session_duration < timedelta(0):
            raise ValueError("min_session_duration must not be negative")
        return self


class WorkSession(BaseModel):
    """A contiguous block of commit activity in one repository."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    repository_id: str
    start_time: datetime
    end_time: datetime
    commit_ids: tuple[str, ...]

    @model_validator(mode="after")
    def _check_range(self) -> WorkSession:
        if self.end_time < self.start_time:
            raise ValueError(
                f"Session {self.session_id} ends before it starts "
                f"({self.end_time.isoformat()} < {self.start_time.isoformat()})"
            )
        return self

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time
