"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and TIMESHEET_* environment variables.
"""

from __future__ import annotations

import getpass
from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from timesheet_gen.models.commits import SessionPolicy


def _default_editor() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class Settings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export TIMESHEET_LOG_LEVEL=DEBUG
        export TIMESHEET_IDLE_THRESHOLD_MINUTES=90
        export TIMESHEET_LEDGER_PATH=/data/ledger.db

    Or via .env file::

        TIMESHEET_TAG_PREFIX=+
        TIMESHEET_SIGNING_KEY=<hex seed>
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TIMESHEET_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "WARNING"

    # Storage paths
    data_dir: Path = Path(".timesheet-gen")
    ledger_path: Path | None = None
    registry_path: Path | None = None

    # Session building
    idle_threshold_minutes: int = Field(120, gt=0)
    max_session_minutes: int = Field(480, gt=0)
    min_session_minutes: int = Field(30, ge=0)

    # Allocation
    tag_prefix: str = "#"

    # Ledger audit trail and token signing
    editor: str = Field(default_factory=_default_editor)
    signing_key: str = ""  # hex Ed25519 seed; tokens are unsigned when empty

    @property
    def resolved_ledger_path(self) -> Path:
        return self.ledger_path or self.data_dir / "ledger.db"

    @property
    def resolved_registry_path(self) -> Path:
        return self.registry_path or self.data_dir / "registry.json"

    def session_policy(self) -> SessionPolicy:
        return SessionPolicy(
            idle_threshold=timedelta(minutes=self.idle_threshold_minutes),
            max_session_length=timedelta(minutes=self.max_session_minutes),
            min_session_duration=timedelta(minutes=self.min_session_minutes),
        )
