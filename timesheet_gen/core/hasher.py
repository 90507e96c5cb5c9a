"""Canonical hashing helpers for session ids, ledger events and fingerprints.

Every digest in the project goes through ``canonical_json_bytes`` so that
the same content always hashes the same way, regardless of dict order or
how a timestamp happened to be formatted.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_address(obj: Any) -> str:
    """Content-address a JSON-serializable object as ``sha256:<hex>``."""
    return f"sha256:{sha256_hex(canonical_json_bytes(obj))}"


def canonical_instant(value: datetime) -> str:
    """UTC, microsecond precision, ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def duration_micros(value: timedelta) -> int:
    """Whole microseconds; exact for any ``timedelta``."""
    return value // timedelta(microseconds=1)


def compute_session_id(
    repository_id: str, start_time: datetime, commit_ids: list[str] | tuple[str, ...]
) -> str:
    """Deterministic session id from the session's identifying content."""
    payload = {
        "repository_id": repository_id,
        "start_time": canonical_instant(start_time),
        "commit_ids": list(commit_ids),
    }
    return f"ses-{sha256_hex(canonical_json_bytes(payload))[:16]}"


def compute_event_hash(event_dict: dict[str, Any]) -> str:
    """SHA-256 of a ledger event (excluding the event_hash field itself).

    This is the seal that makes each event tamper-evident.
    """
    d = {k: v for k, v in event_dict.items() if k != "event_hash"}
    return sha256_hex(canonical_json_bytes(d))
