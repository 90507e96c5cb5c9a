"""Approval tokens — tamper-evident fingerprints of finalized timesheets.

The fingerprint is SHA-256 over a canonical serialization of the
timesheet's billable content: sorted keys, compact separators, durations
as whole microseconds, dates as ISO strings.  Generation time, status,
entry ids and edit history are left out; they do not change what the
client is asked to approve.  The client, user and approver details on a
timesheet are presentation only: they come from the registry, not the
ledger, and editing them does not invalidate a token.

Tokens may additionally carry an Ed25519 signature of the fingerprint
(PyNaCl), made with the developer's signing key.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import nacl.signing
from nacl.exceptions import BadSignatureError

from timesheet_gen.core.errors import (
    FingerprintMismatch,
    InvalidTransition,
    TokenRevoked,
)
from timesheet_gen.core.hasher import (
    canonical_json_bytes,
    duration_micros,
    sha256_hex,
)
from timesheet_gen.models.ledger import PeriodStatus
from timesheet_gen.models.timesheet import ApprovalToken, Timesheet

logger = logging.getLogger(__name__)

_TOKEN_SCHEME = "tsg1"


def canonical_timesheet(timesheet: Timesheet) -> dict[str, Any]:
    """The billable content of a timesheet as plain JSON types.

    Client, user and approver details are not part of it.
    """
    entries = sorted(
        (
            {
                "date": e.date.isoformat(),
                "project_id": e.project_id,
                "duration_us": duration_micros(e.duration),
                "source": e.source.value,
            }
            for e in timesheet.entries
            if not e.removed
        ),
        key=lambda d: (d["date"], d["project_id"], d["duration_us"], d["source"]),
    )
    return {
        "period": timesheet.period,
        "client_id": timesheet.client_id,
        "entries": entries,
        "projects": [
            {"project_id": p.project_id, "duration_us": duration_micros(p.duration)}
            for p in sorted(timesheet.projects, key=lambda p: p.project_id)
        ],
        "total_duration_us": duration_micros(timesheet.total_duration),
    }


def canonical_timesheet_bytes(timesheet: Timesheet) -> bytes:
    return canonical_json_bytes(canonical_timesheet(timesheet))


def fingerprint(timesheet: Timesheet) -> str:
    """Return ``sha256:<hex>`` of the canonical timesheet bytes."""
    return f"sha256:{sha256_hex(canonical_timesheet_bytes(timesheet))}"


def generate_signing_key() -> tuple[str, str]:
    """Return a fresh ``(private_key_hex, public_key_hex)`` Ed25519 pair."""
    sk = nacl.signing.SigningKey.generate()
    return sk.encode().hex(), sk.verify_key.encode().hex()


def issue_token(
    timesheet: Timesheet,
    *,
    issued_at: datetime | None = None,
    signing_key: str = "",
) -> ApprovalToken:
    """Issue an approval token for a finalized timesheet.

    Raises ``InvalidTransition`` for a timesheet that is not finalized.
    """
    if timesheet.status != PeriodStatus.FINALIZED:
        raise InvalidTransition(
            f"Only finalized timesheets get approval tokens; "
            f"{timesheet.period}/{timesheet.client_id} is {timesheet.status.value}"
        )
    digest = fingerprint(timesheet)
    signature = public_key = ""
    if signing_key:
        sk = nacl.signing.SigningKey(bytes.fromhex(signing_key))
        signature = sk.sign(digest.encode("ascii")).signature.hex()
        public_key = sk.verify_key.encode().hex()

    token = ApprovalToken(
        timesheet_fingerprint=digest,
        period=timesheet.period,
        client_id=timesheet.client_id,
        issued_at=issued_at or datetime.now(timezone.utc),
        signature=signature,
        public_key=public_key,
    )
    logger.info(
        "Issued token %s for %s/%s (%s).",
        token.token_id, token.period, token.client_id, digest,
    )
    return token


def verify_signature(token: ApprovalToken) -> bool:
    """Check the token's Ed25519 signature; unsigned tokens return False."""
    if not token.signature or not token.public_key:
        return False
    try:
        vk = nacl.signing.VerifyKey(bytes.fromhex(token.public_key))
        vk.verify(token.timesheet_fingerprint.encode("ascii"), bytes.fromhex(token.signature))
    except (BadSignatureError, ValueError):
        return False
    return True


def verify_token(
    timesheet: Timesheet, token: ApprovalToken, *, revoked: bool = False
) -> bool:
    """Recompute the fingerprint of a presented timesheet and compare.

    Returns ``True`` on success.  Raises ``TokenRevoked`` for a revoked
    token and ``FingerprintMismatch`` for any other mismatch, including
    a signature that does not verify.
    """
    if revoked:
        raise TokenRevoked(
            f"Token {token.token_id} for {token.period}/{token.client_id} "
            f"was revoked when the period was reopened"
        )
    if (timesheet.period, timesheet.client_id) != (token.period, token.client_id):
        raise FingerprintMismatch(
            f"Token {token.token_id} is for {token.period}/{token.client_id}, "
            f"not {timesheet.period}/{timesheet.client_id}"
        )
    actual = fingerprint(timesheet)
    if actual != token.timesheet_fingerprint:
        raise FingerprintMismatch(
            f"Timesheet {timesheet.period}/{timesheet.client_id} does not match "
            f"token {token.token_id}: expected {token.timesheet_fingerprint}, "
            f"got {actual}"
        )
    if token.signature and not verify_signature(token):
        raise FingerprintMismatch(f"Token {token.token_id} has an invalid signature")
    return True


def token_payload(token: ApprovalToken) -> str:
    """Compact string handed to a QR renderer.

    ``tsg1:<period>:<client_id>:<fingerprint hex>[:<signature hex>]``
    """
    digest = token.timesheet_fingerprint.removeprefix("sha256:")
    parts = [_TOKEN_SCHEME, token.period, token.client_id, digest]
    if token.signature:
        parts.append(token.signature)
    return ":".join(parts)
