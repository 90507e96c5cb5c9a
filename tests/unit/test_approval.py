"""Tests for fingerprints and approval tokens."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from timesheet_gen.core.aggregator import aggregate
from timesheet_gen.core.approval import (
    canonical_timesheet,
    fingerprint,
    generate_signing_key,
    issue_token,
    token_payload,
    verify_signature,
    verify_token,
)
from timesheet_gen.core.errors import FingerprintMismatch, InvalidTransition, TokenRevoked
from timesheet_gen.models.ledger import EntrySource, PeriodStatus, TimeEntry
from timesheet_gen.models.timesheet import ClientDetails, PersonDetails

PERIOD = "2021-10"
GENERATED = datetime(2021, 10, 31, 18, 0, tzinfo=timezone.utc)


def _entry(entry_id: str, day: int, minutes: int = 60, project: str = "shop") -> TimeEntry:
    return TimeEntry(
        entry_id=entry_id,
        period=PERIOD,
        client_id="acme",
        project_id=project,
        date=date(2021, 10, day),
        duration=timedelta(minutes=minutes),
        source=EntrySource.DERIVED,
    )


def _sheet(*entries: TimeEntry, status: PeriodStatus = PeriodStatus.FINALIZED, **kwargs):
    kwargs.setdefault("generated_at", GENERATED)
    return aggregate(list(entries), PERIOD, "acme", status=status, **kwargs)


class TestFingerprint:
    def test_format(self):
        assert fingerprint(_sheet(_entry("e1", 4))).startswith("sha256:")

    def test_deterministic(self):
        assert fingerprint(_sheet(_entry("e1", 4))) == fingerprint(_sheet(_entry("e1", 4)))

    def test_changes_with_duration(self):
        assert fingerprint(_sheet(_entry("e1", 4, 60))) != fingerprint(_sheet(_entry("e1", 4, 61)))

    def test_changes_with_project(self):
        assert fingerprint(_sheet(_entry("e1", 4))) != fingerprint(_sheet(_entry("e1", 4, project="api")))

    def test_ignores_volatile_fields(self):
        a = _sheet(_entry("e1", 4), generated_at=GENERATED)
        b = _sheet(
            _entry("other-id", 4),
            generated_at=GENERATED + timedelta(days=3),
            status=PeriodStatus.APPROVED,
        )
        assert fingerprint(a) == fingerprint(b)

    def test_client_and_approver_details_are_presentation_only(self):
        a = _sheet(_entry("e1", 4), client=ClientDetails(client_id="acme", name="ACME Corp"))
        b = _sheet(
            _entry("e1", 4),
            client=ClientDetails(client_id="acme", name="ACME Corp", address="1 Desert Road"),
            approver=PersonDetails(name="Wile Coyote", email="wile@acme.test"),
        )
        assert fingerprint(a) == fingerprint(b)
        assert "client" not in canonical_timesheet(b)

    def test_canonical_form_uses_microseconds(self):
        canonical = canonical_timesheet(_sheet(_entry("e1", 4, 90)))
        assert canonical["total_duration_us"] == 90 * 60 * 1_000_000
        assert canonical["entries"][0]["date"] == "2021-10-04"


class TestTokens:
    def test_issue_requires_finalized(self):
        with pytest.raises(InvalidTransition):
            issue_token(_sheet(_entry("e1", 4), status=PeriodStatus.DRAFT))

    def test_verify_roundtrip(self):
        sheet = _sheet(_entry("e1", 4))
        token = issue_token(sheet, issued_at=GENERATED)
        assert token.token_id.startswith("tok-")
        assert token.issued_at == GENERATED
        assert verify_token(sheet, token) is True

    def test_any_change_fails_verification(self):
        token = issue_token(_sheet(_entry("e1", 4)))
        with pytest.raises(FingerprintMismatch):
            verify_token(_sheet(_entry("e1", 4, 59)), token)

    def test_revoked_token_fails(self):
        sheet = _sheet(_entry("e1", 4))
        token = issue_token(sheet)
        with pytest.raises(TokenRevoked):
            verify_token(sheet, token, revoked=True)

    def test_wrong_client_fails(self):
        sheet = _sheet(_entry("e1", 4))
        token = issue_token(sheet).model_copy(update={"client_id": "globex"})
        with pytest.raises(FingerprintMismatch, match="globex"):
            verify_token(sheet, token)

    def test_payload(self):
        token = issue_token(_sheet(_entry("e1", 4)))
        payload = token_payload(token)
        assert payload.startswith(f"tsg1:{PERIOD}:acme:")
        assert "sha256" not in payload


class TestSignedTokens:
    def test_signed_token_verifies(self):
        seed, public_key = generate_signing_key()
        sheet = _sheet(_entry("e1", 4))
        token = issue_token(sheet, signing_key=seed)
        assert token.public_key == public_key
        assert verify_signature(token)
        assert verify_token(sheet, token)
        assert token_payload(token).endswith(token.signature)

    def test_forged_signature_rejected(self):
        seed, _ = generate_signing_key()
        sheet = _sheet(_entry("e1", 4))
        token = issue_token(sheet, signing_key=seed)
        forged = token.model_copy(update={"signature": "00" * 64})
        assert not verify_signature(forged)
        with pytest.raises(FingerprintMismatch, match="signature"):
            verify_token(sheet, forged)

    def test_unsigned_token_has_no_signature(self):
        assert not verify_signature(issue_token(_sheet(_entry("e1", 4))))
