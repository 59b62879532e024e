"""Unit tests for auth/otp.py -- OtpLedger issue / verify / purge.

Covers:
- Codes are six digits and at most one live code exists per email
- A reissued code invalidates the earlier one
- verify() failure modes: not found, wrong purpose, expired, mismatch
- consume=False keeps the code; consume=True makes it single-use
- purge_expired() removes only expired rows
"""

import pytest

from auth.models import OtpPurpose
from auth.otp import OtpLedger, generate_code
from core.db import create_db_engine
from core.errors import OtpExpiredError, OtpMismatchError, OtpNotFoundError


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    return OtpLedger(create_db_engine("sqlite:///:memory:"), ttl_seconds=600, clock=clock)


def _other_code(code: str) -> str:
    return "100000" if code != "100000" else "100001"


def test_generate_code_is_six_digits():
    for _ in range(50):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_issue_stores_normalized_email_and_expiry(ledger, clock):
    code = ledger.issue("  Ada@Example.COM ", OtpPurpose.VERIFY_EMAIL)
    otp = ledger.get("ada@example.com")
    assert otp is not None
    assert otp.code == code
    assert otp.purpose == OtpPurpose.VERIFY_EMAIL
    assert otp.expires_at == clock.now + 600


def test_verify_consumes_code(ledger):
    code = ledger.issue("ada@example.com", OtpPurpose.VERIFY_EMAIL)
    ledger.verify("ada@example.com", code, OtpPurpose.VERIFY_EMAIL)
    assert ledger.get("ada@example.com") is None
    with pytest.raises(OtpNotFoundError):
        ledger.verify("ada@example.com", code, OtpPurpose.VERIFY_EMAIL)


def test_reissue_replaces_previous_code(ledger):
    first = ledger.issue("ada@example.com", OtpPurpose.VERIFY_EMAIL)
    second = ledger.issue("ada@example.com", OtpPurpose.VERIFY_EMAIL)
    assert first != second
    with pytest.raises(OtpMismatchError):
        ledger.verify("ada@example.com", first, OtpPurpose.VERIFY_EMAIL)
    ledger.verify("ada@example.com", second, OtpPurpose.VERIFY_EMAIL)


def test_wrong_purpose_is_not_found(ledger):
    code = ledger.issue("ada@example.com", OtpPurpose.VERIFY_EMAIL)
    with pytest.raises(OtpNotFoundError):
        ledger.verify("ada@example.com", code, OtpPurpose.RESET_PASSWORD)


def test_mismatch_keeps_the_live_code(ledger):
    code = ledger.issue("ada@example.com", OtpPurpose.RESET_PASSWORD)
    with pytest.raises(OtpMismatchError):
        ledger.verify("ada@example.com", _other_code(code), OtpPurpose.RESET_PASSWORD)
    ledger.verify("ada@example.com", code, OtpPurpose.RESET_PASSWORD)


def test_expired_code_is_rejected_and_deleted(ledger, clock):
    code = ledger.issue("ada@example.com", OtpPurpose.VERIFY_EMAIL)
    clock.advance(600)
    with pytest.raises(OtpExpiredError):
        ledger.verify("ada@example.com", code, OtpPurpose.VERIFY_EMAIL)
    assert ledger.get("ada@example.com") is None


def test_verify_without_consume_leaves_code(ledger):
    code = ledger.issue("ada@example.com", OtpPurpose.RESET_PASSWORD)
    ledger.verify("ada@example.com", code, OtpPurpose.RESET_PASSWORD, consume=False)
    ledger.verify("ada@example.com", code, OtpPurpose.RESET_PASSWORD)
    assert ledger.get("ada@example.com") is None


def test_unknown_email_is_not_found(ledger):
    with pytest.raises(OtpNotFoundError):
        ledger.verify("nobody@example.com", "123456", OtpPurpose.VERIFY_EMAIL)


def test_purge_expired_removes_only_expired(ledger, clock):
    ledger.issue("old@example.com", OtpPurpose.VERIFY_EMAIL)
    clock.advance(400)
    ledger.issue("new@example.com", OtpPurpose.VERIFY_EMAIL)
    clock.advance(300)

    assert ledger.purge_expired() == 1
    assert ledger.get("old@example.com") is None
    assert ledger.get("new@example.com") is not None


def test_discard(ledger):
    ledger.issue("ada@example.com", OtpPurpose.VERIFY_EMAIL)
    assert ledger.discard("ada@example.com") is True
    assert ledger.discard("ada@example.com") is False


def test_reissue_never_repeats_the_live_code(ledger, monkeypatch):
    codes = iter(["424242", "424242", "424242", "515151"])
    monkeypatch.setattr("auth.otp.generate_code", lambda: next(codes))
    assert ledger.issue("ada@example.com", OtpPurpose.VERIFY_EMAIL) == "424242"
    assert ledger.issue("ada@example.com", OtpPurpose.RESET_PASSWORD) == "515151"
    assert ledger.get("ada@example.com").code == "515151"
