"""
auth/otp.py -- One-time passcode ledger.

Each email address owns at most one live passcode at a time (UNIQUE index on
email). Issuing a new code, for any purpose, replaces the previous one in a
single transaction, so an older code stops working the moment a new one is
issued.

Expiry is enforced in two places:
  purge_expired()  -- run periodically by the API lifespan task.
  verify()         -- compares the clock against expires_at on every call and
                      fails closed even if the purge has never run.

Codes are compared with hmac.compare_digest. They are never logged here.

Layer rule: imports only from core/ and auth/.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import time
from collections.abc import Callable

from sqlalchemy import Column, Float, Integer, MetaData, String, Table
from sqlalchemy.engine import Engine

from auth.models import OneTimePasscode, OtpPurpose
from auth.store import normalize_email
from core.errors import OtpExpiredError, OtpMismatchError, OtpNotFoundError

logger = logging.getLogger("storefront.auth.otp")

DEFAULT_TTL_SECONDS = 10 * 60

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_otps = Table(
    "otp_codes",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("code", String(6), nullable=False),
    Column("purpose", String(20), nullable=False),
    Column("expires_at", Float, nullable=False),  # epoch seconds
    Column("created_at", Float, nullable=False),
)


def generate_code() -> str:
    """Six ASCII digits, uniform over 100000..999999, from the OS CSPRNG."""
    return str(secrets.randbelow(900000) + 100000)


class OtpLedger:
    """Repository of one-time passcodes keyed by normalized email.

    Usage:
        ledger = OtpLedger(engine, ttl_seconds=600)
        code = ledger.issue("ada@example.com", OtpPurpose.VERIFY_EMAIL)
        ledger.verify("ada@example.com", code, OtpPurpose.VERIFY_EMAIL)

    clock is injectable so tests can move time forward without sleeping.
    """

    def __init__(
        self,
        engine: Engine,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.engine = engine
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        _metadata.create_all(self.engine)

    def issue(self, email: str, purpose: OtpPurpose) -> str:
        """Create a fresh code for email, replacing any previous one. Returns the code.

        The new code always differs from the one it replaces.
        """
        email = normalize_email(email)
        previous = self.get(email)
        code = generate_code()
        while previous is not None and code == previous.code:
            code = generate_code()
        now = self.clock()
        with self.engine.connect() as conn:
            conn.execute(_otps.delete().where(_otps.c.email == email))
            conn.execute(
                _otps.insert().values(
                    email=email,
                    code=code,
                    purpose=OtpPurpose(purpose).value,
                    expires_at=now + self.ttl_seconds,
                    created_at=now,
                )
            )
            conn.commit()
        logger.info("Issued %s passcode for %s", OtpPurpose(purpose).value, email)
        return code

    def get(self, email: str) -> OneTimePasscode | None:
        with self.engine.connect() as conn:
            row = conn.execute(_otps.select().where(_otps.c.email == normalize_email(email))).fetchone()
        return _row_to_otp(row) if row is not None else None

    def verify(self, email: str, code: str, purpose: OtpPurpose, consume: bool = True) -> None:
        """Check code for email and purpose. Returns None on success.

        Raises:
            OtpNotFoundError:  no live code, or the live code was issued for a
                               different purpose, or a concurrent request
                               consumed it first.
            OtpExpiredError:   the code is past expires_at. The row is deleted.
            OtpMismatchError:  wrong code. The row is kept so the owner can
                               still use the right one.

        With consume=True a successful check deletes the row, so a code can be
        used at most once.
        """
        email = normalize_email(email)
        otp = self.get(email)
        if otp is None or otp.purpose != OtpPurpose(purpose):
            raise OtpNotFoundError()
        if otp.is_expired(self.clock()):
            self._delete(email, otp.code)
            raise OtpExpiredError()
        if not hmac.compare_digest(otp.code.encode(), (code or "").strip().encode()):
            raise OtpMismatchError()
        if consume and not self._delete(email, otp.code):
            raise OtpNotFoundError()

    def discard(self, email: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_otps.delete().where(_otps.c.email == normalize_email(email)))
            conn.commit()
        return result.rowcount > 0

    def purge_expired(self) -> int:
        """Delete every expired code. Returns the number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_otps.delete().where(_otps.c.expires_at <= self.clock()))
            conn.commit()
        if result.rowcount:
            logger.info("Purged %d expired passcode(s)", result.rowcount)
        return result.rowcount

    def _delete(self, email: str, code: str) -> bool:
        # Keyed on the code as well, so a replacement issued in between survives.
        with self.engine.connect() as conn:
            result = conn.execute(_otps.delete().where((_otps.c.email == email) & (_otps.c.code == code)))
            conn.commit()
        return result.rowcount > 0


def _row_to_otp(row) -> OneTimePasscode:
    return OneTimePasscode(
        email=row.email,
        code=row.code,
        purpose=OtpPurpose(row.purpose),
        expires_at=row.expires_at,
        created_at=row.created_at,
    )
