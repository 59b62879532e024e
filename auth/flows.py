"""
auth/flows.py -- Registration, verification, login and password lifecycle.

A registration moves through:

    Registered (verified=False) -> passcode issued -> Verified -> session active

AuthFlow is the only code that drives those transitions. It composes the
credential store, the passcode ledger, the session issuer and a Mailer, and
raises core.errors types that the API layer maps onto HTTP responses.

Delivery failures:
  register()         logs DeliveryError and keeps the new account. The owner
                     can ask for another code via resend_otp().
  resend_otp()       and forgot_password() let DeliveryError propagate (503),
                     because sending the email is the whole point of the call.

Layer rule: imports only from core/ and auth/. The mailer is injected.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from auth.models import OtpPurpose, User
from auth.otp import OtpLedger
from auth.store import UserStore, check_password_strength
from auth.tokens import SessionIssuer
from core.errors import DeliveryError, NotFoundError, UnauthenticatedError, UnverifiedError, ValidationError

if TYPE_CHECKING:
    from notify.mailer import Mailer

logger = logging.getLogger("storefront.auth")


class AuthFlow:
    def __init__(self, users: UserStore, otps: OtpLedger, sessions: SessionIssuer, mailer: Mailer) -> None:
        self.users = users
        self.otps = otps
        self.sessions = sessions
        self.mailer = mailer

    @property
    def _expiry_minutes(self) -> int:
        return max(1, self.otps.ttl_seconds // 60)

    def _dispatch(self, user: User, code: str, purpose: OtpPurpose) -> None:
        self.mailer.send_otp(user.email, user.name, code, purpose.value, self._expiry_minutes)

    # ------------------------------------------------------------------
    # Registration and email verification
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, name: str, phone: str | None = None) -> User:
        """Create an unverified account and email it a verification code."""
        user = self.users.create_user(email, password, name, phone=phone)
        code = self.otps.issue(user.email, OtpPurpose.VERIFY_EMAIL)
        try:
            self._dispatch(user, code, OtpPurpose.VERIFY_EMAIL)
        except DeliveryError:
            logger.warning("Verification email to %s failed; account kept (user_id=%s)", user.email, user.id)
        logger.info("Registered user_id=%s", user.id)
        return user

    def verify_otp(self, email: str, code: str) -> tuple[User, str]:
        """Confirm a verification code. Marks the account verified and opens a session."""
        self.otps.verify(email, code, OtpPurpose.VERIFY_EMAIL)
        user = self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("User not found.")
        self.users.mark_verified(user.id)
        user = self.users.get_by_id(user.id)
        logger.info("Verified email for user_id=%s", user.id)
        return user, self.sessions.issue(user)

    def resend_otp(self, email: str) -> None:
        """Issue a replacement verification code. The previous code stops working."""
        user = self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("User not found.")
        if user.verified:
            raise ValidationError("Email is already verified.", code="already_verified")
        code = self.otps.issue(user.email, OtpPurpose.VERIFY_EMAIL)
        self._dispatch(user, code, OtpPurpose.VERIFY_EMAIL)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email: str) -> None:
        """Email a reset code. Unknown addresses are accepted silently."""
        user = self.users.get_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return
        code = self.otps.issue(user.email, OtpPurpose.RESET_PASSWORD)
        self._dispatch(user, code, OtpPurpose.RESET_PASSWORD)

    def verify_forgot_password_otp(self, email: str, code: str) -> None:
        """Check a reset code without consuming it."""
        self.otps.verify(email, code, OtpPurpose.RESET_PASSWORD, consume=False)

    def reset_password(self, email: str, code: str, new_password: str) -> User:
        """Consume a reset code and replace the password hash."""
        check_password_strength(new_password)
        self.otps.verify(email, code, OtpPurpose.RESET_PASSWORD)
        user = self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("User not found.")
        self.users.update_password(user.id, new_password)
        logger.info("Password reset for user_id=%s", user.id)
        return user

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> tuple[User, str]:
        """Check credentials and open a session.

        The password is checked before the verified flag, and bcrypt runs for
        unknown emails too, so neither the status code nor the timing tells an
        outsider whether an address is registered.
        """
        user = self.users.get_by_email(email)
        if not self.users.verify_password(user, password):
            raise UnauthenticatedError("Invalid credentials.", code="bad_credentials")
        if not user.verified:
            raise UnverifiedError("Please verify your email before logging in.")
        logger.info("Login user_id=%s", user.id)
        return user, self.sessions.issue(user)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> tuple[User, str]:
        """Replace the password after re-checking the current one. Returns a fresh session."""
        user = self.users.get_by_id(user_id)
        if user is None:
            raise UnauthenticatedError("Account no longer exists.")
        if not self.users.verify_password(user, current_password):
            raise UnauthenticatedError("Current password is incorrect.", code="bad_credentials")
        self.users.update_password(user.id, new_password)
        logger.info("Password changed for user_id=%s", user.id)
        return user, self.sessions.issue(user)

    def refresh(self, user: User) -> str:
        return self.sessions.issue(user)
