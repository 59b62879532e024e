"""
auth/tokens.py -- Session issuance: signed JWTs and the session cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id as string), user_id, email, role, iat and exp. Verification
       needs no database lookup. The role embedded at issuance is trusted for
       the token's lifetime, so a role change takes effect on the next login
       or /auth/refresh-token.

  Revocation: none. Logout clears the cookie on the client; a copied token
       stays valid until exp. Keep SESSION_EXPIRE_SECONDS short enough for
       that to be acceptable.

  Cookie: httponly (no JS access), path "/", SameSite and Secure from
       Settings. Settings refuses SameSite=None without Secure. max_age matches
       the JWT expiry so both lapse together.

Layer rule: imports only from core/ and auth/. The response objects passed to
the cookie helpers are duck-typed Starlette responses.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import Role, SessionClaims, User
from core.errors import UnauthenticatedError

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("storefront.auth")

_ALGORITHM = "HS256"


class SessionIssuer:
    """Issues and verifies session tokens and writes the session cookie."""

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = 24 * 3600,
        cookie_name: str = "token",
        secure_cookies: bool = False,
        samesite: str = "lax",
    ) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self.cookie_name = cookie_name
        self.secure_cookies = secure_cookies
        self.samesite = samesite

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionIssuer:
        return cls(
            secret_key=settings.secret_key,
            expire_seconds=settings.session_expire_seconds,
            cookie_name=settings.session_cookie_name,
            secure_cookies=settings.secure_cookies,
            samesite=settings.cookie_samesite,
        )

    # ------------------------------------------------------------------
    # JWT encode / decode
    # ------------------------------------------------------------------

    def issue(self, user: User) -> str:
        """Encode a signed session token for user."""
        now = int(time.time())
        payload = {
            "sub": str(user.id),
            "user_id": user.id,
            "email": user.email,
            "role": Role(user.role).value,
            "iat": now,
            "exp": now + self.expire_seconds,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> SessionClaims:
        """Decode and verify a token.

        Raises UnauthenticatedError with code "token_expired" when exp has
        passed and "invalid_token" for anything else (bad signature, malformed
        token, missing or unknown claims).
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise UnauthenticatedError("Session has expired. Please log in again.", code="token_expired") from exc
        except JWTError as exc:
            raise UnauthenticatedError("Invalid session token.", code="invalid_token") from exc

        try:
            return SessionClaims(
                user_id=int(payload["user_id"]),
                email=payload["email"],
                role=Role(payload["role"]),
                issued_at=int(payload.get("iat", 0)),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise UnauthenticatedError("Invalid session token.", code="invalid_token") from exc

    # ------------------------------------------------------------------
    # Cookie helpers
    # ------------------------------------------------------------------

    def set_session_cookie(self, response, token: str) -> None:
        """Write the session token as an httpOnly cookie on the response."""
        response.set_cookie(
            self.cookie_name,
            value=token,
            max_age=self.expire_seconds,
            path="/",
            httponly=True,
            secure=self.secure_cookies,
            samesite=self.samesite,
        )

    def clear_session_cookie(self, response) -> None:
        """Expire the session cookie. Attributes must match set_session_cookie()."""
        response.delete_cookie(
            self.cookie_name,
            path="/",
            httponly=True,
            secure=self.secure_cookies,
            samesite=self.samesite,
        )
