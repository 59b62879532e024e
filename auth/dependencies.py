"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and roles.

Two credential sources are checked in priority order:
  1. Session cookie (Settings.session_cookie_name, "token" by default).
  2. Authorization: Bearer <token> header, for API clients.

authenticate() verifies the token and attaches the claims to
request.state.claims. authorize() compares the claimed role against the
hierarchy client < admin < super_admin. require_role() chains the two, in
that order, so an unauthenticated caller always gets 401 before any 403.

Claims are trusted without a database lookup. get_current_user() is the
variant that also loads the User row, for routes that need profile data.

Layer rule: imports from core/ and auth/ only. May import fastapi because
this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.models import Role, SessionClaims, User
from core.errors import ForbiddenError, UnauthenticatedError


def _extract_token(request: Request) -> str | None:
    issuer = request.app.state.sessions
    token = request.cookies.get(issuer.cookie_name)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def authenticate(request: Request) -> SessionClaims:
    """Require a valid session. Raises UnauthenticatedError (401) otherwise."""
    token = _extract_token(request)
    if not token:
        raise UnauthenticatedError()
    claims = request.app.state.sessions.verify(token)
    request.state.claims = claims
    return claims


def authorize(claims: SessionClaims, min_role: Role) -> None:
    """Raise ForbiddenError (403) if the claimed role ranks below min_role."""
    if not claims.role.at_least(min_role):
        raise ForbiddenError(f"{Role(min_role).value} access required.")


def require_role(min_role: Role) -> Callable[[Request], SessionClaims]:
    """Build a dependency that authenticates, then authorizes against min_role.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(request: Request, claims: SessionClaims = Depends(require_admin)): ...
    """

    def dependency(request: Request) -> SessionClaims:
        claims = authenticate(request)
        authorize(claims, min_role)
        return claims

    dependency.__name__ = f"require_{Role(min_role).value}"
    return dependency


require_user = require_role(Role.CLIENT)
require_admin = require_role(Role.ADMIN)
require_super_admin = require_role(Role.SUPER_ADMIN)


def get_current_user(request: Request) -> User:
    """Require a session and load its account. 401 if the account no longer exists."""
    claims = authenticate(request)
    user = request.app.state.user_store.get_by_id(claims.user_id)
    if user is None:
        raise UnauthenticatedError("Account no longer exists.")
    return user
