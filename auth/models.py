"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores own the
persistence, flows own the state transitions, routes own the HTTP shape.

Layer rule: no imports from api/, commerce/, content/, notify/, or webhooks/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class Role(str, Enum):
    """Account role. Ordered: client < admin < super_admin."""

    CLIENT = "client"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, other: Role) -> bool:
        return self.rank >= other.rank


_ROLE_RANK = {Role.CLIENT: 0, Role.ADMIN: 1, Role.SUPER_ADMIN: 2}


class OtpPurpose(str, Enum):
    VERIFY_EMAIL = "verify_email"
    RESET_PASSWORD = "reset_password"


@dataclass
class Address:
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class User:
    """A registered account.

    email is always stored trimmed and lowercased (see normalize_email()).
    hashed_password is a bcrypt hash and never leaves the auth package: the API
    layer builds its response models from the other fields only.
    verified stays False until the owner confirms a verify_email passcode.
    """

    email: str
    name: str
    role: Role = Role.CLIENT
    id: int | None = None
    hashed_password: str | None = None
    verified: bool = False
    phone: str | None = None
    address: Address | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class OneTimePasscode:
    """A short-lived code bound to one email. At most one row per email."""

    email: str
    code: str
    purpose: OtpPurpose
    expires_at: float  # epoch seconds
    created_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class SessionClaims:
    """Decoded, signature-checked contents of a session JWT."""

    user_id: int
    email: str
    role: Role
    issued_at: int = 0
    expires_at: int = 0
