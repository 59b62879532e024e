"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly (no passlib wrapper). passlib's wrap-bug detection
builds a >72-byte probe password that bcrypt 4.x rejects outright.

Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
password fields at 128 characters.

Hashing is only ever invoked explicitly, by UserStore.create_user() and
UserStore.update_password(). No generic update path computes a hash.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 12


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash with a fresh random salt at the given cost."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext matches the bcrypt hash.

    A malformed stored hash counts as a mismatch rather than a server error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False
