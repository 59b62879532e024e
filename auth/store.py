"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route, dependency and flow code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is enforced by the UNIQUE index on the normalized
  (trimmed, lowercased) address. The pre-insert lookup only produces a
  friendlier error; a concurrent duplicate insert still trips the index and
  surfaces as DuplicateEmailError.

  Phone uniqueness uses the same UNIQUE index approach. SQLite treats NULLs as
  distinct, so any number of accounts may omit a phone number.

  The password hash is computed in exactly two places: create_user() and
  update_password(). update_user() rejects password fields.

Layer rule: imports only from core/ and auth/.
"""

from __future__ import annotations

import re
from datetime import datetime

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Address, Role, User
from auth.passwords import DEFAULT_ROUNDS, hash_password, verify_password
from core.db import dump_json, load_json, now_iso, page_offset
from core.errors import ConflictError, DuplicateEmailError, ValidationError

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MIN_PASSWORD_LENGTH = 6
_UPDATABLE_FIELDS = {"name", "phone", "email", "role"}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("name", String(200), nullable=False),
    Column("role", String(20), nullable=False, server_default=Role.CLIENT.value),
    Column("verified", Integer, nullable=False, server_default="0"),
    Column("phone", String(40), unique=True),  # NULL allowed for any number of rows
    Column("address", Text),  # JSON object: street, city, state, zip, country
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    """Canonical form used for storage and every lookup."""
    return (email or "").strip().lower()


def _normalize_phone(phone: str | None) -> str | None:
    if phone is None:
        return None
    phone = phone.strip()
    return phone or None


def _check_email(email: str) -> None:
    if not _EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address.", detail=email)


def check_password_strength(password: str) -> None:
    if len(password or "") < _MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters.")


def _integrity_to_conflict(exc: IntegrityError) -> ConflictError:
    if "phone" in str(exc.orig):
        return ConflictError("Phone number is already registered.", code="phone_taken")
    return DuplicateEmailError()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User accounts.

    Usage:
        store = UserStore(create_db_engine(settings.database_url), bcrypt_rounds=12)
        user = store.create_user("ada@example.com", "s3cret!!", "Ada")
        store.verify_password(user, "s3cret!!")   # True
    """

    def __init__(self, engine: Engine, bcrypt_rounds: int = DEFAULT_ROUNDS) -> None:
        self.engine = engine
        self.bcrypt_rounds = bcrypt_rounds
        _metadata.create_all(self.engine)
        # Timing equalization: verify_password() always runs bcrypt, against
        # this hash when there is no real one to check.
        self._dummy_hash = hash_password("storefront_timing_dummy", bcrypt_rounds)

    # ------------------------------------------------------------------
    # Creation and credentials
    # ------------------------------------------------------------------

    def create_user(
        self,
        email: str,
        password: str,
        name: str,
        phone: str | None = None,
        role: Role = Role.CLIENT,
    ) -> User:
        """Insert a new unverified account and return it.

        Raises:
            ValidationError:     malformed email, blank name, or short password.
            DuplicateEmailError: the normalized email already exists.
            ConflictError:       the phone number belongs to another account
                                 (code "phone_taken").
        """
        email = normalize_email(email)
        _check_email(email)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required.")
        check_password_strength(password)
        phone = _normalize_phone(phone)

        if self.get_by_email(email) is not None:
            raise DuplicateEmailError()
        if phone and self.get_by_phone(phone) is not None:
            raise ConflictError("Phone number is already registered.", code="phone_taken")

        stamp = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=email,
                        hashed_password=hash_password(password, self.bcrypt_rounds),
                        name=name,
                        role=Role(role).value,
                        verified=0,
                        phone=phone,
                        created_at=stamp,
                        updated_at=stamp,
                    )
                )
                conn.commit()
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise _integrity_to_conflict(exc) from exc
        return self.get_by_id(user_id)

    def verify_password(self, user: User | None, candidate: str) -> bool:
        """Check candidate against the user's hash.

        Always runs bcrypt, even for a missing user, so the response time of
        a login does not reveal whether the email is registered.
        """
        if user is None or not user.hashed_password:
            verify_password(candidate, self._dummy_hash)
            return False
        return verify_password(candidate, user.hashed_password)

    def update_password(self, user_id: int, new_password: str) -> bool:
        check_password_strength(new_password)
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(hashed_password=hash_password(new_password, self.bcrypt_rounds), updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_phone(self, phone: str) -> User | None:
        phone = _normalize_phone(phone)
        if phone is None:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.phone == phone)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_many(self, user_ids) -> dict[int, User]:
        """Batch lookup used to decorate carts, reviews and inquiries with owner details."""
        ids = {i for i in user_ids if i is not None}
        if not ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(ids))).fetchall()
        return {row.id: _row_to_user(row) for row in rows}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def mark_verified(self, user_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(verified=1, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def update_user(self, user_id: int, **fields) -> User | None:
        """Update profile fields on an existing user and return the fresh record.

        Accepted fields: name, phone, email, role. Passing a password field
        raises ValidationError; use update_password() instead.

        Returns None if user_id was not found.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields not updatable here: {', '.join(sorted(unknown))}")

        values: dict = {}
        if "name" in fields and fields["name"] is not None:
            name = fields["name"].strip()
            if not name:
                raise ValidationError("Name is required.")
            values["name"] = name
        if "phone" in fields:
            phone = _normalize_phone(fields["phone"])
            if phone:
                owner = self.get_by_phone(phone)
                if owner is not None and owner.id != user_id:
                    raise ConflictError("Phone number is already registered.", code="phone_taken")
            values["phone"] = phone
        if "email" in fields and fields["email"] is not None:
            email = normalize_email(fields["email"])
            _check_email(email)
            owner = self.get_by_email(email)
            if owner is not None and owner.id != user_id:
                raise DuplicateEmailError()
            values["email"] = email
        if "role" in fields and fields["role"] is not None:
            values["role"] = Role(fields["role"]).value

        if values:
            values["updated_at"] = now_iso()
            try:
                with self.engine.connect() as conn:
                    conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
                    conn.commit()
            except IntegrityError as exc:
                raise _integrity_to_conflict(exc) from exc
        return self.get_by_id(user_id)

    def set_address(self, user_id: int, address: Address) -> User | None:
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(address=dump_json(address.to_dict()), updated_at=now_iso())
            )
            conn.commit()
        return self.get_by_id(user_id)

    def clear_address(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(address=None, updated_at=now_iso()))
            conn.commit()
        return self.get_by_id(user_id)

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted.

        Callers enforce the super-admin rules (no self-deletion, no deleting
        another super admin) before calling this.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_users(
        self,
        role: Role | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[User], int]:
        """Return (users, total) newest first. search matches name or email, case-insensitively."""
        conditions = []
        if role is not None:
            conditions.append(_users.c.role == Role(role).value)
        if search:
            conditions.append(
                or_(
                    _users.c.name.icontains(search, autoescape=True),
                    _users.c.email.icontains(search, autoescape=True),
                )
            )
        query = _users.select()
        count_query = select(func.count()).select_from(_users)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
            rows = conn.execute(
                query.order_by(_users.c.created_at.desc(), _users.c.id.desc())
                .offset(page_offset(page, limit))
                .limit(limit)
            ).fetchall()
        return [_row_to_user(r) for r in rows], total

    def count_users(self, role: Role | None = None, since: datetime | None = None) -> int:
        query = select(func.count()).select_from(_users)
        if role is not None:
            query = query.where(_users.c.role == Role(role).value)
        if since is not None:
            query = query.where(_users.c.created_at >= since.isoformat())
        with self.engine.connect() as conn:
            return conn.execute(query).scalar() or 0


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    address = load_json(row.address)
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        name=row.name,
        role=Role(row.role),
        verified=bool(row.verified),
        phone=row.phone,
        address=Address(**address) if isinstance(address, dict) else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
