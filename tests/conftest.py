"""
tests/conftest.py -- Shared test fixtures for Storefront integration tests.

This module provides:
  - make_settings(): Settings for tests (fixed secret, bcrypt rounds 4,
    rate limiting off, isolated database)
  - RecordingMailer / FakeShopify: stand-ins injected through create_app()
  - client: TestClient running the real lifespan against a fresh database
  - make_user / session_headers: create accounts directly in the store and
    mint Bearer headers for them, so tests do not depend on /auth/login

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process. Each
test gets its own name, so no state leaks between tests.

Headers are used instead of cookies for per-user sessions. TestClient keeps
cookies across requests, and a cookie from an earlier login would otherwise
take priority over the header.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from dataclasses import dataclass, field
from typing import Optional

# Set DEBUG before any core import so an accidental get_settings() call
# auto-generates SECRET_KEY instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.models import Role, User
from core.config import Settings

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
PASSWORD = "correct-horse"


def shared_memory_url() -> str:
    return f"sqlite:///file:storefront_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def make_settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "secret_key": TEST_SECRET,
        "database_url": shared_memory_url(),
        "bcrypt_rounds": 4,
        "rate_limit_enabled": False,
        "allowed_hosts": ["testserver"],
        "shopify_store_url": "test-shop.myshopify.com",
        "shopify_webhook_secret": "whsec-test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@dataclass
class SentOtp:
    email: str
    name: str
    code: str
    purpose: str
    expiry_minutes: int


@dataclass
class RecordingMailer:
    """Captures every passcode instead of sending it."""

    sent: list[SentOtp] = field(default_factory=list)

    def send_otp(self, email: str, name: str, code: str, purpose: str, expiry_minutes: int) -> None:
        self.sent.append(SentOtp(email, name, code, purpose, expiry_minutes))

    def last_code(self, email: str, purpose: Optional[str] = None) -> str:
        for message in reversed(self.sent):
            if message.email == email and (purpose is None or message.purpose == purpose):
                return message.code
        raise AssertionError(f"no passcode sent to {email}")


class FakeShopify:
    """Catalog lookup that never touches the network."""

    configured = True

    def __init__(self) -> None:
        self.lookups: list[str] = []

    def fetch_product_image(self, product_id: str) -> Optional[str]:
        self.lookups.append(product_id)
        return f"https://cdn.example.com/{product_id.rsplit('/', 1)[-1]}.jpg"


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture
def client(settings, mailer, shopify) -> Generator[TestClient, None, None]:
    """TestClient with the real lifespan, so app.state holds real stores."""
    app = create_app(settings, mailer=mailer, shopify=shopify)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture
def make_user(client):
    """Factory: create an account directly in the store."""

    def _make(
        email: str = "ada@example.com",
        name: str = "Ada Lovelace",
        role: Role = Role.CLIENT,
        password: str = PASSWORD,
        verified: bool = True,
        phone: Optional[str] = None,
    ) -> User:
        store = client.app.state.user_store
        user = store.create_user(email, password, name, phone=phone, role=role)
        if verified:
            store.mark_verified(user.id)
        return store.get_by_id(user.id)

    return _make


@pytest.fixture
def session_headers(client):
    """Factory: Bearer headers carrying a fresh session for user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {client.app.state.sessions.issue(user)}"}

    return _headers


@pytest.fixture
def customer(make_user) -> User:
    return make_user("client@example.com", "Casey Client")


@pytest.fixture
def admin(make_user) -> User:
    return make_user("admin@example.com", "Avery Admin", role=Role.ADMIN)


@pytest.fixture
def super_admin(make_user) -> User:
    return make_user("root@example.com", "Sam Super", role=Role.SUPER_ADMIN)


@pytest.fixture
def customer_headers(customer, session_headers) -> dict[str, str]:
    return session_headers(customer)


@pytest.fixture
def admin_headers(admin, session_headers) -> dict[str, str]:
    return session_headers(admin)


@pytest.fixture
def super_headers(super_admin, session_headers) -> dict[str, str]:
    return session_headers(super_admin)
