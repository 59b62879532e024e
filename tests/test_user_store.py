"""Unit tests for auth/store.py and auth/passwords.py.

Covers:
- Email normalization and uniqueness, phone uniqueness
- Password strength and bcrypt verification, including the no-user path
- update_user() field whitelist and collision checks
- Address set / clear
- list_users() filtering, search and pagination; count_users()
"""

import pytest

from auth.models import Address, Role
from auth.passwords import hash_password, verify_password
from auth.store import UserStore
from core.db import create_db_engine
from core.errors import ConflictError, DuplicateEmailError, ValidationError


@pytest.fixture
def store():
    return UserStore(create_db_engine("sqlite:///:memory:"), bcrypt_rounds=4)


def test_hash_and_verify_password():
    hashed = hash_password("hunter22", rounds=4)
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)


def test_verify_password_rejects_malformed_hash():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_create_user_normalizes_email_and_starts_unverified(store):
    user = store.create_user("  Ada@Example.COM ", "secret1", " Ada ")
    assert user.id is not None
    assert user.email == "ada@example.com"
    assert user.name == "Ada"
    assert user.role == Role.CLIENT
    assert user.verified is False
    assert user.hashed_password != "secret1"
    assert store.get_by_email("ADA@example.com").id == user.id


def test_duplicate_email_rejected(store):
    store.create_user("ada@example.com", "secret1", "Ada")
    with pytest.raises(DuplicateEmailError) as exc_info:
        store.create_user("ADA@example.com", "secret2", "Other Ada")
    assert exc_info.value.status_code == 409


def test_duplicate_phone_rejected_but_missing_phone_allowed(store):
    store.create_user("a@example.com", "secret1", "A", phone="+15550001")
    store.create_user("b@example.com", "secret1", "B")
    store.create_user("c@example.com", "secret1", "C")
    with pytest.raises(ConflictError) as exc_info:
        store.create_user("d@example.com", "secret1", "D", phone="+15550001")
    assert exc_info.value.code == "phone_taken"


@pytest.mark.parametrize(
    "email,password,name",
    [
        ("not-an-email", "secret1", "Ada"),
        ("ada@example.com", "short", "Ada"),
        ("ada@example.com", "secret1", "   "),
    ],
)
def test_create_user_validation(store, email, password, name):
    with pytest.raises(ValidationError):
        store.create_user(email, password, name)


def test_verify_password_runs_for_missing_user(store):
    assert store.verify_password(None, "whatever") is False


def test_update_password(store):
    user = store.create_user("ada@example.com", "secret1", "Ada")
    assert store.update_password(user.id, "newsecret")
    fresh = store.get_by_id(user.id)
    assert store.verify_password(fresh, "newsecret")
    assert not store.verify_password(fresh, "secret1")


def test_update_user_rejects_password_fields(store):
    user = store.create_user("ada@example.com", "secret1", "Ada")
    with pytest.raises(ValidationError):
        store.update_user(user.id, hashed_password="x")


def test_update_user_email_collision(store):
    store.create_user("ada@example.com", "secret1", "Ada")
    bob = store.create_user("bob@example.com", "secret1", "Bob")
    with pytest.raises(DuplicateEmailError):
        store.update_user(bob.id, email="ADA@example.com")


def test_update_user_fields(store):
    user = store.create_user("ada@example.com", "secret1", "Ada")
    updated = store.update_user(user.id, name="Ada L.", phone="+15550002", role=Role.ADMIN)
    assert updated.name == "Ada L."
    assert updated.phone == "+15550002"
    assert updated.role == Role.ADMIN


def test_update_missing_user_returns_none(store):
    assert store.update_user(999, name="Ghost") is None


def test_address_round_trip(store):
    user = store.create_user("ada@example.com", "secret1", "Ada")
    updated = store.set_address(user.id, Address(street="1 Main St", city="Springfield", country="US"))
    assert updated.address.city == "Springfield"
    assert updated.address.zip is None
    assert store.clear_address(user.id).address is None


def test_list_users_filters_and_paginates(store):
    for i in range(5):
        store.create_user(f"client{i}@example.com", "secret1", f"Client {i}")
    store.create_user("boss@example.com", "secret1", "The Boss", role=Role.ADMIN)

    admins, total = store.list_users(role=Role.ADMIN)
    assert total == 1
    assert admins[0].email == "boss@example.com"

    page, total = store.list_users(page=2, limit=4)
    assert total == 6
    assert len(page) == 2

    found, total = store.list_users(search="CLIENT 3")
    assert total == 1
    assert found[0].name == "Client 3"


def test_search_treats_wildcards_literally(store):
    store.create_user("ada@example.com", "secret1", "Ada")
    _, total = store.list_users(search="%")
    assert total == 0


def test_count_users_and_delete(store):
    ada = store.create_user("ada@example.com", "secret1", "Ada")
    store.create_user("bob@example.com", "secret1", "Bob", role=Role.ADMIN)
    assert store.count_users() == 2
    assert store.count_users(role=Role.ADMIN) == 1
    assert store.delete_user(ada.id)
    assert store.get_by_id(ada.id) is None
    assert store.count_users() == 1


def test_get_many(store):
    ada = store.create_user("ada@example.com", "secret1", "Ada")
    bob = store.create_user("bob@example.com", "secret1", "Bob")
    found = store.get_many([ada.id, bob.id, None, 999])
    assert set(found) == {ada.id, bob.id}
    assert store.get_many([]) == {}
