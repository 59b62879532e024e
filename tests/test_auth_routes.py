"""
tests/test_auth_routes.py -- Integration tests for /api/v1/auth/*.

Covers:
  - register -> verify-otp -> me via the session cookie
  - Request validation failures use the 400 error envelope
  - Duplicate email (409), unverified login (403), bad credentials (401)
  - resend-otp, forgot/verify/reset password round trip
  - logout clears the cookie; refresh-token and change-password issue new sessions
  - update-profile
"""

from __future__ import annotations

REGISTER = "/api/v1/auth/register"


def _register(client, email="ada@example.com", password="secret1", name="Ada"):
    return client.post(REGISTER, json={"email": email, "password": password, "name": name})


def _register_and_verify(client, mailer, email="ada@example.com", password="secret1"):
    assert _register(client, email, password).status_code == 201
    resp = client.post("/api/v1/auth/verify-otp", json={"email": email, "otp": mailer.last_code(email)})
    assert resp.status_code == 200
    return resp


def test_register_sends_code_and_returns_unverified_user(client, mailer):
    resp = _register(client, email="Ada@Example.com")
    assert resp.status_code == 201
    body = resp.json()
    assert body["user"]["email"] == "ada@example.com"
    assert body["user"]["verified"] is False
    assert body["user"]["role"] == "client"
    assert "hashed_password" not in body["user"]
    assert mailer.sent[-1].email == "ada@example.com"


def test_verify_otp_opens_session(client, mailer):
    resp = _register_and_verify(client, mailer)
    data = resp.json()
    assert data["user"]["verified"] is True
    assert data["token"]
    assert resp.cookies.get("token") == data["token"]
    assert resp.headers["cache-control"] == "no-store"

    me = client.get("/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "ada@example.com"


def test_wrong_otp_is_400(client, mailer):
    _register(client)
    code = mailer.last_code("ada@example.com")
    wrong = "100000" if code != "100000" else "100001"
    resp = client.post("/api/v1/auth/verify-otp", json={"email": "ada@example.com", "otp": wrong})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "otp_mismatch"


def test_validation_error_envelope(client):
    resp = client.post(REGISTER, json={"email": "not-an-email", "password": "x", "name": ""})
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "validation_error"
    assert error["message"]


def test_duplicate_email_is_409(client):
    _register(client)
    resp = _register(client, email="ADA@example.com")
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "duplicate_email"


def test_login_unverified_is_403(client):
    _register(client)
    resp = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "secret1"})
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "unverified"


def test_login_bad_credentials_is_401(client, mailer):
    _register_and_verify(client, mailer)
    client.cookies.clear()
    wrong = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "nope-nope"})
    unknown = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "secret1"})
    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json()["error"]["code"] == unknown.json()["error"]["code"] == "bad_credentials"


def test_login_sets_cookie(client, mailer):
    _register_and_verify(client, mailer)
    client.cookies.clear()
    resp = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "secret1"})
    assert resp.status_code == 200
    set_cookie = resp.headers["set-cookie"]
    assert set_cookie.startswith("token=")
    assert "HttpOnly" in set_cookie
    assert "SameSite=lax" in set_cookie


def test_resend_otp(client, mailer):
    _register(client)
    assert client.post("/api/v1/auth/resend-otp", json={"email": "ada@example.com"}).status_code == 200
    assert len(mailer.sent) == 2
    unknown = client.post("/api/v1/auth/resend-otp", json={"email": "ghost@example.com"})
    assert unknown.status_code == 404


def test_resend_otp_when_verified_is_400(client, mailer):
    _register_and_verify(client, mailer)
    resp = client.post("/api/v1/auth/resend-otp", json={"email": "ada@example.com"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "already_verified"


def test_password_reset_round_trip(client, mailer):
    _register_and_verify(client, mailer)
    client.cookies.clear()

    resp = client.post("/api/v1/auth/forgot-password", json={"email": "ada@example.com"})
    assert resp.status_code == 200
    code = mailer.last_code("ada@example.com", "reset_password")

    peek = client.post("/api/v1/auth/verify-forgot-password-otp", json={"email": "ada@example.com", "otp": code})
    assert peek.status_code == 200

    reset = client.post(
        "/api/v1/auth/reset-password",
        json={"email": "ada@example.com", "otp": code, "new_password": "brand-new"},
    )
    assert reset.status_code == 200

    again = client.post(
        "/api/v1/auth/reset-password",
        json={"email": "ada@example.com", "otp": code, "new_password": "other-one"},
    )
    assert again.status_code == 400

    login = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "brand-new"})
    assert login.status_code == 200


def test_forgot_password_unknown_email_looks_the_same(client, mailer):
    resp = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
    assert resp.status_code == 200
    assert mailer.sent == []


def test_logout_clears_cookie(client, mailer):
    _register_and_verify(client, mailer)
    resp = client.get("/api/v1/auth/logout")
    assert resp.status_code == 200
    assert 'token=""' in resp.headers["set-cookie"] or "Max-Age=0" in resp.headers["set-cookie"]
    assert client.get("/api/v1/auth/me").status_code == 401


def test_me_requires_session(client):
    resp = client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"


def test_me_with_bad_bearer_token(client):
    resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "invalid_token"


def test_refresh_token_reflects_current_role(client, customer, customer_headers):
    client.app.state.user_store.update_user(customer.id, role="admin")
    resp = client.get("/api/v1/auth/refresh-token", headers=customer_headers)
    assert resp.status_code == 200
    claims = client.app.state.sessions.verify(resp.json()["token"])
    assert claims.role.value == "admin"


def test_update_profile(client, customer_headers):
    resp = client.put(
        "/api/v1/auth/update-profile",
        json={"name": "Casey C.", "phone": "+15550100"},
        headers=customer_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Casey C."
    assert resp.json()["phone"] == "+15550100"


def test_change_password(client, customer, customer_headers):
    bad = client.put(
        "/api/v1/auth/change-password",
        json={"current_password": "wrong-one", "new_password": "newsecret"},
        headers=customer_headers,
    )
    assert bad.status_code == 401

    ok = client.put(
        "/api/v1/auth/change-password",
        json={"current_password": "correct-horse", "new_password": "newsecret"},
        headers=customer_headers,
    )
    assert ok.status_code == 200
    client.cookies.clear()
    login = client.post("/api/v1/auth/login", json={"email": customer.email, "password": "newsecret"})
    assert login.status_code == 200


def test_deleted_account_session_is_rejected(client, customer, customer_headers):
    client.app.state.user_store.delete_user(customer.id)
    assert client.get("/api/v1/auth/me", headers=customer_headers).status_code == 401
