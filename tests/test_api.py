import pytest
from fastapi.testclient import TestClient

from authcore.main import create_app
from conftest import build_manager


@pytest.fixture
def client(manager):
    return TestClient(create_app(manager))


def _register(client, username="alice", email="a@x.com", password="secret1"):
    sent = client.post("/auth/register/send-otp", json={"username": username, "email": email})
    assert sent.status_code == 200
    code = sent.json()["code"]
    confirmed = client.post(
        "/auth/register/confirm",
        json={
            "username": username,
            "email": email,
            "password": password,
            "full_name": "Alice Doe",
            "code": code,
        },
    )
    assert confirmed.status_code == 201
    return confirmed.json()


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_and_fetch_profile(client):
    body = _register(client)
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "a@x.com"
    assert "password_digest" not in body["user"]

    me = client.get("/auth/me", headers=_auth(body["token"]))
    assert me.status_code == 200
    assert me.json()["full_name"] == "Alice Doe"
    assert "password_digest" not in me.json()


def test_api_prefix_is_mounted(client):
    response = client.post("/api/auth/register/send-otp", json={"username": "bob", "email": "b@x.com"})
    assert response.status_code == 200


def test_login_failure_is_generic(client):
    _register(client)
    wrong = client.post("/auth/login", json={"email": "a@x.com", "password": "nope"})
    unknown = client.post("/auth/login", json={"email": "z@x.com", "password": "secret1"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {
        "error": "invalid_credentials",
        "message": "Invalid credentials",
    }


def test_duplicate_identity_carries_reason(client):
    _register(client)
    response = client.post("/auth/register/send-otp", json={"username": "bob", "email": "a@x.com"})
    assert response.status_code == 409
    assert response.json()["reason"] == "email_taken"


def test_otp_failures_share_message(client):
    client.post("/auth/register/send-otp", json={"username": "alice", "email": "a@x.com"})
    payload = {"username": "alice", "email": "a@x.com", "password": "secret1", "code": "000000"}
    mismatch = client.post("/auth/register/confirm", json=payload)
    missing = client.post(
        "/auth/register/confirm", json={**payload, "email": "none@x.com"}
    )
    assert mismatch.status_code == missing.status_code == 400
    assert mismatch.json() == missing.json() == {
        "error": "invalid_code",
        "message": "Invalid or expired code",
    }


def test_reset_code_check_hides_unknown_email(db, clock, codes):
    client = TestClient(create_app(build_manager(clock, codes, disclose_unknown_email=False)))
    _register(client)
    known = client.post("/auth/forgot-password", json={"email": "a@x.com"})
    unknown = client.post("/auth/forgot-password", json={"email": "ghost@x.com"})
    assert known.status_code == unknown.status_code == 200

    wrong = client.post("/auth/forgot-password/verify", json={"email": "a@x.com", "code": "000000"})
    ghost = client.post(
        "/auth/forgot-password/verify", json={"email": "ghost@x.com", "code": "000000"}
    )
    assert wrong.status_code == ghost.status_code == 400
    assert wrong.json() == ghost.json()


def test_logout_then_login(client):
    token = _register(client)["token"]
    assert client.post("/auth/logout", headers=_auth(token)).status_code == 200
    assert client.get("/auth/me", headers=_auth(token)).status_code == 401

    login = client.post("/auth/login", json={"email": "a@x.com", "password": "secret1"})
    assert login.status_code == 200
    assert client.get("/auth/me", headers=_auth(login.json()["token"])).status_code == 200


def test_logout_ignores_unreadable_header(client):
    response = client.post("/auth/logout", headers={"Authorization": "Basic abc"})
    assert response.status_code == 200
    assert client.post("/auth/logout").status_code == 200


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Basic abc"}).status_code == 401


def test_forgot_password_flow(client):
    _register(client)
    assert client.post("/auth/forgot-password", json={"email": "nobody@x.com"}).status_code == 404

    code = client.post("/auth/forgot-password", json={"email": "a@x.com"}).json()["code"]
    verify = client.post("/auth/forgot-password/verify", json={"email": "a@x.com", "code": code})
    assert verify.json()["verified"] is True
    reset = client.post(
        "/auth/reset-password",
        json={"email": "a@x.com", "code": code, "new_password": "newpass"},
    )
    assert reset.status_code == 200
    login = client.post("/auth/login", json={"email": "a@x.com", "password": "newpass"})
    assert login.status_code == 200


def test_change_password_and_profile(client):
    token = _register(client)["token"]
    denied = client.put(
        "/auth/change-password",
        json={"current_password": "secret1", "new_password": "secret2"},
    )
    assert denied.status_code == 401

    changed = client.put(
        "/auth/change-password",
        headers=_auth(token),
        json={"current_password": "secret1", "new_password": "secret2"},
    )
    assert changed.status_code == 200

    updated = client.put("/auth/me", headers=_auth(token), json={"phone": " 555-0100 "})
    assert updated.json()["phone"] == "555-0100"
