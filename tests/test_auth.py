"""Tests for signup, signin, profile and password endpoints."""

import uuid

from conftest import PASSWORD


def _signup(client, email=None, **extra):
    body = {
        "email": email or f"reg_{uuid.uuid4().hex[:8]}@example.com",
        "password": "longenough",
        "display_name": "Ab",
        "phone": "+1",
        **extra,
    }
    return client.post("/api/v1/auth/signup", json=body)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_signup(client, fake_db):
    resp = _signup(client, email="a@b.com")
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["user"]["email"] == "a@b.com"
    assert data["user"]["role"] == "service_provider"
    assert data["user"]["email_verified"] is False
    assert "password_hash" not in data["user"]
    assert data["verification_token"]

    stored = fake_db.rows("users")[0]
    assert stored["password_hash"] != "longenough"


def test_signup_forces_service_provider_role(client):
    resp = _signup(client, role="customer")
    assert resp.status_code == 201
    assert resp.json()["data"]["user"]["role"] == "service_provider"


def test_signup_rejects_admin_role(client, fake_db):
    resp = _signup(client, role="admin")
    assert resp.status_code == 403
    assert resp.json()["error"]["type"] == "forbidden"
    assert fake_db.rows("users") == []


def test_signup_duplicate(client):
    email = f"dup_{uuid.uuid4().hex[:8]}@example.com"
    assert _signup(client, email=email).status_code == 201
    resp = _signup(client, email=email)
    assert resp.status_code == 409
    assert resp.json()["error"]["type"] == "conflict"


def test_signup_validation(client):
    resp = _signup(client, password="short")
    assert resp.status_code == 400
    assert resp.json()["status"] == "error"
    assert "password" in resp.json()["error"]["message"]

    resp = _signup(client, display_name="A")
    assert resp.status_code == 400

    resp = _signup(client, email="not-an-email")
    assert resp.status_code == 400


def test_signup_accepts_camel_case_display_name(client):
    body = {"email": f"cc_{uuid.uuid4().hex[:8]}@example.com", "password": "longenough", "displayName": "Camel"}
    resp = client.post("/api/v1/auth/signup", json=body)
    assert resp.status_code == 201
    assert resp.json()["data"]["user"]["display_name"] == "Camel"


def test_signup_sends_verification_email(client, mailer):
    resp = _signup(client)
    token = resp.json()["data"]["verification_token"]
    assert len(mailer.sent) == 1
    assert mailer.last_token() == token
    assert mailer.sent[0].body.count("http://frontend.test/auth/verify-email") == 1


def test_signin_requires_verified_email(client):
    email = f"verify_{uuid.uuid4().hex[:8]}@example.com"
    token = _signup(client, email=email).json()["data"]["verification_token"]

    resp = client.post("/api/v1/auth/signin", json={"email": email, "password": "longenough"})
    assert resp.status_code == 403

    resp = client.post("/api/v1/auth/verify-email", json={"token": token}, follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "http://frontend.test/auth/signin"

    resp = client.post("/api/v1/auth/signin", json={"email": email, "password": "longenough"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == "15m"
    assert data["user"]["email_verified"] is True
    assert "password_hash" not in data["user"]


def test_signin_stores_hashed_refresh_token(client, make_user, signin, fake_db):
    tokens = signin(make_user())
    rows = fake_db.rows("refresh_tokens")
    assert len(rows) == 1
    assert rows[0]["token_hash"] != tokens["refresh_token"]
    assert tokens["refresh_token"] not in rows[0].values()
    assert rows[0]["revoked"] is False


def test_signin_wrong_password(client, make_user):
    user = make_user()
    resp = client.post("/api/v1/auth/signin", json={"email": user["email"], "password": "WrongPass"})
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Invalid credentials"


def test_signin_nonexistent_user(client):
    resp = client.post("/api/v1/auth/signin", json={"email": "nobody@example.com", "password": "x"})
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Invalid credentials"


def test_signin_passwordless_account(client, make_user):
    user = make_user(password=None)
    resp = client.post("/api/v1/auth/signin", json={"email": user["email"], "password": "anything"})
    assert resp.status_code == 401


def test_me(client, make_user, signin):
    user = make_user()
    tokens = signin(user)
    resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert resp.status_code == 200
    profile = resp.json()["data"]["user"]
    assert profile["id"] == user["id"]
    assert profile["email"] == user["email"]
    assert "password_hash" not in profile


def test_me_requires_auth(client):
    resp = client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["type"] == "authentication_error"
    assert resp.headers["www-authenticate"] == "Bearer"


def test_me_rejects_garbage_token(client):
    resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Invalid or expired token"


def test_me_rejects_refresh_token(client, make_user, signin):
    tokens = signin(make_user())
    resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert resp.status_code == 401


def test_me_deleted_user(client, make_user, signin, fake_db):
    user = make_user()
    tokens = signin(user)
    fake_db.rows("users").clear()
    resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert resp.status_code == 404


def test_update_password(client, make_user, signin):
    user = make_user()
    header = {"Authorization": f"Bearer {signin(user)['access_token']}"}

    resp = client.put(
        "/api/v1/auth/update-password",
        json={"current_password": PASSWORD, "new_password": "BrandNewPass1"},
        headers=header,
    )
    assert resp.status_code == 200

    resp = client.post("/api/v1/auth/signin", json={"email": user["email"], "password": PASSWORD})
    assert resp.status_code == 401
    resp = client.post("/api/v1/auth/signin", json={"email": user["email"], "password": "BrandNewPass1"})
    assert resp.status_code == 200


def test_update_password_wrong_current(client, make_user, signin):
    user = make_user()
    header = {"Authorization": f"Bearer {signin(user)['access_token']}"}
    resp = client.put(
        "/api/v1/auth/update-password",
        json={"current_password": "nope", "new_password": "BrandNewPass1"},
        headers=header,
    )
    assert resp.status_code == 401


def test_update_password_too_short(client, make_user, signin):
    header = {"Authorization": f"Bearer {signin(make_user())['access_token']}"}
    resp = client.put(
        "/api/v1/auth/update-password",
        json={"current_password": PASSWORD, "new_password": "short"},
        headers=header,
    )
    assert resp.status_code == 400


def test_update_password_requires_auth(client):
    resp = client.put("/api/v1/auth/update-password", json={"current_password": PASSWORD, "new_password": "BrandNewPass1"})
    assert resp.status_code == 401
