"""Shared test fixtures."""

import os
import uuid
from datetime import datetime, timezone

# Settings are read once at import time of the app
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-service-role-key"
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789abcdef0123456789abcdef"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_AUTH"] = "0"
os.environ["ENVIRONMENT"] = "test"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["SENDGRID_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from fakes import FakeSupabase
from src.auth import repository
from src.auth.dependencies import get_clock
from src.auth.jwt import TokenService
from src.auth.passwords import PasswordHasher
from src.auth.service import AuthService
from src.config.settings import get_settings
from src.main import app
from src.notifications.mailer import Mailer, get_mailer

PASSWORD = "SecureTestPass123"


class RecordingMailer(Mailer):
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)

    def last_token(self) -> str:
        return self.sent[-1].body.rsplit("token=", 1)[1]


class MutableClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeSupabase()
    monkeypatch.setattr(repository, "get_supabase", lambda: db)
    return db


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def client(fake_db, mailer, clock):
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_service(fake_db, mailer, clock, settings):
    return AuthService(settings, TokenService(settings, clock=clock), PasswordHasher(settings.BCRYPT_ROUNDS), mailer)


@pytest.fixture
def make_user(auth_service, fake_db):
    """Insert a user straight into the store."""

    def _make_user(role="service_provider", verified=True, password=PASSWORD, email=None):
        row = {
            "id": str(uuid.uuid4()),
            "email": email or f"user_{uuid.uuid4().hex[:8]}@example.com",
            "password_hash": auth_service.hasher.hash(password) if password else None,
            "display_name": "Test User",
            "phone": None,
            "role": role,
            "email_verified": verified,
            "created_at": auth_service.now().isoformat(),
            "updated_at": auth_service.now().isoformat(),
        }
        fake_db.rows("users").append(row)
        return row

    return _make_user


@pytest.fixture
def signin(client):
    def _signin(user, password=PASSWORD):
        resp = client.post("/api/v1/auth/signin", json={"email": user["email"], "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _signin


@pytest.fixture
def admin_header(make_user, signin):
    tokens = signin(make_user(role="admin"))
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def provider_header(make_user, signin):
    tokens = signin(make_user(role="service_provider"))
    return {"Authorization": f"Bearer {tokens['access_token']}"}
