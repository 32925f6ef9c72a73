# tests/conftest.py
import re

import pytest
from fastapi.testclient import TestClient

from config import get_settings
from database import get_db
from dependencies import get_session_registry, get_translation_service
from notifications import EmailSender, get_email_sender, get_pending_store
from repositories import RoleRepository, UserRepository
from schemas import User
from security import get_password_hash, token_for

CACHED_PROVIDERS = (
    get_settings,
    get_db,
    get_pending_store,
    get_email_sender,
    get_translation_service,
    get_session_registry,
)


def clear_caches():
    for provider in CACHED_PROVIDERS:
        provider.cache_clear()


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Point every test at its own empty data directory."""
    path = tmp_path / "data"
    monkeypatch.setenv("DATA_DIR", str(path))
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    for name in ("OPENWEATHER_API_KEY", "NEWS_API_KEY", "ADMIN_EMAIL", "ADMIN_PASSWORD", "TRANSLATE_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    clear_caches()
    yield path
    clear_caches()


@pytest.fixture
def db(data_dir):
    return get_db()


@pytest.fixture
def user_repo(db):
    return UserRepository(db, RoleRepository(db))


@pytest.fixture
def client():
    """FastAPI test client fixture."""
    from main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(user_repo):
    """Store a verified user with the given role and return it."""

    def _make(email="ada@example.com", role="User", name="Ada", password="secret123", pin=None):
        role_obj = user_repo.roles.get_by_name(role)
        return user_repo.add(User(
            name=name,
            email=email,
            password_hash=get_password_hash(password),
            role=role_obj.name,
            role_id=role_obj.id,
            permitted_widgets=list(role_obj.permitted_widgets),
            security_pin=pin,
            is_email_verified=True,
        ))

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user, unlocked=None):
        token = token_for(user, get_settings(), unlocked_widgets=unlocked)
        return {"Authorization": f"Bearer {token}"}

    return _headers


class RecordingSender(EmailSender):
    def __init__(self):
        self.sent = []

    def send(self, to, subject, body):
        self.sent.append((to, subject, body))

    def last_code(self):
        return re.search(r"(\d{6})", self.sent[-1][2]).group(1)


@pytest.fixture
def outbox(client):
    sender = RecordingSender()
    client.app.dependency_overrides[get_email_sender] = lambda: sender
    return sender
