import os
import tempfile
import uuid
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Configure the app before anything under app/ is imported: settings, engine
# and limiter are all built at import time.
_DB_DIR = tempfile.mkdtemp(prefix="nextprep-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test_nextprep.db'}"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-for-jwt-signing-only"
os.environ["SERVICE_ROLE_KEY"] = "test-service-key"
os.environ["LOG_TO_FILE"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SITE_URL"] = "https://nextprepbd.test"

from fastapi.testclient import TestClient  # noqa: E402

PASSWORD = "Password123!"
SERVICE_HEADERS = {"X-Service-Key": "test-service-key"}


@pytest.fixture(scope="session")
def app():
    import main as main_module
    return main_module.app


@pytest.fixture()
def db_session(app):
    from app.db.database import SessionLocal
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def mailer(app):
    """Replace the notification sender with a mock that reports success."""
    from app.api.deps import get_email_service
    from app.services.email_service import EmailService

    mock = MagicMock(spec=EmailService)
    mock.send.return_value = True
    mock.configured = True
    app.dependency_overrides[get_email_service] = lambda: mock
    yield mock
    app.dependency_overrides.pop(get_email_service, None)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session):
    """Factory: create an identity (and, unless told otherwise, its profile)."""
    from app.core.security import get_password_hash
    from app.models.profile import Profile, Role
    from app.models.user import User

    hashed = get_password_hash(PASSWORD)

    def _make(role=Role.STUDENT, email=None, full_name="Test User", with_profile=True):
        email = email or f"user_{uuid.uuid4().hex[:10]}@nextprep.com"
        user = User(email=email, hashed_password=hashed)
        if with_profile:
            user.profile = Profile(full_name=full_name, role=role)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


def login(client, email, password=PASSWORD):
    resp = client.post("/api/auth/login", data={"username": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def auth(client, email):
    return {"Authorization": f"Bearer {login(client, email)}"}


def unique_email(prefix="invitee"):
    return f"{prefix}_{uuid.uuid4().hex[:10]}@nextprep.com"
