from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from conftest import PASSWORD, auth, login, unique_email


def _register(client, email, role="student", full_name="Test User", password=PASSWORD):
    return client.post("/api/auth/register", json={
        "email": email, "password": password, "full_name": full_name, "role": role,
    })


# ── Registration ──────────────────────────────────────────────

def test_register_login_me(client):
    email = unique_email("signup")
    resp = _register(client, email, full_name="Rahim Uddin")
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["role"] == "student"
    assert body["status"] == "active"
    assert body["email"] == email

    me = client.get("/api/auth/me", headers=auth(client, email))
    assert me.status_code == 200, me.text
    assert me.json()["id"] == body["id"]
    assert me.json()["full_name"] == "Rahim Uddin"


def test_register_defaults_to_student(client):
    email = unique_email("default")
    resp = client.post("/api/auth/register", json={
        "email": email, "password": PASSWORD, "full_name": "No Role",
    })
    assert resp.status_code == 200, resp.text
    assert resp.json()["role"] == "student"


@pytest.mark.parametrize("role", ["tutor", "institute"])
def test_staff_signup_starts_pending(client, role):
    resp = _register(client, unique_email(role), role=role)
    assert resp.status_code == 200, resp.text
    assert resp.json()["role"] == role
    assert resp.json()["status"] == "pending"


@pytest.mark.parametrize("role", ["admin", "editor"])
def test_privileged_roles_cannot_self_register(client, role):
    resp = _register(client, unique_email(role), role=role)
    assert resp.status_code == 422


def test_register_rejects_weak_password(client):
    resp = _register(client, unique_email("weak"), password="password")
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"


def test_register_rejects_duplicate_email(client):
    email = unique_email("dup")
    assert _register(client, email).status_code == 200
    resp = _register(client, email.upper())
    assert resp.status_code == 400
    assert "already registered" in resp.json()["detail"]


def test_register_sends_welcome_email(client, mailer):
    email = unique_email("welcome")
    _register(client, email, full_name="Karim")
    mailer.send.assert_called_once()
    kwargs = mailer.send.call_args.kwargs
    assert kwargs["to_email"] == email
    assert "Karim" in kwargs["html_content"]


def test_register_survives_welcome_email_failure(client, mailer):
    mailer.send.return_value = False
    resp = _register(client, unique_email("nomail"))
    assert resp.status_code == 200


def test_register_writes_audit_entry(client, db_session):
    from app.models.audit_log import AuditAction, AuditLog

    resp = _register(client, unique_email("audited"))
    entry = (
        db_session.query(AuditLog)
        .filter(AuditLog.action == AuditAction.REGISTER.value, AuditLog.resource_id == resp.json()["id"])
        .first()
    )
    assert entry is not None
    assert entry.user_id == resp.json()["id"]


# ── Login / session ───────────────────────────────────────────

def test_login_rejects_invalid_password(client, make_user):
    user = make_user()
    resp = client.post("/api/auth/login", data={"username": user.email, "password": "WrongPass1!"})
    assert resp.status_code == 401


def test_login_is_case_insensitive_on_email(client, make_user):
    user = make_user()
    assert login(client, user.email.upper())


def test_failed_login_is_audited(client, db_session):
    from app.models.audit_log import AuditAction, AuditLog

    email = unique_email("nobody")
    client.post("/api/auth/login", data={"username": email, "password": PASSWORD})
    entries = db_session.query(AuditLog).filter(AuditLog.action == AuditAction.LOGIN_FAILED.value).all()
    assert any(e.details and email in e.details for e in entries)


def test_inactive_user_cannot_login(client, make_user, db_session):
    user = make_user()
    user.is_active = False
    db_session.commit()
    resp = client.post("/api/auth/login", data={"username": user.email, "password": PASSWORD})
    assert resp.status_code == 401


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401


def test_me_rejects_expired_token(client, make_user):
    from app.core.config import settings

    user = make_user()
    expired = jwt.encode(
        {"sub": user.id, "type": "access", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.secret_key,
        algorithm=settings.algorithm,
    )
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401


def test_recovery_token_is_not_a_session(client, make_user):
    from app.core.security import create_recovery_token

    user = make_user()
    token = create_recovery_token(user.email, user.hashed_password)
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


# ── Password update ───────────────────────────────────────────

def test_update_password_with_recovery_token(client, make_user):
    from app.core.security import create_recovery_token

    user = make_user()
    resp = client.post("/api/auth/update-password", json={
        "token": create_recovery_token(user.email, user.hashed_password), "new_password": "Changed123!",
    })
    assert resp.status_code == 200, resp.text
    assert login(client, user.email, "Changed123!")


def test_recovery_token_cannot_be_replayed(client, make_user):
    from app.core.security import create_recovery_token

    user = make_user()
    token = create_recovery_token(user.email, user.hashed_password)
    first = client.post("/api/auth/update-password", json={"token": token, "new_password": "Changed123!"})
    assert first.status_code == 200, first.text

    replay = client.post("/api/auth/update-password", json={"token": token, "new_password": "Hijacked123!"})
    assert replay.status_code == 400
    assert login(client, user.email, "Changed123!")
    resp = client.post("/api/auth/login", data={"username": user.email, "password": "Hijacked123!"})
    assert resp.status_code == 401


def test_update_password_rejects_bad_token(client):
    resp = client.post("/api/auth/update-password", json={
        "token": "not-a-token", "new_password": "Changed123!",
    })
    assert resp.status_code == 400


def test_update_password_rejects_session_token(client, make_user):
    user = make_user()
    resp = client.post("/api/auth/update-password", json={
        "token": login(client, user.email), "new_password": "Changed123!",
    })
    assert resp.status_code == 400


def test_update_password_enforces_strength(client, make_user):
    from app.core.security import create_recovery_token

    user = make_user()
    resp = client.post("/api/auth/update-password", json={
        "token": create_recovery_token(user.email, user.hashed_password), "new_password": "short",
    })
    assert resp.status_code == 400
    assert login(client, user.email)
