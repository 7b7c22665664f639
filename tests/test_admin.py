from urllib.parse import parse_qs, urlparse

import pytest

from conftest import PASSWORD, SERVICE_HEADERS, auth, login


@pytest.fixture()
def users(make_user):
    from app.models.profile import Role
    return {
        "admin": make_user(role=Role.ADMIN, full_name="Admin Boss"),
        "tutor": make_user(role=Role.TUTOR, full_name="Tutor Person"),
        "student": make_user(role=Role.STUDENT, full_name="Student Person"),
    }


def _reset_token_from(mailer):
    html_content = mailer.send.call_args.kwargs["html_content"]
    start = html_content.index('href="') + len('href="')
    link = html_content[start:html_content.index('"', start)].replace("&amp;", "&")
    assert urlparse(link).path == "/update-password"
    return parse_qs(urlparse(link).query)["token"][0]


# ── Force password reset ──────────────────────────────────────

class TestSendReset:
    def test_reset_link_updates_password(self, client, users, mailer):
        student = users["student"]
        resp = client.post("/api/admin/send-reset", json={"email": student.email},
                           headers=auth(client, users["admin"].email))
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        mailer.send.assert_called_once()
        assert mailer.send.call_args.kwargs["to_email"] == student.email
        token = _reset_token_from(mailer)

        new_password = "N3w-Password!"
        resp = client.post("/api/auth/update-password", json={"token": token, "new_password": new_password})
        assert resp.status_code == 200
        assert login(client, student.email, new_password)

    def test_reset_link_is_single_use(self, client, users, mailer):
        student = users["student"]
        client.post("/api/admin/send-reset", json={"email": student.email},
                    headers=auth(client, users["admin"].email))
        token = _reset_token_from(mailer)

        resp = client.post("/api/auth/update-password", json={"token": token, "new_password": "N3w-Password!"})
        assert resp.status_code == 200
        resp = client.post("/api/auth/update-password", json={"token": token, "new_password": "Th1rd-Password!"})
        assert resp.status_code == 400
        assert login(client, student.email, "N3w-Password!")

    def test_unknown_email(self, client, users, mailer):
        resp = client.post("/api/admin/send-reset", json={"email": "ghost@nextprep.com"},
                           headers=auth(client, users["admin"].email))
        assert resp.status_code == 400
        assert resp.json()["error"] == "link_generation_error"
        mailer.send.assert_not_called()

    def test_email_failure_reported(self, client, users, mailer):
        mailer.send.return_value = False
        resp = client.post("/api/admin/send-reset", json={"email": users["tutor"].email},
                           headers=auth(client, users["admin"].email))
        assert resp.status_code == 502
        assert resp.json()["error"] == "notification_error"

    def test_requires_admin(self, client, users, mailer):
        resp = client.post("/api/admin/send-reset", json={"email": users["student"].email},
                           headers=auth(client, users["tutor"].email))
        assert resp.status_code == 403
        mailer.send.assert_not_called()

    def test_service_key_allowed(self, client, users):
        resp = client.post("/api/admin/send-reset", json={"email": users["student"].email},
                           headers=SERVICE_HEADERS)
        assert resp.status_code == 200


# ── Delete user ───────────────────────────────────────────────

class TestDeleteUser:
    def test_delete_user(self, client, users, db_session):
        from app.models.profile import Profile
        from app.models.user import User

        target = users["student"]
        target_id, target_email = target.id, target.email
        resp = client.post("/api/admin/delete-user", json={"user_id": target_id},
                           headers=auth(client, users["admin"].email))
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.query(User).filter(User.id == target_id).first() is None
        assert db_session.query(Profile).filter(Profile.id == target_id).first() is None
        resp = client.post("/api/auth/login", data={"username": target_email, "password": PASSWORD})
        assert resp.status_code == 401

    def test_deleting_inviter_keeps_invitations(self, client, make_user, users, db_session):
        from app.models.invitation import Invitation
        from app.models.profile import Role

        second_admin = make_user(role=Role.ADMIN)
        resp = client.post("/api/invite", json={"email": "kept@nextprep.com", "role": "tutor"},
                           headers=auth(client, second_admin.email))
        invitation_id = resp.json()["invitation"]["id"]

        resp = client.post("/api/admin/delete-user", json={"user_id": second_admin.id},
                           headers=auth(client, users["admin"].email))
        assert resp.status_code == 200

        db_session.expire_all()
        invitation = db_session.query(Invitation).filter(Invitation.id == invitation_id).first()
        assert invitation is not None
        assert invitation.invited_by is None

    def test_cannot_delete_self(self, client, users):
        admin = users["admin"]
        resp = client.post("/api/admin/delete-user", json={"user_id": admin.id},
                           headers=auth(client, admin.email))
        assert resp.status_code == 409
        assert resp.json()["error"] == "account_protected"

    def test_missing_user(self, client, users):
        resp = client.post("/api/admin/delete-user", json={"user_id": "does-not-exist"},
                           headers=auth(client, users["admin"].email))
        assert resp.status_code == 404

    def test_blank_user_id(self, client, users):
        resp = client.post("/api/admin/delete-user", json={"user_id": "  "},
                           headers=auth(client, users["admin"].email))
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    def test_delete_and_list_need_no_mailer(self, app, client, users):
        from app.api.deps import get_email_service

        def mailer_unavailable():
            raise AssertionError("email sender should not be built")

        app.dependency_overrides[get_email_service] = mailer_unavailable
        headers = auth(client, users["admin"].email)
        assert client.get("/api/admin/users", headers=headers).status_code == 200
        resp = client.post("/api/admin/delete-user", json={"user_id": users["student"].id}, headers=headers)
        assert resp.status_code == 200

    def test_requires_admin(self, client, users, db_session):
        from app.models.user import User

        resp = client.post("/api/admin/delete-user", json={"user_id": users["student"].id},
                           headers=auth(client, users["tutor"].email))
        assert resp.status_code == 403
        db_session.expire_all()
        assert db_session.query(User).filter(User.id == users["student"].id).first() is not None


# ── List users ────────────────────────────────────────────────

class TestListUsers:
    def test_list_all(self, client, users):
        resp = client.get("/api/admin/users", headers=auth(client, users["admin"].email))
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] >= 3
        assert {"id", "email", "full_name", "role", "status"} <= set(data["users"][0])

    def test_filter_by_role(self, client, users):
        resp = client.get("/api/admin/users?role=tutor", headers=auth(client, users["admin"].email))
        assert resp.status_code == 200
        assert resp.json()["users"]
        for u in resp.json()["users"]:
            assert u["role"] == "tutor"

    def test_search_by_email(self, client, users):
        resp = client.get(f"/api/admin/users?search={users['tutor'].email}",
                          headers=auth(client, users["admin"].email))
        assert [u["id"] for u in resp.json()["users"]] == [users["tutor"].id]

    def test_pagination(self, client, users):
        resp = client.get("/api/admin/users?skip=0&limit=1", headers=auth(client, users["admin"].email))
        data = resp.json()
        assert len(data["users"]) == 1
        assert data["total"] >= 3

    def test_student_forbidden(self, client, users):
        resp = client.get("/api/admin/users", headers=auth(client, users["student"].email))
        assert resp.status_code == 403
