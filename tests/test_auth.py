"""
Tests — authentication: password hashing, JWT login, role checks.

The testing config disables auth; these tests switch it on through the
API_AUTH_ENABLED environment variable.
"""

import pytest

from app.models import db
from app.services import user_service
from app.services.jwt_service import decode_access_token, generate_access_token
from app.utils.crypto import hash_password, verify_password


@pytest.fixture()
def auth_on(monkeypatch):
    monkeypatch.setenv("API_AUTH_ENABLED", "true")


@pytest.fixture()
def portal_admin():
    return user_service.create_user("boss@example.com", "hunter22", full_name="Boss", role="admin")


@pytest.fixture()
def portal_client():
    return user_service.create_user("Buyer@Example.com", "s3cret-pass", full_name="Buyer")


def _login(client, email, password):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def _bearer(user):
    return {"Authorization": f"Bearer {generate_access_token(user.id, user.role)}"}


class TestCrypto:
    def test_hash_and_verify(self):
        hashed = hash_password("correct horse")
        assert hashed.startswith("$2b$")
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong", hashed)

    def test_verify_rejects_empty_and_foreign_hashes(self):
        assert not verify_password("x", None)
        assert not verify_password("x", "pbkdf2:sha256:abc")


class TestUserService:
    def test_email_is_normalised(self, portal_client):
        assert portal_client.email == "buyer@example.com"

    def test_duplicate_email(self, portal_client):
        from app.core.exceptions import ConflictError
        with pytest.raises(ConflictError):
            user_service.create_user("buyer@example.com", "x")

    def test_unknown_role(self):
        from app.core.exceptions import ValidationError
        with pytest.raises(ValidationError):
            user_service.create_user("x@example.com", "x", role="owner")


class TestJWT:
    def test_token_round_trip(self, portal_admin):
        payload = decode_access_token(generate_access_token(portal_admin.id, "admin"))
        assert payload["sub"] == str(portal_admin.id)
        assert payload["role"] == "admin"
        assert payload["type"] == "access"


class TestAuthAPI:
    def test_login_success(self, client, auth_on, portal_client):
        res = _login(client, "buyer@example.com", "s3cret-pass")
        assert res.status_code == 200
        body = res.get_json()
        assert body["token_type"] == "Bearer"
        assert body["user"]["email"] == "buyer@example.com"

    def test_login_wrong_password(self, client, auth_on, portal_client):
        res = _login(client, "buyer@example.com", "nope")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_login_missing_fields(self, client):
        res = client.post("/api/v1/auth/login", json={"email": "a@example.com"})
        assert res.status_code == 400

    def test_me_requires_token(self, client, auth_on):
        res = client.get("/api/v1/auth/me")
        assert res.status_code == 401

    def test_me_with_token(self, client, auth_on, portal_client):
        res = client.get("/api/v1/auth/me", headers=_bearer(portal_client))
        assert res.status_code == 200
        assert res.get_json()["user"]["email"] == "buyer@example.com"

    def test_invalid_token(self, client, auth_on):
        res = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_me_when_auth_disabled(self, client):
        res = client.get("/api/v1/auth/me")
        assert res.status_code == 200
        assert res.get_json() == {"user": None, "role": "admin", "auth_enabled": False}


class TestRoleChecks:
    def test_client_cannot_create_projects(self, client, auth_on, portal_client):
        res = client.post("/api/v1/projects", headers=_bearer(portal_client),
                          json={"name": "X", "client_id": portal_client.id})
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_client_sees_only_own_projects(self, client, auth_on, portal_admin, portal_client):
        from app.services import project_service
        other = user_service.create_user("other@example.com", "pw-other")
        mine = project_service.create_project("Mine", portal_client.id)
        theirs = project_service.create_project("Theirs", other.id)

        assert client.get(f"/api/v1/projects/{mine['id']}", headers=_bearer(portal_client)).status_code == 200
        assert client.get(f"/api/v1/projects/{theirs['id']}", headers=_bearer(portal_client)).status_code == 404

        listed = client.get("/api/v1/projects", headers=_bearer(portal_client)).get_json()["items"]
        assert [p["id"] for p in listed] == [mine["id"]]

    def test_client_cannot_advance_someone_elses_project(self, client, auth_on, portal_client):
        from app.services import project_service
        other = user_service.create_user("other@example.com", "pw-other")
        theirs = project_service.create_project("Theirs", other.id)

        res = client.patch(f"/api/v1/projects/{theirs['id']}/advance", headers=_bearer(portal_client),
                           json={"key": "ONB", "status": "awaiting_approval"})
        assert res.status_code == 403

    def test_client_cannot_read_someone_elses_timeline(self, client, auth_on, portal_client):
        from app.services import project_service
        other = user_service.create_user("other@example.com", "pw-other")
        theirs = project_service.create_project("Theirs", other.id)
        mine = project_service.create_project("Mine", portal_client.id)
        headers = _bearer(portal_client)

        for suffix in ("phases", "activity"):
            res = client.get(f"/api/v1/projects/{theirs['id']}/{suffix}", headers=headers)
            assert res.status_code == 404
            assert res.get_json()["code"] == "ERR_NOT_FOUND"
            assert client.get(f"/api/v1/projects/{mine['id']}/{suffix}", headers=headers).status_code == 200

    def test_admin_reads_any_timeline(self, client, auth_on, portal_admin, portal_client):
        from app.services import project_service
        theirs = project_service.create_project("Theirs", portal_client.id)
        res = client.get(f"/api/v1/projects/{theirs['id']}/activity", headers=_bearer(portal_admin))
        assert res.status_code == 200
        assert res.get_json()["total"] == 1

    def test_client_cannot_file_documents_on_someone_elses_project(self, client, auth_on, portal_client):
        from app.models.document import GeneratedDocument
        from app.services import project_service
        other = user_service.create_user("other@example.com", "pw-other")
        theirs = project_service.create_project("Theirs", other.id)

        res = client.post("/api/v1/documents/render", headers=_bearer(portal_client), json={
            "template": "phase_summary", "project_id": theirs["id"], "doc_type": "phase_summary",
        })
        assert res.status_code == 404
        assert GeneratedDocument.query.count() == 0

    def test_inactive_user_cannot_log_in(self, client, auth_on, portal_client):
        portal_client.is_active = False
        db.session.commit()
        assert _login(client, "buyer@example.com", "s3cret-pass").status_code == 401
