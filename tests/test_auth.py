"""
Auth endpoints, JWT middleware and role decorators.
"""

from datetime import datetime, timedelta, timezone

import jwt

from taskflow.models.auth import Role, User

BASE = "/api/v1/auth"


class TestRegister:

    def test_register_defaults_to_designer(self, client):
        rv = client.post(f"{BASE}/register", json={"username": "newbie", "password": "pw"})
        assert rv.status_code == 201
        user = rv.get_json()["user"]
        assert user["role"] == int(Role.DESIGNER)
        assert user["score"] == 100.0
        assert "password_hash" not in user

    def test_register_with_role_name(self, client):
        rv = client.post(f"{BASE}/register", json={
            "username": "boss", "password": "pw", "role": "manager",
        })
        assert rv.status_code == 201
        assert rv.get_json()["user"]["role_name"] == "manager"

    def test_legacy_admin_flag(self, client):
        rv = client.post(f"{BASE}/register", json={
            "username": "legacy", "password": "pw", "is_admin": 1,
        })
        assert rv.status_code == 201
        assert rv.get_json()["user"]["role"] == int(Role.ADMIN)

    def test_duplicate_username(self, client, designer):
        rv = client.post(f"{BASE}/register", json={
            "username": designer.username, "password": "pw",
        })
        assert rv.status_code == 409
        assert rv.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_unknown_role(self, client):
        rv = client.post(f"{BASE}/register", json={
            "username": "x", "password": "pw", "role": "overlord",
        })
        assert rv.status_code == 422
        assert User.query.filter_by(username="x").first() is None

    def test_missing_fields(self, client):
        rv = client.post(f"{BASE}/register", json={"username": "x"})
        assert rv.status_code == 400


class TestLogin:

    def test_login_returns_token(self, client, designer, user_password):
        rv = client.post(f"{BASE}/login", json={
            "username": designer.username, "password": user_password,
        })
        assert rv.status_code == 200
        body = rv.get_json()
        assert body["token_type"] == "Bearer"
        token = body["access_token"]

        me = client.get(f"{BASE}/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.get_json()["username"] == designer.username

    def test_wrong_password(self, client, designer):
        rv = client.post(f"{BASE}/login", json={
            "username": designer.username, "password": "wrong",
        })
        assert rv.status_code == 401

    def test_unknown_user(self, client):
        rv = client.post(f"{BASE}/login", json={"username": "ghost", "password": "pw"})
        assert rv.status_code == 404


class TestMiddleware:

    def test_missing_token(self, client):
        rv = client.get(f"{BASE}/me")
        assert rv.status_code == 401
        assert rv.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_garbage_token(self, client):
        rv = client.get(f"{BASE}/me", headers={"Authorization": "Bearer not.a.token"})
        assert rv.status_code == 401

    def test_expired_token(self, app, client, designer):
        now = datetime.now(timezone.utc)
        token = jwt.encode({
            "sub": str(designer.id),
            "type": "access",
            "iat": now - timedelta(hours=2),
            "exp": now - timedelta(hours=1),
        }, app.config["JWT_SECRET_KEY"], algorithm="HS256")
        rv = client.get(f"{BASE}/me", headers={"Authorization": f"Bearer {token}"})
        assert rv.status_code == 401

    def test_non_admin_gets_403(self, client, manager, auth_headers):
        rv = client.get("/api/v1/workflows", headers=auth_headers(manager))
        assert rv.status_code == 403
        assert rv.get_json()["code"] == "ERR_FORBIDDEN"

    def test_health_is_public(self, client):
        rv = client.get("/api/v1/health")
        assert rv.status_code == 200
        assert rv.get_json()["status"] == "ok"
