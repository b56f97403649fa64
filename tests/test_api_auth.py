"""
Auth, user administration and health API tests.
"""

import jwt as pyjwt
import pytest

from testhub.services.jwt_service import (
    decode_access_token,
    decode_refresh_token,
    generate_refresh_token,
    generate_token_pair,
)


class TestRegisterAndLogin:
    def test_register_returns_tokens(self, client):
        res = client.post("/api/v1/auth/register", json={
            "email": "Dana@Acme.com", "password": "correct horse", "first_name": "Dana",
        })
        assert res.status_code == 201
        body = res.get_json()
        assert body["token_type"] == "Bearer"
        assert body["user"]["email"] == "dana@acme.com"
        assert body["user"]["role"] == "USER"
        assert decode_access_token(body["access_token"])["sub"] == body["user"]["id"]

    def test_register_duplicate_email(self, client, alice):
        res = client.post("/api/v1/auth/register",
                          json={"email": "ALICE@acme.com", "password": "another-pass"})
        assert res.status_code == 409

    @pytest.mark.parametrize("payload,field", [
        ({"email": "not-an-email", "password": "long-enough"}, "email"),
        ({"email": "dana@acme.com", "password": "short"}, "password"),
        ({"email": "dana@acme.com", "password": "x" * 73}, "password"),
    ])
    def test_register_validation(self, client, payload, field):
        res = client.post("/api/v1/auth/register", json=payload)
        assert res.status_code == 422
        assert field in res.get_json()["details"]

    def test_login(self, client, alice):
        res = client.post("/api/v1/auth/login",
                          json={"email": "alice@acme.com", "password": "Passw0rd!"})
        assert res.status_code == 200
        assert res.get_json()["user"]["id"] == alice.id

    def test_login_wrong_password(self, client, alice):
        res = client.post("/api/v1/auth/login",
                          json={"email": "alice@acme.com", "password": "wrong-password"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid email or password"

    def test_login_unknown_user_same_message(self, client):
        res = client.post("/api/v1/auth/login",
                          json={"email": "nobody@acme.com", "password": "whatever1"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid email or password"

    def test_login_missing_fields(self, client):
        assert client.post("/api/v1/auth/login", json={}).status_code == 422


class TestTokens:
    def test_token_pair_types(self, alice):
        pair = generate_token_pair(alice.id, alice.email)
        assert decode_access_token(pair["access_token"])["type"] == "access"
        assert decode_refresh_token(pair["refresh_token"])["type"] == "refresh"

    def test_refresh_token_is_not_an_access_token(self, alice):
        with pytest.raises(pyjwt.InvalidTokenError):
            decode_access_token(generate_refresh_token(alice.id, alice.email))

    def test_refresh(self, client, alice):
        res = client.post("/api/v1/auth/refresh",
                          json={"refresh_token": generate_refresh_token(alice.id, alice.email)})
        assert res.status_code == 200
        assert res.get_json()["user"]["email"] == alice.email

    def test_refresh_rejects_access_token(self, client, alice, auth_headers):
        access = auth_headers(alice)["Authorization"].split(" ", 1)[1]
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": access})
        assert res.status_code == 401

    def test_refresh_token_cannot_authenticate_requests(self, client, alice):
        token = generate_refresh_token(alice.id, alice.email)
        res = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_me(self, client, alice, make_company, auth_headers):
        company = make_company(alice)
        res = client.get("/api/v1/auth/me", headers=auth_headers(alice))
        assert res.status_code == 200
        body = res.get_json()
        assert body["user"]["email"] == alice.email
        assert body["companies"] == [{"id": company.id, "name": "Acme", "role": "OWNER"}]

    def test_me_without_token(self, client):
        assert client.get("/api/v1/auth/me").status_code == 401


class TestUserAdministration:
    def test_non_admin_forbidden(self, client, alice, auth_headers):
        assert client.get("/api/v1/users", headers=auth_headers(alice)).status_code == 403

    def test_admin_lists_users(self, client, alice, make_user, auth_headers):
        root = make_user("root@acme.com", role="ADMIN")
        res = client.get("/api/v1/users", headers=auth_headers(root))
        assert res.status_code == 200
        assert {u["email"] for u in res.get_json()} == {"alice@acme.com", "root@acme.com"}

    def test_admin_changes_role(self, client, alice, make_user, auth_headers):
        root = make_user("root@acme.com", role="ADMIN")
        res = client.put(f"/api/v1/users/{alice.id}/role", json={"role": "moderator"},
                         headers=auth_headers(root))
        assert res.status_code == 200
        assert res.get_json()["role"] == "MODERATOR"

    def test_admin_cannot_drop_own_admin(self, client, make_user, auth_headers):
        root = make_user("root@acme.com", role="ADMIN")
        res = client.put(f"/api/v1/users/{root.id}/role", json={"role": "USER"},
                         headers=auth_headers(root))
        assert res.status_code == 422

    def test_statistics(self, client, alice, bob, make_company, make_user, auth_headers):
        root = make_user("root@acme.com", role="ADMIN")
        make_company(alice, members=[(bob, "MEMBER")])
        body = client.get("/api/v1/users/statistics", headers=auth_headers(root)).get_json()
        assert body["total_users"] == 3
        assert body["users_by_role"]["ADMIN"] == 1
        assert body["total_companies"] == 1
        assert body["total_memberships"] == 2


class TestHealth:
    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").get_json() == {"status": "ok"}

    def test_live_checks_database(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"
        assert res.get_json()["checks"]["schema"] == {"status": "ok", "levels": 8}

    def test_unknown_route_is_json_404(self, client, alice, auth_headers):
        res = client.get("/api/v1/nope", headers=auth_headers(alice))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"
