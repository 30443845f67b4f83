"""
Tests for authorization boundaries — policy enforcement at the HTTP layer.

These tests verify two properties:

1. **Authentication**: Protected endpoints reject missing, malformed,
   foreign and expired tokens with 401 and a Bearer challenge.

2. **Policy enforcement**: A valid token is not enough. Visitors cannot
   reach /admin/*, Admins cannot reach SuperAdmin-only endpoints, and status
   policies read the flags baked into the token.
"""

import uuid
from datetime import datetime, timezone

import pytest
from jose import jwt

from userauth.models.user import AuthProvider
from userauth.security import ALGORITHM, TokenIssuer


ADMIN_ENDPOINTS = [
    ("get", "/api/v1/admin/roles"),
    ("post", "/api/v1/admin/users/{user_id}/activate"),
    ("post", "/api/v1/admin/users/{user_id}/deactivate"),
    ("delete", "/api/v1/admin/users/{user_id}/roles/{role_id}"),
]


def _token(token_issuer, roles, **status):
    flags = {"is_verified": True, "is_active": True, "is_logged_in": True}
    flags.update(status)
    return token_issuer.issue(
        user_id=uuid.uuid4(),
        email="someone@example.com",
        username="someone",
        roles=roles,
        permissions=[],
        auth_provider=AuthProvider.LOCAL,
        **flags,
    ).token


def _url(path):
    return path.format(user_id=uuid.uuid4(), role_id=uuid.uuid4())


class TestTokenRejection:

    @pytest.mark.parametrize("method, path", ADMIN_ENDPOINTS)
    async def test_missing_token(self, client, method, path):
        response = await getattr(client, method)(_url(path))
        assert response.status_code == 401

    async def test_foreign_signature(self, client):
        stranger = TokenIssuer("someone-elses-secret", "userauth", "userauth-clients")
        client.headers["Authorization"] = f"Bearer {_token(stranger, ['SuperAdmin'])}"
        response = await client.get("/api/v1/admin/roles")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_expired_token(self, client, token_issuer):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode(
            {
                "sub": str(uuid.uuid4()),
                "role": ["SuperAdmin"],
                "iat": now - 7200,
                "exp": now - 3600,
                "iss": token_issuer.issuer,
                "aud": token_issuer.audience,
            },
            "test-signing-secret",
            algorithm=ALGORITHM,
        )
        client.headers["Authorization"] = f"Bearer {token}"
        response = await client.get("/api/v1/admin/roles")
        assert response.status_code == 401


class TestRoleEnforcement:

    @pytest.mark.parametrize("method, path", ADMIN_ENDPOINTS)
    async def test_visitor_blocked_from_admin(self, client, token_issuer, method, path):
        client.headers["Authorization"] = f"Bearer {_token(token_issuer, ['Visitor'])}"
        response = await getattr(client, method)(_url(path))
        assert response.status_code == 403

    async def test_admin_blocked_from_superadmin_only(self, client, token_issuer):
        client.headers["Authorization"] = f"Bearer {_token(token_issuer, ['Admin'])}"
        response = await client.get("/api/v1/admin/roles")
        assert response.status_code == 403

    async def test_role_match_ignores_case(self, client, token_issuer):
        client.headers["Authorization"] = f"Bearer {_token(token_issuer, ['superadmin'])}"
        response = await client.get("/api/v1/admin/roles")
        assert response.status_code == 200

    async def test_token_without_role_claim(self, client, token_issuer):
        client.headers["Authorization"] = f"Bearer {_token(token_issuer, [])}"
        response = await client.post(f"/api/v1/admin/users/{uuid.uuid4()}/activate")
        assert response.status_code == 403

    async def test_admin_reaches_user_admin(self, client, token_issuer):
        client.headers["Authorization"] = f"Bearer {_token(token_issuer, ['Admin'])}"
        response = await client.post(f"/api/v1/admin/users/{uuid.uuid4()}/activate")
        assert response.status_code == 404


class TestStatusPolicies:

    async def test_inactive_token_blocked_from_me(self, client, token_issuer):
        client.headers["Authorization"] = (
            f"Bearer {_token(token_issuer, ['Visitor'], is_active=False)}"
        )
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 403

    async def test_logged_out_token_blocked_from_logout(self, client, token_issuer):
        client.headers["Authorization"] = (
            f"Bearer {_token(token_issuer, ['Visitor'], is_logged_in=False)}"
        )
        response = await client.post("/api/v1/auth/logout")
        assert response.status_code == 403
