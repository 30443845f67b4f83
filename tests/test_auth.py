"""
Tests for the public authentication endpoints.

These tests verify:
  - Sign-up creates an unverified Visitor and returns a token plus an OTP
  - Duplicate email or username is rejected (409 Conflict)
  - Weak passwords and malformed usernames are rejected (422)
  - Login before verification is refused (403)
  - OTP verification, including the attempt limit and the already-verified case
  - Login by email or username once verified
  - Wrong password (400), unknown user (404) and inactive account (403)
  - Resend OTP, logout and /me
"""

import uuid

from jose import jwt
from sqlalchemy import delete, select

from conftest import get_user, latest_otp_code, signup
from userauth.models.otp import Otp
from userauth.models.role import Role
from userauth.services import user_service


SIGNUP = "/api/v1/auth/signup"
LOGIN = "/api/v1/auth/login"
VERIFY = "/api/v1/auth/verify-otp"
RESEND = "/api/v1/auth/resend-otp"


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------

class TestSignup:
    """Tests for POST /auth/signup."""

    async def test_signup_success(self, client, session_factory):
        data = await signup(client, email="New.User@Example.com", username="new-user")

        assert data["verification_required"] is True
        assert data["token_type"] == "bearer"
        user = data["user"]
        assert user["email"] == "new.user@example.com"
        assert user["username"] == "new-user"
        assert user["auth_provider"] == "Local"
        assert user["is_verified"] is False
        assert user["is_active"] is True
        assert user["roles"] == ["Visitor"]
        assert "articles:read" in user["permissions"]

        payload = jwt.get_unverified_claims(data["token"])
        assert payload["role"] == ["Visitor"]
        assert payload["is_verified"] is False

        code = await latest_otp_code(session_factory, uuid.UUID(user["id"]))
        assert len(code) == 6 and code.isdigit()

    async def test_signup_duplicate_email(self, client):
        await signup(client, email="dup@example.com", username="first")
        response = await client.post(
            SIGNUP,
            json={"email": "DUP@example.com", "username": "second", "password": "Secret123"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "email_taken"

    async def test_signup_duplicate_username(self, client):
        await signup(client, email="one@example.com", username="taken")
        response = await client.post(
            SIGNUP,
            json={"email": "two@example.com", "username": "taken", "password": "Secret123"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "username_taken"

    async def test_signup_weak_password(self, client):
        for password in ["short", "alllowercase1", "ALLUPPER1", "NoDigitsHere"]:
            response = await client.post(
                SIGNUP,
                json={"email": "weak@example.com", "username": "weak", "password": password},
            )
            assert response.status_code == 422, password

    async def test_signup_bad_username(self, client):
        for username in ["ab", "x" * 21, "under_score", "dot.name"]:
            response = await client.post(
                SIGNUP,
                json={"email": "name@example.com", "username": username, "password": "Secret123"},
            )
            assert response.status_code == 422, username

    async def test_signup_invalid_email(self, client):
        response = await client.post(
            SIGNUP,
            json={"email": "not-an-email", "username": "someone", "password": "Secret123"},
        )
        assert response.status_code == 422

    async def test_signup_without_visitor_role(self, client, session_factory):
        async with session_factory() as session:
            await session.execute(delete(Role).where(Role.name == "Visitor"))
            await session.commit()

        response = await client.post(
            SIGNUP,
            json={"email": "orphan@example.com", "username": "orphan", "password": "Secret123"},
        )
        assert response.status_code == 404
        assert response.json()["code"] == "role_not_found"

        # Nothing was written before the role lookup failed
        retry = await client.post(
            LOGIN, json={"credentials": "orphan@example.com", "password": "Secret123"}
        )
        assert retry.status_code == 404

    async def test_login_before_verification(self, client):
        await signup(client, email="early@example.com", username="early")
        response = await client.post(
            LOGIN, json={"credentials": "early@example.com", "password": "Secret123"}
        )
        assert response.status_code == 403
        assert response.json()["code"] == "account_not_verified"


# ---------------------------------------------------------------------------
# OTP verification
# ---------------------------------------------------------------------------

class TestVerifyOtp:
    """Tests for POST /auth/verify-otp and POST /auth/resend-otp."""

    async def test_verify_success(self, client, session_factory):
        data = await signup(client)
        user_id = uuid.UUID(data["user"]["id"])
        code = await latest_otp_code(session_factory, user_id)

        response = await client.post(VERIFY, json={"email": "visitor@example.com", "code": code})
        assert response.status_code == 200
        assert response.json() == {"is_success": True}

        user = await get_user(session_factory, user_id)
        assert user.is_verified is True

        async with session_factory() as session:
            result = await session.execute(select(Otp).where(Otp.user_id == user_id))
            assert all(otp.is_used for otp in result.scalars())

    async def test_verify_unknown_email(self, client):
        response = await client.post(VERIFY, json={"email": "ghost@example.com", "code": "123456"})
        assert response.status_code == 404

    async def test_wrong_code(self, client):
        await signup(client)
        response = await client.post(VERIFY, json={"email": "visitor@example.com", "code": "abcdef"})
        assert response.status_code == 400
        assert response.json()["code"] == "otp_invalid"

    async def test_correct_code_after_three_failures(self, client, session_factory):
        data = await signup(client)
        code = await latest_otp_code(session_factory, uuid.UUID(data["user"]["id"]))

        statuses = []
        for _ in range(3):
            response = await client.post(
                VERIFY, json={"email": "visitor@example.com", "code": "wrong1"}
            )
            statuses.append(response.status_code)
        assert statuses == [400, 400, 403]

        response = await client.post(VERIFY, json={"email": "visitor@example.com", "code": code})
        assert response.status_code == 403
        assert response.json()["code"] == "otp_attempts_exhausted"

    async def test_already_verified(self, client, verified_user, session_factory):
        response = await client.post(
            VERIFY, json={"email": verified_user["email"], "code": "000000"}
        )
        assert response.status_code == 409

        # The OTP store was not touched: no attempt was charged anywhere
        async with session_factory() as session:
            result = await session.execute(
                select(Otp).where(Otp.user_id == uuid.UUID(verified_user["id"]))
            )
            assert all(otp.attempt_count == 0 for otp in result.scalars())

    async def test_resend_replaces_code(self, client, session_factory):
        data = await signup(client)
        user_id = uuid.UUID(data["user"]["id"])
        first_code = await latest_otp_code(session_factory, user_id)

        response = await client.post(RESEND, json={"email": "visitor@example.com"})
        assert response.status_code == 200

        async with session_factory() as session:
            result = await session.execute(
                select(Otp).where(Otp.user_id == user_id, Otp.is_used.is_(False))
            )
            live = list(result.scalars())
        assert len(live) == 1
        assert str(live[0].id) == response.json()["otp_id"]

        # The first code no longer verifies unless the draw repeated it
        if live[0].code != first_code:
            stale = await client.post(
                VERIFY, json={"email": "visitor@example.com", "code": first_code}
            )
            assert stale.status_code == 400

    async def test_resend_for_verified_user(self, client, verified_user):
        response = await client.post(RESEND, json={"email": verified_user["email"]})
        assert response.status_code == 409


# ---------------------------------------------------------------------------
# Login, logout, me
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for POST /auth/login."""

    async def test_login_by_email(self, client, verified_user):
        response = await client.post(
            LOGIN,
            json={"credentials": verified_user["email"].upper(), "password": "Secret123"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["is_logged_in"] is True
        assert data["user"]["last_login_at"] is not None

        payload = jwt.get_unverified_claims(data["token"])
        assert payload["sub"] == verified_user["id"]
        assert payload["is_logged_in"] is True

    async def test_login_by_username(self, client, verified_user):
        response = await client.post(
            LOGIN, json={"credentials": verified_user["username"], "password": "Secret123"}
        )
        assert response.status_code == 200

    async def test_wrong_password(self, client, verified_user):
        response = await client.post(
            LOGIN, json={"credentials": verified_user["email"], "password": "Wrong123"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_credentials"

    async def test_unknown_user(self, client):
        response = await client.post(
            LOGIN, json={"credentials": "nobody", "password": "Secret123"}
        )
        assert response.status_code == 404

    async def test_inactive_account(self, client, session_factory):
        await signup(client, email="idle@example.com", username="idle")
        async with session_factory() as session:
            user = await user_service.get_user_by_email(session, "idle@example.com")
            user.mark_as_verified()
            user.deactivate()
            await session.commit()

        response = await client.post(
            LOGIN, json={"credentials": "idle", "password": "Secret123"}
        )
        assert response.status_code == 403
        assert response.json()["code"] == "account_inactive"

    async def test_empty_credentials(self, client):
        response = await client.post(LOGIN, json={"credentials": "", "password": "x"})
        assert response.status_code == 422


class TestSession:
    """Tests for POST /auth/logout and GET /auth/me."""

    async def _login(self, client, verified_user):
        response = await client.post(
            LOGIN, json={"credentials": verified_user["email"], "password": "Secret123"}
        )
        client.headers["Authorization"] = f"Bearer {response.json()['token']}"

    async def test_me(self, client, verified_user):
        await self._login(client, verified_user)
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == verified_user["id"]
        assert data["roles"] == ["Visitor"]
        assert "password_hash" not in data

    async def test_me_requires_token(self, client):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_me_rejects_garbage_token(self, client):
        client.headers["Authorization"] = "Bearer not.a.token"
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401

    async def test_logout(self, client, verified_user, session_factory):
        await self._login(client, verified_user)
        response = await client.post("/api/v1/auth/logout")
        assert response.status_code == 200

        user = await get_user(session_factory, verified_user["id"])
        assert user.is_logged_in is False

    async def test_logout_with_signup_token_denied(self, client):
        data = await signup(client)
        client.headers["Authorization"] = f"Bearer {data['token']}"
        response = await client.post("/api/v1/auth/logout")
        assert response.status_code == 403
