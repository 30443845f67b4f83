"""
Test fixtures for the User Auth API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - token_issuer: A TokenIssuer with a test secret, injected into the app
  - client: Async HTTP test client (unauthenticated), Visitor and Admin roles seeded
  - verified_user: A user signed up and verified through the real endpoints
  - admin_client: Test client logged in through admin login as an Admin
  - superadmin_client: Test client logged in as the seeded SuperAdmin

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database — no state leaks between tests.
  - We override FastAPI's get_db dependency to inject our test session,
    with the same commit-on-domain-error behavior as the real one.
  - verified_user goes through sign-up and OTP verification over HTTP, reading
    the code straight from the database in place of an inbox.
  - Admins are provisioned by inserting a user_roles row, the way an operator
    would; SuperAdmin comes from the real seeder.
"""

import os
import uuid

os.environ.setdefault("JWT_SECRET", "test-signing-secret")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from userauth.config import Settings
from userauth.database import Base, get_db
from userauth.exceptions import UserAuthError
from userauth.main import app
from userauth.models.otp import Otp
from userauth.models.role import CoreRole, UserRole
from userauth.models.user import User
from userauth.security import TokenIssuer, get_token_issuer
from userauth.services import role_service, seed_service


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_ISSUER = "userauth"
TEST_AUDIENCE = "userauth-clients"

SUPER_ADMIN_PASSWORD = "SuperPass123"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def token_issuer():
    return TokenIssuer(
        secret="test-signing-secret",
        issuer=TEST_ISSUER,
        audience=TEST_AUDIENCE,
        expiration_hours=1,
    )


@pytest.fixture
def seed_settings():
    return Settings(JWT_SECRET="test-signing-secret", DEFAULT_USER_PASSWORD=SUPER_ADMIN_PASSWORD)


@pytest_asyncio.fixture
async def client(session_factory, token_issuer):
    """
    Async HTTP test client with the test database and token issuer injected.

    The Visitor and Admin roles are seeded first, since sign-up needs the
    Visitor role to exist.
    """
    async with session_factory() as session:
        await seed_service.seed_visitor_role(session)
        await seed_service.seed_admin_role(session)
        await session.commit()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except UserAuthError:
                await session.commit()
                raise
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_issuer] = lambda: token_issuer

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def signup(client, email="visitor@example.com", username="visitor", password="Secret123"):
    response = await client.post(
        "/api/v1/auth/signup",
        json={"email": email, "username": username, "password": password},
    )
    assert response.status_code == 201, f"Signup failed: {response.text}"
    return response.json()


async def latest_otp_code(session_factory, user_id) -> str:
    async with session_factory() as session:
        result = await session.execute(
            select(Otp.code)
            .where(Otp.user_id == user_id, Otp.is_used.is_(False))
            .order_by(Otp.created_at.desc())
            .limit(1)
        )
        return result.scalar_one()


@pytest_asyncio.fixture
async def verified_user(client, session_factory):
    """
    A Visitor whose email has been verified, ready to log in.

    Returns a dict with id, email, username and password.
    """
    body = await signup(client)
    user_id = body["user"]["id"]

    code = await latest_otp_code(session_factory, uuid.UUID(user_id))
    response = await client.post(
        "/api/v1/auth/verify-otp",
        json={"email": "visitor@example.com", "code": code},
    )
    assert response.status_code == 200, f"Verification failed: {response.text}"

    return {
        "id": user_id,
        "email": "visitor@example.com",
        "username": "visitor",
        "password": "Secret123",
    }


async def grant_role(session_factory, user_id, role_name: str) -> None:
    """Insert a user_roles row directly, the way an operator provisions admins."""
    async with session_factory() as session:
        role = await role_service.get_role_by_name(session, role_name)
        session.add(UserRole(user_id=uuid.UUID(str(user_id)), role_id=role.id))
        await session.commit()


@pytest_asyncio.fixture
async def admin_client(client, session_factory, verified_user):
    """
    Test client authenticated as an Admin through POST /admin/auth/login.

    The admin is the verified_user fixture's user, promoted directly in the
    database.
    """
    await grant_role(session_factory, verified_user["id"], CoreRole.ADMIN.value)

    response = await client.post(
        "/api/v1/admin/auth/login",
        json={"email": verified_user["email"], "password": verified_user["password"]},
    )
    assert response.status_code == 200, f"Admin login failed: {response.text}"
    client.headers["Authorization"] = f"Bearer {response.json()['token']}"
    return client


@pytest_asyncio.fixture
async def superadmin_client(client, session_factory, seed_settings):
    """Test client authenticated as the seeded SuperAdmin."""
    async with session_factory() as session:
        await seed_service.seed_super_admin(session, seed_settings)
        await session.commit()

    response = await client.post(
        "/api/v1/admin/auth/login",
        json={"email": seed_service.SUPER_ADMIN_EMAIL, "password": SUPER_ADMIN_PASSWORD},
    )
    assert response.status_code == 200, f"SuperAdmin login failed: {response.text}"
    client.headers["Authorization"] = f"Bearer {response.json()['token']}"
    return client


async def get_user(session_factory, user_id) -> User:
    async with session_factory() as session:
        return await session.get(User, uuid.UUID(str(user_id)))
