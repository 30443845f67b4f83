"""
Tests for the seeder.

These tests verify:
  - Seeding creates the core roles, the system permission and the SuperAdmin
  - Running it twice changes nothing
  - A missing DEFAULT_USER_PASSWORD aborts and rolls everything back
"""

import pytest
from sqlalchemy import func, select

from userauth.access import flatten_permissions
from userauth.config import Settings
from userauth.exceptions import ConfigurationError
from userauth.models.role import Permission, Role, RolePermission, UserRole
from userauth.models.user import User
from userauth.security import verify_password
from userauth.services import seed_service, user_service


async def _count(session, model):
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestSeedAll:

    async def test_seeds_roles_and_superadmin(self, session_factory, seed_settings):
        await seed_service.seed_all(session_factory, seed_settings)

        async with session_factory() as session:
            names = set((await session.execute(select(Role.name))).scalars())
            assert names == {"Visitor", "Admin", "SuperAdmin"}

            user = await user_service.get_user_by_email(session, seed_service.SUPER_ADMIN_EMAIL)
            assert user.username == "sigmacool"
            assert user.is_verified and user.is_active
            assert not user.is_logged_in
            assert verify_password(seed_settings.DEFAULT_USER_PASSWORD, user.password_hash)

            user_roles = await user_service.load_user_roles(session, user.id)
            assert user_roles.role_names == ["SuperAdmin"]
            assert [p.key for p in flatten_permissions(user_roles.roles)] == ["system:all"]

    async def test_idempotent(self, session_factory, seed_settings):
        await seed_service.seed_all(session_factory, seed_settings)
        async with session_factory() as session:
            before = [
                await _count(session, model)
                for model in (User, Role, Permission, RolePermission, UserRole)
            ]

        await seed_service.seed_all(session_factory, seed_settings)
        async with session_factory() as session:
            after = [
                await _count(session, model)
                for model in (User, Role, Permission, RolePermission, UserRole)
            ]

        assert before == after
        assert before[2] == len(seed_service.VISITOR_PERMISSIONS) + 1

    async def test_missing_password_rolls_back(self, session_factory):
        config = Settings(JWT_SECRET="test-signing-secret", DEFAULT_USER_PASSWORD=None)

        with pytest.raises(ConfigurationError):
            await seed_service.seed_all(session_factory, config)

        async with session_factory() as session:
            assert await _count(session, Role) == 0
            assert await _count(session, User) == 0
