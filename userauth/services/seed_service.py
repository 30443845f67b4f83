"""
Seed service — the roles and the SuperAdmin account every install needs.

Seeding is idempotent: each step looks for what it would create and reuses
it, so running it on every startup is safe. All steps share one session and
commit together; any failure rolls the whole run back.

What gets seeded:
  - Visitor role with the content-interaction permissions sign-up relies on
  - Admin role, with no permissions of its own
  - SuperAdmin role with the "system:all" permission
  - The SuperAdmin user, verified and active, password from
    DEFAULT_USER_PASSWORD
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from userauth.config import Settings
from userauth.exceptions import ConfigurationError
from userauth.models.role import CoreRole, Role, UserRole
from userauth.models.user import User
from userauth.security import hash_password
from userauth.services import role_service, user_service


logger = logging.getLogger("userauth.seed")


SUPER_ADMIN_EMAIL = "superadmin@116.com"
SUPER_ADMIN_USERNAME = "sigmacool"

SUPER_ADMIN_ROLE_DESCRIPTION = "Super Administrator with complete system access and control"
ADMIN_ROLE_DESCRIPTION = "Administrator with user management access"
VISITOR_ROLE_DESCRIPTION = (
    "Standard public/visitor user with content access and interaction permissions"
)

SYSTEM_PERMISSION = ("system", "all", "Complete system access - grants all permissions for all resources")

# (resource, action, description)
VISITOR_PERMISSIONS = [
    ("articles", "read", "View articles"),
    ("videos", "read", "View videos"),
    ("contents", "read", "View content"),
    ("own_profile", "read", "View own profile"),
    ("own_profile", "update", "Update own profile"),
    ("likes", "create", "Like content"),
    ("own_likes", "delete", "Remove own likes"),
    ("likes", "read", "View likes"),
    ("comments", "read", "View comments"),
    ("comments", "create", "Create comments"),
    ("own_comments", "update", "Edit own comments"),
    ("own_comments", "delete", "Delete own comments"),
    ("bookmarks", "create", "Bookmark content"),
    ("own_bookmarks", "delete", "Remove own bookmarks"),
    ("own_bookmarks", "read", "View own bookmarks"),
    ("bookmarks", "read", "View bookmarks"),
    ("tags", "read", "View tags"),
    ("categories", "read", "View categories"),
    ("playlists", "create", "Create playlists"),
    ("own_playlists", "update", "Edit own playlists"),
    ("own_playlists", "delete", "Delete own playlists"),
    ("own_playlists", "read", "View own playlists"),
    ("ads_banners", "read", "View banner ads"),
    ("ads_stories", "read", "View story ads"),
    ("rates", "create", "Rate content"),
    ("rates", "read", "View ratings"),
    ("shares", "create", "Share content"),
    ("shares", "read", "View shares"),
    ("own_shares", "read", "View own shares"),
]


async def _get_or_create_role(db: AsyncSession, name: str, description: str) -> Role:
    role = await role_service.find_role_by_name(db, name)
    if role is not None:
        logger.debug("Found existing %s role", name)
        return role

    role = Role.create(name, description)
    db.add(role)
    await db.flush()
    logger.info("Created %s role", name)
    return role


async def _ensure_grants(
    db: AsyncSession,
    role: Role,
    permissions: list[tuple[str, str, str]],
) -> int:
    """Grant whichever of `permissions` the role lacks. Returns how many were added."""
    added = 0
    for resource, action, description in permissions:
        permission = await role_service.get_or_create_permission(db, resource, action, description)
        if await role_service.role_permission_exists(db, role.id, permission.id):
            continue
        await role_service.grant_permission(db, role.id, resource, action, description)
        added += 1
    return added


async def seed_visitor_role(db: AsyncSession) -> Role:
    role = await _get_or_create_role(db, CoreRole.VISITOR.value, VISITOR_ROLE_DESCRIPTION)
    added = await _ensure_grants(db, role, VISITOR_PERMISSIONS)
    logger.info("Visitor role ready (%d permissions added)", added)
    return role


async def seed_admin_role(db: AsyncSession) -> Role:
    return await _get_or_create_role(db, CoreRole.ADMIN.value, ADMIN_ROLE_DESCRIPTION)


async def seed_super_admin(db: AsyncSession, config: Settings) -> User:
    """
    Create the SuperAdmin role, its system permission and the SuperAdmin user.

    Raises:
        ConfigurationError: DEFAULT_USER_PASSWORD is not set.
    """
    role = await _get_or_create_role(db, CoreRole.SUPER_ADMIN.value, SUPER_ADMIN_ROLE_DESCRIPTION)
    await _ensure_grants(db, role, [SYSTEM_PERMISSION])

    result = await db.execute(select(User).where(User.email == SUPER_ADMIN_EMAIL))
    user = result.scalar_one_or_none()

    if user is None:
        password = config.DEFAULT_USER_PASSWORD
        if not password or not password.strip():
            raise ConfigurationError(
                "DEFAULT_USER_PASSWORD must be set to seed the SuperAdmin account",
                code="seed_password_missing",
            )
        user = User.create_local(SUPER_ADMIN_EMAIL, SUPER_ADMIN_USERNAME, hash_password(password))
        user.mark_as_verified()
        db.add(user)
        await db.flush()
        logger.info("Created SuperAdmin user %s", user.id)
    else:
        logger.debug("SuperAdmin user already exists")

    if not await user_service.user_role_exists(db, user.id, role.id):
        db.add(UserRole(user_id=user.id, role_id=role.id))
        await db.flush()
        logger.info("Assigned SuperAdmin role to user %s", user.id)

    return user


async def seed_all(session_factory: async_sessionmaker, config: Settings) -> None:
    """
    Run every seeding step in one transaction.

    Commits once at the end. Any exception rolls back everything and is
    re-raised.
    """
    logger.info("Starting seeding")
    async with session_factory() as session:
        try:
            await seed_visitor_role(session)
            await seed_admin_role(session)
            await seed_super_admin(session, config)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Seeding failed; transaction rolled back")
            raise
    logger.info("Seeding completed")
