"""
User service — user lookups, uniqueness checks and role membership.

This module handles:
  - Loading users by email, by email-or-username, or by id
  - Checking email and username uniqueness in a single query
  - Loading a user's roles (with permissions) as a UserRoles record
  - Assigning and removing roles through the user_roles join table
  - Activation / deactivation

Role membership goes through userauth.access for the duplicate check and is
backed by the unique (user_id, role_id) constraint on the join table.
"""

import logging
import uuid

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from userauth import access
from userauth.access import UserRoles
from userauth.exceptions import (
    AuthorizationError,
    NotFoundError,
    email_already_exists,
    username_already_exists,
)
from userauth.models.role import RESERVED_ROLE_NAMES, Role, UserRole
from userauth.models.user import User
from userauth.services import role_service


logger = logging.getLogger("userauth.users")


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> User:
    """
    Raises:
        NotFoundError: No user has this email.
    """
    normalized = normalize_email(email)
    result = await db.execute(select(User).where(User.email == normalized))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", "email", normalized)
    return user


async def get_user_by_credentials(db: AsyncSession, credentials: str) -> User:
    """
    Load a user by email or username, without filtering on account status.

    Status is checked by the caller after the password, so a locked account
    and a wrong password are not told apart before the password is known.

    Raises:
        NotFoundError: Neither an email nor a username matches.
    """
    value = credentials.strip()
    result = await db.execute(
        select(User).where(
            or_(User.email == value.lower(), User.username == value)
        )
    )
    user = result.scalars().first()
    if user is None:
        raise NotFoundError("User", "credentials", value)
    return user


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", "id", user_id)
    return user


async def ensure_unique_credentials(db: AsyncSession, email: str, username: str) -> None:
    """
    Check email and username against existing users in one round trip.

    Raises:
        ConflictError: The email or the username is already taken (email wins
            when both are).
    """
    normalized = normalize_email(email)
    result = await db.execute(
        select(User.email, User.username).where(
            or_(User.email == normalized, User.username == username)
        )
    )
    rows = result.all()
    if any(row.email == normalized for row in rows):
        raise email_already_exists(normalized)
    if any(row.username == username for row in rows):
        raise username_already_exists(username)


async def load_user_roles(db: AsyncSession, user_id: uuid.UUID) -> UserRoles:
    """The user's roles in assignment order, each with its permissions."""
    result = await db.execute(
        select(Role)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user_id)
        .order_by(UserRole.created_at, Role.name)
    )
    roles = list(result.scalars().all())
    grants = await role_service.load_role_grants(db, roles)
    return UserRoles(user_id=user_id, roles=grants)


async def user_role_exists(db: AsyncSession, user_id: uuid.UUID, role_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(UserRole.id).where(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id,
        )
    )
    return result.first() is not None


async def assign_role_to_user(db: AsyncSession, user_id: uuid.UUID, role: Role) -> UserRoles:
    """
    Give the user a role.

    Raises:
        ConflictError: The user already holds the role.
    """
    user_roles = await load_user_roles(db, user_id)
    grant = (await role_service.load_role_grants(db, [role]))[0]
    access.assign_role(user_roles, grant)

    db.add(UserRole(user_id=user_id, role_id=role.id))
    await db.flush()
    logger.info("Assigned role %s to user %s", role.name, user_id)
    return user_roles


async def remove_role_from_user(db: AsyncSession, user_id: uuid.UUID, role_id: uuid.UUID) -> bool:
    """Returns False when the user did not hold the role."""
    user_roles = await load_user_roles(db, user_id)
    if not access.remove_role(user_roles, role_id):
        return False

    await db.execute(
        delete(UserRole).where(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id,
        )
    )
    await db.flush()
    logger.info("Removed role %s from user %s", role_id, user_id)
    return True


async def set_active(db: AsyncSession, user_id: uuid.UUID, active: bool) -> User:
    user = await get_user_by_id(db, user_id)
    if active:
        user.activate()
    else:
        user.deactivate()
    await db.flush()
    logger.info("User %s %s", user_id, "activated" if active else "deactivated")
    return user


async def admin_assign_role(
    db: AsyncSession,
    user_id: uuid.UUID,
    role_id: uuid.UUID,
    allow_reserved: bool,
) -> UserRoles:
    """
    Assign a role on behalf of an administrator.

    Args:
        allow_reserved: Whether the caller may hand out Admin/SuperAdmin.
            Only SuperAdmins may.

    Raises:
        NotFoundError: The user or the role does not exist.
        AuthorizationError: The role is reserved and allow_reserved is False.
        ConflictError: The user already holds the role.
    """
    await get_user_by_id(db, user_id)
    role = await role_service.get_role(db, role_id)
    _check_reserved(role, allow_reserved)
    return await assign_role_to_user(db, user_id, role)


async def admin_remove_role(
    db: AsyncSession,
    user_id: uuid.UUID,
    role_id: uuid.UUID,
    allow_reserved: bool,
) -> None:
    """
    Raises:
        NotFoundError: The user or the role does not exist, or the user does
            not hold the role.
        AuthorizationError: The role is reserved and allow_reserved is False.
    """
    await get_user_by_id(db, user_id)
    role = await role_service.get_role(db, role_id)
    _check_reserved(role, allow_reserved)
    if not await remove_role_from_user(db, user_id, role_id):
        raise NotFoundError(
            "UserRole",
            detail=f"User does not hold role '{role.name}'",
            code="role_not_assigned",
        )


def _check_reserved(role: Role, allow_reserved: bool) -> None:
    if role.name in RESERVED_ROLE_NAMES and not allow_reserved:
        raise AuthorizationError(
            f"Only a SuperAdmin can manage the '{role.name}' role",
            code="reserved_role",
        )
