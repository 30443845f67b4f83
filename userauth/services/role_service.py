"""
Role service — roles, permissions, and the role/permission join table.

This module handles:
  - Role lookup (by id or name) and creation
  - Permission lookup by (resource, action) and creation
  - Granting permissions to roles, with duplicate-grant detection
  - Loading roles together with their permissions as typed RoleGrant records

Reserved roles:
  Admin and SuperAdmin are created by the seeder only. create_role() refuses
  those names, and the router restricts role creation to SuperAdmins.
"""

import logging
import uuid
from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from userauth.access import PermissionGrant, RoleGrant
from userauth.exceptions import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    permission_already_granted,
    role_already_exists,
)
from userauth.models.role import RESERVED_ROLE_NAMES, Permission, Role, RolePermission


logger = logging.getLogger("userauth.roles")


async def find_role_by_name(db: AsyncSession, name: str) -> Role | None:
    result = await db.execute(select(Role).where(Role.name == name))
    return result.scalar_one_or_none()


async def get_role_by_name(db: AsyncSession, name: str) -> Role:
    """
    Raises:
        NotFoundError: No role has this name.
    """
    role = await find_role_by_name(db, name)
    if role is None:
        raise NotFoundError("Role", "name", name)
    return role


async def get_role(db: AsyncSession, role_id: uuid.UUID) -> Role:
    role = await db.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role", "id", role_id)
    return role


async def find_permission(db: AsyncSession, resource: str, action: str) -> Permission | None:
    result = await db.execute(
        select(Permission).where(
            Permission.resource == resource,
            Permission.action == action,
        )
    )
    return result.scalar_one_or_none()


async def create_role(db: AsyncSession, name: str, description: str) -> Role:
    """
    Create a custom role.

    Raises:
        BadRequestError: Blank/too-long name or description, or a reserved name.
        ConflictError: A role with this name already exists.
    """
    role = Role.create(name, description)
    if role.name.casefold() in {name.casefold() for name in RESERVED_ROLE_NAMES}:
        raise BadRequestError(f"Role '{role.name}' is reserved", code="role_reserved")
    if await find_role_by_name(db, role.name) is not None:
        raise role_already_exists(role.name)

    db.add(role)
    await db.flush()
    logger.info("Created role %s", role.name)
    return role


async def create_permission(
    db: AsyncSession,
    resource: str,
    action: str,
    description: str,
) -> Permission:
    """
    Raises:
        BadRequestError: Blank or too-long resource, action or description.
        ConflictError: The (resource, action) pair already exists.
    """
    permission = Permission.create(resource, action, description)
    if await find_permission(db, permission.resource, permission.action) is not None:
        raise ConflictError(
            f"Permission '{permission.key}' already exists", code="permission_exists"
        )

    db.add(permission)
    await db.flush()
    return permission


async def get_or_create_permission(
    db: AsyncSession,
    resource: str,
    action: str,
    description: str,
) -> Permission:
    permission = await find_permission(db, resource.strip(), action.strip())
    if permission is not None:
        return permission
    return await create_permission(db, resource, action, description)


async def role_permission_exists(
    db: AsyncSession,
    role_id: uuid.UUID,
    permission_id: uuid.UUID,
) -> bool:
    result = await db.execute(
        select(RolePermission.id).where(
            RolePermission.role_id == role_id,
            RolePermission.permission_id == permission_id,
        )
    )
    return result.first() is not None


async def grant_permission(
    db: AsyncSession,
    role_id: uuid.UUID,
    resource: str,
    action: str,
    description: str,
) -> Permission:
    """
    Grant "resource:action" to a role, creating the permission if it is new.

    Raises:
        NotFoundError: The role does not exist.
        ConflictError: The role already holds this permission.
    """
    role = await get_role(db, role_id)
    permission = await get_or_create_permission(db, resource, action, description)

    if await role_permission_exists(db, role.id, permission.id):
        raise permission_already_granted(permission.resource, permission.action)

    db.add(RolePermission(role_id=role.id, permission_id=permission.id))
    await db.flush()
    logger.info("Granted %s to role %s", permission.key, role.name)
    return permission


async def load_role_grants(
    db: AsyncSession,
    roles: list[Role],
) -> list[RoleGrant]:
    """Attach each role's permissions, keeping the order of `roles`."""
    if not roles:
        return []

    result = await db.execute(
        select(RolePermission.role_id, Permission)
        .join(Permission, Permission.id == RolePermission.permission_id)
        .where(RolePermission.role_id.in_([role.id for role in roles]))
        .order_by(Permission.resource, Permission.action)
    )

    permissions_by_role: dict[uuid.UUID, list[PermissionGrant]] = defaultdict(list)
    for role_id, permission in result.all():
        permissions_by_role[role_id].append(
            PermissionGrant(
                id=permission.id,
                resource=permission.resource,
                action=permission.action,
                description=permission.description,
            )
        )

    return [
        RoleGrant(
            id=role.id,
            name=role.name,
            description=role.description,
            permissions=tuple(permissions_by_role[role.id]),
        )
        for role in roles
    ]


async def list_roles(db: AsyncSession) -> list[RoleGrant]:
    result = await db.execute(select(Role).order_by(Role.name))
    return await load_role_grants(db, list(result.scalars().all()))
