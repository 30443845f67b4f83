"""
In-memory view of a user's roles and permissions.

The user service loads a user's role/permission rows once per use-case and
hands them over as these typed records. Everything here is pure: no session,
no I/O. The same records feed both the token claims and the admin-role check.

    UserRoles(user_id, roles=[RoleGrant(name="Visitor", permissions=(...)), ...])
        ├── assign_role / remove_role / has_role   — membership invariants
        ├── flatten_permissions                    — union across roles
        └── has_admin_role                         — Admin or SuperAdmin held
"""

import uuid
from dataclasses import dataclass, field

from userauth.exceptions import role_already_assigned
from userauth.models.role import ADMIN_ROLE_NAMES


@dataclass(frozen=True)
class PermissionGrant:
    id: uuid.UUID
    resource: str
    action: str
    description: str = ""

    @property
    def key(self) -> str:
        """Claim rendering: "resource:action"."""
        return f"{self.resource}:{self.action}"


@dataclass(frozen=True)
class RoleGrant:
    id: uuid.UUID
    name: str
    description: str = ""
    permissions: tuple[PermissionGrant, ...] = ()


@dataclass
class UserRoles:
    """The roles one user holds, in assignment order."""

    user_id: uuid.UUID
    roles: list[RoleGrant] = field(default_factory=list)

    @property
    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]


def has_role(user_roles: UserRoles, role_id: uuid.UUID) -> bool:
    return any(role.id == role_id for role in user_roles.roles)


def assign_role(user_roles: UserRoles, role: RoleGrant) -> None:
    """
    Add a role to the user's set.

    Raises:
        ConflictError: The user already holds a role with this id.
    """
    if has_role(user_roles, role.id):
        raise role_already_assigned()
    user_roles.roles.append(role)


def remove_role(user_roles: UserRoles, role_id: uuid.UUID) -> bool:
    """Drop the role if held. Returns False when there was nothing to remove."""
    for index, role in enumerate(user_roles.roles):
        if role.id == role_id:
            del user_roles.roles[index]
            return True
    return False


def flatten_permissions(roles: list[RoleGrant]) -> list[PermissionGrant]:
    """
    Union the permissions of every role, de-duplicated by permission id.

    Order is first-seen, so a user's token lists permissions in the order
    their roles were assigned.
    """
    seen: set[uuid.UUID] = set()
    flattened: list[PermissionGrant] = []
    for role in roles:
        for permission in role.permissions:
            if permission.id in seen:
                continue
            seen.add(permission.id)
            flattened.append(permission)
    return flattened


def has_admin_role(roles: list[RoleGrant]) -> bool:
    return any(role.name in ADMIN_ROLE_NAMES for role in roles)
