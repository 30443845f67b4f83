"""
Pydantic schemas for User-related responses.

These schemas control what user data is exposed through the API.
password_hash is NEVER included in any response schema.
"""

import uuid
from datetime import datetime
from typing import Iterable

from pydantic import BaseModel

from userauth.access import PermissionGrant, RoleGrant
from userauth.models.user import User


class UserResponse(BaseModel):
    """Public representation of a User with its role names and permission keys."""
    id: uuid.UUID
    email: str | None
    username: str
    auth_provider: str
    is_verified: bool
    is_active: bool
    is_logged_in: bool
    last_login_at: datetime | None = None
    created_at: datetime
    roles: list[str] = []
    permissions: list[str] = []

    @classmethod
    def build(
        cls,
        user: User,
        roles: Iterable[RoleGrant] = (),
        permissions: Iterable[PermissionGrant] = (),
    ) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            auth_provider=user.auth_provider.value,
            is_verified=user.is_verified,
            is_active=user.is_active,
            is_logged_in=user.is_logged_in,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
            roles=[role.name for role in roles],
            permissions=[permission.key for permission in permissions],
        )


class UserStatusResponse(BaseModel):
    id: uuid.UUID
    is_active: bool
    is_logged_in: bool

    model_config = {"from_attributes": True}
