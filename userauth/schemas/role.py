"""
Pydantic schemas for role and permission administration.

Field limits mirror the column sizes in userauth.models.role.
"""

import uuid

from pydantic import BaseModel, Field

from userauth.access import RoleGrant
from userauth.models.role import (
    MAX_ACTION_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_RESOURCE_LENGTH,
    MAX_ROLE_NAME_LENGTH,
)


class RoleCreateRequest(BaseModel):
    """Request body for POST /admin/roles."""
    name: str = Field(min_length=1, max_length=MAX_ROLE_NAME_LENGTH)
    description: str = Field(min_length=1, max_length=MAX_DESCRIPTION_LENGTH)


class PermissionGrantRequest(BaseModel):
    """Request body for POST /admin/roles/{role_id}/permissions."""
    resource: str = Field(min_length=1, max_length=MAX_RESOURCE_LENGTH)
    action: str = Field(min_length=1, max_length=MAX_ACTION_LENGTH)
    description: str = Field(min_length=1, max_length=MAX_DESCRIPTION_LENGTH)


class AssignRoleRequest(BaseModel):
    """Request body for POST /admin/users/{user_id}/roles."""
    role_id: uuid.UUID


class PermissionResponse(BaseModel):
    id: uuid.UUID
    resource: str
    action: str
    description: str
    key: str

    model_config = {"from_attributes": True}


class RoleResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    permissions: list[PermissionResponse] = []

    @classmethod
    def from_grant(cls, grant: RoleGrant) -> "RoleResponse":
        return cls(
            id=grant.id,
            name=grant.name,
            description=grant.description,
            permissions=[
                PermissionResponse.model_validate(permission)
                for permission in grant.permissions
            ],
        )
