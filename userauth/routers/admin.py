"""
Admin router — administrator login, role administration and user administration.

Endpoints:
  POST   /admin/auth/login                         — Admin/SuperAdmin login
  GET    /admin/roles                              — List roles with permissions   [SuperAdmin]
  POST   /admin/roles                              — Create a custom role          [SuperAdmin]
  POST   /admin/roles/{role_id}/permissions        — Grant a permission to a role  [SuperAdmin]
  POST   /admin/users/{user_id}/roles              — Assign a role to a user       [Admin]
  DELETE /admin/users/{user_id}/roles/{role_id}    — Remove a role from a user     [Admin]
  POST   /admin/users/{user_id}/activate           — Re-enable a user              [Admin]
  POST   /admin/users/{user_id}/deactivate         — Disable a user (forces logout) [Admin]

[Admin] means RequireAdminOnly, which admits Admin and SuperAdmin. Reserved
roles (Admin, SuperAdmin) can be assigned or removed by a SuperAdmin only.

By consolidating all admin routes in one router, we avoid route-ordering
conflicts that arise when multiple routers share a prefix and have
overlapping parameterized paths.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from userauth import policies
from userauth.access import flatten_permissions
from userauth.claims import ClaimSet
from userauth.database import get_db
from userauth.dependencies import require_policy
from userauth.policies import REQUIRE_ADMIN_ONLY, REQUIRE_SUPER_ADMIN_ONLY
from userauth.schemas.auth import AdminLoginRequest, AuthResponse
from userauth.schemas.role import (
    AssignRoleRequest,
    PermissionGrantRequest,
    PermissionResponse,
    RoleCreateRequest,
    RoleResponse,
)
from userauth.schemas.user import UserResponse, UserStatusResponse
from userauth.security import TokenIssuer, get_token_issuer
from userauth.services import auth_service, role_service, user_service

router = APIRouter()

require_admin = require_policy(REQUIRE_ADMIN_ONLY)
require_super_admin = require_policy(REQUIRE_SUPER_ADMIN_ONLY)


# ---------------------------------------------------------------------------
# Admin login
# ---------------------------------------------------------------------------

@router.post(
    "/auth/login",
    response_model=AuthResponse,
    summary="[Admin] Authenticate and get a token",
)
async def admin_login(
    request: AdminLoginRequest,
    db: AsyncSession = Depends(get_db),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Authenticate an Admin or SuperAdmin by email and password.

    A valid user without an admin role gets 401, the same status family as
    a bad token, so the endpoint does not confirm which accounts are admins.
    """
    result = await auth_service.admin_login(
        db=db,
        token_issuer=token_issuer,
        email=request.email,
        password=request.password,
    )
    return AuthResponse(
        user=UserResponse.build(result.user, result.roles, result.permissions),
        token=result.token,
        expires_at=result.expires_at,
    )


# ---------------------------------------------------------------------------
# Role administration (SuperAdmin only)
# ---------------------------------------------------------------------------

@router.get(
    "/roles",
    response_model=list[RoleResponse],
    dependencies=[Depends(require_super_admin)],
    summary="[SuperAdmin] List roles",
)
async def list_roles(db: AsyncSession = Depends(get_db)):
    grants = await role_service.list_roles(db)
    return [RoleResponse.from_grant(grant) for grant in grants]


@router.post(
    "/roles",
    response_model=RoleResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_super_admin)],
    summary="[SuperAdmin] Create a role",
)
async def create_role(
    request: RoleCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Admin and SuperAdmin are reserved names and are rejected with 400."""
    role = await role_service.create_role(db, request.name, request.description)
    return RoleResponse(id=role.id, name=role.name, description=role.description)


@router.post(
    "/roles/{role_id}/permissions",
    response_model=PermissionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_super_admin)],
    summary="[SuperAdmin] Grant a permission to a role",
)
async def grant_permission(
    role_id: uuid.UUID,
    request: PermissionGrantRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    The permission is created on first use. Tokens issued before the grant
    do not carry it; users pick it up at their next login.
    """
    return await role_service.grant_permission(
        db,
        role_id=role_id,
        resource=request.resource,
        action=request.action,
        description=request.description,
    )


# ---------------------------------------------------------------------------
# User administration (Admin or SuperAdmin)
# ---------------------------------------------------------------------------

@router.post(
    "/users/{user_id}/roles",
    response_model=UserResponse,
    summary="[Admin] Assign a role to a user",
)
async def assign_role(
    user_id: uuid.UUID,
    request: AssignRoleRequest,
    claim_set: ClaimSet = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user_roles = await user_service.admin_assign_role(
        db,
        user_id=user_id,
        role_id=request.role_id,
        allow_reserved=policies.evaluate(REQUIRE_SUPER_ADMIN_ONLY, claim_set),
    )
    user = await user_service.get_user_by_id(db, user_id)
    return UserResponse.build(user, user_roles.roles, flatten_permissions(user_roles.roles))


@router.delete(
    "/users/{user_id}/roles/{role_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="[Admin] Remove a role from a user",
)
async def remove_role(
    user_id: uuid.UUID,
    role_id: uuid.UUID,
    claim_set: ClaimSet = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await user_service.admin_remove_role(
        db,
        user_id=user_id,
        role_id=role_id,
        allow_reserved=policies.evaluate(REQUIRE_SUPER_ADMIN_ONLY, claim_set),
    )


@router.post(
    "/users/{user_id}/activate",
    response_model=UserStatusResponse,
    dependencies=[Depends(require_admin)],
    summary="[Admin] Activate a user",
)
async def activate_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await user_service.set_active(db, user_id, active=True)


@router.post(
    "/users/{user_id}/deactivate",
    response_model=UserStatusResponse,
    dependencies=[Depends(require_admin)],
    summary="[Admin] Deactivate a user",
)
async def deactivate_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Deactivation also clears the logged-in flag."""
    return await user_service.set_active(db, user_id, active=False)
