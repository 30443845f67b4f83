"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form a chain that turns the bearer token into a typed claim set and then
checks a named policy against it:

  get_current_claims (Bearer token -> ClaimSet)              [401 on failure]
      └── require_policy(name) (ClaimSet -> ClaimSet)        [403 on failure]
              └── get_current_user_id (ClaimSet -> UUID)

Policies (see userauth.policies):
  - RequireVerifiedUser / RequireActiveUser / RequireLoggedInUser: the
    matching status claim must be "true".
  - RequireAdminOnly: an Admin or SuperAdmin role claim.
  - RequireSuperAdminOnly: a SuperAdmin role claim.

Authorization is decided from the token alone. A user deactivated after their
token was issued keeps passing status policies until the token expires.
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from userauth import policies
from userauth.claims import ClaimSet
from userauth.exceptions import AuthenticationError
from userauth.security import TokenIssuer, get_token_issuer


# OAuth2PasswordBearer reads the "Authorization: Bearer <token>" header.
# tokenUrl only feeds Swagger UI's "Authorize" button.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_claims(
    token: str = Depends(oauth2_scheme),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> ClaimSet:
    """
    Validate the bearer token and return its claims.

    Raises:
        HTTPException 401: The token is missing, expired, tampered with, or
            issued for another audience.
    """
    try:
        return token_issuer.decode(token)
    except AuthenticationError:
        raise _credentials_exception()


def require_policy(policy_name: str):
    """
    Build a dependency that admits only callers satisfying `policy_name`.

    Usage:
        @router.get("/me", dependencies=[Depends(require_policy(REQUIRE_ACTIVE_USER))])
    """

    async def check_policy(
        claim_set: ClaimSet = Depends(get_current_claims),
    ) -> ClaimSet:
        if not policies.evaluate(policy_name, claim_set):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied by policy '{policy_name}'",
            )
        return claim_set

    check_policy.__name__ = f"require_{policy_name}"
    return check_policy


async def get_current_user_id(
    claim_set: ClaimSet = Depends(get_current_claims),
) -> uuid.UUID:
    try:
        return uuid.UUID(claim_set.subject)
    except ValueError:
        raise _credentials_exception()
