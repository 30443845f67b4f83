"""
Authentication router — public sign-up, login and email verification.

Endpoints:
  POST /auth/signup      — Register a Local user; returns a token and sends an OTP
  POST /auth/login       — Authenticate with email or username
  POST /auth/verify-otp  — Confirm the email address with the OTP
  POST /auth/resend-otp  — Replace the outstanding OTP with a new one
  POST /auth/logout      — End the session (RequireLoggedInUser)
  GET  /auth/me          — Current user with roles and permissions (RequireActiveUser)

Security audit notes:
  - Plaintext passwords exist only in memory during request processing;
    they are hashed before any database operation and never logged.
  - OTP codes and tokens appear only in the database and in response
    bodies, never in log lines.
  - No request body logging middleware is installed, so POST bodies
    containing passwords are not written to any log file.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from userauth.access import flatten_permissions
from userauth.database import get_db
from userauth.dependencies import get_current_user_id, require_policy
from userauth.policies import REQUIRE_ACTIVE_USER, REQUIRE_LOGGED_IN_USER
from userauth.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    ResendOtpRequest,
    ResendOtpResponse,
    SignupRequest,
    SignupResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from userauth.schemas.user import UserResponse
from userauth.security import TokenIssuer, get_token_issuer
from userauth.services import auth_service, user_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Register a new Local user with the Visitor role.

    The account starts unverified: the returned token carries
    is_verified=false and login is refused until POST /auth/verify-otp
    succeeds with the emailed code.

    - **email**: Valid format, not already registered
    - **username**: 3-20 letters, digits, spaces or hyphens; not taken
    - **password**: 6+ characters with a lowercase, an uppercase and a digit
    """
    result = await auth_service.public_signup(
        db=db,
        token_issuer=token_issuer,
        email=request.email,
        username=request.username,
        password=request.password,
    )
    return SignupResponse(
        user=UserResponse.build(result.user, result.roles, result.permissions),
        token=result.token,
        expires_at=result.expires_at,
        verification_required=result.verification_required,
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Authenticate with an email address or a username plus password.

    Returns a JWT bearer token that must be included in the Authorization
    header for subsequent requests:

        Authorization: Bearer <token>

    The token expires after JWT_EXPIRATION hours (default: 24).
    """
    result = await auth_service.public_login(
        db=db,
        token_issuer=token_issuer,
        credentials=request.credentials,
        password=request.password,
    )
    return AuthResponse(
        user=UserResponse.build(result.user, result.roles, result.permissions),
        token=result.token,
        expires_at=result.expires_at,
    )


@router.post(
    "/verify-otp",
    response_model=VerifyOtpResponse,
    summary="Verify email with a one-time code",
)
async def verify_otp(
    request: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Each wrong code counts against the outstanding OTP; after three the code
    is dead and a new one must be requested.
    """
    await auth_service.verify_otp(db=db, email=request.email, code=request.code)
    return VerifyOtpResponse(is_success=True)


@router.post(
    "/resend-otp",
    response_model=ResendOtpResponse,
    summary="Request a new verification code",
)
async def resend_otp(
    request: ResendOtpRequest,
    db: AsyncSession = Depends(get_db),
):
    otp_id = await auth_service.resend_otp(db=db, email=request.email)
    return ResendOtpResponse(otp_id=otp_id)


@router.post(
    "/logout",
    response_model=MessageResponse,
    dependencies=[Depends(require_policy(REQUIRE_LOGGED_IN_USER))],
    summary="End the current session",
)
async def logout(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Clear the user's logged-in flag. The token itself stays valid until it
    expires; clients should discard it.
    """
    await auth_service.logout(db=db, user_id=user_id)
    return MessageResponse(message="Logged out")


@router.get(
    "/me",
    response_model=UserResponse,
    dependencies=[Depends(require_policy(REQUIRE_ACTIVE_USER))],
    summary="Get the current user",
)
async def me(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Current database state of the caller, not the token snapshot."""
    user = await user_service.get_user_by_id(db, user_id)
    user_roles = await user_service.load_user_roles(db, user_id)
    return UserResponse.build(user, user_roles.roles, flatten_permissions(user_roles.roles))
