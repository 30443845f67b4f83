"""
Authentication service — the login, sign-up and verification flows.

This module handles:
  - Admin login (email + password, Admin or SuperAdmin role required)
  - Public login (email or username + password)
  - Public sign-up (Local user, Visitor role, email-verification OTP)
  - OTP verification, OTP resend and logout

Every flow raises its domain errors before the first write, except the
wrong-OTP path, whose attempt counter is meant to persist with the error.
The token issuer is passed in by the caller so tests can mint tokens with
their own secret.

Order of checks in public login: password first, then account status. A
caller who does not know the password learns only "not found" or "invalid
credentials", never whether the account is locked.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from userauth.access import PermissionGrant, RoleGrant, flatten_permissions, has_admin_role
from userauth.exceptions import (
    account_already_verified,
    account_inactive,
    account_not_verified,
    insufficient_role,
    invalid_credentials,
)
from userauth.models.otp import OtpPurpose
from userauth.models.role import CoreRole
from userauth.models.user import User
from userauth.security import TokenIssuer, hash_password, verify_password
from userauth.services import otp_service, role_service, user_service


logger = logging.getLogger("userauth.auth")


@dataclass
class AuthResult:
    """A user snapshot plus the token minted for it."""
    user: User
    roles: list[RoleGrant]
    permissions: list[PermissionGrant]
    token: str
    expires_at: datetime
    verification_required: bool = False


def _issue_for(
    token_issuer: TokenIssuer,
    user: User,
    roles: list[RoleGrant],
    verification_required: bool = False,
) -> AuthResult:
    permissions = flatten_permissions(roles)
    issued = token_issuer.issue(
        user_id=user.id,
        email=user.email,
        username=user.username,
        roles=[role.name for role in roles],
        permissions=[permission.key for permission in permissions],
        is_verified=user.is_verified,
        is_active=user.is_active,
        is_logged_in=user.is_logged_in,
        auth_provider=user.auth_provider,
    )
    return AuthResult(
        user=user,
        roles=roles,
        permissions=permissions,
        token=issued.token,
        expires_at=issued.expires_at,
        verification_required=verification_required,
    )


async def admin_login(
    db: AsyncSession,
    token_issuer: TokenIssuer,
    email: str,
    password: str,
) -> AuthResult:
    """
    Log in an administrator.

    The login is recorded before the token is minted, so the token carries
    is_logged_in=true and can be used for logout straight away.

    Args:
        db: Async database session.
        token_issuer: Signs the returned token.
        email: Admin's email (case-insensitive).
        password: Plaintext password.

    Returns:
        AuthResult with the admin's roles, permissions and token.

    Raises:
        NotFoundError: No user has this email.
        BadRequestError: Wrong password.
        AuthenticationError: The user holds neither Admin nor SuperAdmin.
        AuthorizationError: The account is inactive or unverified.
    """
    user = await user_service.get_user_by_email(db, email)

    if not verify_password(password, user.password_hash):
        logger.warning("Admin login failed for user %s: invalid_credentials", user.id)
        raise invalid_credentials()

    user_roles = await user_service.load_user_roles(db, user.id)
    if not has_admin_role(user_roles.roles):
        logger.warning("Admin login failed for user %s: insufficient_role", user.id)
        raise insufficient_role()

    user.record_login()
    await db.flush()

    result = _issue_for(token_issuer, user, user_roles.roles)
    logger.info("Admin %s logged in", user.id)
    return result


async def public_login(
    db: AsyncSession,
    token_issuer: TokenIssuer,
    credentials: str,
    password: str,
) -> AuthResult:
    """
    Log in with an email address or a username.

    As with admin_login, the returned token already carries is_logged_in=true.

    Raises:
        NotFoundError: Neither an email nor a username matches.
        BadRequestError: Wrong password.
        AuthorizationError: The account is inactive or unverified.
    """
    user = await user_service.get_user_by_credentials(db, credentials)

    if not verify_password(password, user.password_hash):
        logger.warning("Login failed for user %s: invalid_credentials", user.id)
        raise invalid_credentials()

    identifier = user.email or user.username
    if not user.is_active:
        logger.warning("Login failed for user %s: account_inactive", user.id)
        raise account_inactive(identifier)
    if not user.is_verified:
        logger.warning("Login failed for user %s: account_not_verified", user.id)
        raise account_not_verified(identifier)

    user_roles = await user_service.load_user_roles(db, user.id)

    user.record_login()
    await db.flush()

    result = _issue_for(token_issuer, user, user_roles.roles)
    logger.info("User %s logged in", user.id)
    return result


async def public_signup(
    db: AsyncSession,
    token_issuer: TokenIssuer,
    email: str,
    username: str,
    password: str,
) -> AuthResult:
    """
    Register a Local user and send them an email-verification code.

    The new user gets the Visitor role and an unverified account. The token
    returned here carries is_verified=false, so it cannot pass the
    verified-user policy until the OTP is confirmed.

    Raises:
        ConflictError: The email or the username is taken.
        NotFoundError: The Visitor role has not been seeded.
    """
    normalized_email = user_service.normalize_email(email)
    await user_service.ensure_unique_credentials(db, normalized_email, username)

    visitor = await role_service.get_role_by_name(db, CoreRole.VISITOR.value)

    user = User.create_local(normalized_email, username, hash_password(password))
    db.add(user)
    await db.flush()

    await user_service.assign_role_to_user(db, user.id, visitor)
    await otp_service.create_otp(db, user.id, OtpPurpose.EMAIL_VERIFICATION)

    user_roles = await user_service.load_user_roles(db, user.id)
    result = _issue_for(token_issuer, user, user_roles.roles, verification_required=True)
    logger.info("Signed up user %s", user.id)
    return result


async def verify_otp(db: AsyncSession, email: str, code: str) -> User:
    """
    Confirm the user's email with the code they received.

    Raises:
        NotFoundError: No user has this email, or no live code exists.
        ConflictError: The account is already verified. The OTP store is not
            consulted in that case.
        AuthenticationError: The code has expired.
        AuthorizationError: Attempts on the code are exhausted.
        BadRequestError: Wrong code.
    """
    user = await user_service.get_user_by_email(db, email)
    if user.is_verified:
        raise account_already_verified()

    otp = await otp_service.validate_otp(db, user.id, code, OtpPurpose.EMAIL_VERIFICATION)
    otp.mark_as_used()
    user.mark_as_verified()
    await otp_service.invalidate_existing(db, user.id, OtpPurpose.EMAIL_VERIFICATION)

    logger.info("Verified email for user %s", user.id)
    return user


async def resend_otp(db: AsyncSession, email: str) -> uuid.UUID:
    """
    Replace any outstanding email-verification code with a fresh one.

    Returns:
        The new OTP's id.

    Raises:
        NotFoundError: No user has this email.
        ConflictError: The account is already verified.
    """
    user = await user_service.get_user_by_email(db, email)
    if user.is_verified:
        raise account_already_verified()

    retired = await otp_service.invalidate_existing(db, user.id, OtpPurpose.EMAIL_VERIFICATION)
    otp = await otp_service.create_otp(db, user.id, OtpPurpose.EMAIL_VERIFICATION)
    logger.info("Resent verification code for user %s (%d retired)", user.id, retired)
    return otp.id


async def logout(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await user_service.get_user_by_id(db, user_id)
    user.record_logout()
    await db.flush()
    logger.info("User %s logged out", user.id)
    return user
