"""
Error taxonomy and the FastAPI exception handler that renders it.

Service code raises these domain errors without importing HTTP concepts. Each
error carries an ErrorKind tag; the boundary maps kind -> status code through
one table, so no handler ever has to inspect a message to pick a status.

Exception hierarchy:
    UserAuthError (base)
    ├── NotFoundError        — referenced entity absent (user, role, OTP)   404
    ├── BadRequestError      — invalid input, wrong password, wrong OTP     400
    ├── ConflictError        — uniqueness violation, already verified       409
    ├── AuthenticationError  — insufficient role at admin login, expired
    │                          OTP, invalid/expired token                   401
    ├── AuthorizationError   — inactive/unverified account, OTP attempts
    │                          exhausted, insufficient role                 403
    └── ConfigurationError   — missing signing secret or seed password      500

Every error also carries a short machine-readable ``code`` (e.g.
"insufficient_role", "otp_expired") so clients can distinguish cases that
share a status.
"""

import enum
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


logger = logging.getLogger("userauth.api")


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    CONFLICT = "conflict"
    AUTHENTICATION = "authentication_failed"
    AUTHORIZATION = "authorization_denied"
    INTERNAL = "internal_error"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.INTERNAL: 500,
}


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class UserAuthError(Exception):
    """Base exception for all domain errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, detail: str = "An error occurred", code: str | None = None):
        self.detail = detail
        self.code = code or self.kind.value
        super().__init__(self.detail)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------

class NotFoundError(UserAuthError):
    """Raised when a referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        entity: str,
        key: str | None = None,
        value: object = None,
        *,
        detail: str | None = None,
        code: str | None = None,
    ):
        self.entity = entity
        if detail is None:
            if key is None:
                detail = f"{entity} not found"
            else:
                detail = f"{entity} with {key} '{value}' was not found"
        super().__init__(detail, code or f"{entity.lower()}_not_found")


class BadRequestError(UserAuthError):
    kind = ErrorKind.BAD_REQUEST


class ConflictError(UserAuthError):
    kind = ErrorKind.CONFLICT


class AuthenticationError(UserAuthError):
    kind = ErrorKind.AUTHENTICATION


class AuthorizationError(UserAuthError):
    kind = ErrorKind.AUTHORIZATION


class ConfigurationError(UserAuthError):
    """Raised when required process configuration is missing. Not retried."""

    kind = ErrorKind.INTERNAL


# ---------------------------------------------------------------------------
# Named constructors for the errors the use-cases raise
# ---------------------------------------------------------------------------

def invalid_credentials() -> BadRequestError:
    return BadRequestError("Invalid email or password", code="invalid_credentials")


def insufficient_role() -> AuthenticationError:
    return AuthenticationError(
        "Invalid credentials or insufficient privileges", code="insufficient_role"
    )


def account_inactive(identifier: str) -> AuthorizationError:
    return AuthorizationError(
        f"Account associated with '{identifier}' is inactive. "
        "Please contact support for assistance.",
        code="account_inactive",
    )


def account_not_verified(identifier: str) -> AuthorizationError:
    return AuthorizationError(
        f"The account associated with '{identifier}' is not verified. "
        "Please complete the verification process to continue.",
        code="account_not_verified",
    )


def account_already_verified() -> ConflictError:
    return ConflictError("Account is already verified", code="account_already_verified")


def email_already_exists(email: str) -> ConflictError:
    return ConflictError(f"User with email '{email}' already exists", code="email_taken")


def username_already_exists(username: str) -> ConflictError:
    return ConflictError(f"Username '{username}' is already taken", code="username_taken")


def role_already_exists(name: str) -> ConflictError:
    return ConflictError(f"Role '{name}' already exists", code="role_exists")


def role_already_assigned() -> ConflictError:
    return ConflictError("Role is already assigned to this user", code="role_already_assigned")


def permission_already_granted(resource: str, action: str) -> ConflictError:
    return ConflictError(
        f"Permission '{resource}:{action}' is already granted to this role",
        code="permission_already_granted",
    )


def no_valid_otp() -> NotFoundError:
    return NotFoundError(
        "Otp",
        detail="No valid verification code found. Please request a new verification code",
        code="otp_not_found",
    )


def invalid_otp_code() -> BadRequestError:
    return BadRequestError(
        "Invalid verification code. Please check and try again", code="otp_invalid"
    )


def otp_expired() -> AuthenticationError:
    return AuthenticationError(
        "Verification code has expired. Please request a new verification code",
        code="otp_expired",
    )


def max_otp_attempts_reached() -> AuthorizationError:
    return AuthorizationError(
        "Maximum verification attempts reached. Please request a new verification code",
        code="otp_attempts_exhausted",
    )


# ---------------------------------------------------------------------------
# FastAPI exception handler
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the domain exception handler with the FastAPI application.

    Every UserAuthError becomes {"detail", "error_type", "code"} with the
    status code looked up from its kind. Called once during app setup.
    """

    @app.exception_handler(UserAuthError)
    async def user_auth_error_handler(
        request: Request, exc: UserAuthError
    ) -> JSONResponse:
        if exc.kind is ErrorKind.INTERNAL:
            logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.detail)

        headers = None
        if exc.kind is ErrorKind.AUTHENTICATION:
            headers = {"WWW-Authenticate": "Bearer"}

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "error_type": exc.kind.value,
                "code": exc.code,
            },
            headers=headers,
        )
