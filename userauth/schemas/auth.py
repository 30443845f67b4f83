"""
Pydantic schemas for the authentication endpoints.

These schemas define the request/response contracts for sign-up, login and
email verification. Pydantic validates incoming data automatically: a
missing field, a malformed email or a weak password is rejected with a 422
before any service code runs.

Sign-up rules:
  - username: 3-20 characters; letters, digits, spaces and hyphens
  - password: at least 6 characters with a lowercase letter, an uppercase
    letter and a digit
"""

import re
import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from userauth.schemas.user import UserResponse


MIN_USERNAME_LENGTH = 3
MAX_USERNAME_LENGTH = 20
MIN_PASSWORD_LENGTH = 6

USERNAME_PATTERN = r"^[a-zA-Z0-9\-\s]+$"
_PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[0-9])")


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup."""
    email: EmailStr
    username: str = Field(
        min_length=MIN_USERNAME_LENGTH,
        max_length=MAX_USERNAME_LENGTH,
        pattern=USERNAME_PATTERN,
    )
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)

    @field_validator("password")
    @classmethod
    def password_must_be_strong(cls, value: str) -> str:
        if not _PASSWORD_RULE.match(value):
            raise ValueError(
                "Password must contain at least one lowercase letter, "
                "one uppercase letter, and one number"
            )
        return value


class LoginRequest(BaseModel):
    """Request body for POST /auth/login. `credentials` is an email or a username."""
    credentials: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AdminLoginRequest(BaseModel):
    """Request body for POST /admin/auth/login."""
    email: EmailStr
    password: str = Field(min_length=1)


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    code: str = Field(min_length=1)


class ResendOtpRequest(BaseModel):
    email: EmailStr


class AuthResponse(BaseModel):
    """Response body for a successful login — user snapshot + JWT."""
    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_at: datetime


class SignupResponse(AuthResponse):
    """Sign-up also tells the client an email code is waiting."""
    verification_required: bool = True


class VerifyOtpResponse(BaseModel):
    is_success: bool


class ResendOtpResponse(BaseModel):
    otp_id: uuid.UUID
    message: str = "A new verification code has been sent"


class MessageResponse(BaseModel):
    message: str
