"""
User model — the authentication identity.

A User is created through one of two factory paths:

  - create_local(): email + username + password hash. Starts unverified; the
    owner proves the email address with an OTP before they can log in.
  - create_external(): an identity asserted by Google or Facebook. Starts
    verified, has no password hash, and may have no email.

Users are never hard-deleted. Status flips instead: deactivate() blocks login
(and forces logout), record_login()/record_logout() track the session flag.

Role membership is not a navigation collection on this class. It lives in the
user_roles join table and is loaded into typed records by the user service.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from userauth.database import Base, utcnow
from userauth.exceptions import BadRequestError, account_inactive, account_not_verified


MAX_USERNAME_LENGTH = 20
MAX_EMAIL_LENGTH = 255


class AuthProvider(str, enum.Enum):
    """Where the user's identity was established."""
    LOCAL = "Local"
    GOOGLE = "Google"
    FACEBOOK = "Facebook"


def _validate_username(username: str) -> None:
    if not username or not username.strip():
        raise BadRequestError("Username is required", code="username_required")
    if len(username) > MAX_USERNAME_LENGTH:
        raise BadRequestError(
            f"Username cannot exceed {MAX_USERNAME_LENGTH} characters",
            code="username_too_long",
        )


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Null only for external providers that don't share an address
    email: Mapped[str | None] = mapped_column(
        String(MAX_EMAIL_LENGTH),
        unique=True,
        nullable=True,
        index=True,
    )

    username: Mapped[str] = mapped_column(
        String(MAX_USERNAME_LENGTH),
        unique=True,
        nullable=False,
        index=True,
    )

    # "v1:" + base64(salt || key); null for external providers
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    auth_provider: Mapped[AuthProvider] = mapped_column(
        Enum(AuthProvider),
        default=AuthProvider.LOCAL,
        nullable=False,
    )

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_logged_in: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # --- Factories ---

    @classmethod
    def create_local(cls, email: str, username: str, password_hash: str) -> "User":
        if not email or not email.strip():
            raise BadRequestError("Email is required for local authentication", code="email_required")
        _validate_username(username)
        if not password_hash or not password_hash.strip():
            raise BadRequestError("Password hash is required for local authentication")

        return cls(
            id=uuid.uuid4(),
            email=email.strip().lower(),
            username=username,
            password_hash=password_hash,
            auth_provider=AuthProvider.LOCAL,
            is_verified=False,
            is_active=True,
            is_logged_in=False,
        )

    @classmethod
    def create_external(
        cls,
        username: str,
        auth_provider: AuthProvider,
        email: str | None = None,
    ) -> "User":
        _validate_username(username)
        if auth_provider is AuthProvider.LOCAL:
            raise BadRequestError("External users need an external provider")

        return cls(
            id=uuid.uuid4(),
            email=email.strip().lower() if email else None,
            username=username,
            password_hash=None,
            auth_provider=auth_provider,
            is_verified=True,
            is_active=True,
            is_logged_in=False,
        )

    # --- State transitions ---

    def mark_as_verified(self) -> None:
        self.is_verified = True

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False
        self.is_logged_in = False

    def update_email(self, new_email: str) -> None:
        """Change the address; the new one has to be verified again."""
        if not new_email or not new_email.strip():
            raise BadRequestError("Email is required", code="email_required")
        self.email = new_email.strip().lower()
        self.is_verified = False

    def update_password(self, new_password_hash: str) -> None:
        if not new_password_hash or not new_password_hash.strip():
            raise BadRequestError("Password hash is required")
        if self.auth_provider is not AuthProvider.LOCAL and not self.email:
            raise BadRequestError("Cannot set a password for a user without email")
        self.password_hash = new_password_hash

    def record_login(self) -> None:
        """
        Flag the session as started.

        Raises:
            AuthorizationError: The account is inactive, or it is a Local
                account whose email has not been verified yet.
        """
        identifier = self.email or self.username
        if not self.is_active:
            raise account_inactive(identifier)
        if self.auth_provider is AuthProvider.LOCAL and not self.is_verified:
            raise account_not_verified(identifier)

        self.is_logged_in = True
        self.last_login_at = utcnow()

    def record_logout(self) -> None:
        self.is_logged_in = False
