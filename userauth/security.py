"""
Security utilities: password hashing and access tokens.

This module centralizes all cryptographic operations so they're easy to
audit and update. Two concerns are handled here:

1. PASSWORD HASHING (PBKDF2-HMAC-SHA256)
   - Passwords are never stored in plaintext
   - 16-byte random salt, 32-byte derived key, 100,000 iterations
   - Stored as "v1:" + base64(salt || key); the prefix versions the format so
     parameters can change later without breaking existing hashes
   - Verification fails closed: any malformed stored value is "no match"

2. ACCESS TOKENS (JWT, HS256)
   - After login or sign-up the user receives a signed JWT carrying their
     roles, permissions and account-status flags (see userauth.claims)
   - Signed with JWT_SECRET; issuer and audience are checked on decode
   - Zero clock-skew tolerance: a token is dead the second it expires

Plaintext passwords and tokens are never logged.
"""

import base64
import binascii
import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Iterable

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from jose import JWTError, jwt

from userauth import claims
from userauth.claims import ClaimSet
from userauth.config import DEFAULT_JWT_EXPIRATION_HOURS, Settings, settings
from userauth.exceptions import AuthenticationError, ConfigurationError


logger = logging.getLogger("userauth.security")


# ---------------------------------------------------------------------------
# 1. Password Hashing (PBKDF2-HMAC-SHA256)
# ---------------------------------------------------------------------------

HASH_VERSION_PREFIX = "v1:"
SALT_SIZE = 16
KEY_SIZE = 32
ITERATIONS = 100_000


def _kdf(salt: bytes) -> PBKDF2HMAC:
    # A PBKDF2HMAC instance is single-use, so build one per derive/verify
    return PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=ITERATIONS,
    )


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password with a fresh random salt.

    Args:
        plain_password: The user's raw password input.

    Returns:
        "v1:" followed by base64(salt || derived key).
    """
    salt = os.urandom(SALT_SIZE)
    key = _kdf(salt).derive(plain_password.encode("utf-8"))
    return HASH_VERSION_PREFIX + base64.b64encode(salt + key).decode("ascii")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a plaintext password against a stored hash.

    Never raises. Returns False for a blank hash, an unknown version prefix,
    broken base64, or a payload of the wrong length. The key comparison is
    constant-time.
    """
    if not hashed_password or not hashed_password.strip():
        return False
    if not hashed_password.startswith(HASH_VERSION_PREFIX):
        return False

    try:
        raw = base64.b64decode(hashed_password[len(HASH_VERSION_PREFIX):], validate=True)
    except (binascii.Error, ValueError):
        return False

    if len(raw) != SALT_SIZE + KEY_SIZE:
        return False

    salt, stored_key = raw[:SALT_SIZE], raw[SALT_SIZE:]
    try:
        _kdf(salt).verify(plain_password.encode("utf-8"), stored_key)
    except (InvalidKey, UnicodeEncodeError):
        return False
    return True


# ---------------------------------------------------------------------------
# 2. Access Tokens
# ---------------------------------------------------------------------------

ALGORITHM = "HS256"


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenIssuer:
    """
    Mints and validates signed access tokens.

    Built once per process from the settings object. Construction fails with
    ConfigurationError when the secret is missing, so a misconfigured service
    dies at startup rather than on the first login.
    """

    def __init__(
        self,
        secret: str | None,
        issuer: str,
        audience: str,
        expiration_hours: int = DEFAULT_JWT_EXPIRATION_HOURS,
    ):
        if not secret or not secret.strip():
            raise ConfigurationError("JWT secret is missing or empty", code="jwt_secret_missing")
        self._secret = secret
        self.issuer = issuer
        self.audience = audience
        self.expiration_hours = expiration_hours

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenIssuer":
        return cls(
            secret=config.JWT_SECRET,
            issuer=config.JWT_ISSUER,
            audience=config.JWT_AUDIENCE,
            expiration_hours=config.jwt_expiration_hours,
        )

    def issue(
        self,
        user_id: uuid.UUID,
        email: str | None,
        username: str,
        roles: Iterable[str],
        permissions: Iterable[str],
        is_verified: bool,
        is_active: bool,
        is_logged_in: bool,
        auth_provider: str,
    ) -> IssuedToken:
        """
        Create a signed token for the given identity snapshot.

        Args:
            roles: Role names; each becomes an entry of the "role" claim.
            permissions: "resource:action" strings; de-duplicated and packed
                into the single "permissions" claim as a JSON array string.

        Returns:
            The compact token and its expiry time (UTC).
        """
        now = datetime.now(timezone.utc).replace(microsecond=0)
        expires_at = now + timedelta(hours=self.expiration_hours)

        payload = {
            claims.SUBJECT: str(user_id),
            claims.USERNAME: username,
            claims.EMAIL: email,
            claims.TOKEN_ID: str(uuid.uuid4()),
            claims.ISSUED_AT: int(now.timestamp()),
            claims.EXPIRES_AT: int(expires_at.timestamp()),
            claims.AUTH_PROVIDER: getattr(auth_provider, "value", auth_provider),
            claims.ROLE: list(roles),
            claims.IS_VERIFIED: bool(is_verified),
            claims.IS_ACTIVE: bool(is_active),
            claims.IS_LOGGED_IN: bool(is_logged_in),
            "iss": self.issuer,
            "aud": self.audience,
        }

        permission_keys = list(dict.fromkeys(permissions))
        if permission_keys:
            payload[claims.PERMISSIONS] = json.dumps(permission_keys)

        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        return IssuedToken(token=token, expires_at=expires_at)

    def decode(self, token: str) -> ClaimSet:
        """
        Validate signature, issuer, audience and lifetime, then type the claims.

        Raises:
            AuthenticationError: The token is expired, tampered with, issued
                for someone else, or missing its subject.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={"leeway": 0, "require_exp": True, "require_sub": True},
            )
            return ClaimSet.from_payload(payload)
        except (JWTError, KeyError, TypeError) as exc:
            logger.debug("Rejected access token: %s", type(exc).__name__)
            raise AuthenticationError("Could not validate credentials", code="invalid_token")


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Process-wide issuer, built from settings on first use."""
    return TokenIssuer.from_settings(settings)
