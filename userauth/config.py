"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. The .env file is gitignored; .env.example is the safe template.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

The settings object is built exactly once, at import time. A missing or blank
JWT_SECRET aborts startup with a validation error instead of silently signing
tokens with an empty key.

Usage:
    from userauth.config import settings
    print(settings.JWT_ISSUER)
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Hours a token stays valid when JWT_EXPIRATION is absent or not an integer
DEFAULT_JWT_EXPIRATION_HOURS = 24


class Settings(BaseSettings):
    """
    Central configuration for the User Auth API.

    Required fields (no defaults) MUST be set in .env or environment:
      - JWT_SECRET: Used to sign and verify access tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    APP_NAME: str = "User Auth API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for local runs; swap to a PostgreSQL asyncpg URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/userauth.db"

    # --- Tokens ---
    # REQUIRED: no default, the operator must set a real secret
    JWT_SECRET: str
    JWT_ISSUER: str = "userauth"
    JWT_AUDIENCE: str = "userauth-clients"
    # Kept as a raw string: an unparsable value falls back to the default
    # lifetime rather than refusing to start
    JWT_EXPIRATION: str | None = None

    # --- Seeding ---
    # Password for the seeded SuperAdmin account; seeding fails without it
    DEFAULT_USER_PASSWORD: str | None = None
    SEED_ON_STARTUP: bool = True

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("JWT_SECRET")
    @classmethod
    def secret_must_not_be_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("JWT_SECRET is missing or empty")
        return value

    @property
    def jwt_expiration_hours(self) -> int:
        """Token lifetime in hours, with the documented fallback."""
        try:
            hours = int(self.JWT_EXPIRATION)
        except (TypeError, ValueError):
            return DEFAULT_JWT_EXPIRATION_HOURS
        return hours if hours > 0 else DEFAULT_JWT_EXPIRATION_HOURS


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
