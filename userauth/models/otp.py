"""
OTP model — a short-lived, single-use numeric code bound to a user and purpose.

An OTP is valid only while all three hold:
  - it has not been used
  - the current time is at or before expires_at
  - fewer than MAX_OTP_ATTEMPTS wrong guesses have been recorded against it

Codes are consumed exactly once via mark_as_used(). Resending or verifying a
code for a (user, purpose) pair marks every other outstanding code for that
pair as used, so at most one code is live at a time.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import String, Boolean, Integer, DateTime, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from userauth.database import Base, as_utc, utcnow


OTP_CODE_LENGTH = 6
OTP_EXPIRATION_MINUTES = 60
MAX_OTP_ATTEMPTS = 3


class OtpPurpose(str, enum.Enum):
    EMAIL_VERIFICATION = "EmailVerification"
    PASSWORD_RESET = "PasswordReset"
    TWO_FACTOR = "TwoFactorAuthentication"
    ACCOUNT_RECOVERY = "AccountRecovery"


class Otp(Base):
    __tablename__ = "otps"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(OTP_CODE_LENGTH), nullable=False)
    purpose: Mapped[OtpPurpose] = mapped_column(Enum(OtpPurpose), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    @classmethod
    def create(
        cls,
        user_id: uuid.UUID,
        code: str,
        purpose: OtpPurpose,
        expires_at: datetime,
    ) -> "Otp":
        return cls(
            id=uuid.uuid4(),
            user_id=user_id,
            code=code,
            purpose=purpose,
            expires_at=expires_at,
            attempt_count=0,
            is_used=False,
            created_at=utcnow(),
        )

    def mark_as_used(self) -> None:
        self.is_used = True
        self.used_at = utcnow()

    def increment_attempt_count(self) -> None:
        self.attempt_count += 1

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > as_utc(self.expires_at)

    def has_max_attempts_reached(self) -> bool:
        return self.attempt_count >= MAX_OTP_ATTEMPTS

    def is_valid(self, now: datetime | None = None) -> bool:
        return (
            not self.is_used
            and not self.is_expired(now)
            and not self.has_max_attempts_reached()
        )
