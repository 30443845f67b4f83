"""
OTP service — issuing, validating and retiring one-time codes.

This module handles:
  - Code generation (6 digits, zero-padded)
  - OTP creation with a 60-minute expiry window
  - Validation with attempt counting (max 3 wrong guesses per code)
  - Invalidation of outstanding codes for a (user, purpose) pair
  - Cleanup of expired rows (for an external periodic job)

Randomness:
  Codes come from the `random` module, not `secrets`. A code is only useful
  together with access to the user's mailbox, and every code dies after three
  wrong guesses or 60 minutes. Swap in secrets.randbelow() if the delivery
  channel ever stops being the stronger factor.

Validation outcomes (see validate_otp):
  expired code                       -> AuthenticationError (401)
  attempts exhausted                 -> AuthorizationError (403)
  no matching code and no live code  -> NotFoundError (404)
  wrong code, attempts remaining     -> attempt recorded, BadRequestError (400)
"""

import logging
import random
import uuid
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from userauth.database import utcnow
from userauth.exceptions import (
    invalid_otp_code,
    max_otp_attempts_reached,
    no_valid_otp,
    otp_expired,
)
from userauth.models.otp import (
    OTP_CODE_LENGTH,
    OTP_EXPIRATION_MINUTES,
    Otp,
    OtpPurpose,
)


logger = logging.getLogger("userauth.otp")

_random = random.Random()


def generate_code(length: int = OTP_CODE_LENGTH) -> str:
    """Uniform draw over [0, 10**length), zero-padded to `length` digits."""
    return str(_random.randrange(10 ** length)).zfill(length)


async def create_otp(
    db: AsyncSession,
    user_id: uuid.UUID,
    purpose: OtpPurpose,
) -> Otp:
    """
    Create and stage a new OTP for the user.

    The caller is responsible for invalidating older codes first when only one
    should stay live (see invalidate_existing).
    """
    otp = Otp.create(
        user_id=user_id,
        code=generate_code(),
        purpose=purpose,
        expires_at=utcnow() + timedelta(minutes=OTP_EXPIRATION_MINUTES),
    )
    db.add(otp)
    await db.flush()
    logger.info("Issued %s code for user %s", purpose.value, user_id)
    return otp


async def get_latest_valid_otp(
    db: AsyncSession,
    user_id: uuid.UUID,
    purpose: OtpPurpose,
) -> Otp | None:
    """Most recent unused, unexpired OTP for this user and purpose."""
    result = await db.execute(
        select(Otp)
        .where(
            Otp.user_id == user_id,
            Otp.purpose == purpose,
            Otp.is_used.is_(False),
            Otp.expires_at > utcnow(),
        )
        .order_by(Otp.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def validate_otp(
    db: AsyncSession,
    user_id: uuid.UUID,
    code: str,
    purpose: OtpPurpose,
) -> Otp:
    """
    Find the OTP matching `code` and check it can still be used.

    A wrong guess is charged to the user's latest live code, and that charge
    is flushed before the error is raised so it persists with the request.

    Returns:
        The matching, valid OTP (not yet marked as used).

    Raises:
        AuthenticationError: The matching code has expired.
        AuthorizationError: Attempts on the code are exhausted.
        NotFoundError: No matching code and no live code to charge.
        BadRequestError: Wrong code with attempts remaining.
    """
    result = await db.execute(
        select(Otp)
        .where(
            Otp.user_id == user_id,
            Otp.code == code,
            Otp.purpose == purpose,
            Otp.is_used.is_(False),
        )
        .order_by(Otp.created_at.desc())
        .limit(1)
    )
    matching = result.scalar_one_or_none()

    if matching is not None:
        if matching.is_expired():
            raise otp_expired()
        if matching.has_max_attempts_reached():
            raise max_otp_attempts_reached()
        return matching

    latest = await get_latest_valid_otp(db, user_id, purpose)
    if latest is None:
        raise no_valid_otp()
    if latest.has_max_attempts_reached():
        raise max_otp_attempts_reached()

    latest.increment_attempt_count()
    await db.flush()
    logger.info(
        "Wrong %s code for user %s (attempt %d)",
        purpose.value, user_id, latest.attempt_count,
    )

    if latest.has_max_attempts_reached():
        raise max_otp_attempts_reached()
    raise invalid_otp_code()


async def invalidate_existing(
    db: AsyncSession,
    user_id: uuid.UUID,
    purpose: OtpPurpose,
) -> int:
    """Mark every unused OTP for this user and purpose as used. Returns the count."""
    result = await db.execute(
        select(Otp).where(
            Otp.user_id == user_id,
            Otp.purpose == purpose,
            Otp.is_used.is_(False),
        )
    )
    outstanding = list(result.scalars().all())
    for otp in outstanding:
        otp.mark_as_used()
    await db.flush()
    return len(outstanding)


async def cleanup_expired(db: AsyncSession) -> int:
    """Delete every expired OTP row. Returns how many were removed."""
    result = await db.execute(
        delete(Otp).where(Otp.expires_at <= utcnow())
    )
    await db.flush()
    removed = result.rowcount or 0
    if removed:
        logger.info("Removed %d expired OTPs", removed)
    return removed
