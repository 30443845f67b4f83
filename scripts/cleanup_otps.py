#!/usr/bin/env python3
"""Delete expired OTP rows. Meant for cron or a scheduled job on the server."""
import asyncio
import logging

from userauth.config import settings
from userauth.database import AsyncSessionLocal, engine
from userauth.services import otp_service


async def cleanup():
    async with AsyncSessionLocal() as session:
        removed = await otp_service.cleanup_expired(session)
        await session.commit()
        print(f"Expired OTPs removed: {removed}")
    await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    asyncio.run(cleanup())
