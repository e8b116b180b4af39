"""
Cleanup job — deletes device sessions whose refresh token has expired.

Usage:
    python -m device_auth.scripts.purge_sessions

A session's refresh token is re-issued on every write to the row, so a
row untouched for longer than the refresh-token lifetime can never be
refreshed again.  Expiry is still enforced at refresh time; this job
only keeps the table small.  Safe to run from cron.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from device_auth.core.config import get_settings
from device_auth.core.database import SessionLocal, engine
from device_auth.services import session_service

logger = logging.getLogger("device_auth.scripts.purge_sessions")


async def purge_sessions() -> int:
    settings = get_settings()
    cutoff = datetime.now(timezone.utc) - timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    async with SessionLocal() as session:
        removed = await session_service.delete_stale_sessions(cutoff, session)
        await session.commit()

    logger.info("Purged %d stale device session(s) last written before %s", removed, cutoff.isoformat())
    await engine.dispose()
    return removed


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    asyncio.run(purge_sessions())
