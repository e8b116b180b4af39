"""
Async database engine & request-scoped sessions.

`get_db` is the FastAPI dependency every route uses: one AsyncSession
per request, committed when the handler returns, rolled back on any
exception.  Services only ever `flush()`; the commit happens here.
"""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from device_auth.core.config import get_settings

_settings = get_settings()

engine = create_async_engine(
    _settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    connect_args={"timeout": _settings.DB_CONNECT_TIMEOUT_SECONDS},
)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
