"""
tests/conftest.py -- Shared fixtures.

This module provides:
  - settings / issuer: explicit test configuration and token issuer
  - db: an AsyncSession on a fresh in-memory SQLite schema per test
  - client: httpx AsyncClient against the real app, with get_db and
    get_settings overridden to use the same in-memory database

SQLite notes: a StaticPool keeps the single in-memory connection alive
for the whole test.  pysqlite/aiosqlite defer BEGIN on their own, which
breaks SAVEPOINT; the connect/begin listeners below hand transaction
control back to SQLAlchemy (recipe from the SQLAlchemy SQLite docs).

The environment must be set before any device_auth import: the engine
and settings are read at import time.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret-0123456789-abcdefghij")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from starlette.responses import Response  # noqa: E402

from device_auth.core.config import Settings, get_settings  # noqa: E402
from device_auth.core.database import get_db  # noqa: E402
from device_auth.core.request_context import DeviceContext  # noqa: E402
from device_auth.core.security import TokenIssuer  # noqa: E402
from device_auth.main import app  # noqa: E402
from device_auth.models import Base  # noqa: E402

TEST_REFRESH_SECRET = "test-refresh-secret-0123456789-abcdefghij"


def make_settings(**overrides) -> Settings:
    values = {
        "REFRESH_TOKEN_SECRET": TEST_REFRESH_SECRET,
        "BCRYPT_ROUNDS": 4,
    }
    values.update(overrides)
    return Settings(**values)


def device(device_id: str = "device-1", **overrides) -> DeviceContext:
    values = {
        "device_id": device_id,
        "mac_id": "00:11:22:33:44:55",
        "ip_address": "10.0.0.7",
        "user_agent": "pytest-agent/1.0",
    }
    values.update(overrides)
    return DeviceContext(**values)


def _set_cookie_headers(response) -> list[str]:
    # starlette MutableHeaders vs httpx Headers
    headers = response.headers
    if hasattr(headers, "get_list"):
        return headers.get_list("set-cookie")
    return headers.getlist("set-cookie")


def cookie_value(response, name: str = "refreshToken") -> str | None:
    """Return the value a Set-Cookie header on `response` assigns to `name`."""
    for header in _set_cookie_headers(response):
        pair = header.split(";", 1)[0]
        key, _, value = pair.partition("=")
        if key.strip() == name:
            return value.strip().strip('"')
    return None


def cookie_header(response, name: str = "refreshToken") -> str | None:
    for header in _set_cookie_headers(response):
        if header.split("=", 1)[0].strip() == name:
            return header
    return None


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def issuer(settings: Settings) -> TokenIssuer:
    return TokenIssuer(settings)


@pytest.fixture
def response() -> Response:
    return Response()


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, settings) -> AsyncIterator[httpx.AsyncClient]:
    """AsyncClient on the real app; every request gets its own session."""

    async def _get_test_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_settings] = lambda: settings

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()
