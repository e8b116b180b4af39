"""
Session service — storage helpers for device sessions.

Handles:
- Lookups by (user, device) and by (refresh token, device)
- Provisioning the unbound placeholder row at registration
- Creating a device row without losing a concurrent first login
- Conditional rotation (the presented refresh token must still be the
  stored one)
- Deleting a single session (logout) and purging stale ones

Every lookup is scoped by user as well as device id, so two users may
send the same client-generated device id without colliding.
"""

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from device_auth.models.device_session import DeviceSession
from device_auth.models.user import User

logger = logging.getLogger(__name__)


async def get_session_by_device(
    user_id: int,
    device_id: str,
    db: AsyncSession,
) -> DeviceSession | None:
    stmt = select(DeviceSession).where(
        DeviceSession.user_id == user_id,
        DeviceSession.device_id == device_id,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_session_by_refresh_token(
    refresh_token: str,
    device_id: str,
    db: AsyncSession,
) -> DeviceSession | None:
    """Return the session whose CURRENT refresh token is `refresh_token`.

    The owner is loaded with it: rotation needs the user's role.
    """
    stmt = (
        select(DeviceSession)
        .options(selectinload(DeviceSession.user))
        .where(
            DeviceSession.refresh_token == refresh_token,
            DeviceSession.device_id == device_id,
        )
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_device_sessions(
    user_id: int,
    db: AsyncSession,
) -> list[DeviceSession]:
    """Return the user's sessions that are bound to a device."""
    stmt = (
        select(DeviceSession)
        .where(
            DeviceSession.user_id == user_id,
            DeviceSession.device_id.is_not(None),
        )
        .order_by(DeviceSession.created_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


def add_placeholder_session(user: User) -> DeviceSession:
    """Attach an empty, device-less session to a freshly created user."""
    placeholder = DeviceSession(id=uuid.uuid4())
    user.device_sessions.append(placeholder)
    return placeholder


async def create_or_update_session(
    user: User,
    device_id: str,
    values: dict[str, Any],
    db: AsyncSession,
) -> tuple[DeviceSession, bool]:
    """
    Write `values` onto the user's row for `device_id`, creating it if
    needed.  Returns ``(session, created)``.

    An existing row is updated in place and keeps its id (last writer
    wins).  A new row is inserted inside a SAVEPOINT; if a concurrent
    request inserted the same (user, device) first, the unique
    constraint fires and we update that row instead.
    """
    existing = await get_session_by_device(user.user_id, device_id, db)
    if existing is None:
        new_session = DeviceSession(id=uuid.uuid4(), user_id=user.user_id, device_id=device_id, **values)
        try:
            async with db.begin_nested():
                db.add(new_session)
        except IntegrityError:
            logger.info(
                "Concurrent first login for user %s device %s; updating existing row",
                user.user_id,
                device_id,
            )
            existing = await get_session_by_device(user.user_id, device_id, db)
            if existing is None:
                raise
        else:
            user.device_sessions.append(new_session)
            await db.flush()
            return new_session, True

    for field, value in values.items():
        setattr(existing, field, value)
    existing.version += 1
    await db.flush()
    return existing, False


async def rotate_session(
    session: DeviceSession,
    presented_token: str,
    values: dict[str, Any],
    db: AsyncSession,
) -> bool:
    """
    Apply `values` only if the row still holds `presented_token`.

    Returns False when another request rotated the token first — the
    presented token is then already consumed.
    """
    stmt = (
        update(DeviceSession)
        .where(
            DeviceSession.id == session.id,
            DeviceSession.refresh_token == presented_token,
        )
        .values(**values, version=DeviceSession.version + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        return False
    await db.refresh(session)
    return True


async def delete_session(
    session: DeviceSession,
    db: AsyncSession,
) -> None:
    """Hard-delete a single session (logout)."""
    await db.delete(session)
    await db.flush()


async def delete_stale_sessions(
    last_written_before: datetime,
    db: AsyncSession,
) -> int:
    """
    Delete device-bound sessions untouched since `last_written_before`.

    Returns the number of rows removed.  Placeholder rows are kept.
    """
    stmt = (
        delete(DeviceSession)
        .where(
            DeviceSession.device_id.is_not(None),
            DeviceSession.updated_at < last_written_before,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount
