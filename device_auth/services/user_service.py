"""
User service — the credential store.

Account names are unique.  The pre-check gives the friendly error; the
unique index is the backstop when two registrations race.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from device_auth.core.exceptions import DuplicateAccountError
from device_auth.core.security import hash_password_async
from device_auth.models.user import User, UserRole
from device_auth.services import session_service

logger = logging.getLogger(__name__)


async def get_user_by_account_name(
    account_name: str,
    db: AsyncSession,
) -> User | None:
    stmt = select(User).where(User.account_name == account_name)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_user_by_id(
    user_id: int,
    db: AsyncSession,
) -> User | None:
    return await db.get(User, user_id)


async def register_user(
    account_name: str,
    password: str,
    profile: dict[str, Any],
    db: AsyncSession,
    *,
    role: int = UserRole.USER,
    bcrypt_rounds: int = 10,
) -> User:
    """
    Create a user with a bcrypt-hashed password and one placeholder
    device session.  Raises DuplicateAccountError if the name is taken.
    """
    if await get_user_by_account_name(account_name, db) is not None:
        raise DuplicateAccountError()

    user = User(
        account_name=account_name,
        password_hash=await hash_password_async(password, bcrypt_rounds),
        role=role,
        **profile,
    )
    session_service.add_placeholder_session(user)

    try:
        async with db.begin_nested():
            db.add(user)
    except IntegrityError:
        raise DuplicateAccountError()

    logger.info("Registered account %s (user %s)", account_name, user.user_id)
    return user
