"""
Session manager — decides create-vs-rotate for a device session and
mints the token pair.

Login on a new device and login on a known device go through the same
routine: the row for (user, device) is created or overwritten in place,
always with a fresh secret, so logging in again is idempotent per device
apart from the rotated material.

Refresh goes through `rotate_device_session`, which only writes if the
presented refresh token is still the stored one.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from device_auth.core.exceptions import InvalidRefreshTokenError
from device_auth.core.security import TokenIssuer
from device_auth.models.device_session import DeviceSession
from device_auth.models.user import User
from device_auth.services import session_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceTokens:
    access_token: str
    refresh_token: str
    expired_at: datetime


def _mint(issuer: TokenIssuer, user: User, device_id: str) -> tuple[DeviceTokens, str]:
    secret_key = issuer.new_secret_key()
    tokens = DeviceTokens(
        access_token=issuer.issue_access_token(user.user_id, user.role, device_id, secret_key),
        refresh_token=issuer.issue_refresh_token(user.user_id, device_id),
        expired_at=issuer.access_expiry(datetime.now(timezone.utc)),
    )
    return tokens, secret_key


async def handle_device_session(
    user: User,
    mac_id: str | None,
    device_id: str,
    ip_address: str | None,
    user_agent: str | None,
    issuer: TokenIssuer,
    db: AsyncSession,
) -> DeviceTokens:
    """Create or refresh the user's session for `device_id`."""
    tokens, secret_key = _mint(issuer, user, device_id)

    session, created = await session_service.create_or_update_session(
        user,
        device_id,
        {
            "mac_id": mac_id,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "secret_key": secret_key,
            "refresh_token": tokens.refresh_token,
            "expired_at": tokens.expired_at,
        },
        db,
    )
    logger.info(
        "%s device session %s for user %s",
        "Created" if created else "Rotated",
        session.id,
        user.user_id,
    )
    return tokens


async def rotate_device_session(
    session: DeviceSession,
    presented_token: str,
    issuer: TokenIssuer,
    db: AsyncSession,
) -> DeviceTokens:
    """
    Replace the secret, refresh token and expiry of `session`.

    Raises InvalidRefreshTokenError if a concurrent refresh consumed
    `presented_token` first.
    """
    tokens, secret_key = _mint(issuer, session.user, session.device_id)

    rotated = await session_service.rotate_session(
        session,
        presented_token,
        {
            "secret_key": secret_key,
            "refresh_token": tokens.refresh_token,
            "expired_at": tokens.expired_at,
        },
        db,
    )
    if not rotated:
        logger.warning("Refresh race lost for device session %s", session.id)
        raise InvalidRefreshTokenError()

    logger.info("Rotated device session %s for user %s", session.id, session.user_id)
    return tokens
