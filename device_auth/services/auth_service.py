"""
Authentication service.

Handles:
- Registration (user + placeholder device session)
- Login, bound to the calling device
- Logout of one device (hard delete of its session)
- Refresh-token rotation
- Listing a user's device sessions

The refresh token travels in an http-only cookie; it is set on login
and refresh and expired on logout.  Every refresh token is single-use:
the lookup matches the exact stored value, and rotation replaces it.

All business logic lives here — controllers call service methods
and return the result.
"""

import logging

from fastapi import Response
from sqlalchemy.ext.asyncio import AsyncSession

from device_auth.core.config import Settings
from device_auth.core.exceptions import (
    AccountNotFoundError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    MissingRefreshTokenError,
)
from device_auth.core.request_context import DeviceContext
from device_auth.core.security import (
    REFRESH_TOKEN_TYPE,
    TokenIssuer,
    verify_dummy_password_async,
    verify_password_async,
)
from device_auth.models.device_session import DeviceSession
from device_auth.schemas import (
    DeviceSessionOut,
    LoginRequest,
    RefreshTokenResponse,
    RegisterRequest,
    UserResponse,
)
from device_auth.services import session_manager, session_service, user_service

logger = logging.getLogger(__name__)


# ── Cookie channel ───────────────────────────────────────────────────

def _set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        path="/",
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def _clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        value="",
        max_age=0,
        httponly=True,
        path="/",
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


# ── Register ─────────────────────────────────────────────────────────

async def register(
    body: RegisterRequest,
    settings: Settings,
    db: AsyncSession,
) -> bool:
    await user_service.register_user(
        body.account_name,
        body.password,
        body.profile(),
        db,
        bcrypt_rounds=settings.BCRYPT_ROUNDS,
    )
    return True


# ── Login ────────────────────────────────────────────────────────────

async def login(
    body: LoginRequest,
    device: DeviceContext,
    response: Response,
    issuer: TokenIssuer,
    settings: Settings,
    db: AsyncSession,
) -> UserResponse:
    """
    Verify credentials, then create or rotate the session for the
    calling device.  Both failure paths run bcrypt once and answer with
    the same message.
    """
    user = await user_service.get_user_by_account_name(body.account_name, db)
    if user is None:
        await verify_dummy_password_async(body.password, settings.BCRYPT_ROUNDS)
        logger.info("Login failed: unknown account %s", body.account_name)
        raise AccountNotFoundError()

    if not await verify_password_async(body.password, user.password_hash):
        logger.info("Login failed: wrong password for user %s", user.user_id)
        raise InvalidCredentialsError()

    tokens = await session_manager.handle_device_session(
        user,
        device.mac_id,
        device.device_id,
        device.ip_address,
        device.user_agent,
        issuer,
        db,
    )
    _set_refresh_cookie(response, tokens.refresh_token, settings)

    return UserResponse(
        user_id=user.user_id,
        account_name=user.account_name,
        name=user.name,
        email=user.email,
        phone=user.phone,
        avatar=user.avatar,
        date_of_birth=user.date_of_birth,
        address=user.address,
        is_verified=user.is_verified,
        role=user.role,
        access_token=tokens.access_token,
        expired_at=tokens.expired_at,
    )


# ── Logout ───────────────────────────────────────────────────────────

async def logout(
    user_id: int,
    device_id: str,
    response: Response,
    settings: Settings,
    db: AsyncSession,
) -> bool:
    session = await session_service.get_session_by_device(user_id, device_id, db)
    if session is None or session.user_id != user_id:
        logger.warning("Forbidden logout: user %s device %s", user_id, device_id)
        raise ForbiddenError()

    _clear_refresh_cookie(response, settings)
    await session_service.delete_session(session, db)
    logger.info("Logged out device session %s for user %s", session.id, user_id)
    return True


# ── Refresh ──────────────────────────────────────────────────────────

def _reject_refresh(reason: str, device_id: str) -> InvalidRefreshTokenError:
    logger.info("Refresh rejected (%s) for device %s", reason, device_id)
    return InvalidRefreshTokenError()


async def refresh_token(
    presented_token: str | None,
    device_id: str,
    response: Response,
    issuer: TokenIssuer,
    settings: Settings,
    db: AsyncSession,
) -> RefreshTokenResponse:
    """
    Exchange the refresh cookie for a new access token and a new
    refresh cookie.  Not-found, expired and bad-signature all surface
    as the same InvalidRefreshTokenError.
    """
    if not presented_token:
        raise MissingRefreshTokenError()

    session: DeviceSession | None = await session_service.get_session_by_refresh_token(
        presented_token, device_id, db,
    )
    if session is None:
        raise _reject_refresh("not current", device_id)

    claims = issuer.decode(presented_token)
    if claims is None or issuer.is_expired(claims):
        raise _reject_refresh("expired", device_id)

    if claims.get("type") != REFRESH_TOKEN_TYPE or not issuer.verify_refresh_token(presented_token):
        raise _reject_refresh("bad signature", device_id)

    tokens = await session_manager.rotate_device_session(session, presented_token, issuer, db)
    _set_refresh_cookie(response, tokens.refresh_token, settings)

    return RefreshTokenResponse(
        access_token=tokens.access_token,
        expired_at=tokens.expired_at,
    )


# ── History ──────────────────────────────────────────────────────────

async def get_history_session(
    user_id: int,
    db: AsyncSession,
) -> list[DeviceSessionOut]:
    sessions = await session_service.list_device_sessions(user_id, db)
    return [DeviceSessionOut.model_validate(s) for s in sessions]
