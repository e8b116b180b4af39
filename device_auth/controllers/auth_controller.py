"""
Auth controller — register, login, logout, token refresh & session
history.

Register, login and refresh are PUBLIC (refresh is authenticated by its
cookie).  Logout and history require a valid access token.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from device_auth.core.config import Settings, get_settings
from device_auth.core.database import get_db
from device_auth.core.request_context import DeviceContext, get_device_context
from device_auth.core.security import TokenIssuer, get_current_user_token, get_token_issuer
from device_auth.schemas import (
    DeviceSessionOut,
    LoginRequest,
    MessageResponse,
    RefreshTokenResponse,
    RegisterRequest,
    UserResponse,
)
from device_auth.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=bool)
async def register(
    body: RegisterRequest,
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """Create an account."""
    return await auth_service.register(body, settings, db)


@router.post("/login", response_model=UserResponse)
async def login(
    body: LoginRequest,
    response: Response,
    device: DeviceContext = Depends(get_device_context),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """Authenticate with account name + password from a device → access token + refresh cookie."""
    return await auth_service.login(body, device, response, issuer, settings, db)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    token_payload: dict[str, Any] = Depends(get_current_user_token),
    device: DeviceContext = Depends(get_device_context),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """Delete the calling device's session and clear the refresh cookie."""
    await auth_service.logout(token_payload["userId"], device.device_id, response, settings, db)
    return MessageResponse(detail="Logged out successfully")


@router.post("/refresh-token", response_model=RefreshTokenResponse)
async def refresh_token(
    request: Request,
    response: Response,
    device: DeviceContext = Depends(get_device_context),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """Exchange the refresh cookie for a new access token and a rotated cookie."""
    return await auth_service.refresh_token(
        request.cookies.get(settings.REFRESH_COOKIE_NAME), device.device_id, response, issuer, settings, db,
    )


@router.get("/history-session", response_model=list[DeviceSessionOut])
async def history_session(
    token_payload: dict[str, Any] = Depends(get_current_user_token),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's device sessions."""
    return await auth_service.get_history_session(token_payload["userId"], db)
