"""
Password hashing & JWT helpers.

- Passwords are hashed with bcrypt directly (passlib is unmaintained
  and broken with bcrypt>=4.1).  Hashing is CPU-bound, so the async
  wrappers push it onto Starlette's thread pool.
- Access tokens carry userId, role and deviceId and are signed with the
  device session's own secret.  Storing a new secret on the session is
  what revokes the older access tokens.
- Refresh tokens carry userId and deviceId and are signed with the
  configured refresh secret (previous secrets still verify during a
  rotation window).
- `get_current_user_token` validates an access token against the
  server-side session registry on EVERY request.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from device_auth.core.config import Settings, get_settings
from device_auth.core.database import get_db
from device_auth.services import session_service

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# ── Password hashing ────────────────────────────────────────────────


def hash_password(plain: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


async def hash_password_async(plain: str, rounds: int = 10) -> str:
    return await run_in_threadpool(hash_password, plain, rounds)


async def verify_password_async(plain: str, hashed: str) -> bool:
    return await run_in_threadpool(verify_password, plain, hashed)


# Login runs bcrypt against this when the account does not exist, so
# both failure paths cost the same.  Built once per cost factor.
@lru_cache(maxsize=None)
def dummy_password_hash(rounds: int = 10) -> str:
    return hash_password("device-auth-timing-dummy", rounds)


def _verify_dummy_password(plain: str, rounds: int) -> bool:
    return verify_password(plain, dummy_password_hash(rounds))


async def verify_dummy_password_async(plain: str, rounds: int = 10) -> bool:
    """Spend one bcrypt check at `rounds` on a hash nobody owns."""
    return await run_in_threadpool(_verify_dummy_password, plain, rounds)


# ── JWT ──────────────────────────────────────────────────────────────


class TokenIssuer:
    """Signs, decodes and verifies access / refresh tokens."""

    def __init__(self, settings: Settings) -> None:
        self.algorithm = settings.JWT_ALGORITHM
        self.access_ttl = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self._refresh_secret = settings.REFRESH_TOKEN_SECRET
        self._previous_refresh_secrets = list(settings.REFRESH_TOKEN_PREVIOUS_SECRETS)

    @staticmethod
    def new_secret_key() -> str:
        return str(uuid.uuid4())

    def access_expiry(self, now: datetime | None = None) -> datetime:
        return (now or datetime.now(timezone.utc)) + self.access_ttl

    def issue_access_token(self, user_id: int, role: int, device_id: str, secret_key: str) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "userId": user_id,
            "role": role,
            "deviceId": device_id,
            "type": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + self.access_ttl,
        }
        return jwt.encode(payload, secret_key, algorithm=self.algorithm)

    def issue_refresh_token(self, user_id: int, device_id: str) -> str:
        """Sign a refresh token with the current refresh secret.

        `jti` makes every token unique, even two issued in the same
        second for the same device.
        """
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "userId": user_id,
            "deviceId": device_id,
            "type": REFRESH_TOKEN_TYPE,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + self.refresh_ttl,
        }
        return jwt.encode(payload, self._refresh_secret, algorithm=self.algorithm)

    @staticmethod
    def decode(token: str) -> dict[str, Any] | None:
        """Read the claims WITHOUT checking the signature."""
        try:
            return jwt.get_unverified_claims(token)
        except JWTError:
            return None

    def verify(self, token: str, secret: str) -> bool:
        try:
            jwt.decode(token, secret, algorithms=[self.algorithm])
        except JWTError:
            return False
        return True

    def verify_refresh_token(self, token: str) -> bool:
        for secret in (self._refresh_secret, *self._previous_refresh_secrets):
            if self.verify(token, secret):
                return True
        return False

    @staticmethod
    def is_expired(claims: dict[str, Any], now: datetime | None = None) -> bool:
        """True when `exp` has elapsed — or is missing / unreadable."""
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return True
        now = now or datetime.now(timezone.utc)
        return exp <= now.timestamp()


def get_token_issuer(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    return TokenIssuer(settings)


# ── Per-request access-token validation ─────────────────────────────

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_token(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> dict[str, Any]:
    """
    FastAPI dependency — verifies an access token with the secret of
    the device session it was issued for.

    1. Read userId / deviceId from the (not yet trusted) claims.
    2. Load that user's session for that device.
    3. Verify signature & expiry with the session's current secret.

    A token issued before the last rotation (or for a logged-out
    device) fails step 2 or 3.
    """
    claims = issuer.decode(token)
    if not claims or claims.get("type") != ACCESS_TOKEN_TYPE:
        raise _unauthorized()

    user_id = claims.get("userId")
    device_id = claims.get("deviceId")
    if not isinstance(user_id, int) or not isinstance(device_id, str):
        raise _unauthorized()

    session = await session_service.get_session_by_device(user_id, device_id, db)
    if session is None or not session.secret_key:
        raise _unauthorized()

    if not issuer.verify(token, session.secret_key):
        logger.debug("Access token rejected for user %s device %s", user_id, device_id)
        raise _unauthorized()

    return claims
