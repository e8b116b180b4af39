"""
Pydantic schemas for request / response serialization.

Schemas are deliberately decoupled from SQLAlchemy models so the
API surface can evolve independently of the DB layer.  Request schemas
are the validation layer: malformed payloads get a 422 before any
service code runs.
"""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field


# ── Auth ─────────────────────────────────────────────────────────────
class ProfileFields(BaseModel):
    name: str = Field(default="", max_length=256)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=32)
    avatar: str | None = Field(default=None, max_length=512)
    date_of_birth: date | None = None
    address: str | None = Field(default=None, max_length=512)


class RegisterRequest(ProfileFields):
    account_name: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=128)

    def profile(self) -> dict:
        return self.model_dump(include=set(ProfileFields.model_fields))


class LoginRequest(BaseModel):
    account_name: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)


class UserResponse(BaseModel):
    user_id: int
    account_name: str
    name: str
    email: str | None = None
    phone: str | None = None
    avatar: str | None = None
    date_of_birth: date | None = None
    address: str | None = None
    is_verified: bool
    role: int
    access_token: str
    expired_at: datetime

    model_config = {"from_attributes": True}


class RefreshTokenResponse(BaseModel):
    access_token: str
    expired_at: datetime


# ── Device sessions ──────────────────────────────────────────────────
class DeviceSessionOut(BaseModel):
    """Display-safe view of a session: no secret, no refresh token."""

    id: uuid.UUID
    device_id: str
    mac_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    expired_at: datetime | None = None

    model_config = {"from_attributes": True}


# ── Generic ──────────────────────────────────────────────────────────
class MessageResponse(BaseModel):
    detail: str
