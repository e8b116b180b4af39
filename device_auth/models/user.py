from __future__ import annotations

"""
User model.

Design decisions:
- Numeric autoincrement `user_id`; it is what access and refresh
  tokens carry as `userId`.
- `role` is a plain integer tier.  There is no permission model.
- The user owns its device sessions: deleting a user deletes them
  (ORM cascade plus `ON DELETE CASCADE` on the FK).
"""

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from device_auth.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from device_auth.models.device_session import DeviceSession


class UserRole:
    """Known role tiers.  Stored as plain integers."""

    USER = 0
    ADMIN = 1


class User(Base, TimestampMixin):
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_name: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[int] = mapped_column(Integer, default=UserRole.USER, nullable=False)

    # ── Profile ──────────────────────────────────────────────────────
    name: Mapped[str] = mapped_column(String(256), default="", nullable=False)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(512), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    address: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # ── Relationships ────────────────────────────────────────────────
    device_sessions: Mapped[list["DeviceSession"]] = relationship(  # noqa: F821
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DeviceSession.created_at",
    )

    def __repr__(self) -> str:
        return f"<User {self.account_name}>"
