"""
Device session model — one row per (user, device).

Each row binds a user to one client device and carries that device's
current signing material:

- `secret_key` signs the device's access tokens and is replaced on
  every issuance, so replacing it revokes every older access token.
- `refresh_token` is the only refresh token the device may present
  next; a rotated-away value never matches again.
- `version` is bumped on every write and lets rotations be applied
  conditionally.

The row created at registration has no device bound (`device_id` NULL)
and no signing material.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from device_auth.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from device_auth.models.user import User


class DeviceSession(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "device_sessions"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    device_id: Mapped[str | None] = mapped_column(String(256), nullable=True, index=True)
    mac_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    secret_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(String(1024), nullable=True, index=True)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # loaded on demand; see session_service.get_session_by_refresh_token
    user: Mapped["User"] = relationship(back_populates="device_sessions")  # noqa: F821

    __table_args__ = (
        UniqueConstraint("user_id", "device_id", name="uq_device_sessions_user_device"),
    )

    @property
    def is_bound(self) -> bool:
        return self.device_id is not None

    def __repr__(self) -> str:
        return f"<DeviceSession user={self.user_id} device={self.device_id}>"
