"""
Models package — import every model so SQLAlchemy's Base.metadata
knows about all tables (critical for Alembic and the test schema).
"""

from device_auth.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from device_auth.models.device_session import DeviceSession
from device_auth.models.user import User, UserRole

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "DeviceSession",
    "User",
    "UserRole",
]
