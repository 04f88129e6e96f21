"""Database layer - session management, base models, and mixins."""

from tracker.core.database.base import Base, IntIdMixin, TenantMixin, TimestampMixin
from tracker.core.database.session import (
    async_engine,
    async_session_factory,
    get_db,
)


__all__ = [
    "Base",
    "IntIdMixin",
    "TenantMixin",
    "TimestampMixin",
    "async_engine",
    "async_session_factory",
    "get_db",
]
