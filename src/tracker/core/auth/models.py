"""API key database model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from tracker.core.constants import (
    API_KEY_DEFAULT_RATE_LIMIT,
    API_KEY_DISPLAY_PREFIX_LENGTH,
    SHA256_HEX_LENGTH,
)
from tracker.core.database.base import Base, IntIdMixin, TenantMixin, TimestampMixin


class ApiKey(Base, IntIdMixin, TimestampMixin, TenantMixin):
    """Machine credential owned by a user.

    Only the SHA-256 hash of the key is stored; ``key_prefix`` lets a
    user recognise a key without revealing it.

    Attributes:
        user_id: Owner whose identity the key acts under
        name: Label chosen by the owner
        key_hash: SHA-256 hex digest of the raw key
        key_prefix: First characters of the raw key
        scopes: Granted scopes, e.g. ``tickets:read``
        rate_limit: Requests per minute
        is_active: False once revoked
        last_used_at: Updated in the background on each successful use
        expires_at: Optional expiry
    """

    __tablename__ = "api_keys"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    key_hash: Mapped[str] = mapped_column(
        String(SHA256_HEX_LENGTH),
        unique=True,
        nullable=False,
    )
    key_prefix: Mapped[str] = mapped_column(
        String(API_KEY_DISPLAY_PREFIX_LENGTH),
        nullable=False,
    )
    scopes: Mapped[list[str]] = mapped_column(
        ARRAY(String),
        default=list,
        nullable=False,
    )
    rate_limit: Mapped[int] = mapped_column(
        Integer,
        default=API_KEY_DEFAULT_RATE_LIMIT,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id}, prefix={self.key_prefix}, active={self.is_active})>"
