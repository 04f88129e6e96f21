"""Tenant database models."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from tracker.core.database.base import Base, IntIdMixin, TimestampMixin


class Tenant(Base, IntIdMixin, TimestampMixin):
    """Tenant model representing the SaaS operator account.

    All tenant-scoped data references this table via tenant_id.

    Attributes:
        name: Display name
        plan: Subscription plan (free, starter, business, enterprise)
        is_active: Whether the tenant may be used
        is_platform_operator: Principals of this tenant may see and
            manage every tenant's shareable content
    """

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    plan: Mapped[str] = mapped_column(
        String(20),
        default="starter",
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    is_platform_operator: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name={self.name}, plan={self.plan})>"
