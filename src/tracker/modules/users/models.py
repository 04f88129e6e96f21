"""User database models."""

from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.core.database.base import Base, IntIdMixin, TenantMixin, TimestampMixin
from tracker.modules.clients.models import ClientType


if TYPE_CHECKING:
    from tracker.modules.clients.models import Client


class Role(StrEnum):
    """Fixed enumeration of principal roles."""

    USER = "user"
    GATEKEEPER = "gatekeeper"
    COMPANY_ADMIN = "company_admin"
    APPROVER = "approver"
    INTEGRATOR = "integrator"
    SUPPORT = "support"
    CEO = "ceo"
    ADMIN = "admin"
    DEVELOPER = "developer"


def compute_is_internal(client_id: int | None, client_type: str | None) -> bool:
    """Derive the internal flag from the authoritative client facts.

    A user is internal when it has no client, or when its client is the
    tenant's distinguished owner client.
    """
    return client_id is None or client_type == ClientType.OWNER


class User(Base, IntIdMixin, TimestampMixin, TenantMixin):
    """User model representing an authenticated principal.

    Attributes:
        client_id: Owning client; None means a member of the tenant's staff
        email: Email address, unique within the tenant
        name: Display name
        password_hash: Bcrypt-hashed password
        role: One of :class:`Role`
        is_active: Whether the user can sign in
    """

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),)

    client_id: Mapped[int | None] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    role: Mapped[str] = mapped_column(
        String(30),
        default=Role.USER.value,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    client: Mapped["Client | None"] = relationship(
        "Client",
        lazy="selectin",
    )

    @property
    def is_internal(self) -> bool:
        """Computed on every access from the client record, never stored."""
        client_type = self.client.type if self.client is not None else None
        return compute_is_internal(self.client_id, client_type)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, tenant_id={self.tenant_id})>"
