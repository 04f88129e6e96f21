"""Client database models."""

from enum import StrEnum

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from tracker.core.database.base import Base, IntIdMixin, TenantMixin, TimestampMixin


class ClientType(StrEnum):
    """Kinds of client organisation."""

    OWNER = "owner"
    PARTNER = "partner"
    CUSTOMER = "customer"


class Client(Base, IntIdMixin, TimestampMixin, TenantMixin):
    """A customer organisation served by a tenant.

    The client with ``type == "owner"`` stands for the tenant's own staff;
    its users are internal.
    """

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[str] = mapped_column(
        String(20),
        default=ClientType.CUSTOMER.value,
        nullable=False,
    )
    tier: Mapped[str] = mapped_column(
        String(20),
        default="starter",
        nullable=False,
    )
    gatekeeper_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    @property
    def is_owner(self) -> bool:
        return self.type == ClientType.OWNER

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name={self.name}, type={self.type})>"
