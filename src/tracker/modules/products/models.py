"""Product and issue-sequence database models."""

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tracker.core.constants import MAX_PRODUCT_CODE_LENGTH
from tracker.core.database.base import Base, IntIdMixin, TenantMixin, TimestampMixin


class Product(Base, IntIdMixin, TimestampMixin, TenantMixin):
    """A unit of software owned by a tenant.

    Attributes:
        name: Display name
        code: Short code prefixing every issue key of the product (e.g. "HRM")
        description: Free text
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(
        String(MAX_PRODUCT_CODE_LENGTH),
        nullable=True,
        unique=True,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, code={self.code})>"


class ProductSequence(Base, IntIdMixin, TimestampMixin):
    """Per-(product, issue type) counter backing issue-key numbers.

    ``next_num`` holds the next number to hand out. Rows are created on
    first allocation and only ever incremented.
    """

    __tablename__ = "product_sequences"
    __table_args__ = (
        UniqueConstraint("product_id", "issue_type", name="uq_product_sequence_type"),
    )

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    issue_type: Mapped[str] = mapped_column(String(1), nullable=False)
    next_num: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ProductSequence(product_id={self.product_id}, "
            f"issue_type={self.issue_type}, next_num={self.next_num})>"
        )
