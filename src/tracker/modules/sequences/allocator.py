"""Atomic per-(product, issue type) key allocation."""

from typing import Annotated

import structlog
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.dml import Insert

from tracker.api.dependencies import DBSession
from tracker.core.errors import ProductMissingCodeError, ProductNotFoundError
from tracker.modules.products.models import Product, ProductSequence
from tracker.modules.sequences.issue_keys import IssueType, format_issue_key


logger = structlog.get_logger()


def build_allocate_statement(product_id: int, issue_type: IssueType) -> Insert:
    """Build the single-statement upsert that hands out the next number.

    The first allocation inserts ``next_num = 2``; later ones increment.
    Either way the returned value minus one is the number just allocated,
    and the row lock taken by the conflict clause serializes concurrent
    allocations for the same pair.
    """
    stmt = insert(ProductSequence).values(
        product_id=product_id,
        issue_type=issue_type.value,
        next_num=2,
    )
    return stmt.on_conflict_do_update(
        constraint="uq_product_sequence_type",
        set_={"next_num": ProductSequence.next_num + 1},
    ).returning(ProductSequence.next_num)


class SequenceAllocator:
    """Allocates unique issue numbers per product and type.

    The counter moves inside the caller's transaction: a committed number
    is never handed out again, even if its item is later deleted, while a
    rolled-back allocation is undone along with the item it was for.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _product_code(self, product_id: int, tenant_id: int | None = None) -> str:
        stmt = select(Product.code).where(Product.id == product_id)
        if tenant_id is not None:
            stmt = stmt.where(Product.tenant_id == tenant_id)
        result = await self.session.execute(stmt)
        row = result.one_or_none()
        if row is None:
            raise ProductNotFoundError(resource="product", resource_id=product_id)
        code = row[0]
        if not code or not code.strip():
            raise ProductMissingCodeError(details={"product_id": product_id})
        return code.strip()

    async def allocate(self, product_id: int, issue_type: IssueType | str) -> str:
        """Allocate the next key for a product and issue type.

        Args:
            product_id: The product the item belongs to
            issue_type: Type letter

        Returns:
            The canonical key, e.g. ``HRM-T001``

        Raises:
            ProductNotFoundError: If the product does not exist
            ProductMissingCodeError: If the product has no code
        """
        letter = IssueType(issue_type)
        code = await self._product_code(product_id)

        result = await self.session.execute(build_allocate_statement(product_id, letter))
        number = result.scalar_one() - 1
        key = format_issue_key(code, letter, number)

        logger.info(
            "issue_key_allocated",
            product_id=product_id,
            issue_type=letter.value,
            number=number,
            issue_key=key,
        )
        return key

    async def peek(self, product_id: int, issue_type: IssueType | str) -> int:
        """Return the number the next allocation would get, without allocating."""
        letter = IssueType(issue_type)
        result = await self.session.execute(
            select(ProductSequence.next_num).where(
                ProductSequence.product_id == product_id,
                ProductSequence.issue_type == letter.value,
            )
        )
        next_num = result.scalar_one_or_none()
        return next_num if next_num is not None else 1

    async def preview(
        self, product_id: int, issue_type: IssueType | str, tenant_id: int | None = None
    ) -> tuple[int, str]:
        """The number and key the next allocation would produce.

        A concurrent allocation may take the previewed key first.

        Raises:
            ProductNotFoundError: If the product is not in the tenant
            ProductMissingCodeError: If the product has no code
        """
        letter = IssueType(issue_type)
        code = await self._product_code(product_id, tenant_id)
        number = await self.peek(product_id, letter)
        return number, format_issue_key(code, letter, number)


def get_sequence_allocator(db: DBSession) -> SequenceAllocator:
    return SequenceAllocator(db)


Allocator = Annotated[SequenceAllocator, Depends(get_sequence_allocator)]
