"""User repository for database operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.modules.users.models import User


class UserRepository:
    """Repository for User database operations.

    All queries are scoped to a tenant when one is given.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, user_id: int, tenant_id: int | None = None) -> User | None:
        """Get a user by ID.

        Args:
            user_id: The user's ID
            tenant_id: Optional tenant ID for scoping

        Returns:
            User if found, None otherwise
        """
        stmt = select(User).where(User.id == user_id)
        if tenant_id is not None:
            stmt = stmt.where(User.tenant_id == tenant_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str, tenant_id: int | None = None) -> User | None:
        """Get a user by email address.

        Args:
            email: The user's email
            tenant_id: Optional tenant ID for scoping

        Returns:
            User if found, None otherwise
        """
        stmt = select(User).where(User.email == email)
        if tenant_id is not None:
            stmt = stmt.where(User.tenant_id == tenant_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str, limit: int = 2) -> list[User]:
        """Users with this email across all tenants, at most ``limit`` of them."""
        result = await self.session.execute(
            select(User).where(User.email == email).order_by(User.id).limit(limit)
        )
        return list(result.scalars().all())
