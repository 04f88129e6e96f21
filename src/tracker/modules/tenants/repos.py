"""Tenant repository for database operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.modules.tenants.models import Tenant


class TenantRepository:
    """Repository for Tenant lookups."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, tenant_id: int) -> Tenant | None:
        """Get a tenant by ID."""
        return await self.session.get(Tenant, tenant_id)

    async def is_platform_operator(self, tenant_id: int) -> bool:
        """Check whether a tenant carries the platform-operator flag.

        Args:
            tenant_id: The tenant's ID

        Returns:
            True if the tenant exists, is active and is the platform operator
        """
        stmt = select(Tenant.is_platform_operator).where(
            Tenant.id == tenant_id,
            Tenant.is_active == True,  # noqa: E712
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar_one_or_none())
