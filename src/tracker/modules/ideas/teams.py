"""Team membership lookups."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.modules.ideas.models import TeamMembership, TeamRole


class TeamDirectory:
    """Answers team membership questions within a tenant."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _role(self, user_id: int, team_id: int, tenant_id: int) -> str | None:
        result = await self.session.execute(
            select(TeamMembership.role).where(
                TeamMembership.user_id == user_id,
                TeamMembership.team_id == team_id,
                TeamMembership.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def is_member(self, user_id: int, team_id: int, tenant_id: int) -> bool:
        return await self._role(user_id, team_id, tenant_id) is not None

    async def is_lead(self, user_id: int, team_id: int, tenant_id: int) -> bool:
        return await self._role(user_id, team_id, tenant_id) == TeamRole.LEAD

    async def team_ids_for(self, user_id: int, tenant_id: int) -> list[int]:
        """IDs of every team the user belongs to."""
        result = await self.session.execute(
            select(TeamMembership.team_id).where(
                TeamMembership.user_id == user_id,
                TeamMembership.tenant_id == tenant_id,
            )
        )
        return list(result.scalars().all())
