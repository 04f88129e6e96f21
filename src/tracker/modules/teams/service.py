"""Team and membership management."""

from typing import Annotated

import structlog
from fastapi import Depends
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.dependencies import DBSession
from tracker.core.auth.schemas import Principal
from tracker.core.auth.scoping import ensure_administrator, is_administrator
from tracker.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from tracker.modules.ideas.models import Team, TeamMembership, TeamRole
from tracker.modules.ideas.teams import TeamDirectory
from tracker.modules.products.models import Product
from tracker.modules.teams.schemas import TeamCreate, TeamUpdate
from tracker.modules.tenants.repos import TenantRepository
from tracker.modules.users.repos import UserRepository


logger = structlog.get_logger()


class TeamService:
    """Creates teams and manages who belongs to them.

    Internal staff and administrators manage every team in the tenant.
    A team's lead manages that team's membership; anyone may leave a
    team. Other callers see only the teams they belong to.
    """

    def __init__(self, session: AsyncSession, tenants: TenantRepository | None = None) -> None:
        self.session = session
        self.directory = TeamDirectory(session)
        self.tenants = tenants or TenantRepository(session)
        self.users = UserRepository(session)

    async def _is_manager(self, principal: Principal) -> bool:
        if principal.is_internal:
            return True
        operator = await self.tenants.is_platform_operator(principal.tenant_id)
        return is_administrator(principal, operator)

    async def _may_manage(self, team: Team, principal: Principal) -> bool:
        if await self._is_manager(principal):
            return True
        return await self.directory.is_lead(principal.user_id, team.id, team.tenant_id)

    async def _load(self, team_id: int, tenant_id: int) -> Team:
        result = await self.session.execute(
            select(Team).where(Team.id == team_id, Team.tenant_id == tenant_id)
        )
        team = result.scalar_one_or_none()
        if team is None:
            raise NotFoundError("Team not found", resource="team", resource_id=team_id)
        return team

    async def _check_product(self, product_id: int, tenant_id: int) -> None:
        result = await self.session.execute(
            select(Product.id).where(Product.id == product_id, Product.tenant_id == tenant_id)
        )
        if result.scalar_one_or_none() is None:
            raise ValidationError(
                "Product not found",
                errors=[{"field": "product_id", "message": "Unknown product"}],
            )

    async def list_for(self, principal: Principal) -> list[Team]:
        """Every tenant team for managers, otherwise the caller's own teams."""
        stmt = select(Team).where(Team.tenant_id == principal.tenant_id)
        if not await self._is_manager(principal):
            stmt = stmt.join(TeamMembership, TeamMembership.team_id == Team.id).where(
                TeamMembership.user_id == principal.user_id
            )
        result = await self.session.execute(stmt.order_by(Team.name))
        return list(result.scalars().all())

    async def get(self, team_id: int, principal: Principal) -> tuple[Team, list[TeamMembership]]:
        """A team with its members.

        Raises:
            NotFoundError: If the team is not in the caller's tenant
            ForbiddenError: If a non-manager is not a member
        """
        team = await self._load(team_id, principal.tenant_id)
        if not await self._is_manager(principal) and not await self.directory.is_member(
            principal.user_id, team.id, team.tenant_id
        ):
            raise ForbiddenError("Not a member of this team", error_code="not_team_member")
        return team, await self.members(team)

    async def members(self, team: Team) -> list[TeamMembership]:
        result = await self.session.execute(
            select(TeamMembership)
            .where(TeamMembership.team_id == team.id, TeamMembership.tenant_id == team.tenant_id)
            .order_by(TeamMembership.created_at)
        )
        return list(result.scalars().all())

    async def create(self, principal: Principal, data: TeamCreate) -> Team:
        """Create a team in the caller's tenant.

        Raises:
            ForbiddenError: If the caller is neither internal nor an administrator
            ValidationError: If the product is not in the tenant
        """
        if not principal.is_internal:
            ensure_administrator(
                principal, await self.tenants.is_platform_operator(principal.tenant_id)
            )
        if data.product_id is not None:
            await self._check_product(data.product_id, principal.tenant_id)

        team = Team(
            tenant_id=principal.tenant_id,
            name=data.name.strip(),
            description=data.description,
            product_id=data.product_id,
        )
        self.session.add(team)
        await self.session.flush()
        await self.session.refresh(team)
        logger.info("team_created", team_id=team.id, tenant_id=team.tenant_id)
        return team

    async def update(self, team_id: int, principal: Principal, data: TeamUpdate) -> Team:
        """Rename a team or change its product.

        Raises:
            ForbiddenError: If the caller is not a manager or the team's lead
        """
        team = await self._load(team_id, principal.tenant_id)
        if not await self._may_manage(team, principal):
            raise ForbiddenError("Team lead access required", error_code="team_lead_only")

        changes = data.model_dump(exclude_unset=True)
        if changes.get("product_id") is not None:
            await self._check_product(changes["product_id"], team.tenant_id)
        if changes.get("name") is not None:
            changes["name"] = changes["name"].strip()
        for field, value in changes.items():
            setattr(team, field, value)
        await self.session.flush()
        await self.session.refresh(team)
        logger.info("team_updated", team_id=team.id, fields=sorted(changes))
        return team

    async def add_member(
        self,
        team_id: int,
        principal: Principal,
        user_id: int,
        role: TeamRole | str = TeamRole.MEMBER,
    ) -> TeamMembership:
        """Add a user of the same tenant to a team.

        Raises:
            ForbiddenError: If the caller is not a manager or the team's lead
            ValidationError: If the user is not in the tenant
            ConflictError: If the user already belongs to the team
        """
        team = await self._load(team_id, principal.tenant_id)
        if not await self._may_manage(team, principal):
            raise ForbiddenError("Team lead access required", error_code="team_lead_only")

        if await self.users.get_by_id(user_id, team.tenant_id) is None:
            raise ValidationError(
                "User not found",
                errors=[{"field": "user_id", "message": "Unknown user"}],
            )
        if await self.directory.is_member(user_id, team.id, team.tenant_id):
            raise ConflictError(
                "User is already a team member",
                error_code="already_team_member",
                details={"team_id": team.id, "user_id": user_id},
            )

        membership = TeamMembership(
            tenant_id=team.tenant_id,
            team_id=team.id,
            user_id=user_id,
            role=TeamRole(role).value,
        )
        self.session.add(membership)
        await self.session.flush()
        await self.session.refresh(membership)
        logger.info("team_member_added", team_id=team.id, user_id=user_id, role=membership.role)
        return membership

    async def remove_member(self, team_id: int, principal: Principal, user_id: int) -> None:
        """Remove a member; members may always remove themselves.

        Raises:
            ForbiddenError: If removing someone else without manager or lead rights
            NotFoundError: If the user is not a member
        """
        team = await self._load(team_id, principal.tenant_id)
        if user_id != principal.user_id and not await self._may_manage(team, principal):
            raise ForbiddenError("Team lead access required", error_code="team_lead_only")

        result = await self.session.execute(
            delete(TeamMembership)
            .where(
                TeamMembership.team_id == team.id,
                TeamMembership.tenant_id == team.tenant_id,
                TeamMembership.user_id == user_id,
            )
            .returning(TeamMembership.id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError(
                "Team member not found", resource="team_member", resource_id=user_id
            )
        logger.info("team_member_removed", team_id=team.id, user_id=user_id)


def get_team_service(db: DBSession) -> TeamService:
    return TeamService(db)


TeamSvc = Annotated[TeamService, Depends(get_team_service)]
