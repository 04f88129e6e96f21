"""Idea service enforcing visibility rules."""

from datetime import UTC, datetime
from typing import Annotated

import structlog
from fastapi import Depends
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.dependencies import DBSession
from tracker.core.auth.schemas import Principal
from tracker.core.errors import ForbiddenError, NotFoundError, ValidationError
from tracker.modules.ideas.models import Idea, IdeaStatus, Team, Visibility
from tracker.modules.ideas.schemas import IdeaCreate, IdeaUpdate
from tracker.modules.ideas.teams import TeamDirectory
from tracker.modules.ideas.visibility import VisibilityEngine, plan_visibility_change
from tracker.modules.tenants.repos import TenantRepository


logger = structlog.get_logger()


class IdeaService:
    """Service for idea CRUD under the visibility rules.

    Lookups of another tenant's idea answer not-found rather than
    forbidden, so ids cannot be discovered across tenants.
    """

    def __init__(
        self,
        session: AsyncSession,
        engine: VisibilityEngine | None = None,
    ) -> None:
        self.session = session
        self.teams = TeamDirectory(session)
        self.engine = engine or VisibilityEngine(self.teams, TenantRepository(session))

    async def _load(self, idea_id: int) -> Idea:
        idea = await self.session.get(Idea, idea_id)
        if idea is None:
            raise NotFoundError("Idea not found", resource="idea", resource_id=idea_id)
        return idea

    def _deny(
        self, idea: Idea, principal: Principal, action: str
    ) -> NotFoundError | ForbiddenError:
        logger.info(
            "visibility_denied",
            action=action,
            idea_id=idea.id,
            user_id=principal.user_id,
            visibility=idea.visibility,
        )
        if idea.tenant_id != principal.tenant_id:
            return NotFoundError("Idea not found", resource="idea", resource_id=idea.id)
        return ForbiddenError(f"Not allowed to {action} this idea", error_code=f"cannot_{action}")

    async def _check_team(self, team_id: int, tenant_id: int) -> None:
        result = await self.session.execute(
            select(Team.id).where(Team.id == team_id, Team.tenant_id == tenant_id)
        )
        if result.scalar_one_or_none() is None:
            raise ValidationError(
                "Team not found",
                errors=[{"field": "team_id", "message": "Unknown team"}],
            )

    async def create(self, principal: Principal, data: IdeaCreate) -> Idea:
        """Create an idea owned by the caller.

        Raises:
            ValidationError: If a team idea has no team, or the team is unknown
        """
        team_id = data.team_id if data.visibility == Visibility.TEAM else None
        if data.visibility == Visibility.TEAM:
            if team_id is None:
                raise ValidationError(
                    "Team ID is required for team visibility",
                    errors=[{"field": "team_id", "message": "Field required"}],
                )
            await self._check_team(team_id, principal.tenant_id)

        idea = Idea(
            tenant_id=principal.tenant_id,
            title=data.title,
            description=data.description,
            status=IdeaStatus.INBOX.value,
            visibility=data.visibility.value,
            team_id=team_id,
            created_by=principal.user_id,
            published_at=None if data.visibility == Visibility.PRIVATE else datetime.now(UTC),
        )
        self.session.add(idea)
        await self.session.flush()
        await self.session.refresh(idea)
        logger.info("idea_created", idea_id=idea.id, visibility=idea.visibility)
        return idea

    async def get(self, idea_id: int, principal: Principal) -> Idea:
        """Get an idea the caller may view.

        Raises:
            NotFoundError: If missing or owned by another tenant
            ForbiddenError: If the caller may not view it
        """
        idea = await self._load(idea_id)
        if not await self.engine.can_view(idea, principal):
            raise self._deny(idea, principal, "view")
        return idea

    async def list_visible(
        self,
        principal: Principal,
        status: str | None = None,
        visibility: str | None = None,
        team_id: int | None = None,
    ) -> list[Idea]:
        """List the caller's tenant's ideas that the caller may view."""
        stmt = select(Idea).where(Idea.tenant_id == principal.tenant_id)

        if not await self.engine.is_admin(principal):
            team_ids = await self.teams.team_ids_for(principal.user_id, principal.tenant_id)
            conditions = [
                Idea.created_by == principal.user_id,
                Idea.visibility == Visibility.PUBLIC.value,
            ]
            if team_ids:
                conditions.append(
                    and_(Idea.visibility == Visibility.TEAM.value, Idea.team_id.in_(team_ids))
                )
            stmt = stmt.where(or_(*conditions))

        if status is not None:
            stmt = stmt.where(Idea.status == status)
        if visibility is not None:
            stmt = stmt.where(Idea.visibility == visibility)
        if team_id is not None:
            stmt = stmt.where(Idea.team_id == team_id)

        result = await self.session.execute(stmt.order_by(Idea.created_at.desc()))
        return list(result.scalars().all())

    async def change_visibility(
        self,
        idea_id: int,
        principal: Principal,
        visibility: Visibility | str,
        team_id: int | None = None,
    ) -> Idea:
        """Widen an idea's audience.

        Raises:
            ForbiddenError: If the caller may not change it, it is a downgrade,
                or a team lead asks for anything but ``public``
        """
        idea = await self._load(idea_id)
        return await self._apply_visibility(idea, principal, visibility, team_id)

    async def _apply_visibility(
        self,
        idea: Idea,
        principal: Principal,
        visibility: Visibility | str,
        team_id: int | None,
    ) -> Idea:
        if not await self.engine.can_change_visibility(idea, principal):
            raise self._deny(idea, principal, "change_visibility")

        # Past this point a caller who cannot edit is acting as team lead
        lead_only = not await self.engine.can_edit(idea, principal)
        changes = plan_visibility_change(
            idea, principal, visibility, team_id, lead_only=lead_only
        )
        if changes.get("team_id") is not None:
            await self._check_team(changes["team_id"], idea.tenant_id)
        for field, value in changes.items():
            setattr(idea, field, value)
        if changes:
            await self.session.flush()
            logger.info(
                "idea_visibility_changed",
                idea_id=idea.id,
                visibility=idea.visibility,
                team_id=idea.team_id,
            )
        return idea

    async def update(self, idea_id: int, principal: Principal, data: IdeaUpdate) -> Idea:
        """Update content fields and optionally widen visibility."""
        idea = await self._load(idea_id)
        content = data.model_dump(
            include={"title", "description", "status"}, exclude_unset=True
        )
        if content:
            if not await self.engine.can_edit(idea, principal):
                raise self._deny(idea, principal, "edit")
            for field, value in content.items():
                if field == "title" and value is None:
                    continue
                setattr(idea, field, value)

        if data.visibility is not None:
            idea = await self._apply_visibility(idea, principal, data.visibility, data.team_id)
        elif content:
            await self.session.flush()

        await self.session.refresh(idea)
        return idea

    async def archive(self, idea_id: int, principal: Principal) -> Idea:
        """Soft delete: move the idea to ``archived``."""
        idea = await self._load(idea_id)
        if not await self.engine.can_delete(idea, principal):
            raise self._deny(idea, principal, "delete")
        idea.status = IdeaStatus.ARCHIVED.value
        await self.session.flush()
        logger.info("idea_archived", idea_id=idea.id)
        return idea

    async def delete(self, idea_id: int, principal: Principal) -> None:
        """Remove the idea permanently."""
        idea = await self._load(idea_id)
        if not await self.engine.can_delete(idea, principal):
            raise self._deny(idea, principal, "delete")
        await self.session.delete(idea)
        await self.session.flush()
        logger.info("idea_deleted", idea_id=idea_id)


def get_idea_service(db: DBSession) -> IdeaService:
    return IdeaService(db)


IdeaSvc = Annotated[IdeaService, Depends(get_idea_service)]
