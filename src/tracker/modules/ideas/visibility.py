"""Access decisions for shareable content.

Rules are evaluated in order, first match wins:

1. Administrators (role ``admin``, or a principal of the platform
   operator tenant) may do anything.
2. A principal of another tenant may do nothing.
3. Public items are visible to the whole tenant.
4. Private items are visible to their creator only.
5. Team items are visible to members of the owning team.

Editing and deleting belong to the creator. A lead of the owning team
may also change the visibility of a team item, but only to make it
public.
"""

from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from tracker.core.auth.schemas import Principal
from tracker.core.auth.scoping import is_administrator
from tracker.core.errors import ForbiddenError, ValidationError
from tracker.modules.ideas.models import VISIBILITY_RANK, Visibility
from tracker.modules.ideas.teams import TeamDirectory


logger = structlog.get_logger()


class Shareable(Protocol):
    tenant_id: int
    created_by: int
    visibility: str
    team_id: int | None
    published_at: datetime | None


class OperatorLookup(Protocol):
    async def is_platform_operator(self, tenant_id: int) -> bool: ...


class VisibilityEngine:
    """Evaluates view, edit, delete and visibility-change permissions."""

    def __init__(self, teams: TeamDirectory, tenants: OperatorLookup) -> None:
        self.teams = teams
        self.tenants = tenants
        self._operator_cache: dict[int, bool] = {}

    async def is_admin(self, principal: Principal) -> bool:
        if principal.tenant_id not in self._operator_cache:
            self._operator_cache[principal.tenant_id] = (
                await self.tenants.is_platform_operator(principal.tenant_id)
            )
        return is_administrator(principal, self._operator_cache[principal.tenant_id])

    async def _override(self, item: Shareable, principal: Principal) -> bool | None:
        """Decision from the first two rules, or None to continue."""
        if await self.is_admin(principal):
            return True
        if item.tenant_id != principal.tenant_id:
            return False
        return None

    async def can_view(self, item: Shareable, principal: Principal) -> bool:
        decision = await self._override(item, principal)
        if decision is not None:
            return decision
        if item.created_by == principal.user_id:
            return True
        if item.visibility == Visibility.PUBLIC:
            return True
        if item.visibility == Visibility.TEAM and item.team_id is not None:
            return await self.teams.is_member(principal.user_id, item.team_id, item.tenant_id)
        return False

    async def can_edit(self, item: Shareable, principal: Principal) -> bool:
        decision = await self._override(item, principal)
        if decision is not None:
            return decision
        return item.created_by == principal.user_id

    async def can_delete(self, item: Shareable, principal: Principal) -> bool:
        return await self.can_edit(item, principal)

    async def can_change_visibility(self, item: Shareable, principal: Principal) -> bool:
        decision = await self._override(item, principal)
        if decision is not None:
            return decision
        if item.created_by == principal.user_id:
            return True
        if item.visibility == Visibility.TEAM and item.team_id is not None:
            return await self.teams.is_lead(principal.user_id, item.team_id, item.tenant_id)
        return False


def plan_visibility_change(
    item: Shareable,
    principal: Principal,
    new_visibility: Visibility | str,
    team_id: int | None = None,
    now: datetime | None = None,
    lead_only: bool = False,
) -> dict[str, Any]:
    """Compute the column changes for a visibility promotion.

    Only widening is allowed (``private`` to ``team`` or ``public``,
    ``team`` to ``public``). Moving a team item to another team is a
    lateral change the creator may make. ``published_at`` is stamped the
    first time an item leaves ``private``.

    Args:
        item: The item being changed
        principal: Caller, used for logging only; permission is checked
            by :meth:`VisibilityEngine.can_change_visibility`
        new_visibility: Requested tier
        team_id: Owning team, required when the tier is ``team``
        now: Timestamp to stamp, defaults to the current time
        lead_only: The caller acts only as lead of the owning team and
            may do nothing but make the item public

    Returns:
        Mapping of column name to new value; empty when nothing changes

    Raises:
        ValidationError: If the tier is unknown or a team item has no team
        ForbiddenError: If the change narrows the audience, or a lead asks
            for anything other than ``public``
    """
    try:
        target = Visibility(new_visibility)
    except ValueError:
        raise ValidationError(
            f"Invalid visibility '{new_visibility}'",
            errors=[{"field": "visibility", "message": "Must be private, team or public"}],
        ) from None

    current_rank = VISIBILITY_RANK[item.visibility]
    target_rank = VISIBILITY_RANK[target]
    if target_rank < current_rank:
        logger.info(
            "visibility_downgrade_refused",
            user_id=principal.user_id,
            current=item.visibility,
            requested=target.value,
        )
        raise ForbiddenError(
            f"Cannot narrow visibility from '{item.visibility}' to '{target.value}'",
            error_code="visibility_downgrade",
        )

    if lead_only and target is not Visibility.PUBLIC:
        logger.info(
            "visibility_lead_change_refused",
            user_id=principal.user_id,
            current=item.visibility,
            requested=target.value,
            team_id=team_id,
        )
        raise ForbiddenError(
            "Team leads may only make team items public",
            error_code="lead_escalation_only",
        )

    if target is Visibility.TEAM:
        if team_id is None:
            team_id = item.team_id
        if team_id is None:
            raise ValidationError(
                "Team ID is required for team visibility",
                errors=[{"field": "team_id", "message": "Field required"}],
            )
    else:
        team_id = None

    changes: dict[str, Any] = {}
    if target.value != item.visibility:
        changes["visibility"] = target.value
    if team_id != item.team_id:
        changes["team_id"] = team_id
    if changes and target is not Visibility.PRIVATE and item.published_at is None:
        changes["published_at"] = now or datetime.now(UTC)
    return changes
