"""Team API routes."""

from fastapi import APIRouter, status

from tracker.core.auth.dependencies import CurrentPrincipal
from tracker.modules.teams.schemas import (
    MemberAdd,
    TeamCreate,
    TeamDetailResponse,
    TeamMemberResponse,
    TeamResponse,
    TeamUpdate,
)
from tracker.modules.teams.service import TeamSvc


router = APIRouter(prefix="/teams", tags=["teams"])


@router.get(
    "",
    response_model=list[TeamResponse],
    summary="List teams",
    description="Internal staff and administrators see every team; others see their own.",
)
async def list_teams(principal: CurrentPrincipal, service: TeamSvc) -> list[TeamResponse]:
    return [TeamResponse.model_validate(t) for t in await service.list_for(principal)]


@router.post(
    "",
    response_model=TeamResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a team",
)
async def create_team(
    data: TeamCreate,
    principal: CurrentPrincipal,
    service: TeamSvc,
) -> TeamResponse:
    """Create a team; internal staff and administrators only."""
    team = await service.create(principal, data)
    return TeamResponse.model_validate(team)


@router.get(
    "/{team_id}",
    response_model=TeamDetailResponse,
    summary="Get a team with its members",
)
async def get_team(
    team_id: int,
    principal: CurrentPrincipal,
    service: TeamSvc,
) -> TeamDetailResponse:
    team, members = await service.get(team_id, principal)
    return TeamDetailResponse(
        **TeamResponse.model_validate(team).model_dump(),
        members=[TeamMemberResponse.model_validate(m) for m in members],
    )


@router.patch(
    "/{team_id}",
    response_model=TeamResponse,
    summary="Update a team",
)
async def update_team(
    team_id: int,
    data: TeamUpdate,
    principal: CurrentPrincipal,
    service: TeamSvc,
) -> TeamResponse:
    team = await service.update(team_id, principal, data)
    return TeamResponse.model_validate(team)


@router.post(
    "/{team_id}/members",
    response_model=TeamMemberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a team member",
    description="Team leads manage their own team; a duplicate member answers 409.",
)
async def add_member(
    team_id: int,
    data: MemberAdd,
    principal: CurrentPrincipal,
    service: TeamSvc,
) -> TeamMemberResponse:
    membership = await service.add_member(team_id, principal, data.user_id, data.role)
    return TeamMemberResponse.model_validate(membership)


@router.delete(
    "/{team_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a team member",
)
async def remove_member(
    team_id: int,
    user_id: int,
    principal: CurrentPrincipal,
    service: TeamSvc,
) -> None:
    await service.remove_member(team_id, principal, user_id)
