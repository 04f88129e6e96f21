"""Idea API routes."""

from fastapi import APIRouter, Query, status

from tracker.core.auth.dependencies import CurrentPrincipal
from tracker.modules.ideas.schemas import (
    IdeaCreate,
    IdeaListResponse,
    IdeaResponse,
    IdeaUpdate,
    VisibilityChange,
)
from tracker.modules.ideas.service import IdeaSvc


router = APIRouter(prefix="/ideas", tags=["ideas"])


@router.post(
    "",
    response_model=IdeaResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an idea",
)
async def create_idea(
    data: IdeaCreate,
    principal: CurrentPrincipal,
    service: IdeaSvc,
) -> IdeaResponse:
    """Create an idea owned by the caller."""
    idea = await service.create(principal, data)
    return IdeaResponse.model_validate(idea)


@router.get(
    "",
    response_model=IdeaListResponse,
    summary="List visible ideas",
    description="Returns the ideas in the caller's tenant that the caller may view.",
)
async def list_ideas(
    principal: CurrentPrincipal,
    service: IdeaSvc,
    status_filter: str | None = Query(None, alias="status"),
    visibility: str | None = None,
    team_id: int | None = None,
) -> IdeaListResponse:
    """List ideas visible to the caller."""
    ideas = await service.list_visible(
        principal, status=status_filter, visibility=visibility, team_id=team_id
    )
    return IdeaListResponse(
        items=[IdeaResponse.model_validate(i) for i in ideas],
        total=len(ideas),
    )


@router.get(
    "/{idea_id}",
    response_model=IdeaResponse,
    summary="Get an idea",
)
async def get_idea(
    idea_id: int,
    principal: CurrentPrincipal,
    service: IdeaSvc,
) -> IdeaResponse:
    idea = await service.get(idea_id, principal)
    return IdeaResponse.model_validate(idea)


@router.patch(
    "/{idea_id}",
    response_model=IdeaResponse,
    summary="Update an idea",
)
async def update_idea(
    idea_id: int,
    data: IdeaUpdate,
    principal: CurrentPrincipal,
    service: IdeaSvc,
) -> IdeaResponse:
    idea = await service.update(idea_id, principal, data)
    return IdeaResponse.model_validate(idea)


@router.post(
    "/{idea_id}/visibility",
    response_model=IdeaResponse,
    summary="Widen an idea's visibility",
    description="Only promotions are allowed; the first one away from private stamps published_at.",
)
async def change_visibility(
    idea_id: int,
    data: VisibilityChange,
    principal: CurrentPrincipal,
    service: IdeaSvc,
) -> IdeaResponse:
    idea = await service.change_visibility(idea_id, principal, data.visibility, data.team_id)
    return IdeaResponse.model_validate(idea)


@router.delete(
    "/{idea_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Archive or delete an idea",
    description="Archives by default; pass permanent=true to remove the idea.",
)
async def delete_idea(
    idea_id: int,
    principal: CurrentPrincipal,
    service: IdeaSvc,
    permanent: bool = False,
) -> None:
    if permanent:
        await service.delete(idea_id, principal)
    else:
        await service.archive(idea_id, principal)
