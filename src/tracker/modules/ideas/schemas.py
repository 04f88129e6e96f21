"""Pydantic schemas for idea operations."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from tracker.core.constants import MAX_TITLE_LENGTH
from tracker.modules.ideas.models import IdeaStatus, Visibility


class IdeaCreate(BaseModel):
    """Schema for creating an idea."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = None
    visibility: Visibility = Visibility.PRIVATE
    team_id: int | None = None


class IdeaUpdate(BaseModel):
    """Schema for updating an idea.

    Setting ``visibility`` goes through the promotion rules.
    """

    title: str | None = Field(None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = None
    status: IdeaStatus | None = None
    visibility: Visibility | None = None
    team_id: int | None = None


class VisibilityChange(BaseModel):
    visibility: Visibility
    team_id: int | None = None


class IdeaResponse(BaseModel):
    """Schema for idea response data."""

    id: int
    tenant_id: int
    title: str
    description: str | None = None
    status: str
    visibility: str
    team_id: int | None = None
    created_by: int
    published_at: datetime | None = None
    vote_count: int
    comment_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class IdeaListResponse(BaseModel):
    items: list[IdeaResponse]
    total: int
