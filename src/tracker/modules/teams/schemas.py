"""Pydantic schemas for team operations."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from tracker.core.constants import MAX_NAME_LENGTH
from tracker.modules.ideas.models import TeamRole


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH, pattern=r"\S")
    description: str | None = None
    product_id: int | None = None


class TeamUpdate(BaseModel):
    """Schema for updating a team; omitted fields are left alone."""

    name: str | None = Field(None, min_length=1, max_length=MAX_NAME_LENGTH, pattern=r"\S")
    description: str | None = None
    product_id: int | None = None


class MemberAdd(BaseModel):
    user_id: int
    role: TeamRole = TeamRole.MEMBER


class TeamMemberResponse(BaseModel):
    user_id: int
    role: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TeamResponse(BaseModel):
    """Schema for team response data."""

    id: int
    tenant_id: int
    name: str
    description: str | None = None
    product_id: int | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TeamDetailResponse(TeamResponse):
    members: list[TeamMemberResponse]
