"""Pydantic schemas for work item operations."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from tracker.core.constants import DEFAULT_PRIORITY, MAX_TITLE_LENGTH


# ============================================================
# Work Item Schemas
# ============================================================


class WorkItemCreate(BaseModel):
    """Schema for creating any keyed work item.

    Which parent field is required depends on the kind: epics and
    requirements need ``product_id``, features need ``epic_id``, tasks
    need ``feature_id`` or ``product_id``, tickets need ``product_id``.
    """

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = None
    priority: int = Field(DEFAULT_PRIORITY, ge=1, le=5)
    product_id: int | None = None
    epic_id: int | None = None
    feature_id: int | None = None
    client_id: int | None = None
    type: str | None = Field(
        None,
        description="Task type (task, bug) or ticket type (support, feature_request, ...)",
    )
    acceptance_criteria: str | None = None
    story_points: int | None = Field(None, ge=0)
    metadata: dict[str, Any] | None = None


class WorkItemResponse(BaseModel):
    """Schema for work item response data."""

    id: int
    tenant_id: int
    issue_key: str | None = None
    title: str
    description: str | None = None
    status: str
    priority: int
    resolution: str | None = None
    resolution_note: str | None = None
    closed_at: datetime | None = None
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RequirementResponse(WorkItemResponse):
    """Requirement response with milestone timestamps."""

    product_id: int
    brainstorm_participants: list[str] | None = None
    approved_by: list[str] | None = None
    brainstorm_started_at: datetime | None = None
    solidified_at: datetime | None = None
    implementation_started_at: datetime | None = None
    completed_at: datetime | None = None


class StatusChangeRequest(BaseModel):
    """Schema for requesting a status transition."""

    status: str = Field(..., min_length=1)
    participants: list[str] | None = None
    approvers: list[str] | None = None

    def payload(self) -> dict[str, Any]:
        return self.model_dump(exclude={"status"}, exclude_none=True)


class CloseRequest(BaseModel):
    """Schema for closing an item with a resolution code."""

    resolution: str
    note: str | None = None


# ============================================================
# Amendment Schemas
# ============================================================


class AmendmentCreate(BaseModel):
    """Schema for creating a requirement amendment."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = None
    business_justification: str | None = None
    urgency: Literal["critical", "high", "medium", "low"] = "medium"


class AmendmentResponse(BaseModel):
    """Schema for amendment response data."""

    id: int
    requirement_id: int
    amendment_number: int
    title: str
    description: str | None = None
    business_justification: str | None = None
    urgency: str
    status: str
    requested_by: int | None = None
    approved_by: list[str] | None = None
    approved_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
