"""Work item API routes."""

from typing import Any

from fastapi import APIRouter, status

from tracker.core.auth.api_keys import require_scope
from tracker.core.auth.dependencies import ApiKeyCaller, CurrentPrincipal
from tracker.core.auth.scoping import ensure_internal
from tracker.core.auth.service import IdentitySvc
from tracker.core.constants import API_KEY_SCOPE_READ, API_KEY_SCOPE_TICKETS_READ
from tracker.core.errors import ValidationError
from tracker.modules.sequences import is_valid_issue_key
from tracker.modules.workitems.models import Requirement
from tracker.modules.workitems.schemas import (
    RequirementResponse,
    WorkItemCreate,
    WorkItemResponse,
)
from tracker.modules.workitems.service import WorkItemSvc


router = APIRouter(prefix="/work-items", tags=["work-items"])

external_router = APIRouter(prefix="/external", tags=["external"])


def serialize_work_item(item: Any) -> RequirementResponse | WorkItemResponse:
    if isinstance(item, Requirement):
        return RequirementResponse.model_validate(item)
    return WorkItemResponse.model_validate(item)


@router.post(
    "/{kind}",
    status_code=status.HTTP_201_CREATED,
    summary="Create a work item",
    description="Creates an epic, feature, task, requirement or ticket and assigns its issue key.",
)
async def create_work_item(
    kind: str,
    data: WorkItemCreate,
    principal: CurrentPrincipal,
    service: WorkItemSvc,
) -> RequirementResponse | WorkItemResponse:
    """Create a work item of the given kind."""
    if kind != "ticket":
        ensure_internal(principal)
    item = await service.create(kind, principal, data)
    return serialize_work_item(item)


@router.get(
    "/{kind}/{item_id}",
    summary="Get a work item",
)
async def get_work_item(
    kind: str,
    item_id: int,
    principal: CurrentPrincipal,
    service: WorkItemSvc,
) -> RequirementResponse | WorkItemResponse:
    """Get a work item in the caller's tenant and, for tickets, client boundary."""
    if kind != "ticket":
        ensure_internal(principal)
    item = await service.get(kind, item_id, principal)
    return serialize_work_item(item)


@external_router.get(
    "/tickets/{issue_key}",
    response_model=WorkItemResponse,
    summary="Look up a ticket by issue key",
    description="Needs a key with the read or tickets:read scope. "
    "The key acts with its owner's ticket visibility.",
)
async def get_ticket_by_key(
    issue_key: str,
    caller: ApiKeyCaller,
    identity: IdentitySvc,
    service: WorkItemSvc,
) -> WorkItemResponse:
    require_scope(caller, API_KEY_SCOPE_READ, API_KEY_SCOPE_TICKETS_READ)
    if not is_valid_issue_key(issue_key):
        raise ValidationError(
            f"Malformed issue key '{issue_key}'",
            errors=[{"field": "issue_key", "message": "Expected CODE-LNNN, e.g. HRM-S001"}],
        )
    principal = await identity.principal_for_api_key(caller)
    ticket = await service.get_by_key(issue_key, principal)
    return WorkItemResponse.model_validate(ticket)
