"""Workflow API routes: status changes, closing, ticket reopening and amendments."""

from fastapi import APIRouter, status

from tracker.core.auth.dependencies import CurrentPrincipal, InternalPrincipal
from tracker.modules.workflow.service import WorkflowSvc
from tracker.modules.workflow.transitions import parse_entity_kind
from tracker.modules.workitems.routes import serialize_work_item
from tracker.modules.workitems.schemas import (
    AmendmentCreate,
    AmendmentResponse,
    CloseRequest,
    RequirementResponse,
    StatusChangeRequest,
    WorkItemResponse,
)


router = APIRouter(tags=["workflow"])


@router.post(
    "/work-items/{kind}/{item_id}/status",
    summary="Change a work item's status",
    description="Applies the kind's transition table; "
    "illegal moves answer 409 with the legal next states.",
)
async def change_status(
    kind: str,
    item_id: int,
    data: StatusChangeRequest,
    principal: InternalPrincipal,
    workflow: WorkflowSvc,
) -> RequirementResponse | WorkItemResponse:
    """Move a work item to a new status."""
    item = await workflow.change_status(
        parse_entity_kind(kind), item_id, principal.tenant_id, data.status, data.payload()
    )
    return serialize_work_item(item)


@router.post(
    "/work-items/{kind}/{item_id}/close",
    summary="Close a work item with a resolution",
)
async def close_item(
    kind: str,
    item_id: int,
    data: CloseRequest,
    principal: InternalPrincipal,
    workflow: WorkflowSvc,
) -> RequirementResponse | WorkItemResponse:
    """Close a work item."""
    item = await workflow.close_item(
        parse_entity_kind(kind), item_id, principal.tenant_id, data.resolution, data.note
    )
    return serialize_work_item(item)


@router.post(
    "/tickets/{ticket_id}/close",
    response_model=WorkItemResponse,
    summary="Close a ticket",
    description="Available to the filer and their company admin as well as internal staff.",
)
async def close_ticket(
    ticket_id: int,
    data: CloseRequest,
    principal: CurrentPrincipal,
    workflow: WorkflowSvc,
) -> WorkItemResponse:
    ticket = await workflow.close_ticket(ticket_id, principal, data.resolution, data.note)
    return WorkItemResponse.model_validate(ticket)


@router.post(
    "/tickets/{ticket_id}/reopen",
    response_model=WorkItemResponse,
    summary="Reopen a resolved or closed ticket",
)
async def reopen_ticket(
    ticket_id: int,
    principal: CurrentPrincipal,
    workflow: WorkflowSvc,
) -> WorkItemResponse:
    ticket = await workflow.reopen_ticket(ticket_id, principal)
    return WorkItemResponse.model_validate(ticket)


@router.get(
    "/requirements/{requirement_id}/amendments",
    response_model=list[AmendmentResponse],
    summary="List a requirement's amendments",
)
async def list_amendments(
    requirement_id: int,
    principal: InternalPrincipal,
    workflow: WorkflowSvc,
) -> list[AmendmentResponse]:
    amendments = await workflow.list_amendments(requirement_id, principal.tenant_id)
    return [AmendmentResponse.model_validate(a) for a in amendments]


@router.post(
    "/requirements/{requirement_id}/amendments",
    response_model=AmendmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an amendment to a requirement",
    description="Amendments are numbered 1, 2, 3... per requirement.",
)
async def add_amendment(
    requirement_id: int,
    data: AmendmentCreate,
    principal: InternalPrincipal,
    workflow: WorkflowSvc,
) -> AmendmentResponse:
    """Create the next amendment of a requirement."""
    amendment = await workflow.add_amendment(
        requirement_id,
        principal.tenant_id,
        requested_by=principal.user_id,
        title=data.title,
        description=data.description,
        business_justification=data.business_justification,
        urgency=data.urgency,
    )
    return AmendmentResponse.model_validate(amendment)


@router.post(
    "/amendments/{amendment_id}/status",
    response_model=AmendmentResponse,
    summary="Change an amendment's status",
)
async def change_amendment_status(
    amendment_id: int,
    data: StatusChangeRequest,
    principal: InternalPrincipal,
    workflow: WorkflowSvc,
) -> AmendmentResponse:
    amendment = await workflow.change_amendment_status(
        amendment_id, principal.tenant_id, data.status, data.payload()
    )
    return AmendmentResponse.model_validate(amendment)
