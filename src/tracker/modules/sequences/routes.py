"""Issue-key sequence routes."""

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel

from tracker.core.auth.dependencies import InternalPrincipal
from tracker.modules.sequences.allocator import Allocator
from tracker.modules.sequences.issue_keys import IssueType


router = APIRouter(tags=["sequences"])


class NextKeyResponse(BaseModel):
    product_id: int
    issue_type: IssueType
    next_number: int
    issue_key: str


@router.get(
    "/products/{product_id}/next-key",
    response_model=NextKeyResponse,
    summary="Preview the next issue key",
    description="Reports the key the next item of this type would get. Nothing is allocated.",
)
async def next_key(
    product_id: int,
    issue_type: Annotated[IssueType, Query(alias="type")],
    principal: InternalPrincipal,
    allocator: Allocator,
) -> NextKeyResponse:
    number, key = await allocator.preview(product_id, issue_type, principal.tenant_id)
    return NextKeyResponse(
        product_id=product_id,
        issue_type=issue_type,
        next_number=number,
        issue_key=key,
    )
