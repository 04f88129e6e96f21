"""Workflow service applying transition results to stored work items."""

from collections.abc import Mapping
from typing import Annotated, Any

import structlog
from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.dependencies import DBSession
from tracker.core.auth.schemas import Principal
from tracker.core.auth.scoping import ensure_ticket_access
from tracker.core.errors import ConflictError, NotFoundError
from tracker.modules.workflow.transitions import (
    MILESTONES,
    EntityKind,
    TransitionResult,
    close,
    transition,
)
from tracker.modules.workitems.models import (
    AmendmentStatus,
    DevTask,
    Epic,
    Feature,
    Requirement,
    RequirementAmendment,
    Ticket,
    TicketStatus,
)


logger = structlog.get_logger()

MODELS: dict[EntityKind, Any] = {
    EntityKind.REQUIREMENT: Requirement,
    EntityKind.EPIC: Epic,
    EntityKind.FEATURE: Feature,
    EntityKind.TASK: DevTask,
    EntityKind.AMENDMENT: RequirementAmendment,
    EntityKind.TICKET: Ticket,
}


class WorkflowService:
    """Moves work items between statuses inside the request transaction.

    Every status write is conditional on the status that was validated,
    so two racing writers cannot both apply a transition from the same
    source status; the loser gets a :class:`ConflictError`.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _load(self, kind: EntityKind, item_id: int, tenant_id: int) -> Any:
        model = MODELS[kind]
        result = await self.session.execute(
            select(model).where(model.id == item_id, model.tenant_id == tenant_id)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(
                f"{kind.value.capitalize()} not found",
                resource=kind.value,
                resource_id=item_id,
            )
        return item

    async def _apply(
        self,
        kind: EntityKind,
        item: Any,
        current: str,
        outcome: TransitionResult,
    ) -> Any:
        model = MODELS[kind]
        stmt = (
            update(model)
            .where(
                model.id == item.id,
                model.tenant_id == item.tenant_id,
                model.status == current,
            )
            .values(status=outcome.next_status, **outcome.derived_fields)
            .returning(model.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.scalar_one_or_none() is None:
            raise ConflictError(
                f"{kind.value.capitalize()} status changed concurrently",
                error_code="status_conflict",
                details={"expected_status": current},
            )

        await self.session.refresh(item)
        logger.info(
            "status_transition",
            entity_kind=kind.value,
            item_id=item.id,
            from_status=current,
            to_status=outcome.next_status,
            derived_fields=sorted(outcome.derived_fields),
        )
        return item

    async def change_requirement_status(
        self,
        requirement_id: int,
        tenant_id: int,
        new_status: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Requirement:
        """Move a requirement, stamping milestone timestamps on first entry.

        Args:
            requirement_id: The requirement's ID
            tenant_id: Caller's tenant
            new_status: Requested status
            payload: May carry ``participants`` and ``approvers``

        Raises:
            NotFoundError: If the requirement is not in the tenant
            IllegalTransitionError: If the move is not allowed
            ConflictError: If the status changed concurrently
        """
        requirement = await self._load(EntityKind.REQUIREMENT, requirement_id, tenant_id)
        current = requirement.status
        existing = {field: getattr(requirement, field) for field in MILESTONES.values()}
        outcome = transition(
            EntityKind.REQUIREMENT, current, new_status, payload, existing=existing
        )
        return await self._apply(EntityKind.REQUIREMENT, requirement, current, outcome)

    async def change_status(
        self,
        kind: EntityKind | str,
        item_id: int,
        tenant_id: int,
        new_status: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        """Move any work item kind to a new status."""
        kind = EntityKind(kind)
        if kind is EntityKind.REQUIREMENT:
            return await self.change_requirement_status(
                item_id, tenant_id, new_status, payload
            )
        item = await self._load(kind, item_id, tenant_id)
        current = item.status
        outcome = transition(kind, current, new_status, payload)
        return await self._apply(kind, item, current, outcome)

    async def close_item(
        self,
        kind: EntityKind | str,
        item_id: int,
        tenant_id: int,
        resolution: str,
        note: str | None = None,
    ) -> Any:
        """Close an item with a resolution code."""
        kind = EntityKind(kind)
        item = await self._load(kind, item_id, tenant_id)
        return await self._close(kind, item, resolution, note)

    async def _close(
        self, kind: EntityKind, item: Any, resolution: str, note: str | None
    ) -> Any:
        current = item.status
        outcome = close(kind, current, resolution, note)
        item = await self._apply(kind, item, current, outcome)
        logger.info(
            "work_item_closed",
            entity_kind=kind.value,
            item_id=item.id,
            resolution=outcome.derived_fields["resolution"],
        )
        return item

    async def _client_ticket(self, ticket_id: int, principal: Principal) -> Ticket:
        ticket = await self._load(EntityKind.TICKET, ticket_id, principal.tenant_id)
        return ensure_ticket_access(principal, ticket)

    async def close_ticket(
        self,
        ticket_id: int,
        principal: Principal,
        resolution: str,
        note: str | None = None,
    ) -> Ticket:
        """Close a ticket the caller can see.

        Raises:
            NotFoundError: If the ticket is outside the caller's boundary
            IllegalTransitionError: If it is already closed or cancelled
        """
        ticket = await self._client_ticket(ticket_id, principal)
        return await self._close(EntityKind.TICKET, ticket, resolution, note)

    async def reopen_ticket(self, ticket_id: int, principal: Principal) -> Ticket:
        """Reopen a resolved or closed ticket, clearing its resolution.

        Raises:
            NotFoundError: If the ticket is outside the caller's boundary
            IllegalTransitionError: If the ticket is not resolved or closed
        """
        ticket = await self._client_ticket(ticket_id, principal)
        current = ticket.status
        outcome = transition(EntityKind.TICKET, current, TicketStatus.REOPENED)
        ticket = await self._apply(EntityKind.TICKET, ticket, current, outcome)
        logger.info("ticket_reopened", ticket_id=ticket.id, from_status=current)
        return ticket

    async def _next_amendment_number(self, requirement_id: int, tenant_id: int) -> int:
        # The row lock taken by this UPDATE serializes concurrent callers
        result = await self.session.execute(
            update(Requirement)
            .where(Requirement.id == requirement_id, Requirement.tenant_id == tenant_id)
            .values(next_amendment_num=Requirement.next_amendment_num + 1)
            .returning(Requirement.next_amendment_num)
            .execution_options(synchronize_session=False)
        )
        next_num = result.scalar_one_or_none()
        if next_num is None:
            raise NotFoundError(
                "Requirement not found",
                resource="requirement",
                resource_id=requirement_id,
            )
        return next_num - 1

    async def add_amendment(
        self,
        requirement_id: int,
        tenant_id: int,
        requested_by: int | None,
        title: str,
        description: str | None = None,
        business_justification: str | None = None,
        urgency: str = "medium",
    ) -> RequirementAmendment:
        """Create the next numbered amendment of a requirement.

        Raises:
            NotFoundError: If the requirement is not in the tenant
        """
        number = await self._next_amendment_number(requirement_id, tenant_id)
        amendment = RequirementAmendment(
            tenant_id=tenant_id,
            requirement_id=requirement_id,
            amendment_number=number,
            title=title,
            description=description,
            business_justification=business_justification,
            urgency=urgency,
            status=AmendmentStatus.DRAFT.value,
            requested_by=requested_by,
        )
        self.session.add(amendment)
        await self.session.flush()
        await self.session.refresh(amendment)

        logger.info(
            "amendment_created",
            requirement_id=requirement_id,
            amendment_number=number,
        )
        return amendment

    async def list_amendments(
        self, requirement_id: int, tenant_id: int
    ) -> list[RequirementAmendment]:
        """List a requirement's amendments in number order."""
        await self._load(EntityKind.REQUIREMENT, requirement_id, tenant_id)
        result = await self.session.execute(
            select(RequirementAmendment)
            .where(
                RequirementAmendment.requirement_id == requirement_id,
                RequirementAmendment.tenant_id == tenant_id,
            )
            .order_by(RequirementAmendment.amendment_number)
        )
        return list(result.scalars().all())

    async def change_amendment_status(
        self,
        amendment_id: int,
        tenant_id: int,
        new_status: str,
        payload: Mapping[str, Any] | None = None,
    ) -> RequirementAmendment:
        """Move an amendment along its linear workflow."""
        amendment = await self._load(EntityKind.AMENDMENT, amendment_id, tenant_id)
        current = amendment.status
        outcome = transition(
            EntityKind.AMENDMENT,
            current,
            new_status,
            payload,
            existing={"approved_at": amendment.approved_at},
        )
        return await self._apply(EntityKind.AMENDMENT, amendment, current, outcome)


def get_workflow_service(db: DBSession) -> WorkflowService:
    return WorkflowService(db)


WorkflowSvc = Annotated[WorkflowService, Depends(get_workflow_service)]
