"""Work item creation with issue-key allocation."""

from typing import Annotated, Any

import structlog
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.api.dependencies import DBSession
from tracker.core.auth.schemas import Principal
from tracker.core.auth.scoping import ensure_ticket_access
from tracker.core.errors import NotFoundError, ProductNotFoundError, ValidationError
from tracker.modules.clients.models import Client
from tracker.modules.products.models import Product
from tracker.modules.sequences import IssueType, SequenceAllocator, type_code_for
from tracker.modules.workitems.models import (
    DevTask,
    Epic,
    Feature,
    Requirement,
    Ticket,
    TicketStatus,
)
from tracker.modules.workitems.schemas import WorkItemCreate


logger = structlog.get_logger()

KIND_MODELS: dict[str, Any] = {
    "epic": Epic,
    "feature": Feature,
    "task": DevTask,
    "requirement": Requirement,
    "ticket": Ticket,
}

TASK_TYPES = frozenset({"task", "bug"})
TICKET_TYPES = frozenset(
    {"support", "feature_request", "epic", "feature", "task", "bug", "spike", "note"}
)


def _require(value: Any, field: str, kind: str) -> Any:
    if value is None:
        raise ValidationError(
            f"{field} is required to create a {kind}",
            errors=[{"field": field, "message": "Field required"}],
        )
    return value


class WorkItemService:
    """Creates work items and gives each a key from its product's sequence.

    The key is allocated in the same transaction as the insert, so a
    failed insert also undoes its allocation.
    """

    def __init__(self, session: AsyncSession, allocator: SequenceAllocator | None = None) -> None:
        self.session = session
        self.allocator = allocator or SequenceAllocator(session)

    async def _product(self, product_id: int, tenant_id: int) -> Product:
        result = await self.session.execute(
            select(Product).where(Product.id == product_id, Product.tenant_id == tenant_id)
        )
        product = result.scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(resource="product", resource_id=product_id)
        return product

    async def _scoped(self, model: Any, item_id: int, tenant_id: int, resource: str) -> Any:
        result = await self.session.execute(
            select(model).where(model.id == item_id, model.tenant_id == tenant_id)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(
                f"{resource.capitalize()} not found",
                resource=resource,
                resource_id=item_id,
            )
        return item

    async def _persist(self, item: Any) -> Any:
        self.session.add(item)
        await self.session.flush()
        await self.session.refresh(item)
        logger.info(
            "work_item_created",
            kind=type(item).__tablename__,
            item_id=item.id,
            issue_key=item.issue_key,
        )
        return item

    async def create_epic(self, principal: Principal, data: WorkItemCreate) -> Epic:
        product_id = _require(data.product_id, "product_id", "epic")
        product = await self._product(product_id, principal.tenant_id)
        key = await self.allocator.allocate(product.id, IssueType.EPIC)
        epic = Epic(
            tenant_id=principal.tenant_id,
            product_id=product.id,
            issue_key=key,
            title=data.title,
            description=data.description,
            priority=data.priority,
            extra=data.metadata,
            created_by=principal.user_id,
        )
        return await self._persist(epic)

    async def create_feature(self, principal: Principal, data: WorkItemCreate) -> Feature:
        epic = await self._scoped(
            Epic, _require(data.epic_id, "epic_id", "feature"), principal.tenant_id, "epic"
        )
        key = await self.allocator.allocate(epic.product_id, IssueType.FEATURE)
        feature = Feature(
            tenant_id=principal.tenant_id,
            epic_id=epic.id,
            issue_key=key,
            title=data.title,
            description=data.description,
            priority=data.priority,
            acceptance_criteria=data.acceptance_criteria,
            extra=data.metadata,
            created_by=principal.user_id,
        )
        return await self._persist(feature)

    async def create_task(self, principal: Principal, data: WorkItemCreate) -> DevTask:
        task_type = data.type or "task"
        if task_type not in TASK_TYPES:
            raise ValidationError(
                f"Invalid task type '{task_type}'",
                errors=[{"field": "type", "message": f"Must be one of {sorted(TASK_TYPES)}"}],
            )

        if data.feature_id is not None:
            feature = await self._scoped(Feature, data.feature_id, principal.tenant_id, "feature")
            epic = await self._scoped(Epic, feature.epic_id, principal.tenant_id, "epic")
            product_id = epic.product_id
        else:
            product = await self._product(
                _require(data.product_id, "product_id", "task"), principal.tenant_id
            )
            product_id = product.id

        key = await self.allocator.allocate(product_id, type_code_for(task_type))
        task = DevTask(
            tenant_id=principal.tenant_id,
            product_id=product_id,
            feature_id=data.feature_id,
            type=task_type,
            issue_key=key,
            title=data.title,
            description=data.description,
            priority=data.priority,
            story_points=data.story_points,
            extra=data.metadata,
            created_by=principal.user_id,
        )
        return await self._persist(task)

    async def create_requirement(self, principal: Principal, data: WorkItemCreate) -> Requirement:
        """Create a requirement in ``draft``.

        Requirements have no type letter and so carry no issue key.
        """
        product = await self._product(
            _require(data.product_id, "product_id", "requirement"), principal.tenant_id
        )
        requirement = Requirement(
            tenant_id=principal.tenant_id,
            product_id=product.id,
            title=data.title,
            description=data.description,
            original_draft=data.description,
            priority=data.priority,
            owner_id=principal.user_id,
            extra=data.metadata,
            created_by=principal.user_id,
        )
        return await self._persist(requirement)

    async def create_ticket(self, principal: Principal, data: WorkItemCreate) -> Ticket:
        """Create a client ticket.

        Client users always file for their own client. Tickets from a
        client with the gatekeeper enabled wait for internal review.
        """
        ticket_type = data.type or "support"
        if ticket_type not in TICKET_TYPES:
            raise ValidationError(
                f"Invalid ticket type '{ticket_type}'",
                errors=[{"field": "type", "message": f"Must be one of {sorted(TICKET_TYPES)}"}],
            )
        product = await self._product(
            _require(data.product_id, "product_id", "ticket"), principal.tenant_id
        )

        client_id = data.client_id if principal.is_internal else principal.client_id
        status = TicketStatus.OPEN
        if client_id is not None:
            client = await self._scoped(Client, client_id, principal.tenant_id, "client")
            if client.gatekeeper_enabled and not principal.is_internal:
                status = TicketStatus.PENDING_INTERNAL_REVIEW

        key = await self.allocator.allocate(product.id, type_code_for(ticket_type))
        ticket = Ticket(
            tenant_id=principal.tenant_id,
            product_id=product.id,
            client_id=client_id,
            type=ticket_type,
            status=status.value,
            issue_key=key,
            title=data.title,
            description=data.description,
            priority=data.priority,
            extra=data.metadata,
            created_by=principal.user_id,
        )
        return await self._persist(ticket)

    async def create(self, kind: str, principal: Principal, data: WorkItemCreate) -> Any:
        """Create an item of the named kind."""
        creators = {
            "epic": self.create_epic,
            "feature": self.create_feature,
            "task": self.create_task,
            "requirement": self.create_requirement,
            "ticket": self.create_ticket,
        }
        if kind not in creators:
            raise ValidationError(
                f"Unknown work item kind '{kind}'",
                errors=[{"field": "kind", "message": f"Must be one of {sorted(creators)}"}],
            )
        return await creators[kind](principal, data)

    async def get(self, kind: str, item_id: int, principal: Principal) -> Any:
        """Load an item in the caller's tenant.

        Tickets are further limited to the caller's client boundary.
        """
        if kind not in KIND_MODELS:
            raise NotFoundError(f"Unknown work item kind '{kind}'")
        item = await self._scoped(KIND_MODELS[kind], item_id, principal.tenant_id, kind)
        if kind == "ticket":
            ensure_ticket_access(principal, item)
        return item

    async def get_by_key(self, issue_key: str, principal: Principal) -> Ticket:
        """Look up a ticket by its issue key within the caller's boundary."""
        result = await self.session.execute(
            select(Ticket).where(
                Ticket.issue_key == issue_key,
                Ticket.tenant_id == principal.tenant_id,
            )
        )
        ticket = result.scalar_one_or_none()
        if ticket is None:
            raise NotFoundError("Ticket not found", resource="ticket", resource_id=issue_key)
        return ensure_ticket_access(principal, ticket)


def get_work_item_service(db: DBSession) -> WorkItemService:
    return WorkItemService(db)


WorkItemSvc = Annotated[WorkItemService, Depends(get_work_item_service)]
