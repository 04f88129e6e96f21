"""Unit tests for WorkItemService."""

from unittest.mock import AsyncMock

import pytest

from tests.factories import InternalPrincipalFactory, PrincipalFactory
from tests.helpers import result_with
from tracker.core.errors import NotFoundError, ProductNotFoundError, ValidationError
from tracker.modules.clients.models import Client
from tracker.modules.products.models import Product
from tracker.modules.sequences import SequenceAllocator
from tracker.modules.workitems.models import Epic, Feature, Ticket
from tracker.modules.workitems.schemas import WorkItemCreate
from tracker.modules.workitems.service import WorkItemService


pytestmark = pytest.mark.unit


@pytest.fixture
def allocator() -> AsyncMock:
    mock = AsyncMock(spec=SequenceAllocator)
    mock.allocate.return_value = "HRM-T001"
    return mock


@pytest.fixture
def service(session: AsyncMock, allocator: AsyncMock) -> WorkItemService:
    return WorkItemService(session, allocator=allocator)


def product() -> Product:
    return Product(id=1, tenant_id=1, name="HR Manager", code="HRM")


class TestCreateDevelopmentItems:
    """Tests for epics, features and tasks."""

    async def test_epic_gets_key(self, service, session, allocator):
        allocator.allocate.return_value = "HRM-E001"
        session.execute.side_effect = [result_with(product())]
        principal = InternalPrincipalFactory.build(user_id=20)

        data = WorkItemCreate(title="Payroll", product_id=1)
        epic = await service.create("epic", principal, data)

        assert epic.issue_key == "HRM-E001"
        assert epic.product_id == 1
        assert epic.created_by == 20
        allocator.allocate.assert_awaited_once_with(1, "E")
        session.add.assert_called_once_with(epic)

    async def test_epic_requires_product(self, service, session):
        principal = InternalPrincipalFactory.build()

        with pytest.raises(ValidationError) as exc_info:
            await service.create("epic", principal, WorkItemCreate(title="Payroll"))

        assert exc_info.value.details["errors"][0]["field"] == "product_id"
        session.execute.assert_not_awaited()

    async def test_product_in_other_tenant(self, service, session, allocator):
        session.execute.side_effect = [result_with(None)]

        with pytest.raises(ProductNotFoundError):
            await service.create(
                "epic",
                InternalPrincipalFactory.build(tenant_id=2),
                WorkItemCreate(title="x", product_id=1),
            )

        allocator.allocate.assert_not_awaited()

    async def test_feature_keyed_by_epic_product(self, service, session, allocator):
        epic = Epic(id=4, tenant_id=1, product_id=1, title="Payroll", status="backlog")
        session.execute.side_effect = [result_with(epic)]

        feature = await service.create(
            "feature", InternalPrincipalFactory.build(), WorkItemCreate(title="Payslips", epic_id=4)
        )

        assert feature.epic_id == 4
        allocator.allocate.assert_awaited_once_with(1, "F")

    async def test_bug_under_feature(self, service, session, allocator):
        allocator.allocate.return_value = "HRM-B001"
        feature = Feature(id=6, tenant_id=1, epic_id=4, title="Payslips", status="backlog")
        epic = Epic(id=4, tenant_id=1, product_id=1, title="Payroll", status="backlog")
        session.execute.side_effect = [result_with(feature), result_with(epic)]

        task = await service.create(
            "task",
            InternalPrincipalFactory.build(),
            WorkItemCreate(title="Rounding error", feature_id=6, type="bug"),
        )

        assert task.type == "bug"
        assert task.product_id == 1
        assert task.issue_key == "HRM-B001"
        allocator.allocate.assert_awaited_once_with(1, "B")

    async def test_invalid_task_type(self, service):
        with pytest.raises(ValidationError):
            await service.create(
                "task",
                InternalPrincipalFactory.build(),
                WorkItemCreate(title="x", product_id=1, type="support"),
            )

    async def test_requirement_has_no_key(self, service, session, allocator):
        session.execute.side_effect = [result_with(product())]

        requirement = await service.create(
            "requirement",
            InternalPrincipalFactory.build(user_id=20),
            WorkItemCreate(title="SSO", product_id=1, description="Sign in with Google"),
        )

        assert requirement.issue_key is None
        assert requirement.original_draft == "Sign in with Google"
        assert requirement.owner_id == 20
        allocator.allocate.assert_not_awaited()

    async def test_unknown_kind(self, service):
        with pytest.raises(ValidationError):
            await service.create(
                "saga", InternalPrincipalFactory.build(), WorkItemCreate(title="x")
            )


class TestCreateTicket:
    """Tests for client tickets."""

    async def test_client_user_files_for_own_client(self, service, session, allocator):
        allocator.allocate.return_value = "HRM-S001"
        client = Client(id=5, tenant_id=1, name="Acme", gatekeeper_enabled=False)
        session.execute.side_effect = [result_with(product()), result_with(client)]
        principal = PrincipalFactory.build(client_id=5)

        ticket = await service.create(
            "ticket", principal, WorkItemCreate(title="Cannot log in", product_id=1, client_id=99)
        )

        assert ticket.client_id == 5
        assert ticket.status == "open"
        assert ticket.type == "support"
        allocator.allocate.assert_awaited_once_with(1, "S")

    async def test_gatekeeper_holds_ticket(self, service, session):
        client = Client(id=5, tenant_id=1, name="Acme", gatekeeper_enabled=True)
        session.execute.side_effect = [result_with(product()), result_with(client)]

        ticket = await service.create(
            "ticket",
            PrincipalFactory.build(client_id=5),
            WorkItemCreate(title="Export to CSV", product_id=1, type="feature_request"),
        )

        assert ticket.status == "pending_internal_review"

    async def test_internal_user_bypasses_gatekeeper(self, service, session):
        client = Client(id=5, tenant_id=1, name="Acme", gatekeeper_enabled=True)
        session.execute.side_effect = [result_with(product()), result_with(client)]

        ticket = await service.create(
            "ticket",
            InternalPrincipalFactory.build(),
            WorkItemCreate(title="Export to CSV", product_id=1, client_id=5),
        )

        assert ticket.client_id == 5
        assert ticket.status == "open"

    async def test_invalid_ticket_type(self, service):
        with pytest.raises(ValidationError):
            await service.create(
                "ticket",
                PrincipalFactory.build(),
                WorkItemCreate(title="x", product_id=1, type="incident"),
            )


def ticket(client_id: int | None = 5, created_by: int | None = 10) -> Ticket:
    return Ticket(
        id=9,
        tenant_id=1,
        product_id=1,
        client_id=client_id,
        created_by=created_by,
        issue_key="HRM-S001",
        title="Payslip missing",
        type="support",
        status="open",
    )


class TestGet:
    async def test_scoped_lookup(self, service, session):
        epic = Epic(id=4, tenant_id=1, product_id=1, title="Payroll", status="backlog")
        session.execute.side_effect = [result_with(epic)]

        assert await service.get("epic", 4, InternalPrincipalFactory.build()) is epic

    async def test_missing(self, service, session):
        session.execute.side_effect = [result_with(None)]

        with pytest.raises(NotFoundError):
            await service.get("ticket", 4, PrincipalFactory.build())

    async def test_own_ticket(self, service, session):
        item = ticket()
        session.execute.side_effect = [result_with(item)]

        owner = PrincipalFactory.build(user_id=10, client_id=5)

        assert await service.get("ticket", 9, owner) is item

    async def test_other_clients_ticket_is_hidden(self, service, session):
        """A ticket filed for another client reads as missing."""
        session.execute.side_effect = [result_with(ticket(client_id=99, created_by=77))]

        with pytest.raises(NotFoundError):
            await service.get("ticket", 9, PrincipalFactory.build(user_id=10, client_id=5))

    async def test_company_admin_reads_client_tickets(self, service, session):
        item = ticket(created_by=77)
        session.execute.side_effect = [result_with(item)]
        admin = PrincipalFactory.build(user_id=10, client_id=5, role="company_admin")

        assert await service.get("ticket", 9, admin) is item


class TestGetByKey:
    async def test_found(self, service, session):
        item = ticket()
        session.execute.side_effect = [result_with(item)]

        owner = PrincipalFactory.build(user_id=10, client_id=5)

        found = await service.get_by_key("HRM-S001", owner)

        assert found is item

    async def test_unknown_key(self, service, session):
        session.execute.side_effect = [result_with(None)]

        with pytest.raises(NotFoundError) as exc_info:
            await service.get_by_key("HRM-S404", InternalPrincipalFactory.build())

        assert exc_info.value.details["resource_id"] == "HRM-S404"
