"""Unit tests for WorkflowService."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.dialects import postgresql

from tests.factories import InternalPrincipalFactory, PrincipalFactory
from tests.helpers import executed_statements, result_with
from tracker.core.errors import ConflictError, IllegalTransitionError, NotFoundError
from tracker.modules.workflow.service import WorkflowService
from tracker.modules.workitems.models import (
    DevTask,
    Epic,
    Requirement,
    RequirementAmendment,
    Ticket,
)


pytestmark = pytest.mark.unit


def _compiled(stmt):
    return stmt.compile(dialect=postgresql.dialect())


class TestChangeStatus:
    """Tests for guarded status writes."""

    async def test_write_is_guarded_by_current_status(self, session: AsyncMock):
        """The UPDATE only matches rows still in the validated status."""
        task = DevTask(id=7, tenant_id=1, product_id=1, status="todo", title="Fix login")
        session.execute.side_effect = [result_with(task), result_with(7)]

        item = await WorkflowService(session).change_status("task", 7, 1, "in_progress")

        assert item is task
        compiled = _compiled(executed_statements(session)[1])
        sql = str(compiled)
        assert sql.startswith("UPDATE dev_tasks SET")
        assert "dev_tasks.status = " in sql
        assert "RETURNING dev_tasks.id" in sql
        assert compiled.params["status"] == "in_progress"
        assert compiled.params["status_1"] == "todo"
        session.refresh.assert_awaited_once_with(task)

    async def test_lost_race_is_a_conflict(self, session: AsyncMock):
        """No row matched the guard, so another writer got there first."""
        task = DevTask(id=7, tenant_id=1, product_id=1, status="todo", title="Fix login")
        session.execute.side_effect = [result_with(task), result_with(None)]

        with pytest.raises(ConflictError) as exc_info:
            await WorkflowService(session).change_status("task", 7, 1, "done")

        assert exc_info.value.error_code == "status_conflict"
        assert exc_info.value.details == {"expected_status": "todo"}
        session.refresh.assert_not_awaited()

    async def test_illegal_move_writes_nothing(self, session: AsyncMock):
        task = DevTask(id=7, tenant_id=1, product_id=1, status="done", title="Fix login")
        session.execute.side_effect = [result_with(task)]

        with pytest.raises(IllegalTransitionError):
            await WorkflowService(session).change_status("task", 7, 1, "todo")

        assert session.execute.await_count == 1

    async def test_other_tenant_item_not_found(self, session: AsyncMock):
        session.execute.side_effect = [result_with(None)]

        with pytest.raises(NotFoundError) as exc_info:
            await WorkflowService(session).change_status("epic", 3, 2, "planned")

        assert exc_info.value.details == {"resource": "epic", "resource_id": "3"}

    async def test_requirement_milestone_written(self, session: AsyncMock):
        requirement = Requirement(id=1, tenant_id=1, product_id=1, status="draft", title="SSO")
        session.execute.side_effect = [result_with(requirement), result_with(1)]

        await WorkflowService(session).change_requirement_status(
            1, 1, "brainstorm", {"participants": ["ana"]}
        )

        params = _compiled(executed_statements(session)[1]).params
        assert isinstance(params["brainstorm_started_at"], datetime)
        assert params["brainstorm_participants"] == ["ana"]

    async def test_requirement_milestone_not_overwritten(self, session: AsyncMock):
        first = datetime(2024, 1, 1, tzinfo=UTC)
        requirement = Requirement(
            id=1,
            tenant_id=1,
            product_id=1,
            status="solidified",
            title="SSO",
            brainstorm_started_at=first,
        )
        session.execute.side_effect = [result_with(requirement), result_with(1)]

        await WorkflowService(session).change_status("requirement", 1, 1, "brainstorm")

        params = _compiled(executed_statements(session)[1]).params
        assert "brainstorm_started_at" not in params


class TestCloseItem:
    """Tests for closing with a resolution."""

    async def test_close_records_resolution(self, session: AsyncMock):
        task = DevTask(id=4, tenant_id=1, product_id=1, status="in_progress", title="Spike")
        session.execute.side_effect = [result_with(task), result_with(4)]

        await WorkflowService(session).close_item("task", 4, 1, "obsolete", "superseded")

        params = _compiled(executed_statements(session)[1]).params
        assert params["status"] == "done"
        assert params["resolution"] == "obsolete"
        assert params["resolution_note"] == "superseded"
        assert isinstance(params["closed_at"], datetime)


    async def test_epic_cannot_be_cancelled_as_a_status(self, session: AsyncMock):
        """Cancelling goes through close, which records a resolution."""
        epic = Epic(id=2, tenant_id=1, product_id=1, status="backlog", title="Payroll")
        session.execute.side_effect = [result_with(epic)]

        with pytest.raises(IllegalTransitionError):
            await WorkflowService(session).change_status("epic", 2, 1, "cancelled")

        assert session.execute.await_count == 1

    async def test_epic_close_cancels(self, session: AsyncMock):
        epic = Epic(id=2, tenant_id=1, product_id=1, status="planned", title="Payroll")
        session.execute.side_effect = [result_with(epic), result_with(2)]

        await WorkflowService(session).close_item("epic", 2, 1, "wont_do")

        params = _compiled(executed_statements(session)[1]).params
        assert params["status"] == "cancelled"
        assert params["resolution"] == "wont_do"


def make_ticket(**overrides) -> Ticket:
    values = {
        "id": 9,
        "tenant_id": 1,
        "product_id": 1,
        "client_id": 5,
        "created_by": 10,
        "title": "Payslip missing",
        "type": "support",
        "status": "open",
    }
    values.update(overrides)
    return Ticket(**values)


class TestTicketLifecycle:
    """Tests for gatekeeper approval, closing and reopening tickets."""

    async def test_gatekeeper_approval_opens_ticket(self, session: AsyncMock):
        ticket = make_ticket(status="pending_internal_review")
        session.execute.side_effect = [result_with(ticket), result_with(9)]

        await WorkflowService(session).change_status("ticket", 9, 1, "open")

        params = _compiled(executed_statements(session)[1]).params
        assert params["status"] == "open"
        assert params["status_1"] == "pending_internal_review"

    async def test_filer_closes_own_ticket(self, session: AsyncMock):
        ticket = make_ticket(status="resolved")
        session.execute.side_effect = [result_with(ticket), result_with(9)]
        filer = PrincipalFactory.build(user_id=10, client_id=5)

        await WorkflowService(session).close_ticket(9, filer, "completed", "thanks")

        params = _compiled(executed_statements(session)[1]).params
        assert params["status"] == "closed"
        assert params["resolution"] == "completed"
        assert isinstance(params["closed_at"], datetime)

    async def test_closing_a_closed_ticket_is_refused(self, session: AsyncMock):
        session.execute.side_effect = [result_with(make_ticket(status="closed"))]

        with pytest.raises(IllegalTransitionError) as exc_info:
            await WorkflowService(session).close_ticket(
                9, InternalPrincipalFactory.build(), "completed"
            )

        assert exc_info.value.current_status == "closed"
        assert session.execute.await_count == 1

    async def test_other_clients_ticket_is_not_found(self, session: AsyncMock):
        session.execute.side_effect = [result_with(make_ticket(client_id=99, created_by=77))]
        outsider = PrincipalFactory.build(user_id=10, client_id=5, role="company_admin")

        with pytest.raises(NotFoundError):
            await WorkflowService(session).close_ticket(9, outsider, "completed")

        assert session.execute.await_count == 1

    async def test_reopen_clears_resolution(self, session: AsyncMock):
        ticket = make_ticket(status="closed", resolution="completed")
        session.execute.side_effect = [result_with(ticket), result_with(9)]

        await WorkflowService(session).reopen_ticket(9, PrincipalFactory.build(user_id=10))

        params = _compiled(executed_statements(session)[1]).params
        assert params["status"] == "reopened"
        assert params["resolution"] is None
        assert params["closed_at"] is None

    async def test_open_ticket_cannot_be_reopened(self, session: AsyncMock):
        session.execute.side_effect = [result_with(make_ticket(status="open"))]

        with pytest.raises(IllegalTransitionError) as exc_info:
            await WorkflowService(session).reopen_ticket(9, PrincipalFactory.build(user_id=10))

        assert exc_info.value.allowed == [
            "cancelled",
            "in_progress",
            "resolved",
            "waiting_for_customer",
        ]


class TestAmendments:
    """Tests for amendment numbering and status."""

    async def test_number_comes_from_counter(self, session: AsyncMock):
        """The counter returns the next free number, so this one is one less."""
        session.execute.side_effect = [result_with(4)]

        amendment = await WorkflowService(session).add_amendment(
            9, 1, requested_by=20, title="Add SAML", urgency="high"
        )

        assert amendment.amendment_number == 3
        assert amendment.status == "amendment_draft"
        assert amendment.requirement_id == 9
        assert amendment.urgency == "high"
        session.add.assert_called_once_with(amendment)
        session.flush.assert_awaited_once()

        sql = str(_compiled(executed_statements(session)[0]))
        assert "SET next_amendment_num=(requirements.next_amendment_num + " in sql
        assert "RETURNING requirements.next_amendment_num" in sql

    async def test_unknown_requirement(self, session: AsyncMock):
        session.execute.side_effect = [result_with(None)]

        with pytest.raises(NotFoundError):
            await WorkflowService(session).add_amendment(9, 1, requested_by=20, title="Add SAML")

        session.add.assert_not_called()

    async def test_list_amendments(self, session: AsyncMock):
        requirement = Requirement(id=9, tenant_id=1, product_id=1, status="approved", title="SSO")
        amendments = [
            RequirementAmendment(id=1, requirement_id=9, amendment_number=1, title="a"),
            RequirementAmendment(id=2, requirement_id=9, amendment_number=2, title="b"),
        ]
        session.execute.side_effect = [result_with(requirement), result_with(amendments)]

        listed = await WorkflowService(session).list_amendments(9, 1)

        assert [a.amendment_number for a in listed] == [1, 2]

    async def test_approval_stamped_on_development(self, session: AsyncMock):
        amendment = RequirementAmendment(
            id=2,
            tenant_id=1,
            requirement_id=9,
            amendment_number=1,
            title="a",
            status="amendment_solidified",
        )
        session.execute.side_effect = [result_with(amendment), result_with(2)]

        await WorkflowService(session).change_amendment_status(
            2, 1, "amendment_in_development", {"approvers": ["po"]}
        )

        params = _compiled(executed_statements(session)[1]).params
        assert params["status"] == "amendment_in_development"
        assert params["approved_by"] == ["po"]
        assert isinstance(params["approved_at"], datetime)
