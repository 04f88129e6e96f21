"""Unit tests for the pure transition rules."""

from datetime import UTC, datetime

import pytest

from tracker.core.errors import IllegalTransitionError, ValidationError
from tracker.modules.workflow.transitions import (
    CLOSED_STATUS,
    TRANSITIONS,
    EntityKind,
    allowed_transitions,
    close,
    is_terminal,
    parse_entity_kind,
    transition,
)


pytestmark = pytest.mark.unit


class TestTransitionTables:
    """Tests for the shape of the per-kind tables."""

    @pytest.mark.parametrize("kind", list(EntityKind))
    def test_targets_are_known_statuses(self, kind: EntityKind):
        """Every target status is itself a key of the same table."""
        table = TRANSITIONS[kind]
        for targets in table.values():
            assert targets <= set(table)

    @pytest.mark.parametrize(
        ("kind", "status"),
        [
            (EntityKind.REQUIREMENT, "implemented"),
            (EntityKind.REQUIREMENT, "cancelled"),
            (EntityKind.EPIC, "completed"),
            (EntityKind.FEATURE, "cancelled"),
            (EntityKind.TASK, "done"),
            (EntityKind.AMENDMENT, "amendment_completed"),
            (EntityKind.TICKET, "cancelled"),
        ],
    )
    def test_terminal_statuses(self, kind: EntityKind, status: str):
        assert is_terminal(kind, status)

    def test_draft_is_not_terminal(self):
        assert not is_terminal("requirement", "draft")

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            allowed_transitions("task", "archived")

    def test_unknown_kind(self):
        """Kinds without a table are rejected with a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            parse_entity_kind("saga")

        assert exc_info.value.error_code == "validation_error"


class TestTransition:
    """Tests for transition()."""

    def test_legal_move(self):
        result = transition("task", "todo", "in_progress")

        assert result.next_status == "in_progress"
        assert result.derived_fields == {}

    def test_illegal_move_lists_allowed(self):
        """Skipping approval is rejected and the legal moves are reported."""
        with pytest.raises(IllegalTransitionError) as exc_info:
            transition("requirement", "solidified", "in_development")

        exc = exc_info.value
        assert exc.status_code == 409
        assert exc.current_status == "solidified"
        assert exc.requested_status == "in_development"
        assert exc.allowed == ["approved", "brainstorm", "cancelled"]
        assert exc.details["valid_transitions"] == ["approved", "brainstorm", "cancelled"]

    def test_terminal_status_has_no_moves(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            transition("epic", "completed", "in_progress")

        assert exc_info.value.allowed == []

    def test_same_status_is_not_a_move(self):
        with pytest.raises(IllegalTransitionError):
            transition("task", "todo", "todo")

    @pytest.mark.parametrize("kind", ["epic", "feature"])
    @pytest.mark.parametrize("current", ["backlog", "planned", "in_progress"])
    def test_planning_items_cannot_move_to_cancelled(self, kind: str, current: str):
        """Epics and features only reach cancelled by closing with a resolution."""
        with pytest.raises(IllegalTransitionError) as exc_info:
            transition(kind, current, "cancelled")

        assert "cancelled" not in exc_info.value.allowed

    def test_gatekeeper_review_opens_ticket(self):
        result = transition("ticket", "pending_internal_review", "open")

        assert result.next_status == "open"
        assert result.derived_fields == {}

    def test_ticket_reopen_clears_resolution(self):
        result = transition("ticket", "closed", "reopened")

        assert result.derived_fields == {
            "resolution": None,
            "resolution_note": None,
            "closed_at": None,
        }

    def test_resolved_ticket_accepts_rebuttal(self):
        assert transition("ticket", "resolved", "rebuttal").next_status == "rebuttal"

    def test_cancelled_ticket_cannot_reopen(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            transition("ticket", "cancelled", "reopened")

        assert exc_info.value.allowed == []

    def test_requirement_milestone_stamped(self):
        """Entering brainstorm stamps brainstorm_started_at."""
        result = transition("requirement", "draft", "brainstorm")

        stamped = result.derived_fields["brainstorm_started_at"]
        assert isinstance(stamped, datetime)
        assert stamped.tzinfo is not None

    def test_requirement_milestone_set_once(self):
        """Re-entering brainstorm keeps the original timestamp."""
        first = datetime(2024, 1, 1, tzinfo=UTC)

        result = transition(
            "requirement",
            "solidified",
            "brainstorm",
            existing={"brainstorm_started_at": first},
        )

        assert "brainstorm_started_at" not in result.derived_fields

    def test_brainstorm_participants_recorded(self):
        result = transition(
            "requirement",
            "draft",
            "brainstorm",
            payload={"participants": ("ana", "li")},
        )

        assert result.derived_fields["brainstorm_participants"] == ["ana", "li"]

    def test_approvers_recorded(self):
        result = transition(
            "requirement",
            "solidified",
            "approved",
            payload={"approvers": ["cto"]},
        )

        assert result.derived_fields == {"approved_by": ["cto"]}

    def test_approved_has_no_milestone(self):
        result = transition("requirement", "solidified", "approved")

        assert result.derived_fields == {}

    def test_implemented_stamps_completed_at(self):
        result = transition("requirement", "in_development", "implemented")

        assert "completed_at" in result.derived_fields

    def test_amendment_step_back_before_development(self):
        result = transition("amendment", "amendment_solidified", "amendment_brainstorm")

        assert result.next_status == "amendment_brainstorm"

    def test_amendment_cannot_leave_development_backwards(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            transition("amendment", "amendment_in_development", "amendment_solidified")

        assert exc_info.value.allowed == ["amendment_completed"]

    def test_amendment_approval_stamped(self):
        result = transition(
            "amendment",
            "amendment_solidified",
            "amendment_in_development",
            payload={"approvers": ["po"]},
        )

        assert result.derived_fields["approved_by"] == ["po"]
        assert isinstance(result.derived_fields["approved_at"], datetime)


class TestClose:
    """Tests for close()."""

    @pytest.mark.parametrize(
        ("kind", "current", "expected"),
        [
            ("requirement", "brainstorm", "cancelled"),
            ("epic", "backlog", "cancelled"),
            ("feature", "in_progress", "cancelled"),
            ("task", "review", "done"),
            ("ticket", "waiting_for_customer", "closed"),
        ],
    )
    def test_close_target_status(self, kind: str, current: str, expected: str):
        result = close(kind, current, "wont_do", "out of scope")

        assert result.next_status == expected
        assert result.next_status == CLOSED_STATUS[EntityKind(kind)]
        assert result.derived_fields["resolution"] == "wont_do"
        assert result.derived_fields["resolution_note"] == "out of scope"
        assert isinstance(result.derived_fields["closed_at"], datetime)

    def test_close_without_note(self):
        result = close("task", "todo", "duplicate")

        assert result.derived_fields["resolution_note"] is None

    def test_invalid_resolution(self):
        with pytest.raises(ValidationError) as exc_info:
            close("task", "todo", "abandoned")

        assert exc_info.value.details["errors"][0]["field"] == "resolution"

    def test_already_closed(self):
        """Closing an item in a terminal status is an illegal transition."""
        with pytest.raises(IllegalTransitionError) as exc_info:
            close("task", "done", "completed")

        assert exc_info.value.allowed == []

    def test_closed_ticket_cannot_be_closed_again(self):
        """Closed tickets can reopen, so closed is not terminal, but closing twice is refused."""
        with pytest.raises(IllegalTransitionError) as exc_info:
            close("ticket", "closed", "completed")

        assert exc_info.value.requested_status == "closed"

    def test_amendments_cannot_be_closed(self):
        with pytest.raises(ValidationError):
            close("amendment", "amendment_draft", "completed")
