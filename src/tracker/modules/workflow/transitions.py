"""Per-kind status transition tables and the pure transition rules.

Nothing here touches the database: :func:`transition` and :func:`close`
take the current state and return what should be written, leaving the
write itself to :class:`~tracker.modules.workflow.service.WorkflowService`.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from tracker.core.errors import IllegalTransitionError, ValidationError
from tracker.modules.workitems.models import (
    AmendmentStatus,
    PlanningStatus,
    RequirementStatus,
    Resolution,
    TaskStatus,
    TicketStatus,
)


class EntityKind(StrEnum):
    REQUIREMENT = "requirement"
    EPIC = "epic"
    FEATURE = "feature"
    TASK = "task"
    AMENDMENT = "amendment"
    TICKET = "ticket"


_PLANNING: dict[str, frozenset[str]] = {
    PlanningStatus.BACKLOG: frozenset(
        {PlanningStatus.PLANNED, PlanningStatus.IN_PROGRESS}
    ),
    PlanningStatus.PLANNED: frozenset(
        {PlanningStatus.BACKLOG, PlanningStatus.IN_PROGRESS}
    ),
    PlanningStatus.IN_PROGRESS: frozenset(
        {PlanningStatus.PLANNED, PlanningStatus.COMPLETED}
    ),
    PlanningStatus.COMPLETED: frozenset(),
    PlanningStatus.CANCELLED: frozenset(),
}

TRANSITIONS: dict[EntityKind, dict[str, frozenset[str]]] = {
    EntityKind.REQUIREMENT: {
        RequirementStatus.DRAFT: frozenset(
            {RequirementStatus.BRAINSTORM, RequirementStatus.CANCELLED}
        ),
        RequirementStatus.BRAINSTORM: frozenset(
            {
                RequirementStatus.DRAFT,
                RequirementStatus.SOLIDIFIED,
                RequirementStatus.CANCELLED,
            }
        ),
        RequirementStatus.SOLIDIFIED: frozenset(
            {
                RequirementStatus.BRAINSTORM,
                RequirementStatus.APPROVED,
                RequirementStatus.CANCELLED,
            }
        ),
        RequirementStatus.APPROVED: frozenset(
            {RequirementStatus.IN_DEVELOPMENT, RequirementStatus.CANCELLED}
        ),
        RequirementStatus.IN_DEVELOPMENT: frozenset(
            {RequirementStatus.IMPLEMENTED, RequirementStatus.CANCELLED}
        ),
        RequirementStatus.IMPLEMENTED: frozenset(),
        RequirementStatus.CANCELLED: frozenset(),
    },
    EntityKind.EPIC: _PLANNING,
    EntityKind.FEATURE: _PLANNING,
    EntityKind.TASK: {
        TaskStatus.TODO: frozenset(
            {TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED, TaskStatus.DONE}
        ),
        TaskStatus.IN_PROGRESS: frozenset(
            {TaskStatus.TODO, TaskStatus.REVIEW, TaskStatus.BLOCKED, TaskStatus.DONE}
        ),
        TaskStatus.REVIEW: frozenset(
            {TaskStatus.IN_PROGRESS, TaskStatus.TESTING, TaskStatus.DONE}
        ),
        TaskStatus.TESTING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.DONE}),
        TaskStatus.BLOCKED: frozenset({TaskStatus.TODO, TaskStatus.IN_PROGRESS}),
        TaskStatus.DONE: frozenset(),
    },
    EntityKind.AMENDMENT: {
        AmendmentStatus.DRAFT: frozenset({AmendmentStatus.BRAINSTORM}),
        AmendmentStatus.BRAINSTORM: frozenset(
            {AmendmentStatus.DRAFT, AmendmentStatus.SOLIDIFIED}
        ),
        AmendmentStatus.SOLIDIFIED: frozenset(
            {AmendmentStatus.BRAINSTORM, AmendmentStatus.IN_DEVELOPMENT}
        ),
        AmendmentStatus.IN_DEVELOPMENT: frozenset({AmendmentStatus.COMPLETED}),
        AmendmentStatus.COMPLETED: frozenset(),
    },
    EntityKind.TICKET: {
        TicketStatus.PENDING_INTERNAL_REVIEW: frozenset(
            {TicketStatus.OPEN, TicketStatus.CANCELLED}
        ),
        TicketStatus.OPEN: frozenset(
            {
                TicketStatus.IN_PROGRESS,
                TicketStatus.WAITING_FOR_CUSTOMER,
                TicketStatus.RESOLVED,
                TicketStatus.CANCELLED,
            }
        ),
        TicketStatus.IN_PROGRESS: frozenset(
            {TicketStatus.OPEN, TicketStatus.WAITING_FOR_CUSTOMER, TicketStatus.RESOLVED}
        ),
        TicketStatus.WAITING_FOR_CUSTOMER: frozenset(
            {TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED}
        ),
        TicketStatus.REBUTTAL: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED}),
        TicketStatus.RESOLVED: frozenset({TicketStatus.REBUTTAL, TicketStatus.REOPENED}),
        # Closed tickets are only left by reopening; close() is the way in
        TicketStatus.CLOSED: frozenset({TicketStatus.REOPENED}),
        TicketStatus.REOPENED: frozenset(
            {TicketStatus.IN_PROGRESS, TicketStatus.WAITING_FOR_CUSTOMER, TicketStatus.RESOLVED}
        ),
        TicketStatus.CANCELLED: frozenset(),
    },
}

# Status an item is moved to when closed with a resolution
CLOSED_STATUS: dict[EntityKind, str] = {
    EntityKind.REQUIREMENT: RequirementStatus.CANCELLED,
    EntityKind.EPIC: PlanningStatus.CANCELLED,
    EntityKind.FEATURE: PlanningStatus.CANCELLED,
    EntityKind.TASK: TaskStatus.DONE,
    EntityKind.TICKET: TicketStatus.CLOSED,
}

# Requirement milestones: entering the status stamps the field once
MILESTONES: dict[str, str] = {
    RequirementStatus.BRAINSTORM: "brainstorm_started_at",
    RequirementStatus.SOLIDIFIED: "solidified_at",
    RequirementStatus.IN_DEVELOPMENT: "implementation_started_at",
    RequirementStatus.IMPLEMENTED: "completed_at",
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a legal transition.

    Attributes:
        next_status: Status to write
        derived_fields: Additional column values to write alongside it
    """

    next_status: str
    derived_fields: dict[str, Any] = field(default_factory=dict)


def parse_entity_kind(entity_kind: EntityKind | str) -> EntityKind:
    """Validate a kind name, raising ValidationError if unknown."""
    try:
        return EntityKind(entity_kind)
    except ValueError:
        raise ValidationError(
            f"Unknown entity kind '{entity_kind}'",
            errors=[
                {"field": "kind", "message": f"Must be one of {[k.value for k in EntityKind]}"}
            ],
        ) from None


def allowed_transitions(entity_kind: EntityKind | str, current: str) -> frozenset[str]:
    """Legal next statuses for a kind in a given status."""
    table = TRANSITIONS[parse_entity_kind(entity_kind)]
    if current not in table:
        raise ValidationError(
            f"Unknown {entity_kind} status '{current}'",
            errors=[{"field": "status", "message": "Unknown status"}],
        )
    return table[current]


def is_terminal(entity_kind: EntityKind | str, status: str) -> bool:
    return not allowed_transitions(entity_kind, status)


def _now() -> datetime:
    return datetime.now(UTC)


def transition(
    entity_kind: EntityKind | str,
    current: str,
    requested: str,
    payload: Mapping[str, Any] | None = None,
    existing: Mapping[str, Any] | None = None,
) -> TransitionResult:
    """Validate a status change and compute the fields it implies.

    Args:
        entity_kind: Kind whose table applies
        current: Status the item is in now
        requested: Status the caller asks for
        payload: Optional extras; for requirements ``participants`` and
            ``approvers`` are carried into the derived fields
        existing: Current values of milestone fields, used so that a
            milestone is stamped only the first time it is reached

    Returns:
        The status to write and the derived field values

    Raises:
        IllegalTransitionError: If ``requested`` is not reachable from ``current``
    """
    kind = parse_entity_kind(entity_kind)
    allowed = allowed_transitions(kind, current)
    if requested not in allowed:
        raise IllegalTransitionError(
            entity_kind=kind.value,
            current_status=current,
            requested_status=requested,
            allowed=allowed,
        )

    derived: dict[str, Any] = {}
    payload = payload or {}
    existing = existing or {}

    if kind is EntityKind.REQUIREMENT:
        milestone = MILESTONES.get(requested)
        if milestone is not None and existing.get(milestone) is None:
            derived[milestone] = _now()
        if requested == RequirementStatus.BRAINSTORM and payload.get("participants"):
            derived["brainstorm_participants"] = list(payload["participants"])
        if requested == RequirementStatus.APPROVED and payload.get("approvers"):
            derived["approved_by"] = list(payload["approvers"])

    if kind is EntityKind.AMENDMENT and requested == AmendmentStatus.IN_DEVELOPMENT:
        if existing.get("approved_at") is None:
            derived["approved_at"] = _now()
        if payload.get("approvers"):
            derived["approved_by"] = list(payload["approvers"])

    if kind is EntityKind.TICKET and requested == TicketStatus.REOPENED:
        derived.update(resolution=None, resolution_note=None, closed_at=None)

    return TransitionResult(next_status=requested, derived_fields=derived)


def close(
    entity_kind: EntityKind | str,
    current: str,
    resolution: Resolution | str,
    note: str | None = None,
) -> TransitionResult:
    """Close an item with a resolution code.

    Epics, features and requirements become ``cancelled``; tasks become
    ``done`` and tickets ``closed``. The resolution, its note and
    ``closed_at`` are recorded.

    Raises:
        ValidationError: If the resolution is unknown or the kind cannot be closed
        IllegalTransitionError: If the item is already closed or terminal
    """
    kind = parse_entity_kind(entity_kind)
    if kind not in CLOSED_STATUS:
        raise ValidationError(f"{kind.value} items cannot be closed")

    try:
        code = Resolution(resolution)
    except ValueError:
        raise ValidationError(
            f"Invalid resolution '{resolution}'",
            errors=[
                {
                    "field": "resolution",
                    "message": f"Must be one of {[r.value for r in Resolution]}",
                }
            ],
        ) from None

    target = CLOSED_STATUS[kind]
    if current == target or is_terminal(kind, current):
        raise IllegalTransitionError(
            entity_kind=kind.value,
            current_status=current,
            requested_status=target,
            allowed=(),
            message=f"{kind.value} is already {current}",
        )

    return TransitionResult(
        next_status=target,
        derived_fields={
            "resolution": code.value,
            "resolution_note": note,
            "closed_at": _now(),
        },
    )
