"""Workflow state machine for work items."""

from tracker.modules.workflow.routes import router
from tracker.modules.workflow.service import WorkflowService
from tracker.modules.workflow.transitions import (
    TRANSITIONS,
    EntityKind,
    TransitionResult,
    allowed_transitions,
    close,
    is_terminal,
    parse_entity_kind,
    transition,
)


__all__ = [
    "TRANSITIONS",
    "EntityKind",
    "TransitionResult",
    "WorkflowService",
    "allowed_transitions",
    "close",
    "is_terminal",
    "parse_entity_kind",
    "router",
    "transition",
]
