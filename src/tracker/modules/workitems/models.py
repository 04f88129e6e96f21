"""Work item database models.

Hierarchy: Epic (product) -> Feature (epic) -> DevTask (feature), with
Requirements (product) and their amendments, and client Tickets
(product + client) alongside. Status columns are only written through
the workflow service.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from tracker.core.constants import (
    DEFAULT_PRIORITY,
    MAX_ISSUE_KEY_LENGTH,
    MAX_TITLE_LENGTH,
)
from tracker.core.database.base import Base, IntIdMixin, TenantMixin, TimestampMixin


class Resolution(StrEnum):
    """Closure reasons recorded when a work item is closed."""

    COMPLETED = "completed"
    DUPLICATE = "duplicate"
    WONT_DO = "wont_do"
    MOVED = "moved"
    INVALID = "invalid"
    OBSOLETE = "obsolete"


class PlanningStatus(StrEnum):
    """Statuses shared by epics and features."""

    BACKLOG = "backlog"
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    TESTING = "testing"
    BLOCKED = "blocked"
    DONE = "done"


class RequirementStatus(StrEnum):
    DRAFT = "draft"
    BRAINSTORM = "brainstorm"
    SOLIDIFIED = "solidified"
    APPROVED = "approved"
    IN_DEVELOPMENT = "in_development"
    IMPLEMENTED = "implemented"
    CANCELLED = "cancelled"


class AmendmentStatus(StrEnum):
    DRAFT = "amendment_draft"
    BRAINSTORM = "amendment_brainstorm"
    SOLIDIFIED = "amendment_solidified"
    IN_DEVELOPMENT = "amendment_in_development"
    COMPLETED = "amendment_completed"


class TicketStatus(StrEnum):
    PENDING_INTERNAL_REVIEW = "pending_internal_review"
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING_FOR_CUSTOMER = "waiting_for_customer"
    REBUTTAL = "rebuttal"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REOPENED = "reopened"
    CANCELLED = "cancelled"


class WorkItemMixin(TenantMixin):
    """Columns carried by every keyed work item."""

    issue_key: Mapped[str | None] = mapped_column(
        String(MAX_ISSUE_KEY_LENGTH),
        unique=True,
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(MAX_TITLE_LENGTH), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[int] = mapped_column(
        Integer,
        default=DEFAULT_PRIORITY,
        nullable=False,
    )
    resolution: Mapped[str | None] = mapped_column(String(20), nullable=True)
    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
    )

    @declared_attr
    def created_by(cls) -> Mapped[int | None]:
        return mapped_column(
            ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        )


class Epic(Base, IntIdMixin, TimestampMixin, WorkItemMixin):
    """Internal development planning unit belonging to a product."""

    __tablename__ = "epics"

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(30),
        default=PlanningStatus.BACKLOG.value,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Epic(id={self.id}, key={self.issue_key}, status={self.status})>"


class Feature(Base, IntIdMixin, TimestampMixin, WorkItemMixin):
    """Part of an epic."""

    __tablename__ = "features"

    epic_id: Mapped[int] = mapped_column(
        ForeignKey("epics.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(30),
        default=PlanningStatus.BACKLOG.value,
        nullable=False,
    )
    acceptance_criteria: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Feature(id={self.id}, key={self.issue_key}, status={self.status})>"


class DevTask(Base, IntIdMixin, TimestampMixin, WorkItemMixin):
    """Task or bug within a feature.

    Carries its own product_id because issue keys are allocated per product.
    """

    __tablename__ = "dev_tasks"

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feature_id: Mapped[int | None] = mapped_column(
        ForeignKey("features.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(10), default="task", nullable=False)
    status: Mapped[str] = mapped_column(
        String(30),
        default=TaskStatus.TODO.value,
        nullable=False,
    )
    story_points: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<DevTask(id={self.id}, key={self.issue_key}, status={self.status})>"


class Requirement(Base, IntIdMixin, TimestampMixin, WorkItemMixin):
    """Internal planning requirement with its milestone timestamps.

    ``next_amendment_num`` is the per-requirement counter that numbers
    amendments; it is only advanced by an atomic increment.
    """

    __tablename__ = "requirements"

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(30),
        default=RequirementStatus.DRAFT.value,
        nullable=False,
    )
    original_draft: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    brainstorm_participants: Mapped[list[str] | None] = mapped_column(
        ARRAY(String),
        nullable=True,
    )
    approved_by: Mapped[list[str] | None] = mapped_column(
        ARRAY(String),
        nullable=True,
    )
    brainstorm_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    solidified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    implementation_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    next_amendment_num: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Requirement(id={self.id}, key={self.issue_key}, status={self.status})>"


class RequirementAmendment(Base, IntIdMixin, TimestampMixin, TenantMixin):
    """An evolution of a requirement, numbered 1, 2, 3... per requirement."""

    __tablename__ = "requirement_amendments"
    __table_args__ = (
        UniqueConstraint(
            "requirement_id",
            "amendment_number",
            name="uq_requirement_amendment_number",
        ),
    )

    requirement_id: Mapped[int] = mapped_column(
        ForeignKey("requirements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amendment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(MAX_TITLE_LENGTH), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    business_justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    urgency: Mapped[str] = mapped_column(String(10), default="medium", nullable=False)
    status: Mapped[str] = mapped_column(
        String(30),
        default=AmendmentStatus.DRAFT.value,
        nullable=False,
    )
    requested_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_by: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<RequirementAmendment(requirement_id={self.requirement_id}, "
            f"number={self.amendment_number})>"
        )


class Ticket(Base, IntIdMixin, TimestampMixin, WorkItemMixin):
    """Client support ticket or request filed against a product."""

    __tablename__ = "tickets"

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id: Mapped[int | None] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(20), default="support", nullable=False)
    status: Mapped[str] = mapped_column(
        String(30),
        default=TicketStatus.PENDING_INTERNAL_REVIEW.value,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, key={self.issue_key}, status={self.status})>"
