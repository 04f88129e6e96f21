"""Idea and team database models."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from tracker.core.constants import MAX_TITLE_LENGTH
from tracker.core.database.base import Base, IntIdMixin, TenantMixin, TimestampMixin


class Visibility(StrEnum):
    """Sharing tiers, from narrowest to widest."""

    PRIVATE = "private"
    TEAM = "team"
    PUBLIC = "public"


VISIBILITY_RANK: dict[str, int] = {
    Visibility.PRIVATE: 0,
    Visibility.TEAM: 1,
    Visibility.PUBLIC: 2,
}


class IdeaStatus(StrEnum):
    INBOX = "inbox"
    DISCUSSING = "discussing"
    VETTED = "vetted"
    IN_PROGRESS = "in_progress"
    SHIPPED = "shipped"
    ARCHIVED = "archived"


class TeamRole(StrEnum):
    MEMBER = "member"
    LEAD = "lead"


class Team(Base, IntIdMixin, TimestampMixin, TenantMixin):
    """A group of users within a tenant, optionally tied to a product."""

    __tablename__ = "teams"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_id: Mapped[int | None] = mapped_column(
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name})>"


class TeamMembership(Base, IntIdMixin, TimestampMixin, TenantMixin):
    """A user's membership of a team."""

    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_member"),
    )

    team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        default=TeamRole.MEMBER.value,
        nullable=False,
    )


class Idea(Base, IntIdMixin, TimestampMixin, TenantMixin):
    """Shareable idea whose audience is controlled by ``visibility``.

    Team-visible ideas always name their team; private ideas never do.
    """

    __tablename__ = "ideas"
    __table_args__ = (
        CheckConstraint(
            "(visibility <> 'team' OR team_id IS NOT NULL) "
            "AND (visibility <> 'private' OR team_id IS NULL)",
            name="ck_idea_visibility_team",
        ),
    )

    title: Mapped[str] = mapped_column(String(MAX_TITLE_LENGTH), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=IdeaStatus.INBOX.value,
        nullable=False,
    )
    visibility: Mapped[str] = mapped_column(
        String(20),
        default=Visibility.PRIVATE.value,
        nullable=False,
    )
    team_id: Mapped[int | None] = mapped_column(
        ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    vote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Idea(id={self.id}, visibility={self.visibility}, status={self.status})>"
