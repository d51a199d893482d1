"""Recruiting events (career fairs, open days) and their reviewer grants."""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Text,
    func,
    UniqueConstraint,
)
from database.engine import Base, new_id
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.applicants import Applicant
    from database.models.users import User


class RecruitmentEvent(Base):
    __tablename__ = "recruitment_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    reviewers: Mapped[list["EventReviewer"]] = relationship(
        "EventReviewer", back_populates="event", cascade="all, delete-orphan"
    )
    applicants: Mapped[list["Applicant"]] = relationship(
        "Applicant", back_populates="event"
    )


class EventReviewer(Base):
    """Explicit grant of one recruiting event to one reviewer."""

    __tablename__ = "event_reviewers"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_reviewers_event_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("recruitment_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    event: Mapped["RecruitmentEvent"] = relationship(
        "RecruitmentEvent", back_populates="reviewers"
    )
    user: Mapped["User"] = relationship("User", back_populates="event_assignments")
