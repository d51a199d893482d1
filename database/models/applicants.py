"""
Applicants Module

Candidate records. An applicant reaches the recruiting team through a job
posting, a recruiting event, both, or neither (the general pool).
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Integer,
    Text,
    func,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base, new_id
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.events import RecruitmentEvent
    from database.models.jobs import Job


# ==================== Applicant Enums ===================== #
class ApplicantStage(str, PyEnum):
    """Pipeline stage."""

    NEW = "new"
    SCREENING = "screening"
    INTERVIEW = "interview"
    OFFER = "offer"
    HIRED = "hired"
    REJECTED = "rejected"


# Stages an applicant is pulled forward from when an interview gets scheduled
EARLY_STAGES = frozenset({ApplicantStage.NEW, ApplicantStage.SCREENING})


class ApplicantSource(str, PyEnum):
    PUBLIC = "public"  # applied through the careers page
    MANUAL = "manual"  # added by a team member
    EVENT = "event"  # captured at a recruiting event


class InterviewStatus(str, PyEnum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ==================== Applicant ===================== #
class Applicant(Base):
    __tablename__ = "applicants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(50))

    # NULL job_id means the applicant sits in the general pool
    job_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("jobs.id", ondelete="SET NULL"), index=True
    )
    event_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("recruitment_events.id", ondelete="SET NULL"), index=True
    )

    stage: Mapped[ApplicantStage] = mapped_column(
        SQLEnum(ApplicantStage, native_enum=False, length=50),
        nullable=False,
        default=ApplicantStage.NEW,
    )
    source: Mapped[ApplicantSource] = mapped_column(
        SQLEnum(ApplicantSource, native_enum=False, length=50),
        nullable=False,
        default=ApplicantSource.PUBLIC,
    )
    notes: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    job: Mapped["Job | None"] = relationship("Job", back_populates="applicants")
    event: Mapped["RecruitmentEvent | None"] = relationship(
        "RecruitmentEvent", back_populates="applicants"
    )
    interviews: Mapped[list["Interview"]] = relationship(
        "Interview", back_populates="applicant", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# ==================== Interview ===================== #
class Interview(Base):
    __tablename__ = "interviews"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    applicant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    interview_type: Mapped[str] = mapped_column(String(50), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    location: Mapped[str | None] = mapped_column(String(500))
    status: Mapped[InterviewStatus] = mapped_column(
        SQLEnum(InterviewStatus, native_enum=False, length=50),
        nullable=False,
        default=InterviewStatus.SCHEDULED,
    )
    scheduled_by_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    applicant: Mapped["Applicant"] = relationship("Applicant", back_populates="interviews")
    participants: Mapped[list["InterviewParticipant"]] = relationship(
        "InterviewParticipant", back_populates="interview", cascade="all, delete-orphan"
    )


class InterviewParticipant(Base):
    __tablename__ = "interview_participants"
    __table_args__ = (
        UniqueConstraint("interview_id", "user_id", name="uq_interview_participants"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    interview_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("interviews.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    interview: Mapped["Interview"] = relationship("Interview", back_populates="participants")
