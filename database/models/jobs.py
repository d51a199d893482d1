"""
Jobs Module

Job postings, the offices they are attached to, and explicit reviewer
assignments (the grants that scope a reviewer's access).
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    func,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base, new_id
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.applicants import Applicant
    from database.models.users import User


# ==================== Job Enums ===================== #
class JobStatus(str, PyEnum):
    """Job posting status."""

    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"
    ARCHIVED = "archived"


# ==================== Office ===================== #
class Office(Base):
    """Physical office a job can be attached to."""

    __tablename__ = "offices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    jobs: Mapped[list["Job"]] = relationship("Job", back_populates="office")


# ==================== Job ===================== #
class Job(Base):
    """Job posting. ``department`` and ``office_id`` drive hiring manager scope."""

    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str | None] = mapped_column(String(100), index=True)
    office_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("offices.id", ondelete="SET NULL"), index=True
    )
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, native_enum=False, length=50),
        nullable=False,
        default=JobStatus.OPEN,
    )

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
    office: Mapped["Office | None"] = relationship("Office", back_populates="jobs")
    reviewers: Mapped[list["JobReviewer"]] = relationship(
        "JobReviewer", back_populates="job", cascade="all, delete-orphan"
    )
    applicants: Mapped[list["Applicant"]] = relationship(
        "Applicant", back_populates="job"
    )


# ==================== Job Reviewer ===================== #
class JobReviewer(Base):
    """Explicit grant of one job to one reviewer."""

    __tablename__ = "job_reviewers"
    __table_args__ = (
        UniqueConstraint("job_id", "user_id", name="uq_job_reviewers_job_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    job: Mapped["Job"] = relationship("Job", back_populates="reviewers")
    user: Mapped["User"] = relationship("User", back_populates="job_assignments")
