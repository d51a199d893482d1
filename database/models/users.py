from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    Integer,
    Text,
    func,
    Enum as SQLEnum,
)
from database.engine import Base, new_id
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.jobs import JobReviewer
    from database.models.events import EventReviewer
    from database.models.subscriptions import NotificationSubscription


# ==================== User Role ===================== #
class UserRole(str, PyEnum):
    ADMIN = "admin"  # unrestricted access to every job, event and applicant
    HIRING_MANAGER = "hiring_manager"  # global, or scoped by department/office
    REVIEWER = "reviewer"  # explicit per-job / per-event assignments only


class ScopeMode(str, PyEnum):
    """How a scoped user's department and office restrictions combine."""

    AND = "and"  # both must match
    OR = "or"  # either suffices


class User(Base):
    """
    Recruiting team member and the authorization attributes scoping their access.

    ``scoped_departments`` and ``scoped_offices`` hold JSON arrays as text. They
    are decoded exactly once, by ``core.scoping.principal_from_user``.
    """

    __tablename__: str = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, native_enum=False, length=50),
        nullable=False,
        default=UserRole.REVIEWER,
    )

    # Scope (only meaningful for hiring managers)
    scoped_departments: Mapped[str | None] = mapped_column(Text)
    scoped_offices: Mapped[str | None] = mapped_column(Text)
    scope_mode: Mapped[ScopeMode] = mapped_column(
        SQLEnum(ScopeMode, native_enum=False, length=10),
        nullable=False,
        default=ScopeMode.OR,
    )
    event_access: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Bumped to revoke every token issued before the change
    token_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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
    job_assignments: Mapped[list["JobReviewer"]] = relationship(
        "JobReviewer", back_populates="user", cascade="all, delete-orphan"
    )
    event_assignments: Mapped[list["EventReviewer"]] = relationship(
        "EventReviewer", back_populates="user", cascade="all, delete-orphan"
    )
    subscriptions: Mapped[list["NotificationSubscription"]] = relationship(
        "NotificationSubscription", back_populates="user", cascade="all, delete-orphan"
    )
