"""
Notification subscriptions.

``NotificationSubscription`` is the current multi-type table. ``JobNotificationSub``
is the older job-only table, still read during the migration window and
retired once ``migrate_legacy_subscriptions`` has emptied it.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    func,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base, new_id
from enum import Enum as PyEnum
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.users import User


# ==================== Enums ===================== #
class SubscriptionType(str, PyEnum):
    """What a subscription's ``value`` identifies."""

    JOB = "job"
    DEPARTMENT = "department"
    OFFICE = "office"
    EVENT = "event"
    ALL = "all"  # wildcard, gated by the subscriber's own access scope


# ==================== Subscription Model ===================== #
class NotificationSubscription(Base):
    """A user's "notify me when X happens" entry."""

    __tablename__: str = "notification_subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "type", "value", name="uq_notification_subscriptions"),
        Index("idx_notification_subscriptions_type_value", "type", "value"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[SubscriptionType] = mapped_column(
        SQLEnum(SubscriptionType, native_enum=False, length=20),
        nullable=False,
    )
    # Resource identifier; empty string for the wildcard type
    value: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    user: Mapped["User"] = relationship("User", back_populates="subscriptions")


# ==================== Legacy Subscription Model ===================== #
class JobNotificationSub(Base):
    """Legacy job-only subscription."""

    __tablename__ = "job_notification_subs"
    __table_args__ = (
        UniqueConstraint("user_id", "job_id", name="uq_job_notification_subs"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    user: Mapped["User"] = relationship("User")
