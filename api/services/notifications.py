"""
Notification targeting and delivery.

``resolve_targets`` expands one business event into the set of users to notify:

1. Direct subscriptions matching the event's job / department / office / event
2. Wildcard (``all``) subscribers, gated by replaying their own access scope
3. Legacy job-only subscriptions, while the migration window is open

Everything here runs after the triggering transaction has committed, so no
function in this module raises. Each step catches and logs its own failure and
the result is built from whatever steps succeeded.
"""

from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Protocol, Set
import logging

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.middleware.authorization import can_observe
from core.post_commit import PostCommitTask, defer_until_commit, post_commit_handler
from core.scoping import Principal, ScopeParseError, UnknownRoleError, principal_from_user
from database.engine import AsyncSessionLocal
from database.models.events import EventReviewer
from database.models.jobs import JobReviewer
from database.models.notifications import Notification
from database.models.subscriptions import SubscriptionType
from database.models.users import User
from api.services.subscriptions import (
    SubscriptionKey,
    list_legacy_job_subscribers,
    list_matching_subscriptions,
    list_wildcard_subscribers,
)

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]

NOTIFY_SUBSCRIBERS_TASK = "notifications.notify_subscribers"
NOTIFY_USERS_TASK = "notifications.notify_users"


@dataclass(frozen=True)
class NotificationContext:
    """What a business event concerns. Absent fields are ``None``."""

    job_id: Optional[str] = None
    department: Optional[str] = None
    office_id: Optional[str] = None
    event_id: Optional[str] = None

    @classmethod
    def for_applicant(cls, applicant: Any) -> "NotificationContext":
        """Context of an applicant with its ``job`` relationship loaded."""
        job = applicant.job
        return cls(
            job_id=applicant.job_id,
            department=job.department if job is not None else None,
            office_id=job.office_id if job is not None else None,
            event_id=applicant.event_id,
        )

    def subscription_keys(self) -> List[SubscriptionKey]:
        pairs = (
            (SubscriptionType.JOB, self.job_id),
            (SubscriptionType.DEPARTMENT, self.department),
            (SubscriptionType.OFFICE, self.office_id),
            (SubscriptionType.EVENT, self.event_id),
        )
        return [(sub_type, value) for sub_type, value in pairs if value]


@dataclass(frozen=True)
class NotificationPayload:
    type: str
    title: str
    message: str
    link: Optional[str] = None


# ==================== Delivery Sink ===================== #
class NotificationSink(Protocol):
    async def deliver(self, user_ids: Iterable[str], payload: NotificationPayload) -> int:
        ...


class DatabaseNotificationSink:
    """Persists one ``notifications`` row per user."""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory or AsyncSessionLocal

    async def deliver(self, user_ids: Iterable[str], payload: NotificationPayload) -> int:
        rows = [
            {
                "user_id": user_id,
                "type": payload.type,
                "title": payload.title,
                "message": payload.message,
                "link": payload.link,
                "read": False,
            }
            for user_id in sorted(set(user_ids))
        ]
        if not rows:
            return 0

        async with self.session_factory() as session:
            await session.execute(insert(Notification), rows)
            await session.commit()
        return len(rows)


# ==================== Targeting ===================== #
async def _collect(
    label: str,
    session_factory: SessionFactory,
    step: Callable[[AsyncSession], Awaitable[Set[str]]],
) -> Set[str]:
    try:
        async with session_factory() as session:
            return await step(session)
    except Exception:
        logger.error(f"Notification targeting step '{label}' failed", exc_info=True)
        return set()


async def _direct_subscribers(session: AsyncSession, context: NotificationContext) -> Set[str]:
    subscriptions = await list_matching_subscriptions(session, context.subscription_keys())
    return {s.user_id for s in subscriptions}


async def _granted_users(session: AsyncSession, context: NotificationContext) -> tuple[Set[str], Set[str]]:
    job_granted: Set[str] = set()
    event_granted: Set[str] = set()
    if context.job_id:
        result = await session.execute(
            select(JobReviewer.user_id).where(JobReviewer.job_id == context.job_id)
        )
        job_granted = set(result.scalars().all())
    if context.event_id:
        result = await session.execute(
            select(EventReviewer.user_id).where(EventReviewer.event_id == context.event_id)
        )
        event_granted = set(result.scalars().all())
    return job_granted, event_granted


async def _load_subscriber(session: AsyncSession, user_id: str) -> Optional[Principal]:
    """
    Load one wildcard subscriber as a principal, or None when they must be skipped.

    Users are loaded one at a time: an unmappable stored role or scope mode
    raises ``LookupError`` during the row load itself and must only cost that
    subscriber.
    """
    try:
        user = await session.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return principal_from_user(user)
    except (LookupError, ScopeParseError, UnknownRoleError):
        logger.warning(
            f"Skipping wildcard subscriber {user_id}: unreadable scope",
            exc_info=True,
        )
        return None


async def _wildcard_subscribers(session: AsyncSession, context: NotificationContext) -> Set[str]:
    user_ids = await list_wildcard_subscribers(session)
    if not user_ids:
        return set()

    job_granted, event_granted = await _granted_users(session, context)

    targets: Set[str] = set()
    for user_id in user_ids:
        principal = await _load_subscriber(session, user_id)
        if principal is None:
            continue

        if can_observe(
            principal,
            department=context.department,
            office_id=context.office_id,
            job_id=context.job_id,
            event_id=context.event_id,
            job_granted=user_id in job_granted,
            event_granted=user_id in event_granted,
        ):
            targets.add(user_id)
    return targets


async def _legacy_subscribers(session: AsyncSession, context: NotificationContext) -> Set[str]:
    if not context.job_id or not settings.legacy_subscriptions_enabled:
        return set()
    return set(await list_legacy_job_subscribers(session, context.job_id))


async def resolve_targets(
    context: NotificationContext,
    exclude_user_id: Optional[str] = None,
    session_factory: Optional[SessionFactory] = None,
) -> Set[str]:
    """
    Compute the de-duplicated set of users to notify about a business event.

    Args:
        context: What the event concerns
        exclude_user_id: The actor, who is never notified about their own action
        session_factory: Session factory, defaults to the application's

    Returns:
        User ids. Failed steps contribute nothing.
    """
    factory = session_factory or AsyncSessionLocal

    targets: Set[str] = set()
    targets |= await _collect("direct", factory, lambda s: _direct_subscribers(s, context))
    targets |= await _collect("wildcard", factory, lambda s: _wildcard_subscribers(s, context))
    targets |= await _collect("legacy", factory, lambda s: _legacy_subscribers(s, context))

    targets.discard(exclude_user_id)
    return targets


# ==================== Delivery ===================== #
@post_commit_handler(NOTIFY_SUBSCRIBERS_TASK)
async def notify_subscribers(
    context: dict,
    payload: dict,
    exclude_user_id: Optional[str] = None,
    session_factory: Optional[SessionFactory] = None,
    sink: Optional[NotificationSink] = None,
) -> int:
    """Resolve targets for a business event and deliver the payload. Never raises."""
    try:
        ctx = NotificationContext(**context)
        message = NotificationPayload(**payload)
        targets = await resolve_targets(ctx, exclude_user_id, session_factory)
        if not targets:
            return 0
        sink = sink or DatabaseNotificationSink(session_factory)
        delivered = await sink.deliver(targets, message)
        logger.info(f"Delivered '{message.type}' notification to {delivered} user(s)")
        return delivered
    except Exception:
        logger.error("Failed to notify subscribers", exc_info=True)
        return 0


@post_commit_handler(NOTIFY_USERS_TASK)
async def notify_users(
    user_ids: List[str],
    payload: dict,
    session_factory: Optional[SessionFactory] = None,
    sink: Optional[NotificationSink] = None,
) -> int:
    """Deliver the payload to explicit users, such as interview participants. Never raises."""
    try:
        if not user_ids:
            return 0
        sink = sink or DatabaseNotificationSink(session_factory)
        return await sink.deliver(user_ids, NotificationPayload(**payload))
    except Exception:
        logger.error("Failed to notify users", exc_info=True)
        return 0


async def create_notification(
    user_id: str,
    payload: NotificationPayload,
    session_factory: Optional[SessionFactory] = None,
) -> None:
    """Create a single notification. Never raises."""
    await notify_users([user_id], asdict(payload), session_factory=session_factory)


# ==================== Scheduling ===================== #
def schedule_subscriber_notification(
    db: AsyncSession,
    context: NotificationContext,
    payload: NotificationPayload,
    exclude_user_id: Optional[str] = None,
) -> None:
    """Queue a subscriber fan-out to run once ``db`` commits."""
    defer_until_commit(
        db,
        PostCommitTask(
            NOTIFY_SUBSCRIBERS_TASK,
            {
                "context": asdict(context),
                "payload": asdict(payload),
                "exclude_user_id": exclude_user_id,
            },
        ),
    )


def schedule_user_notification(
    db: AsyncSession,
    user_ids: Iterable[str],
    payload: NotificationPayload,
) -> None:
    """Queue a notification to explicit users to run once ``db`` commits."""
    user_ids = list(dict.fromkeys(user_ids))
    if not user_ids:
        return
    defer_until_commit(
        db,
        PostCommitTask(NOTIFY_USERS_TASK, {"user_ids": user_ids, "payload": asdict(payload)}),
    )
