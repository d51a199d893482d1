"""
Subscription registry.

Read side used by notification targeting, plus the delete-and-recreate write
side behind the settings endpoints.
"""

from typing import Any, Dict, Iterable, List, Sequence, Tuple
import logging

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database.models.subscriptions import (
    JobNotificationSub,
    NotificationSubscription,
    SubscriptionType,
)

logger = logging.getLogger(__name__)

MAX_SUBSCRIPTIONS = 200

SubscriptionKey = Tuple[SubscriptionType, str]


def _to_dict(subscription: NotificationSubscription) -> Dict[str, Any]:
    return {
        "id": subscription.id,
        "user_id": subscription.user_id,
        "type": subscription.type.value,
        "value": subscription.value,
    }


def normalize_entries(entries: Iterable[Dict[str, Any]]) -> List[SubscriptionKey]:
    """
    Validate and de-duplicate subscription entries, keeping first-seen order.

    The wildcard type carries no value and is stored with ``""``.

    Raises:
        ValueError: On an unknown type, a missing value or too many entries
    """
    seen: set[SubscriptionKey] = set()
    keys: List[SubscriptionKey] = []
    for entry in entries:
        sub_type = SubscriptionType(entry["type"])
        value = "" if sub_type == SubscriptionType.ALL else str(entry.get("value") or "").strip()
        if sub_type != SubscriptionType.ALL and not value:
            raise ValueError(f"Subscription of type {sub_type.value} requires a value")

        key = (sub_type, value)
        if key not in seen:
            seen.add(key)
            keys.append(key)

    if len(keys) > MAX_SUBSCRIPTIONS:
        raise ValueError(f"At most {MAX_SUBSCRIPTIONS} subscriptions are allowed")
    return keys


# ==================== Read Side ===================== #
async def list_matching_subscriptions(
    db: AsyncSession, keys: Sequence[SubscriptionKey]
) -> List[NotificationSubscription]:
    """Subscriptions matching any of the (type, value) pairs."""
    if not keys:
        return []

    result = await db.execute(
        select(NotificationSubscription).where(
            or_(
                *(
                    and_(
                        NotificationSubscription.type == sub_type,
                        NotificationSubscription.value == value,
                    )
                    for sub_type, value in keys
                )
            )
        )
    )
    return list(result.scalars().all())


async def list_wildcard_subscribers(db: AsyncSession) -> List[str]:
    """Ids of users holding an ``all``-type subscription."""
    result = await db.execute(
        select(NotificationSubscription.user_id)
        .where(NotificationSubscription.type == SubscriptionType.ALL)
        .distinct()
    )
    return list(result.scalars().all())


async def list_legacy_job_subscribers(db: AsyncSession, job_id: str) -> List[str]:
    """User ids from the legacy job-only table."""
    result = await db.execute(
        select(JobNotificationSub.user_id).where(JobNotificationSub.job_id == job_id)
    )
    return list(result.scalars().all())


# ==================== Write Side ===================== #
async def get_user_subscriptions(db: AsyncSession, user_id: str) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(NotificationSubscription)
        .where(NotificationSubscription.user_id == user_id)
        .order_by(NotificationSubscription.type, NotificationSubscription.value)
    )
    return [_to_dict(s) for s in result.scalars().all()]


async def set_user_subscriptions(
    db: AsyncSession, user_id: str, entries: Iterable[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Replace every subscription of a user (delete-and-recreate)."""
    keys = normalize_entries(entries)

    await db.execute(
        delete(NotificationSubscription).where(NotificationSubscription.user_id == user_id)
    )
    db.add_all(
        NotificationSubscription(user_id=user_id, type=sub_type, value=value)
        for sub_type, value in keys
    )
    await db.commit()

    logger.info(f"Replaced subscriptions for user {user_id} ({len(keys)} entries)")
    return await get_user_subscriptions(db, user_id)


async def get_job_subscribers(db: AsyncSession, job_id: str) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(JobNotificationSub)
        .options(selectinload(JobNotificationSub.user))
        .where(JobNotificationSub.job_id == job_id)
    )
    return [
        {
            "user_id": sub.user_id,
            "name": sub.user.name if sub.user else None,
            "email": sub.user.email if sub.user else None,
        }
        for sub in result.scalars().all()
    ]


async def set_job_subscribers(
    db: AsyncSession, job_id: str, user_ids: Iterable[str]
) -> List[Dict[str, Any]]:
    """Replace the legacy subscribers of a job (delete-and-recreate)."""
    unique_ids = list(dict.fromkeys(user_ids))

    await db.execute(delete(JobNotificationSub).where(JobNotificationSub.job_id == job_id))
    db.add_all(JobNotificationSub(job_id=job_id, user_id=user_id) for user_id in unique_ids)
    await db.commit()

    logger.info(f"Replaced legacy subscribers for job {job_id} ({len(unique_ids)} users)")
    return await get_job_subscribers(db, job_id)


async def migrate_legacy_subscriptions(db: AsyncSession) -> Dict[str, int]:
    """
    Copy legacy job subscriptions into ``job``-type subscriptions and delete them.

    Returns:
        Counts of migrated, already-present and removed legacy rows
    """
    legacy = (await db.execute(select(JobNotificationSub))).scalars().all()
    if not legacy:
        return {"migrated": 0, "skipped": 0, "removed": 0}

    existing = await db.execute(
        select(NotificationSubscription.user_id, NotificationSubscription.value).where(
            NotificationSubscription.type == SubscriptionType.JOB
        )
    )
    present = {(row.user_id, row.value) for row in existing}

    migrated = skipped = 0
    for sub in legacy:
        key = (sub.user_id, sub.job_id)
        if key in present:
            skipped += 1
        else:
            db.add(
                NotificationSubscription(
                    user_id=sub.user_id, type=SubscriptionType.JOB, value=sub.job_id
                )
            )
            present.add(key)
            migrated += 1

    await db.execute(delete(JobNotificationSub))
    await db.commit()

    logger.info(
        f"Migrated {migrated} legacy subscription(s), {skipped} already present"
    )
    return {"migrated": migrated, "skipped": skipped, "removed": len(legacy)}
