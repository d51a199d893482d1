"""
Notification fan-out tasks.

The API process queues these by name after a commit (see
``core.post_commit.celery_dispatcher``). Each task runs the same handler the
inline dispatcher uses, on a fresh event loop with an unpooled engine.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from sqlalchemy.pool import NullPool

from api.services.notifications import (
    NOTIFY_SUBSCRIBERS_TASK,
    NOTIFY_USERS_TASK,
    notify_subscribers as notify_subscribers_handler,
    notify_users as notify_users_handler,
)
from database.engine import create_session_factory
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _with_session_factory(run: Callable[..., Awaitable[int]], **kwargs: Any) -> int:
    engine, factory = create_session_factory(poolclass=NullPool)
    try:
        return await run(session_factory=factory, **kwargs)
    finally:
        await engine.dispose()


@celery_app.task(name=NOTIFY_SUBSCRIBERS_TASK)
def notify_subscribers(
    context: dict,
    payload: dict,
    exclude_user_id: Optional[str] = None,
) -> int:
    """Resolve the subscribers of a business event and store their notifications.

    Args:
        context: Job, department, office and event the business event concerns
        payload: Notification type, title, message and link
        exclude_user_id: The acting user

    Returns:
        Number of notifications created
    """
    delivered = asyncio.run(
        _with_session_factory(
            notify_subscribers_handler,
            context=context,
            payload=payload,
            exclude_user_id=exclude_user_id,
        )
    )
    logger.info(f"Task {NOTIFY_SUBSCRIBERS_TASK} delivered {delivered} notification(s)")
    return delivered


@celery_app.task(name=NOTIFY_USERS_TASK)
def notify_users(user_ids: List[str], payload: dict) -> int:
    """Store a notification for each of ``user_ids``."""
    return asyncio.run(
        _with_session_factory(notify_users_handler, user_ids=user_ids, payload=payload)
    )
