"""
Post-commit tasks.

Side effects that must only happen once the triggering transaction is durable
(notification fan-out) are parked on the session with ``defer_until_commit``
and released by a SQLAlchemy ``after_commit`` listener. A rollback discards
them.

Released tasks go to the configured dispatcher:
- ``celery``: sent to the worker by name (``workers/tasks/notifications.py``)
- ``inline``: scheduled on the running event loop

Either way the request never waits on, or fails because of, the task.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

from core.config import settings

logger = logging.getLogger(__name__)

SESSION_KEY = "post_commit_tasks"

Handler = Callable[..., Awaitable[Any]]

_handlers: dict[str, Handler] = {}


def post_commit_handler(name: str) -> Callable[[Handler], Handler]:
    """Register an async function as the handler for tasks called ``name``."""

    def decorator(func: Handler) -> Handler:
        _handlers[name] = func
        return func

    return decorator


def get_handler(name: str) -> Handler:
    try:
        return _handlers[name]
    except KeyError:
        raise LookupError(f"No post-commit handler registered as {name!r}") from None


@dataclass
class PostCommitTask:
    """A queued unit of work with its own error boundary."""

    name: str
    kwargs: dict[str, Any] = field(default_factory=dict)

    async def run(self) -> None:
        """Run the registered handler. Failures are logged, never raised."""
        try:
            await get_handler(self.name)(**self.kwargs)
        except Exception:
            logger.error(f"Post-commit task {self.name} failed", exc_info=True)


# ==================== Dispatchers ===================== #
Dispatcher = Callable[[PostCommitTask], None]

_pending: set[asyncio.Task] = set()


def celery_dispatcher(task: PostCommitTask) -> None:
    from workers.celery_app import celery_app

    celery_app.send_task(task.name, kwargs=task.kwargs)


def inline_dispatcher(task: PostCommitTask) -> None:
    loop = asyncio.get_running_loop()
    scheduled = loop.create_task(task.run())
    # Keep a strong reference until the task finishes
    _pending.add(scheduled)
    scheduled.add_done_callback(_pending.discard)


DISPATCHERS: dict[str, Dispatcher] = {
    "celery": celery_dispatcher,
    "inline": inline_dispatcher,
}

_dispatcher: Dispatcher = DISPATCHERS[settings.post_commit_backend]


def set_dispatcher(dispatcher: Dispatcher) -> Dispatcher:
    """Swap the active dispatcher and return the previous one."""
    global _dispatcher
    previous = _dispatcher
    _dispatcher = dispatcher
    return previous


async def drain_pending() -> None:
    """Wait for inline tasks scheduled so far (shutdown, tests)."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)


# ==================== Session Integration ===================== #
def defer_until_commit(
    session: AsyncSession | Session, task: PostCommitTask
) -> None:
    """Park ``task`` on the session until its transaction commits."""
    sync_session = session.sync_session if isinstance(session, AsyncSession) else session
    sync_session.info.setdefault(SESSION_KEY, []).append(task)


def pending_tasks(session: AsyncSession | Session) -> list[PostCommitTask]:
    sync_session = session.sync_session if isinstance(session, AsyncSession) else session
    return list(sync_session.info.get(SESSION_KEY, []))


@event.listens_for(Session, "after_commit")
def _release_on_commit(session: Session) -> None:
    # A SAVEPOINT release is not durable yet
    if session.in_nested_transaction():
        return

    tasks: list[PostCommitTask] = session.info.pop(SESSION_KEY, [])
    for task in tasks:
        try:
            _dispatcher(task)
        except Exception:
            logger.error(f"Failed to dispatch post-commit task {task.name}", exc_info=True)


@event.listens_for(Session, "after_transaction_end")
def _discard_on_rollback(session: Session, transaction: SessionTransaction) -> None:
    # after_commit has already popped the tasks of a committed root transaction
    if transaction.parent is None and transaction.nested is False:
        dropped: Optional[list] = session.info.pop(SESSION_KEY, None)
        if dropped:
            logger.info(f"Discarded {len(dropped)} post-commit task(s) after rollback")
