"""
Tests for post-commit task release.

Tests:
- Tasks are released only after a commit
- Rollback and savepoint behaviour
- Handler error boundary
- Inline dispatch
"""

import logging

import pytest
from unittest.mock import AsyncMock

from core.post_commit import (
    PostCommitTask,
    defer_until_commit,
    drain_pending,
    get_handler,
    inline_dispatcher,
    pending_tasks,
    post_commit_handler,
    set_dispatcher,
)
from database.models.jobs import Office


class TestRelease:
    @pytest.mark.asyncio
    async def test_task_released_after_commit(self, db, dispatched_tasks):
        task = PostCommitTask("test.release", {"x": 1})
        db.add(Office(name="Biloxi"))
        defer_until_commit(db, task)

        assert dispatched_tasks == []
        assert pending_tasks(db) == [task]

        await db.commit()

        assert dispatched_tasks == [task]
        assert pending_tasks(db) == []

    @pytest.mark.asyncio
    async def test_rollback_discards_tasks(self, db, dispatched_tasks):
        db.add(Office(name="Biloxi"))
        await db.flush()
        defer_until_commit(db, PostCommitTask("test.rollback"))

        await db.rollback()
        await db.commit()

        assert dispatched_tasks == []
        assert pending_tasks(db) == []

    @pytest.mark.asyncio
    async def test_savepoint_release_does_not_dispatch(self, db, dispatched_tasks):
        task = PostCommitTask("test.savepoint")
        async with db.begin_nested():
            db.add(Office(name="Biloxi"))
            defer_until_commit(db, task)

        assert dispatched_tasks == []

        await db.commit()

        assert dispatched_tasks == [task]

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_logged_not_raised(self, db, caplog):
        def broken(task):
            raise RuntimeError("broker down")

        previous = set_dispatcher(broken)
        try:
            defer_until_commit(db, PostCommitTask("test.broken"))
            db.add(Office(name="Biloxi"))
            with caplog.at_level(logging.ERROR, logger="core.post_commit"):
                await db.commit()
        finally:
            set_dispatcher(previous)

        assert "Failed to dispatch post-commit task test.broken" in caplog.text


class TestHandlers:
    def test_unknown_handler(self):
        with pytest.raises(LookupError):
            get_handler("test.never-registered")

    @pytest.mark.asyncio
    async def test_run_calls_registered_handler(self):
        handler = AsyncMock()
        post_commit_handler("test.handler")(handler)

        await PostCommitTask("test.handler", {"value": 3}).run()

        handler.assert_awaited_once_with(value=3)

    @pytest.mark.asyncio
    async def test_run_swallows_handler_errors(self, caplog):
        post_commit_handler("test.failing")(AsyncMock(side_effect=ValueError("boom")))

        with caplog.at_level(logging.ERROR, logger="core.post_commit"):
            await PostCommitTask("test.failing").run()

        assert "Post-commit task test.failing failed" in caplog.text

    @pytest.mark.asyncio
    async def test_inline_dispatcher_runs_on_the_loop(self):
        handler = AsyncMock()
        post_commit_handler("test.inline")(handler)

        inline_dispatcher(PostCommitTask("test.inline", {"n": 1}))
        await drain_pending()

        handler.assert_awaited_once_with(n=1)
