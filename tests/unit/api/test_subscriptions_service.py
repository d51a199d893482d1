"""
Tests for the subscription registry.

Tests:
- Entry normalisation and limits
- Matching and wildcard reads
- Delete-and-recreate writes
- Legacy migration
"""

import pytest
from unittest.mock import AsyncMock
from sqlalchemy import func, select

from api.services.subscriptions import (
    MAX_SUBSCRIPTIONS,
    get_job_subscribers,
    get_user_subscriptions,
    list_legacy_job_subscribers,
    list_matching_subscriptions,
    list_wildcard_subscribers,
    migrate_legacy_subscriptions,
    normalize_entries,
    set_job_subscribers,
    set_user_subscriptions,
)
from database.models.subscriptions import JobNotificationSub, SubscriptionType
from database.models.users import UserRole


class TestNormalizeEntries:
    def test_deduplicates_in_first_seen_order(self):
        keys = normalize_entries([
            {"type": "job", "value": "job-1"},
            {"type": "department", "value": " Sales "},
            {"type": "job", "value": "job-1"},
        ])

        assert keys == [
            (SubscriptionType.JOB, "job-1"),
            (SubscriptionType.DEPARTMENT, "Sales"),
        ]

    def test_wildcard_value_is_empty(self):
        keys = normalize_entries([{"type": "all", "value": "ignored"}, {"type": "all"}])

        assert keys == [(SubscriptionType.ALL, "")]

    def test_missing_value(self):
        with pytest.raises(ValueError, match="requires a value"):
            normalize_entries([{"type": "office", "value": "  "}])

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            normalize_entries([{"type": "planet", "value": "mars"}])

    def test_limit(self):
        entries = [{"type": "job", "value": f"job-{i}"} for i in range(MAX_SUBSCRIPTIONS + 1)]

        with pytest.raises(ValueError, match="At most"):
            normalize_entries(entries)


class TestReads:
    @pytest.mark.asyncio
    async def test_empty_keys_issue_no_query(self):
        db = AsyncMock()

        assert await list_matching_subscriptions(db, []) == []
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_matching_subscriptions(self, db, make_user):
        alice = await make_user()
        bob = await make_user()
        await set_user_subscriptions(db, alice.id, [{"type": "job", "value": "job-1"}])
        await set_user_subscriptions(db, bob.id, [{"type": "department", "value": "Sales"}])

        matches = await list_matching_subscriptions(
            db,
            [(SubscriptionType.JOB, "job-1"), (SubscriptionType.DEPARTMENT, "Interiors")],
        )

        assert [s.user_id for s in matches] == [alice.id]

    @pytest.mark.asyncio
    async def test_wildcard_subscribers_lists_user_ids(self, db, make_user):
        admin = await make_user(UserRole.ADMIN)
        other = await make_user()
        await set_user_subscriptions(db, admin.id, [{"type": "all"}])
        await set_user_subscriptions(db, other.id, [{"type": "job", "value": "job-1"}])

        wildcard = await list_wildcard_subscribers(db)

        assert wildcard == [admin.id]


class TestWrites:
    @pytest.mark.asyncio
    async def test_set_user_subscriptions_replaces_everything(self, db, make_user):
        user = await make_user()
        await set_user_subscriptions(db, user.id, [{"type": "job", "value": "job-1"}])

        result = await set_user_subscriptions(
            db, user.id, [{"type": "office", "value": "office-biloxi"}, {"type": "all"}]
        )

        assert sorted((s["type"], s["value"]) for s in result) == [
            ("all", ""),
            ("office", "office-biloxi"),
        ]
        assert await get_user_subscriptions(db, user.id) == result

    @pytest.mark.asyncio
    async def test_invalid_entries_leave_existing_rows(self, db, make_user):
        user = await make_user()
        await set_user_subscriptions(db, user.id, [{"type": "job", "value": "job-1"}])

        with pytest.raises(ValueError):
            await set_user_subscriptions(db, user.id, [{"type": "job"}])

        assert len(await get_user_subscriptions(db, user.id)) == 1

    @pytest.mark.asyncio
    async def test_set_job_subscribers(self, db, world, make_user):
        alice = await make_user()
        bob = await make_user()

        result = await set_job_subscribers(db, "job-sales-biloxi", [alice.id, bob.id, alice.id])

        assert sorted(s["user_id"] for s in result) == sorted([alice.id, bob.id])
        assert sorted(await list_legacy_job_subscribers(db, "job-sales-biloxi")) == sorted(
            [alice.id, bob.id]
        )

        await set_job_subscribers(db, "job-sales-biloxi", [bob.id])

        assert [s["user_id"] for s in await get_job_subscribers(db, "job-sales-biloxi")] == [bob.id]


class TestLegacyMigration:
    @pytest.mark.asyncio
    async def test_nothing_to_migrate(self, db):
        assert await migrate_legacy_subscriptions(db) == {"migrated": 0, "skipped": 0, "removed": 0}

    @pytest.mark.asyncio
    async def test_copies_and_removes_legacy_rows(self, db, world, make_user):
        alice = await make_user()
        bob = await make_user()
        await set_user_subscriptions(db, alice.id, [{"type": "job", "value": "job-sales-biloxi"}])
        await set_job_subscribers(db, "job-sales-biloxi", [alice.id, bob.id])

        counts = await migrate_legacy_subscriptions(db)

        assert counts == {"migrated": 1, "skipped": 1, "removed": 2}
        remaining = await db.scalar(select(func.count()).select_from(JobNotificationSub))
        assert remaining == 0
        assert [(s["type"], s["value"]) for s in await get_user_subscriptions(db, bob.id)] == [
            ("job", "job-sales-biloxi")
        ]
