"""
Tests for the v1 API routes.

Requests go through the full middleware stack with real tokens. Post-commit
tasks are captured by the ``dispatched_tasks`` fixture.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from api.main import create_app
from api.services.notifications import NOTIFY_SUBSCRIBERS_TASK, NOTIFY_USERS_TASK, notify_subscribers
from api.services.subscriptions import set_job_subscribers, set_user_subscriptions
from core.security import create_access_token
from database.engine import get_db
from database.models.applicants import Applicant
from database.models.jobs import Job, JobStatus
from database.models.notifications import Notification
from database.models.users import UserRole


@pytest.fixture
def app(session_factory):
    app = create_app(session_factory=session_factory)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def as_user():
    """Headers carrying a valid token for the given user."""

    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


async def _stage_of(session_factory, applicant_id: str) -> str:
    async with session_factory() as session:
        applicant = await session.get(Applicant, applicant_id)
        return applicant.stage.value


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "0.1.0"}

    @pytest.mark.asyncio
    async def test_ready(self, client):
        response = await client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}


class TestJobRoutes:
    @pytest.mark.asyncio
    async def test_scoped_manager_lists_only_scoped_jobs(self, client, world, make_user, as_user):
        manager = await make_user(UserRole.HIRING_MANAGER, departments=["Interiors"])

        response = await client.get("/api/v1/jobs", headers=as_user(manager))

        assert response.status_code == 200
        assert {j["id"] for j in response.json()} == {"job-interiors-biloxi", "job-interiors-fairhope"}

    @pytest.mark.asyncio
    async def test_out_of_scope_job_is_not_found(self, client, world, make_user, as_user):
        manager = await make_user(UserRole.HIRING_MANAGER, departments=["Interiors"])

        response = await client.get("/api/v1/jobs/job-sales-biloxi", headers=as_user(manager))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_status_is_rendered_as_its_value(self, client, db, world, make_user, as_user):
        admin = await make_user(UserRole.ADMIN)
        job = await db.get(Job, "job-sales-fairhope")
        job.status = JobStatus.CLOSED
        await db.commit()

        single = await client.get("/api/v1/jobs/job-sales-fairhope", headers=as_user(admin))
        listed = await client.get("/api/v1/jobs", params={"status": "closed"}, headers=as_user(admin))

        assert single.json()["status"] == "closed"
        assert [(j["id"], j["status"]) for j in listed.json()] == [("job-sales-fairhope", "closed")]

    @pytest.mark.asyncio
    async def test_requires_token(self, client, world):
        response = await client.get("/api/v1/jobs")

        assert response.status_code == 401


class TestApplicantRoutes:
    @pytest.mark.asyncio
    async def test_reviewer_without_grants_sees_nothing(self, client, world, make_user, as_user):
        reviewer = await make_user(UserRole.REVIEWER)

        response = await client.get("/api/v1/applicants", headers=as_user(reviewer))

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_reviewer_lists_granted_job_and_event(self, client, world, make_user, as_user):
        reviewer = await make_user(
            UserRole.REVIEWER, job_ids=("job-sales-biloxi",), event_ids=("event-fair",)
        )

        response = await client.get("/api/v1/applicants", headers=as_user(reviewer))

        assert {a["id"] for a in response.json()} == {"app-sales-biloxi", "app-fair"}

    @pytest.mark.asyncio
    async def test_out_of_scope_applicant_is_not_found(self, client, world, make_user, as_user):
        reviewer = await make_user(UserRole.REVIEWER, job_ids=("job-sales-biloxi",))

        response = await client.get(
            "/api/v1/applicants/app-interiors-biloxi", headers=as_user(reviewer)
        )

        assert response.status_code == 404
        body = response.json()
        assert body["error"]["code"] == "NOT_FOUND"
        assert body["error"]["path"] == "/api/v1/applicants/app-interiors-biloxi"

    @pytest.mark.asyncio
    async def test_missing_and_hidden_applicants_look_the_same(self, client, world, make_user, as_user):
        reviewer = await make_user(UserRole.REVIEWER, job_ids=("job-sales-biloxi",))

        hidden = await client.get("/api/v1/applicants/app-pool", headers=as_user(reviewer))
        missing = await client.get("/api/v1/applicants/app-nope", headers=as_user(reviewer))

        assert hidden.status_code == missing.status_code == 404

    @pytest.mark.asyncio
    async def test_public_application_queues_notification(self, client, world, dispatched_tasks):
        response = await client.post(
            "/api/v1/applicants",
            json={
                "first_name": "  Gil ",
                "last_name": "Scott",
                "email": "GIL@example.com",
                "job_id": "job-sales-fairhope",
            },
        )

        assert response.status_code == 201
        assert response.json()["job_id"] == "job-sales-fairhope"
        (task,) = dispatched_tasks
        assert task.name == NOTIFY_SUBSCRIBERS_TASK
        assert task.kwargs["context"] == {
            "job_id": "job-sales-fairhope",
            "department": "Sales",
            "office_id": "office-fairhope",
            "event_id": None,
        }
        assert task.kwargs["payload"]["message"] == "Gil Scott applied for Sales Lead"

    @pytest.mark.asyncio
    async def test_public_application_to_general_pool(self, client, world, dispatched_tasks):
        response = await client.post(
            "/api/v1/applicants",
            json={"first_name": "Hal", "last_name": "Jordan", "email": "hal@example.com"},
        )

        assert response.status_code == 201
        assert response.json()["job_id"] is None
        assert dispatched_tasks[0].kwargs["context"]["job_id"] is None

    @pytest.mark.asyncio
    async def test_closed_job_rejects_applications(self, client, db, world, dispatched_tasks):
        job = await db.get(Job, "job-sales-fairhope")
        job.status = JobStatus.CLOSED
        await db.commit()

        response = await client.post(
            "/api/v1/applicants",
            json={
                "first_name": "Ivy",
                "last_name": "League",
                "email": "ivy@example.com",
                "job_id": "job-sales-fairhope",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"
        assert dispatched_tasks == []

    @pytest.mark.asyncio
    async def test_invalid_email(self, client, world):
        response = await client.post(
            "/api/v1/applicants",
            json={"first_name": "Jo", "last_name": "March", "email": "not-an-email"},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_manual_applicant_needs_job_access(self, client, world, make_user, as_user):
        manager = await make_user(UserRole.HIRING_MANAGER, departments=["Interiors"])

        response = await client.post(
            "/api/v1/applicants/manual",
            headers=as_user(manager),
            json={
                "first_name": "Kit",
                "last_name": "Harington",
                "email": "kit@example.com",
                "job_id": "job-sales-biloxi",
            },
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_stage_change_notifies_subscribers_but_not_the_actor(
        self, client, db, world, make_user, as_user, session_factory, dispatched_tasks
    ):
        admin = await make_user(UserRole.ADMIN)
        manager = await make_user(UserRole.HIRING_MANAGER, departments=["Interiors"])
        await set_user_subscriptions(db, admin.id, [{"type": "all"}])
        await set_user_subscriptions(db, manager.id, [{"type": "department", "value": "Interiors"}])

        response = await client.patch(
            "/api/v1/applicants/app-interiors-biloxi/stage",
            headers=as_user(admin),
            json={"stage": "screening"},
        )

        assert response.status_code == 200
        assert response.json()["stage"] == "screening"
        assert await _stage_of(session_factory, "app-interiors-biloxi") == "screening"

        (task,) = dispatched_tasks
        assert task.kwargs["exclude_user_id"] == admin.id
        assert await notify_subscribers(**task.kwargs, session_factory=session_factory) == 1

        async with session_factory() as session:
            rows = (await session.execute(select(Notification))).scalars().all()
        assert [r.user_id for r in rows] == [manager.id]
        assert rows[0].type == "stage_changed"

    @pytest.mark.asyncio
    async def test_same_stage_is_a_no_op(self, client, world, make_user, as_user, dispatched_tasks):
        admin = await make_user(UserRole.ADMIN)

        response = await client.patch(
            "/api/v1/applicants/app-pool/stage", headers=as_user(admin), json={"stage": "new"}
        )

        assert response.status_code == 200
        assert dispatched_tasks == []

    @pytest.mark.asyncio
    async def test_unknown_stage(self, client, world, make_user, as_user):
        admin = await make_user(UserRole.ADMIN)

        response = await client.patch(
            "/api/v1/applicants/app-pool/stage", headers=as_user(admin), json={"stage": "hired-ish"}
        )

        assert response.status_code == 422


class TestInterviewRoutes:
    @pytest.mark.asyncio
    async def test_schedule_moves_early_applicant_to_interview(
        self, client, world, make_user, as_user, session_factory, dispatched_tasks
    ):
        manager = await make_user(UserRole.HIRING_MANAGER)
        reviewer = await make_user(UserRole.REVIEWER, job_ids=("job-sales-biloxi",))

        response = await client.post(
            "/api/v1/interviews",
            headers=as_user(manager),
            json={
                "applicant_id": "app-sales-biloxi",
                "interview_type": "onsite",
                "scheduled_at": "2026-11-02T15:00:00",
                "participant_ids": [manager.id, reviewer.id],
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["applicant_stage_changed"] is True
        assert body["applicant_stage"] == "interview"
        assert body["participant_ids"] == sorted([manager.id, reviewer.id])
        assert await _stage_of(session_factory, "app-sales-biloxi") == "interview"

        by_name = {t.name: t for t in dispatched_tasks}
        assert by_name[NOTIFY_USERS_TASK].kwargs["user_ids"] == [reviewer.id]
        assert by_name[NOTIFY_SUBSCRIBERS_TASK].kwargs["exclude_user_id"] == manager.id

    @pytest.mark.asyncio
    async def test_reviewer_cannot_schedule_outside_grants(self, client, world, make_user, as_user):
        reviewer = await make_user(UserRole.REVIEWER, job_ids=("job-sales-biloxi",))

        response = await client.post(
            "/api/v1/interviews",
            headers=as_user(reviewer),
            json={
                "applicant_id": "app-interiors-biloxi",
                "interview_type": "phone",
                "scheduled_at": "2026-11-02T15:00:00",
            },
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, client, world, make_user, as_user, dispatched_tasks):
        admin = await make_user(UserRole.ADMIN)
        created = await client.post(
            "/api/v1/interviews",
            headers=as_user(admin),
            json={
                "applicant_id": "app-pool",
                "interview_type": "video",
                "scheduled_at": "2026-11-03T10:00:00",
            },
        )
        interview_id = created.json()["id"]
        dispatched_tasks.clear()

        first = await client.post(f"/api/v1/interviews/{interview_id}/cancel", headers=as_user(admin))
        second = await client.post(f"/api/v1/interviews/{interview_id}/cancel", headers=as_user(admin))

        assert first.json()["status"] == second.json()["status"] == "cancelled"
        assert [t.name for t in dispatched_tasks] == [NOTIFY_SUBSCRIBERS_TASK]

    @pytest.mark.asyncio
    async def test_cannot_reschedule_cancelled_interview(self, client, world, make_user, as_user):
        admin = await make_user(UserRole.ADMIN)
        created = await client.post(
            "/api/v1/interviews",
            headers=as_user(admin),
            json={
                "applicant_id": "app-pool",
                "interview_type": "video",
                "scheduled_at": "2026-11-03T10:00:00",
            },
        )
        interview_id = created.json()["id"]
        await client.post(f"/api/v1/interviews/{interview_id}/cancel", headers=as_user(admin))

        response = await client.patch(
            f"/api/v1/interviews/{interview_id}",
            headers=as_user(admin),
            json={"scheduled_at": "2026-11-04T10:00:00"},
        )

        assert response.status_code == 400


class TestEventRoutes:
    @pytest.mark.asyncio
    async def test_intake_with_event_grant(self, client, world, make_user, as_user, dispatched_tasks):
        reviewer = await make_user(UserRole.REVIEWER, event_ids=("event-fair",))

        response = await client.post(
            "/api/v1/events/event-fair/intake",
            headers=as_user(reviewer),
            json={"first_name": "Lou", "last_name": "Reed", "email": "lou@example.com"},
        )

        assert response.status_code == 201
        (task,) = dispatched_tasks
        assert task.kwargs["context"]["event_id"] == "event-fair"
        assert task.kwargs["exclude_user_id"] == reviewer.id

    @pytest.mark.asyncio
    async def test_intake_without_event_access(self, client, world, make_user, as_user):
        reviewer = await make_user(UserRole.REVIEWER, event_ids=("event-fair",), event_access=False)

        response = await client.post(
            "/api/v1/events/event-fair/intake",
            headers=as_user(reviewer),
            json={"first_name": "Lou", "last_name": "Reed", "email": "lou@example.com"},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_events(self, client, world, make_user, as_user):
        granted = await make_user(UserRole.REVIEWER, event_ids=("event-fair",))
        ungranted = await make_user(UserRole.REVIEWER)

        assert [e["id"] for e in (await client.get("/api/v1/events", headers=as_user(granted))).json()] == [
            "event-fair"
        ]
        assert (await client.get("/api/v1/events", headers=as_user(ungranted))).json() == []


class TestSubscriptionRoutes:
    @pytest.mark.asyncio
    async def test_user_manages_own_subscriptions(self, client, make_user, as_user):
        user = await make_user()

        put = await client.put(
            f"/api/v1/users/{user.id}/subscriptions",
            headers=as_user(user),
            json={"subscriptions": [{"type": "office", "value": "office-biloxi"}]},
        )
        get = await client.get(f"/api/v1/users/{user.id}/subscriptions", headers=as_user(user))

        assert put.status_code == 200
        assert [(s["type"], s["value"]) for s in get.json()] == [("office", "office-biloxi")]

    @pytest.mark.asyncio
    async def test_other_users_subscriptions_need_admin(self, client, make_user, as_user):
        user = await make_user()
        other = await make_user()
        admin = await make_user(UserRole.ADMIN)

        denied = await client.get(f"/api/v1/users/{other.id}/subscriptions", headers=as_user(user))
        allowed = await client.get(f"/api/v1/users/{other.id}/subscriptions", headers=as_user(admin))

        assert denied.status_code == 403
        assert denied.json()["error"]["code"] == "FORBIDDEN"
        assert allowed.status_code == 200

    @pytest.mark.asyncio
    async def test_entry_without_value_is_rejected(self, client, make_user, as_user):
        user = await make_user()

        response = await client.put(
            f"/api/v1/users/{user.id}/subscriptions",
            headers=as_user(user),
            json={"subscriptions": [{"type": "job"}]},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_job_subscribers_need_manager_with_job_access(self, client, world, make_user, as_user):
        reviewer = await make_user(UserRole.REVIEWER, job_ids=("job-sales-biloxi",))
        manager = await make_user(UserRole.HIRING_MANAGER, departments=["Interiors"])
        admin = await make_user(UserRole.ADMIN)
        path = "/api/v1/jobs/job-sales-biloxi/subscribers"

        assert (await client.get(path, headers=as_user(reviewer))).status_code == 403
        assert (await client.get(path, headers=as_user(manager))).status_code == 404

        response = await client.put(path, headers=as_user(admin), json={"user_ids": [reviewer.id]})
        assert response.status_code == 200
        assert [s["user_id"] for s in response.json()] == [reviewer.id]

    @pytest.mark.asyncio
    async def test_legacy_migration_is_admin_only(self, client, db, world, make_user, as_user):
        manager = await make_user(UserRole.HIRING_MANAGER)
        admin = await make_user(UserRole.ADMIN)
        await set_job_subscribers(db, "job-sales-biloxi", [manager.id])

        denied = await client.post("/api/v1/subscriptions/migrate-legacy", headers=as_user(manager))
        allowed = await client.post("/api/v1/subscriptions/migrate-legacy", headers=as_user(admin))

        assert denied.status_code == 403
        assert allowed.json() == {"migrated": 1, "skipped": 0, "removed": 1}
