"""Shared fixtures and utilities for tests."""

import os

# Settings are built at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "60")
os.environ.setdefault("POST_COMMIT_BACKEND", "inline")
os.environ.setdefault("JSON_LOGS", "false")

import json
from types import SimpleNamespace
from typing import Optional

import pytest
from sqlalchemy.pool import StaticPool

import database.models  # noqa: F401
from core.post_commit import set_dispatcher
from database.engine import Base, create_session_factory
from database.models.applicants import Applicant
from database.models.events import EventReviewer, RecruitmentEvent
from database.models.jobs import Job, JobReviewer, Office
from database.models.users import ScopeMode, User, UserRole


@pytest.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory database."""
    engine, factory = create_session_factory("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def dispatched_tasks():
    """Capture post-commit tasks instead of running them."""
    tasks = []
    previous = set_dispatcher(tasks.append)
    yield tasks
    set_dispatcher(previous)


@pytest.fixture
def make_user(db):
    """Factory creating committed users with the given role and scope."""
    counter = {"n": 0}

    async def _make(
        role: UserRole = UserRole.REVIEWER,
        departments: Optional[list] = None,
        offices: Optional[list] = None,
        scope_mode: ScopeMode = ScopeMode.OR,
        event_access: bool = True,
        is_active: bool = True,
        user_id: Optional[str] = None,
        job_ids: tuple = (),
        event_ids: tuple = (),
    ) -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            role=role,
            scoped_departments=json.dumps(departments) if departments is not None else None,
            scoped_offices=json.dumps(offices) if offices is not None else None,
            scope_mode=scope_mode,
            event_access=event_access,
            is_active=is_active,
        )
        if user_id:
            user.id = user_id
        db.add(user)
        await db.flush()
        db.add_all(JobReviewer(job_id=job_id, user_id=user.id) for job_id in job_ids)
        db.add_all(EventReviewer(event_id=event_id, user_id=user.id) for event_id in event_ids)
        await db.commit()
        return user

    return _make


@pytest.fixture
async def world(db):
    """
    Two offices, four jobs across two departments, one career fair and an
    applicant for each way into the pipeline.
    """
    db.add_all([
        Office(id="office-biloxi", name="Biloxi"),
        Office(id="office-fairhope", name="Fairhope"),
        Job(id="job-interiors-biloxi", title="Interior Designer", department="Interiors", office_id="office-biloxi"),
        Job(id="job-interiors-fairhope", title="Interior Stylist", department="Interiors", office_id="office-fairhope"),
        Job(id="job-sales-biloxi", title="Sales Associate", department="Sales", office_id="office-biloxi"),
        Job(id="job-sales-fairhope", title="Sales Lead", department="Sales", office_id="office-fairhope"),
        RecruitmentEvent(id="event-fair", name="Spring Career Fair", location="Mobile"),
    ])
    await db.flush()
    db.add_all([
        Applicant(id="app-interiors-biloxi", first_name="Ada", last_name="Byron", email="ada@example.com", job_id="job-interiors-biloxi"),
        Applicant(id="app-interiors-fairhope", first_name="Bea", last_name="Arthur", email="bea@example.com", job_id="job-interiors-fairhope"),
        Applicant(id="app-sales-biloxi", first_name="Cal", last_name="Ripken", email="cal@example.com", job_id="job-sales-biloxi"),
        Applicant(id="app-sales-fairhope", first_name="Dee", last_name="Snider", email="dee@example.com", job_id="job-sales-fairhope"),
        Applicant(id="app-pool", first_name="Eve", last_name="Online", email="eve@example.com"),
        Applicant(id="app-fair", first_name="Flo", last_name="Rida", email="flo@example.com", event_id="event-fair"),
    ])
    await db.commit()

    return SimpleNamespace(
        job_ids={"job-interiors-biloxi", "job-interiors-fairhope", "job-sales-biloxi", "job-sales-fairhope"},
        applicant_ids={
            "app-interiors-biloxi",
            "app-interiors-fairhope",
            "app-sales-biloxi",
            "app-sales-fairhope",
            "app-pool",
            "app-fair",
        },
    )
