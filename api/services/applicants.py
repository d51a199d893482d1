"""
Applicant service functions for API endpoints.

List queries are filtered by the caller's applicant predicate. A predicate that
matches nothing short-circuits to an empty result without touching the database.
"""

from typing import Any, Dict, List, Optional, Union
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.services.notifications import (
    NotificationContext,
    NotificationPayload,
    schedule_subscriber_notification,
)
from core.middleware.authorization import (
    accessible_applicant_filter,
    ensure_applicant_access,
    ensure_job_access,
)
from core.scoping import Principal, as_principal
from database.models.applicants import Applicant, ApplicantSource, ApplicantStage
from database.models.jobs import Job, JobStatus
from database.models.users import User

logger = logging.getLogger(__name__)


def _applicant_to_dict(applicant: Applicant) -> Dict[str, Any]:
    return {
        "id": applicant.id,
        "first_name": applicant.first_name,
        "last_name": applicant.last_name,
        "email": applicant.email,
        "phone": applicant.phone,
        "job_id": applicant.job_id,
        "event_id": applicant.event_id,
        "stage": applicant.stage.value,
        "source": applicant.source.value,
        "created_at": applicant.created_at.isoformat() if applicant.created_at else None,
    }


async def _load_with_job(db: AsyncSession, applicant_id: str) -> Applicant:
    result = await db.execute(
        select(Applicant)
        .options(selectinload(Applicant.job))
        .where(Applicant.id == applicant_id)
    )
    return result.scalar_one()


async def list_applicants(
    db: AsyncSession,
    user: Union[User, Principal],
    job_id: Optional[str] = None,
    stage: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """List applicants visible to the user, newest first."""
    predicate = await accessible_applicant_filter(db, user)
    if predicate.matches_nothing:
        return []

    query = select(Applicant).where(predicate.to_clause(Applicant))
    if job_id:
        query = query.where(Applicant.job_id == job_id)
    if stage:
        query = query.where(Applicant.stage == ApplicantStage(stage))

    result = await db.execute(
        query.order_by(Applicant.created_at.desc()).limit(limit).offset(offset)
    )
    return [_applicant_to_dict(a) for a in result.scalars().all()]


async def get_applicant(
    db: AsyncSession, user: Union[User, Principal], applicant_id: str
) -> Dict[str, Any]:
    applicant = await ensure_applicant_access(db, user, applicant_id)
    return _applicant_to_dict(applicant)


def _new_application_payload(applicant: Applicant, job: Optional[Job]) -> NotificationPayload:
    target = job.title if job else "the general pool"
    return NotificationPayload(
        type="new_application",
        title="New Application",
        message=f"{applicant.full_name} applied for {target}",
        link=f"/applicants/{applicant.id}",
    )


async def create_public_application(
    db: AsyncSession,
    first_name: str,
    last_name: str,
    email: str,
    phone: Optional[str] = None,
    job_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create an applicant from the public careers page.

    An unknown or closed job is rejected with ``ValueError``. Without a job the
    applicant lands in the general pool.
    """
    job = None
    if job_id:
        job = await db.get(Job, job_id)
        if job is None or job.status != JobStatus.OPEN:
            raise ValueError("Job is not accepting applications")

    applicant = Applicant(
        first_name=first_name,
        last_name=last_name,
        email=email.lower(),
        phone=phone,
        job_id=job.id if job else None,
        source=ApplicantSource.PUBLIC,
    )
    db.add(applicant)
    await db.flush()

    schedule_subscriber_notification(
        db,
        NotificationContext(
            job_id=applicant.job_id,
            department=job.department if job else None,
            office_id=job.office_id if job else None,
        ),
        _new_application_payload(applicant, job),
    )
    await db.commit()

    logger.info(f"Public application {applicant.id} received for job {applicant.job_id}")
    return {"id": applicant.id, "job_id": applicant.job_id}


async def create_manual_applicant(
    db: AsyncSession,
    user: Union[User, Principal],
    first_name: str,
    last_name: str,
    email: str,
    phone: Optional[str] = None,
    job_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """Add an applicant by hand. The caller needs access to the job, if any."""
    principal = as_principal(user)
    job = await ensure_job_access(db, principal, job_id) if job_id else None

    applicant = Applicant(
        first_name=first_name,
        last_name=last_name,
        email=email.lower(),
        phone=phone,
        job_id=job.id if job else None,
        source=ApplicantSource.MANUAL,
        notes=notes,
    )
    db.add(applicant)
    await db.flush()

    schedule_subscriber_notification(
        db,
        NotificationContext(
            job_id=applicant.job_id,
            department=job.department if job else None,
            office_id=job.office_id if job else None,
        ),
        _new_application_payload(applicant, job),
        exclude_user_id=principal.user_id,
    )
    await db.commit()

    logger.info(f"User {principal.user_id} added applicant {applicant.id}")
    return _applicant_to_dict(applicant)


async def move_applicant_stage(
    db: AsyncSession,
    user: Union[User, Principal],
    applicant_id: str,
    stage: str,
) -> Dict[str, Any]:
    """Move an applicant to a new stage and notify subscribers."""
    principal = as_principal(user)
    await ensure_applicant_access(db, principal, applicant_id)
    applicant = await _load_with_job(db, applicant_id)

    new_stage = ApplicantStage(stage)
    old_stage = applicant.stage
    if new_stage == old_stage:
        return _applicant_to_dict(applicant)

    applicant.stage = new_stage
    schedule_subscriber_notification(
        db,
        NotificationContext.for_applicant(applicant),
        NotificationPayload(
            type="stage_changed",
            title="Stage Changed",
            message=f"{applicant.full_name} moved to {new_stage.value}",
            link=f"/applicants/{applicant.id}",
        ),
        exclude_user_id=principal.user_id,
    )
    await db.commit()

    logger.info(
        f"Applicant {applicant.id} moved from {old_stage.value} to {new_stage.value} "
        f"by user {principal.user_id}"
    )
    return _applicant_to_dict(applicant)
