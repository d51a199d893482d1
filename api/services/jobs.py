"""Job service functions."""

from typing import Any, Dict, List, Optional, Union
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.middleware.authorization import UNRESTRICTED, accessible_job_ids, ensure_job_access
from core.scoping import Principal
from database.models.applicants import Applicant
from database.models.jobs import Job, JobStatus
from database.models.users import User

logger = logging.getLogger(__name__)


def _job_to_dict(job: Job, applicant_count: int = 0) -> Dict[str, Any]:
    return {
        "id": job.id,
        "title": job.title,
        "department": job.department,
        "office_id": job.office_id,
        "status": job.status.value,
        "applicant_count": applicant_count,
        "created_at": job.created_at.isoformat() if job.created_at else None,
    }


async def _applicant_counts(db: AsyncSession, job_ids: List[str]) -> Dict[str, int]:
    if not job_ids:
        return {}
    result = await db.execute(
        select(Applicant.job_id, func.count())
        .where(Applicant.job_id.in_(job_ids))
        .group_by(Applicant.job_id)
    )
    return {job_id: count for job_id, count in result.all()}


async def list_jobs(
    db: AsyncSession,
    user: Union[User, Principal],
    status: Optional[str] = None,
    department: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """List the jobs a user may access."""
    access = await accessible_job_ids(db, user)
    if access is not UNRESTRICTED and access.is_empty:
        return []

    query = select(Job)
    if access is not UNRESTRICTED:
        query = query.where(Job.id.in_(sorted(access.ids)))

    if status:
        query = query.where(Job.status == JobStatus(status))
    if department:
        query = query.where(Job.department == department)

    result = await db.execute(query.order_by(Job.created_at.desc(), Job.title))
    jobs = result.scalars().all()

    counts = await _applicant_counts(db, [job.id for job in jobs])
    return [_job_to_dict(job, counts.get(job.id, 0)) for job in jobs]


async def get_job(
    db: AsyncSession, user: Union[User, Principal], job_id: str
) -> Dict[str, Any]:
    """Get job details. Raises ``AccessDenied`` when missing or out of scope."""
    job = await ensure_job_access(db, user, job_id)
    counts = await _applicant_counts(db, [job.id])
    return _job_to_dict(job, counts.get(job.id, 0))
