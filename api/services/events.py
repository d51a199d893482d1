"""Recruiting event service functions, including fair intake."""

from typing import Any, Dict, List, Optional, Union
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.notifications import (
    NotificationContext,
    NotificationPayload,
    schedule_subscriber_notification,
)
from core.middleware.authorization import (
    UNRESTRICTED,
    accessible_event_ids,
    ensure_event_access,
    ensure_job_access,
)
from core.scoping import Principal, as_principal
from database.models.applicants import Applicant, ApplicantSource
from database.models.events import RecruitmentEvent
from database.models.users import User

logger = logging.getLogger(__name__)


def _event_to_dict(event: RecruitmentEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "name": event.name,
        "location": event.location,
        "date": event.date.isoformat() if event.date else None,
    }


async def list_events(db: AsyncSession, user: Union[User, Principal]) -> List[Dict[str, Any]]:
    """List the recruiting events a user may access."""
    access = await accessible_event_ids(db, user)
    if access is not UNRESTRICTED and access.is_empty:
        return []

    query = select(RecruitmentEvent)
    if access is not UNRESTRICTED:
        query = query.where(RecruitmentEvent.id.in_(sorted(access.ids)))

    result = await db.execute(query.order_by(RecruitmentEvent.date.desc(), RecruitmentEvent.name))
    return [_event_to_dict(e) for e in result.scalars().all()]


async def get_event(
    db: AsyncSession, user: Union[User, Principal], event_id: str
) -> Dict[str, Any]:
    event = await ensure_event_access(db, user, event_id)
    return _event_to_dict(event)


async def intake_applicant(
    db: AsyncSession,
    user: Union[User, Principal],
    event_id: str,
    first_name: str,
    last_name: str,
    email: str,
    phone: Optional[str] = None,
    job_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Capture an applicant at a recruiting event.

    The caller needs access to the event, and to the job when one is given.
    Subscribers are notified once the applicant is committed.
    """
    principal = as_principal(user)
    event = await ensure_event_access(db, principal, event_id)
    job = await ensure_job_access(db, principal, job_id) if job_id else None

    applicant = Applicant(
        first_name=first_name,
        last_name=last_name,
        email=email.lower(),
        phone=phone,
        job_id=job.id if job else None,
        event_id=event.id,
        source=ApplicantSource.EVENT,
        notes=notes,
    )
    db.add(applicant)
    await db.flush()

    context = NotificationContext(
        job_id=applicant.job_id,
        department=job.department if job else None,
        office_id=job.office_id if job else None,
        event_id=event.id,
    )
    schedule_subscriber_notification(
        db,
        context,
        NotificationPayload(
            type="new_application",
            title="New Event Applicant",
            message=f"{applicant.full_name} was added at {event.name}",
            link=f"/applicants/{applicant.id}",
        ),
        exclude_user_id=principal.user_id,
    )
    await db.commit()

    logger.info(f"Event {event.id} intake created applicant {applicant.id}")
    return {
        "id": applicant.id,
        "event_id": event.id,
        "job_id": applicant.job_id,
        "stage": applicant.stage.value,
        "source": applicant.source.value,
    }
