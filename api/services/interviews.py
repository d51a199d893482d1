"""Interview service functions."""

from typing import Any, Dict, List, Optional, Union
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.services.notifications import (
    NotificationContext,
    NotificationPayload,
    schedule_subscriber_notification,
    schedule_user_notification,
)
from core.middleware.authorization import AccessDenied, ensure_applicant_access
from core.scoping import Principal, as_principal
from database.models.applicants import (
    EARLY_STAGES,
    Applicant,
    ApplicantStage,
    Interview,
    InterviewParticipant,
    InterviewStatus,
)
from database.models.users import User

logger = logging.getLogger(__name__)


def _interview_to_dict(interview: Interview) -> Dict[str, Any]:
    return {
        "id": interview.id,
        "applicant_id": interview.applicant_id,
        "interview_type": interview.interview_type,
        "scheduled_at": interview.scheduled_at.isoformat(),
        "duration_minutes": interview.duration_minutes,
        "location": interview.location,
        "status": interview.status.value,
        "participant_ids": sorted(p.user_id for p in interview.participants),
    }


async def _load_applicant(db: AsyncSession, applicant_id: str) -> Applicant:
    result = await db.execute(
        select(Applicant)
        .options(selectinload(Applicant.job))
        .where(Applicant.id == applicant_id)
    )
    return result.scalar_one()


async def _load_interview(
    db: AsyncSession, principal: Principal, interview_id: str
) -> Interview:
    """Load an interview the caller may access through its applicant."""
    result = await db.execute(
        select(Interview)
        .options(selectinload(Interview.participants))
        .where(Interview.id == interview_id)
    )
    interview = result.scalar_one_or_none()
    if interview is None:
        raise AccessDenied("interview", interview_id)

    try:
        await ensure_applicant_access(db, principal, interview.applicant_id)
    except AccessDenied:
        raise AccessDenied("interview", interview_id) from None
    return interview


def _interview_title(applicant: Applicant) -> str:
    job_title = applicant.job.title if applicant.job else "General Application"
    return f"{applicant.full_name} for {job_title}"


async def schedule_interview(
    db: AsyncSession,
    user: Union[User, Principal],
    applicant_id: str,
    interview_type: str,
    scheduled_at: datetime,
    duration_minutes: int = 60,
    participant_ids: Optional[List[str]] = None,
    location: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Schedule an interview.

    Applicants still in an early stage are moved to ``interview``. Participants
    (other than the scheduler) are notified, and subscribers too when the stage
    changed.
    """
    principal = as_principal(user)
    await ensure_applicant_access(db, principal, applicant_id)
    applicant = await _load_applicant(db, applicant_id)

    participant_ids = list(dict.fromkeys(participant_ids or []))
    interview = Interview(
        applicant_id=applicant.id,
        interview_type=interview_type,
        scheduled_at=scheduled_at,
        duration_minutes=duration_minutes,
        location=location,
        status=InterviewStatus.SCHEDULED,
        scheduled_by_id=principal.user_id,
        participants=[InterviewParticipant(user_id=uid) for uid in participant_ids],
    )
    db.add(interview)

    previous_stage = applicant.stage
    stage_changed = previous_stage in EARLY_STAGES
    if stage_changed:
        applicant.stage = ApplicantStage.INTERVIEW
        schedule_subscriber_notification(
            db,
            NotificationContext.for_applicant(applicant),
            NotificationPayload(
                type="stage_changed",
                title="Stage Changed",
                message=f"{applicant.full_name} moved to interview",
                link=f"/applicants/{applicant.id}",
            ),
            exclude_user_id=principal.user_id,
        )

    schedule_user_notification(
        db,
        [uid for uid in participant_ids if uid != principal.user_id],
        NotificationPayload(
            type="interview_scheduled",
            title="Interview Scheduled",
            message=f"You are scheduled to interview {_interview_title(applicant)}",
            link=f"/applicants/{applicant.id}",
        ),
    )
    await db.commit()

    logger.info(f"Interview {interview.id} scheduled for applicant {applicant.id}")
    response = _interview_to_dict(interview)
    response["applicant_stage_changed"] = stage_changed
    response["applicant_stage"] = applicant.stage.value
    return response


async def reschedule_interview(
    db: AsyncSession,
    user: Union[User, Principal],
    interview_id: str,
    scheduled_at: datetime,
    duration_minutes: Optional[int] = None,
    location: Optional[str] = None,
) -> Dict[str, Any]:
    """Move an interview and notify its participants and the applicant's subscribers."""
    principal = as_principal(user)
    interview = await _load_interview(db, principal, interview_id)
    if interview.status == InterviewStatus.CANCELLED:
        raise ValueError("Cannot reschedule a cancelled interview")

    applicant = await _load_applicant(db, interview.applicant_id)

    interview.scheduled_at = scheduled_at
    if duration_minutes is not None:
        interview.duration_minutes = duration_minutes
    if location is not None:
        interview.location = location

    payload = NotificationPayload(
        type="interview_rescheduled",
        title="Interview Rescheduled",
        message=f"Interview with {_interview_title(applicant)} moved to "
        f"{scheduled_at.strftime('%Y-%m-%d %H:%M')}",
        link=f"/applicants/{applicant.id}",
    )
    schedule_user_notification(
        db,
        [p.user_id for p in interview.participants if p.user_id != principal.user_id],
        payload,
    )
    schedule_subscriber_notification(
        db, NotificationContext.for_applicant(applicant), payload, exclude_user_id=principal.user_id
    )
    await db.commit()

    logger.info(f"Interview {interview.id} rescheduled by user {principal.user_id}")
    return _interview_to_dict(interview)


async def cancel_interview(
    db: AsyncSession,
    user: Union[User, Principal],
    interview_id: str,
) -> Dict[str, Any]:
    """Cancel an interview and notify its participants and the applicant's subscribers."""
    principal = as_principal(user)
    interview = await _load_interview(db, principal, interview_id)
    if interview.status == InterviewStatus.CANCELLED:
        return _interview_to_dict(interview)

    applicant = await _load_applicant(db, interview.applicant_id)
    interview.status = InterviewStatus.CANCELLED

    payload = NotificationPayload(
        type="interview_cancelled",
        title="Interview Cancelled",
        message=f"Interview with {_interview_title(applicant)} was cancelled",
        link=f"/applicants/{applicant.id}",
    )
    schedule_user_notification(
        db,
        [p.user_id for p in interview.participants if p.user_id != principal.user_id],
        payload,
    )
    schedule_subscriber_notification(
        db, NotificationContext.for_applicant(applicant), payload, exclude_user_id=principal.user_id
    )
    await db.commit()

    logger.info(f"Interview {interview.id} cancelled by user {principal.user_id}")
    return _interview_to_dict(interview)
