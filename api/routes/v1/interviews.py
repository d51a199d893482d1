"""
Interview scheduling endpoints.

Scheduling, rescheduling and cancelling notify the participants and the
applicant's subscribers once the change is committed.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_principal
from api.schemas.interviews import InterviewRescheduleRequest, InterviewScheduleRequest
from api.services import interviews as interview_service
from core.scoping import Principal

router = APIRouter()


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Schedule Interview",
    description="Schedule an interview. Applicants in an early stage move to interview.",
)
async def schedule_interview(
    request: InterviewScheduleRequest,
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    return await interview_service.schedule_interview(
        db,
        principal,
        applicant_id=request.applicant_id,
        interview_type=request.interview_type,
        scheduled_at=request.scheduled_at,
        duration_minutes=request.duration_minutes,
        participant_ids=request.participant_ids or [principal.user_id],
        location=request.location,
    )


@router.patch("/{interview_id}", summary="Reschedule Interview")
async def reschedule_interview(
    request: InterviewRescheduleRequest,
    interview_id: str = Path(..., description="Interview ID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    return await interview_service.reschedule_interview(
        db,
        principal,
        interview_id,
        scheduled_at=request.scheduled_at,
        duration_minutes=request.duration_minutes,
        location=request.location,
    )


@router.post("/{interview_id}/cancel", summary="Cancel Interview")
async def cancel_interview(
    interview_id: str = Path(..., description="Interview ID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    return await interview_service.cancel_interview(db, principal, interview_id)
