"""Recruiting event endpoints, including applicant intake at fairs."""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_principal
from api.schemas.applicants import EventIntakeCreate
from api.services import events as event_service
from core.scoping import Principal

router = APIRouter()


@router.get("", summary="List Events")
async def list_events(
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    """Retrieve the recruiting events the caller may access."""
    return await event_service.list_events(db, principal)


@router.get("/{event_id}", summary="Get Event Details")
async def get_event(
    event_id: str = Path(..., description="Event ID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.get_event(db, principal, event_id)


@router.post(
    "/{event_id}/intake",
    status_code=status.HTTP_201_CREATED,
    summary="Event Intake",
    description="Capture an applicant at a recruiting event and notify subscribers.",
)
async def intake_applicant(
    request: EventIntakeCreate,
    event_id: str = Path(..., description="Event ID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.intake_applicant(
        db,
        principal,
        event_id,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        phone=request.phone,
        job_id=request.job_id,
        notes=request.notes,
    )
