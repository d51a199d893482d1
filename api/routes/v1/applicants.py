"""
Applicant endpoints.

``POST /applicants`` is the public careers page form and needs no token. Every
other endpoint is limited to applicants the caller may access.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_principal
from api.schemas.applicants import ManualApplicantCreate, PublicApplicationCreate, StageUpdate
from api.services import applicants as applicant_service
from core.scoping import Principal

router = APIRouter()


@router.get(
    "",
    summary="List Applicants",
    description="List applicants visible to the caller, optionally filtered by job and stage.",
)
async def list_applicants(
    job_id: Optional[str] = Query(None, description="Filter by job"),
    stage: Optional[str] = Query(None, description="Filter by stage"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    return await applicant_service.list_applicants(
        db, principal, job_id=job_id, stage=stage, limit=limit, offset=offset
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Apply",
    description="Public application form. Applications without a job go to the general pool.",
)
async def apply(
    request: PublicApplicationCreate,
    db: AsyncSession = Depends(get_db),
):
    return await applicant_service.create_public_application(
        db,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        phone=request.phone,
        job_id=request.job_id,
    )


@router.post(
    "/manual",
    status_code=status.HTTP_201_CREATED,
    summary="Add Applicant",
)
async def create_manual_applicant(
    request: ManualApplicantCreate,
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    """Add an applicant by hand."""
    return await applicant_service.create_manual_applicant(
        db,
        principal,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        phone=request.phone,
        job_id=request.job_id,
        notes=request.notes,
    )


@router.get("/{applicant_id}", summary="Get Applicant")
async def get_applicant(
    applicant_id: str = Path(..., description="Applicant ID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    return await applicant_service.get_applicant(db, principal, applicant_id)


@router.patch(
    "/{applicant_id}/stage",
    summary="Move Applicant Stage",
    description="Move an applicant to a new pipeline stage and notify subscribers.",
)
async def move_stage(
    applicant_id: str = Path(..., description="Applicant ID"),
    request: StageUpdate = Body(...),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    return await applicant_service.move_applicant_stage(
        db, principal, applicant_id, request.stage.value
    )
