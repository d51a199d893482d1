"""
Job endpoints.

Lists and details are limited to the jobs the caller may access. A job outside
the caller's scope is reported as not found.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_principal
from api.services import jobs as job_service
from core.scoping import Principal

router = APIRouter()


@router.get(
    "",
    summary="List Jobs",
    description="List the jobs visible to the caller.",
)
async def list_jobs(
    status: Optional[str] = Query(None, description="Filter by status"),
    department: Optional[str] = Query(None, description="Filter by department"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    """Retrieve the jobs the caller may access."""
    return await job_service.list_jobs(db, principal, status=status, department=department)


@router.get(
    "/{job_id}",
    summary="Get Job Details",
)
async def get_job(
    job_id: str = Path(..., description="Job ID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    return await job_service.get_job(db, principal, job_id)
