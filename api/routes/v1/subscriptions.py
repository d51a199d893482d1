"""
Notification subscription endpoints.

Both setters replace the whole list (delete-and-recreate).
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_admin, require_manager_or_admin, require_principal
from api.schemas.subscriptions import JobSubscribersUpdate, SubscriptionsUpdate
from api.services import subscriptions as subscription_service
from core.middleware.authorization import InsufficientRole, ensure_job_access
from core.scoping import AdminPrincipal, Principal

router = APIRouter()


def _ensure_self_or_admin(principal: Principal, user_id: str) -> None:
    if principal.user_id != user_id and not isinstance(principal, AdminPrincipal):
        raise InsufficientRole("Only admins can manage other users' subscriptions")


@router.get("/users/{user_id}/subscriptions", summary="Get User Subscriptions")
async def get_user_subscriptions(
    user_id: str = Path(..., description="User ID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    _ensure_self_or_admin(principal, user_id)
    return await subscription_service.get_user_subscriptions(db, user_id)


@router.put("/users/{user_id}/subscriptions", summary="Replace User Subscriptions")
async def set_user_subscriptions(
    request: SubscriptionsUpdate,
    user_id: str = Path(..., description="User ID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
):
    _ensure_self_or_admin(principal, user_id)
    return await subscription_service.set_user_subscriptions(
        db, user_id, [entry.model_dump(mode="json") for entry in request.subscriptions]
    )


@router.get("/jobs/{job_id}/subscribers", summary="Get Job Subscribers")
async def get_job_subscribers(
    job_id: str = Path(..., description="Job ID"),
    principal: Principal = Depends(require_manager_or_admin),
    db: AsyncSession = Depends(get_db),
):
    await ensure_job_access(db, principal, job_id)
    return await subscription_service.get_job_subscribers(db, job_id)


@router.put("/jobs/{job_id}/subscribers", summary="Replace Job Subscribers")
async def set_job_subscribers(
    request: JobSubscribersUpdate,
    job_id: str = Path(..., description="Job ID"),
    principal: Principal = Depends(require_manager_or_admin),
    db: AsyncSession = Depends(get_db),
):
    await ensure_job_access(db, principal, job_id)
    return await subscription_service.set_job_subscribers(db, job_id, request.user_ids)


@router.post(
    "/subscriptions/migrate-legacy",
    summary="Migrate Legacy Subscriptions",
    description="Copy legacy job-only subscriptions into the subscription table and delete them.",
)
async def migrate_legacy_subscriptions(
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.migrate_legacy_subscriptions(db)
