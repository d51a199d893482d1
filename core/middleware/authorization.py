"""
Access filter resolver.

Answers "what may this user see?" in three shapes:
1. Accessible job ids (``UNRESTRICTED`` or an ``IdSet``)
2. Accessible recruiting event ids
3. An applicant ``Predicate`` for bulk list queries

plus single-resource guards raising ``AccessDenied`` (rendered as 404 so a
denied caller cannot confirm that the resource exists) and ``can_observe``, the
per-user replay used by notification fan-out.

Every lookup failure propagates. Authorization never fails open.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.middleware.authentication import get_current_principal
from core.predicates import (
    GENERAL_POOL,
    MATCHES_ALL,
    Predicate,
    any_of,
    event_in,
    job_in,
)
from core.scoping import (
    AdminPrincipal,
    HiringManagerPrincipal,
    Principal,
    ReviewerPrincipal,
    UNRESTRICTED,
    Unrestricted,
    UnknownRoleError,
    as_principal,
)
from database.models.applicants import Applicant
from database.models.events import EventReviewer, RecruitmentEvent
from database.models.jobs import Job, JobReviewer
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)


class AuthorizationError(Exception):
    """Raised when a user may not perform the requested action."""
    pass


class AccessDenied(AuthorizationError):
    """Raised when a resource is missing or outside the user's scope."""

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource.capitalize()} {resource_id} not found")


class InsufficientRole(AuthorizationError):
    """Raised when the user's role is not allowed on an endpoint."""
    pass


# ==================== Resolver Results ===================== #
@dataclass(frozen=True)
class IdSet:
    """Restricted resolver result. May be empty."""

    ids: frozenset[str]

    @classmethod
    def of(cls, ids: Iterable[str]) -> "IdSet":
        return cls(frozenset(ids))

    @property
    def is_empty(self) -> bool:
        return not self.ids

    def permits(self, resource_id: str) -> bool:
        return resource_id in self.ids


AccessSet = Union[Unrestricted, IdSet]

EMPTY = IdSet(frozenset())


def permits(access: AccessSet, resource_id: Optional[str]) -> bool:
    """Whether ``resource_id`` falls inside a resolver result."""
    if access is UNRESTRICTED:
        return True
    return resource_id is not None and access.permits(resource_id)


# ==================== Resolver ===================== #
async def accessible_job_ids(
    db: AsyncSession, user: Union[User, Principal]
) -> AccessSet:
    """
    Resolve the jobs a user may access.

    Args:
        db: Database session
        user: Requesting user or its principal

    Returns:
        ``UNRESTRICTED`` for admins and unscoped hiring managers, otherwise an
        ``IdSet`` (possibly empty)
    """
    principal = as_principal(user)

    if isinstance(principal, AdminPrincipal):
        return UNRESTRICTED

    if isinstance(principal, HiringManagerPrincipal):
        if not principal.is_scoped:
            return UNRESTRICTED
        result = await db.execute(
            select(Job.id).where(principal.scope.job_clause(Job.department, Job.office_id))
        )
        return IdSet.of(result.scalars().all())

    if isinstance(principal, ReviewerPrincipal):
        result = await db.execute(
            select(JobReviewer.job_id).where(JobReviewer.user_id == principal.user_id)
        )
        return IdSet.of(result.scalars().all())

    raise UnknownRoleError(f"No job access rules for {principal!r}")


async def accessible_event_ids(
    db: AsyncSession, user: Union[User, Principal]
) -> AccessSet:
    """
    Resolve the recruiting events a user may access.

    ``event_access = False`` resolves to an empty set even when assignment rows
    exist.
    """
    principal = as_principal(user)

    if isinstance(principal, AdminPrincipal):
        return UNRESTRICTED

    if isinstance(principal, HiringManagerPrincipal):
        return UNRESTRICTED if principal.event_access else EMPTY

    if isinstance(principal, ReviewerPrincipal):
        if not principal.event_access:
            return EMPTY
        result = await db.execute(
            select(EventReviewer.event_id).where(
                EventReviewer.user_id == principal.user_id
            )
        )
        return IdSet.of(result.scalars().all())

    raise UnknownRoleError(f"No event access rules for {principal!r}")


async def accessible_applicant_filter(
    db: AsyncSession, user: Union[User, Principal]
) -> Predicate:
    """
    Build the applicant access predicate.

    Applicants inherit access from their job or event. Hiring managers also see
    the general pool (applicants with no job); reviewers never do. A reviewer
    with no grants resolves to ``MATCHES_NOTHING``.
    """
    principal = as_principal(user)

    if isinstance(principal, AdminPrincipal):
        return MATCHES_ALL

    if isinstance(principal, HiringManagerPrincipal):
        jobs = await accessible_job_ids(db, principal)
        if jobs is UNRESTRICTED:
            return MATCHES_ALL
        return any_of(job_in(jobs.ids), GENERAL_POOL)

    if isinstance(principal, ReviewerPrincipal):
        jobs = await accessible_job_ids(db, principal)
        events = await accessible_event_ids(db, principal)
        return any_of(job_in(jobs.ids), event_in(events.ids))

    raise UnknownRoleError(f"No applicant access rules for {principal!r}")


# ==================== Single-Resource Guards ===================== #
async def ensure_job_access(
    db: AsyncSession, user: Union[User, Principal], job_id: str
) -> Job:
    """
    Load a job the user may access.

    Raises:
        AccessDenied: If the job does not exist or is out of scope
    """
    access = await accessible_job_ids(db, user)
    if not permits(access, job_id):
        logger.warning(f"User {as_principal(user).user_id} denied access to job {job_id}")
        raise AccessDenied("job", job_id)

    job = await db.get(Job, job_id)
    if job is None:
        raise AccessDenied("job", job_id)
    return job


async def ensure_event_access(
    db: AsyncSession, user: Union[User, Principal], event_id: str
) -> RecruitmentEvent:
    """
    Load a recruiting event the user may access.

    Raises:
        AccessDenied: If the event does not exist or is out of scope
    """
    access = await accessible_event_ids(db, user)
    if not permits(access, event_id):
        logger.warning(
            f"User {as_principal(user).user_id} denied access to event {event_id}"
        )
        raise AccessDenied("event", event_id)

    event = await db.get(RecruitmentEvent, event_id)
    if event is None:
        raise AccessDenied("event", event_id)
    return event


async def ensure_applicant_access(
    db: AsyncSession, user: Union[User, Principal], applicant_id: str
) -> Applicant:
    """
    Load an applicant the user may access.

    Raises:
        AccessDenied: If the applicant does not exist or is out of scope
    """
    applicant = await db.get(Applicant, applicant_id)
    if applicant is None:
        raise AccessDenied("applicant", applicant_id)

    predicate = await accessible_applicant_filter(db, user)
    if not predicate.evaluate(applicant):
        logger.warning(
            f"User {as_principal(user).user_id} denied access to applicant {applicant_id}"
        )
        raise AccessDenied("applicant", applicant_id)
    return applicant


# ==================== Per-User Replay ===================== #
def can_observe(
    principal: Principal,
    *,
    department: Optional[str] = None,
    office_id: Optional[str] = None,
    job_id: Optional[str] = None,
    event_id: Optional[str] = None,
    job_granted: bool = False,
    event_granted: bool = False,
) -> bool:
    """
    Whether a user may see a business event with the given attributes.

    Imperative counterpart of ``accessible_applicant_filter``. The caller
    resolves reviewer grants beforehand (``job_granted`` / ``event_granted``) so
    this stays free of I/O. Missing attributes never satisfy a restricted scope
    dimension.
    """
    if isinstance(principal, AdminPrincipal):
        return True

    if isinstance(principal, HiringManagerPrincipal):
        if not principal.is_scoped:
            return True
        return principal.scope.matches(department, office_id)

    if isinstance(principal, ReviewerPrincipal):
        if job_granted:
            return True
        return principal.event_access and event_granted

    raise UnknownRoleError(f"No observation rules for {principal!r}")


# ==================== Dependencies ===================== #
def require_roles(*roles: UserRole) -> Callable:
    """
    Dependency restricting an endpoint to the given roles.

    Args:
        roles: Allowed roles

    Returns:
        FastAPI dependency yielding the caller's principal
    """
    allowed = frozenset(roles)

    async def dependency(request: Request) -> Principal:
        principal = get_current_principal(request)
        if principal.role not in allowed:
            logger.warning(
                f"User {principal.user_id} with role {principal.role.value} "
                f"lacks one of roles {sorted(r.value for r in allowed)}"
            )
            raise InsufficientRole(
                f"Requires role: {', '.join(sorted(r.value for r in allowed))}"
            )
        return principal

    return dependency
