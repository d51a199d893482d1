"""
API Services Layer.

Database operations behind the API endpoints. Every function takes the request's
``AsyncSession`` and, where access is scoped, the caller's user or principal.
"""

from api.services.jobs import (
    get_job,
    list_jobs,
)

from api.services.events import (
    get_event,
    list_events,
    intake_applicant,
)

from api.services.applicants import (
    get_applicant,
    list_applicants,
    create_public_application,
    create_manual_applicant,
    move_applicant_stage,
)

from api.services.interviews import (
    schedule_interview,
    reschedule_interview,
    cancel_interview,
)

from api.services.subscriptions import (
    get_user_subscriptions,
    set_user_subscriptions,
    get_job_subscribers,
    set_job_subscribers,
    migrate_legacy_subscriptions,
)

from api.services.notifications import (
    NotificationContext,
    NotificationPayload,
    resolve_targets,
    notify_subscribers,
    notify_users,
    create_notification,
)

__all__ = [
    # Jobs
    "get_job",
    "list_jobs",
    # Events
    "get_event",
    "list_events",
    "intake_applicant",
    # Applicants
    "get_applicant",
    "list_applicants",
    "create_public_application",
    "create_manual_applicant",
    "move_applicant_stage",
    # Interviews
    "schedule_interview",
    "reschedule_interview",
    "cancel_interview",
    # Subscriptions
    "get_user_subscriptions",
    "set_user_subscriptions",
    "get_job_subscribers",
    "set_job_subscribers",
    "migrate_legacy_subscriptions",
    # Notifications
    "NotificationContext",
    "NotificationPayload",
    "resolve_targets",
    "notify_subscribers",
    "notify_users",
    "create_notification",
]
