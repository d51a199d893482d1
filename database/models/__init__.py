"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from database.models.users import User, UserRole, ScopeMode
from database.models.jobs import Job, JobReviewer, JobStatus, Office
from database.models.events import RecruitmentEvent, EventReviewer
from database.models.applicants import (
    Applicant,
    ApplicantSource,
    ApplicantStage,
    EARLY_STAGES,
    Interview,
    InterviewParticipant,
    InterviewStatus,
)
from database.models.subscriptions import (
    JobNotificationSub,
    NotificationSubscription,
    SubscriptionType,
)
from database.models.notifications import Notification

__all__ = [
    "User",
    "UserRole",
    "ScopeMode",
    "Job",
    "JobReviewer",
    "JobStatus",
    "Office",
    "RecruitmentEvent",
    "EventReviewer",
    "Applicant",
    "ApplicantSource",
    "ApplicantStage",
    "EARLY_STAGES",
    "Interview",
    "InterviewParticipant",
    "InterviewStatus",
    "JobNotificationSub",
    "NotificationSubscription",
    "SubscriptionType",
    "Notification",
]
