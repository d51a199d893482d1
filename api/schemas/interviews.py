"""Interview request schemas."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class InterviewScheduleRequest(BaseModel):
    """Request model for scheduling an interview."""

    applicant_id: str = Field(..., description="Applicant to interview")
    interview_type: str = Field(..., min_length=1, max_length=50, description="phone, video, onsite, panel")
    scheduled_at: datetime = Field(..., description="Interview date and time (ISO 8601)")
    duration_minutes: int = Field(60, ge=15, le=480, description="Duration in minutes")
    participant_ids: list[str] = Field(default_factory=list, max_length=50, description="Interviewer user IDs")
    location: Optional[str] = Field(None, max_length=500, description="Interview location or meeting link")


class InterviewRescheduleRequest(BaseModel):
    """Request model for rescheduling an interview."""

    scheduled_at: datetime = Field(..., description="New interview date and time")
    duration_minutes: Optional[int] = Field(None, ge=15, le=480)
    location: Optional[str] = Field(None, max_length=500)
