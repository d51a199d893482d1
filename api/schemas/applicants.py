"""Applicant-related Pydantic schemas."""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from database.models.applicants import ApplicantStage


class ApplicantBase(BaseModel):
    """Base applicant schema."""

    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100, description="Applicant's first name")
    last_name: str = Field(min_length=1, max_length=100, description="Applicant's last name")
    phone: Optional[str] = Field(None, max_length=50, description="Contact phone number")

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v: str) -> str:
        """Strip whitespace from name fields."""
        if isinstance(v, str):
            return v.strip()
        return v


class PublicApplicationCreate(ApplicantBase):
    """Careers page application. No job means the general pool."""

    job_id: Optional[str] = Field(None, description="Job applied for")


class ManualApplicantCreate(ApplicantBase):
    """Applicant added by a team member."""

    job_id: Optional[str] = Field(None, description="Job to attach the applicant to")
    notes: Optional[str] = Field(None, max_length=5000)


class EventIntakeCreate(ManualApplicantCreate):
    """Applicant captured at a recruiting event."""

    pass


class StageUpdate(BaseModel):
    stage: ApplicantStage = Field(description="New pipeline stage")
