"""Core data models for the career pipeline."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PostingStatus(str, Enum):
    """Lifecycle status of a job posting."""
    DISCOVERED = "Discovered"
    SHORTLISTED = "Shortlisted"
    ARCHIVED = "Archived"
    DRAFTING = "Drafting"
    READY_FOR_REVIEW = "ReadyForReview"


class FollowUpStatus(str, Enum):
    """Status of a scheduled follow-up."""
    PENDING = "pending"
    DONE = "done"
    SKIPPED = "skipped"


class Posting(BaseModel):
    """A job posting as stored by the pipeline."""
    model_config = ConfigDict(from_attributes=True)
    
    id: str = Field(..., description="Posting identifier")
    source: str = Field(..., description="Posting source name")
    source_job_id: str = Field(..., description="Identifier within the source")
    company: str = Field(..., description="Company name")
    title: str = Field(..., description="Job title")
    level: str = Field("unknown", description="Career level")
    location: Optional[str] = Field(None, description="Location")
    remote_mode: str = Field("unknown", description="onsite, hybrid, remote or unknown")
    visa_sponsorship: str = Field("unknown", description="yes, no or unknown")
    description_raw: str = Field("", description="Raw description markup")
    description_structured: Dict[str, Any] = Field(default_factory=dict, description="Extracted structure")
    apply_url: Optional[str] = Field(None, description="Application URL")
    date_posted: Optional[str] = Field(None, description="Posting date reported by the source")
    fit_score: Optional[int] = Field(None, description="Fit score 0-100")
    fit_reasoning: List[str] = Field(default_factory=list, description="Fit reasoning bullets")
    risks: List[str] = Field(default_factory=list, description="Risk flags")
    notes: Optional[Dict[str, Any]] = Field(None, description="Generated materials payload")
    status: PostingStatus = Field(PostingStatus.DISCOVERED, description="Lifecycle status")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NewPosting(BaseModel):
    """Fields Scout inserts for a freshly discovered posting."""
    source: str
    source_job_id: str
    company: str
    title: str
    level: str = "unknown"
    location: Optional[str] = None
    remote_mode: str = "unknown"
    visa_sponsorship: str = "unknown"
    description_raw: str = ""
    description_structured: Dict[str, Any] = Field(default_factory=dict)
    apply_url: Optional[str] = None
    date_posted: Optional[str] = None


class FollowUp(BaseModel):
    """A scheduled post-application touchpoint."""
    model_config = ConfigDict(from_attributes=True)
    
    id: str
    job_id: str
    followup_number: int
    scheduled_for: date
    status: FollowUpStatus = FollowUpStatus.PENDING


# Task payloads. Field aliases keep the queued JSON in camelCase.

class PostingTask(BaseModel):
    """Payload for normalize, fit-score and materials tasks."""
    model_config = ConfigDict(populate_by_name=True)
    
    posting_id: str = Field(..., alias="postingId")


class ComplianceTask(PostingTask):
    """Payload for compliance tasks: the draft travels with the task."""
    resume_version_id: Optional[str] = Field(None, alias="resumeVersionId")
    cover_letter: Optional[str] = Field(None, alias="coverLetter")
    tailored_bullets: List[str] = Field(default_factory=list, alias="tailoredBullets")
    
    @field_validator("tailored_bullets", mode="before")
    @classmethod
    def none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value
