"""SQLAlchemy schema for postings, follow-ups, resume versions, applications and tasks."""

from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, Date, DateTime, Integer, String, Text, UniqueConstraint, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite has no timezone-aware column type."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Declarative base for all tables."""


class JobPostingRecord(Base):
    """One discovered job opportunity."""

    __tablename__ = "job_postings"
    __table_args__ = (
        UniqueConstraint("source", "source_job_id", name="uq_job_postings_source"),
        Index("ix_job_postings_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    source_job_id: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    level: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    remote_mode: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    visa_sponsorship: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    description_raw: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description_structured: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    apply_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    date_posted: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    fit_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    fit_reasoning: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    risks: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # Generated materials until they get their own table
    notes: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="Discovered")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<JobPostingRecord(company='{self.company}', title='{self.title}', status='{self.status}')>"


class FollowUpRecord(Base):
    """A scheduled post-application touchpoint."""

    __tablename__ = "followups"
    __table_args__ = (
        UniqueConstraint("job_id", "followup_number", name="uq_followups_job_number"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    job_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    followup_number: Mapped[int] = mapped_column(Integer, nullable=False)
    scheduled_for: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class ResumeVersionRecord(Base):
    """Immutable snapshot of tailored bullets for one application."""

    __tablename__ = "resume_versions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    base_resume_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    target_role: Mapped[str] = mapped_column(String(512), nullable=False)
    tailored_bullets: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class ApplicationRecord(Base):
    """Links a posting to its generated artifacts. At most one per posting."""

    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    job_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    resume_version_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    cover_letter_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    qa_answers_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class TaskRecord(Base):
    """A durable queue entry owned by the task broker."""

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_queue_status_available", "queue", "status", "available_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    queue: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    available_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
