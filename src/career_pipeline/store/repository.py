"""
Job store: every read and write the stages perform against the database.

Writes are single statements. Uniqueness is enforced by the schema and every
insert that could race uses ``INSERT ... ON CONFLICT DO NOTHING``, so a
redelivered task re-running the same write is a no-op rather than a duplicate.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import String, func, literal, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from career_pipeline.core.errors import RecordNotFoundError
from career_pipeline.core.models import FollowUp, NewPosting, Posting, PostingStatus
from career_pipeline.store.database import create_session_factory
from career_pipeline.store.schema import (
    ApplicationRecord,
    FollowUpRecord,
    JobPostingRecord,
    ResumeVersionRecord,
    new_id,
    utcnow,
)
from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)

_NORMALIZABLE_FIELDS = ("title", "level", "remote_mode", "visa_sponsorship", "location")


class JobStore:
    """
    Repository over the pipeline tables.

    One instance is shared by all stage workers of a process; each call opens
    its own short-lived session, so calls from concurrent tasks never share
    transaction state.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    ):
        self.engine = engine
        self.sessions = session_factory or create_session_factory(engine)
        self.logger = logger.bind(component="job_store")

    def _insert(self, table):
        """Dialect-specific INSERT supporting ``on_conflict_do_nothing``."""
        if self.engine.dialect.name == "postgresql":
            return postgresql.insert(table)
        return sqlite.insert(table)

    # Postings

    async def insert_posting(self, posting: NewPosting) -> Optional[str]:
        """
        Insert a newly discovered posting.

        Args:
            posting: Fields extracted by Scout

        Returns:
            The new posting id, or None if ``(source, source_job_id)`` already existed
        """
        stmt = (
            self._insert(JobPostingRecord)
            .values(id=new_id(), status=PostingStatus.DISCOVERED.value, **posting.model_dump())
            .on_conflict_do_nothing(index_elements=["source", "source_job_id"])
            .returning(JobPostingRecord.id)
        )
        async with self.sessions() as session, session.begin():
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_posting(self, posting_id: str) -> Optional[Posting]:
        async with self.sessions() as session:
            record = await session.get(JobPostingRecord, posting_id)
            return Posting.model_validate(record) if record is not None else None

    async def require_posting(self, posting_id: str) -> Posting:
        """Like ``get_posting`` but raises ``RecordNotFoundError`` when absent."""
        posting = await self.get_posting(posting_id)
        if posting is None:
            raise RecordNotFoundError(posting_id)
        return posting

    async def apply_normalization(self, posting_id: str, fields: Dict[str, Optional[str]]) -> bool:
        """
        Overwrite descriptive fields with normalized values.

        Each column is set to ``COALESCE(new, old)``: a None value never
        replaces what is stored.

        Args:
            posting_id: Posting to update
            fields: Mapping of column name to normalized value or None

        Returns:
            True if the posting exists
        """
        values = {
            name: func.coalesce(literal(fields.get(name), String()), getattr(JobPostingRecord, name))
            for name in _NORMALIZABLE_FIELDS
        }
        stmt = (
            update(JobPostingRecord)
            .where(JobPostingRecord.id == posting_id)
            .values(updated_at=utcnow(), **values)
        )
        async with self.sessions() as session, session.begin():
            result = await session.execute(stmt)
            return result.rowcount > 0

    @staticmethod
    def _posting_update(posting_id: str, only_from: Optional[Iterable[PostingStatus]]):
        stmt = update(JobPostingRecord).where(JobPostingRecord.id == posting_id)
        if only_from is not None:
            stmt = stmt.where(JobPostingRecord.status.in_([status.value for status in only_from]))
        return stmt

    async def record_fit(
        self,
        posting_id: str,
        score: int,
        reasoning: List[str],
        risks: List[str],
        status: PostingStatus,
        only_from: Optional[Iterable[PostingStatus]] = None
    ) -> bool:
        """
        Persist score, reasoning, risks and the resulting status in one UPDATE.

        With ``only_from`` the row is only written while its current status is
        one of those values.

        Returns:
            True if a row was updated
        """
        stmt = self._posting_update(posting_id, only_from).values(
            fit_score=score,
            fit_reasoning=list(reasoning),
            risks=list(risks),
            status=status.value,
            updated_at=utcnow(),
        )
        async with self.sessions() as session, session.begin():
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def set_status(
        self,
        posting_id: str,
        status: PostingStatus,
        only_from: Optional[Iterable[PostingStatus]] = None
    ) -> bool:
        """Move a posting to ``status``, conditionally on ``only_from`` as in ``record_fit``."""
        stmt = self._posting_update(posting_id, only_from).values(status=status.value, updated_at=utcnow())
        async with self.sessions() as session, session.begin():
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def save_materials_notes(self, posting_id: str, notes: Dict[str, Any]) -> bool:
        stmt = (
            update(JobPostingRecord)
            .where(JobPostingRecord.id == posting_id)
            .values(notes=notes, updated_at=utcnow())
        )
        async with self.sessions() as session, session.begin():
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def list_postings(
        self,
        status: Optional[PostingStatus] = None,
        limit: int = 100
    ) -> List[Posting]:
        stmt = select(JobPostingRecord).order_by(JobPostingRecord.created_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(JobPostingRecord.status == status.value)
        async with self.sessions() as session:
            records = (await session.scalars(stmt)).all()
            return [Posting.model_validate(record) for record in records]

    async def count_by_status(self) -> Dict[str, int]:
        stmt = select(JobPostingRecord.status, func.count()).group_by(JobPostingRecord.status)
        async with self.sessions() as session:
            rows = (await session.execute(stmt)).all()
            return {status: count for status, count in rows}

    async def stale_postings(self, status: PostingStatus, older_than: datetime) -> List[str]:
        """Ids of postings in ``status`` not updated since ``older_than``."""
        stmt = (
            select(JobPostingRecord.id)
            .where(JobPostingRecord.status == status.value)
            .where(JobPostingRecord.updated_at < older_than)
        )
        async with self.sessions() as session:
            return list((await session.scalars(stmt)).all())

    # Materials

    async def create_resume_version(
        self,
        base_resume_hash: str,
        target_role: str,
        tailored_bullets: Sequence[str]
    ) -> str:
        """Insert an immutable resume snapshot and return its id."""
        record = ResumeVersionRecord(
            id=new_id(),
            base_resume_hash=base_resume_hash,
            target_role=target_role,
            tailored_bullets=list(tailored_bullets),
        )
        async with self.sessions() as session, session.begin():
            session.add(record)
        return record.id

    async def get_resume_version(self, resume_version_id: str) -> Optional[ResumeVersionRecord]:
        async with self.sessions() as session:
            return await session.get(ResumeVersionRecord, resume_version_id)

    async def create_application(
        self,
        posting_id: str,
        resume_version_id: Optional[str],
        cover_letter_id: Optional[str],
        qa_answers_id: Optional[str]
    ) -> bool:
        """
        Link a posting to its artifacts.

        Returns:
            True if a row was inserted, False if the posting already had one
        """
        stmt = (
            self._insert(ApplicationRecord)
            .values(
                id=new_id(),
                job_id=posting_id,
                resume_version_id=resume_version_id,
                cover_letter_id=cover_letter_id,
                qa_answers_id=qa_answers_id,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["job_id"])
            .returning(ApplicationRecord.id)
        )
        async with self.sessions() as session, session.begin():
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def get_application(self, posting_id: str) -> Optional[ApplicationRecord]:
        stmt = select(ApplicationRecord).where(ApplicationRecord.job_id == posting_id)
        async with self.sessions() as session:
            return (await session.scalars(stmt)).first()

    # Follow-ups

    async def schedule_followups(
        self,
        posting_id: str,
        schedule: Iterable[Tuple[int, date]]
    ) -> int:
        """
        Insert follow-ups keyed by ``(posting_id, followup_number)``.

        Args:
            posting_id: Posting that passed compliance
            schedule: Pairs of follow-up number and scheduled date

        Returns:
            Number of follow-ups actually inserted
        """
        inserted = 0
        async with self.sessions() as session, session.begin():
            for number, scheduled_for in schedule:
                stmt = (
                    self._insert(FollowUpRecord)
                    .values(
                        id=new_id(),
                        job_id=posting_id,
                        followup_number=number,
                        scheduled_for=scheduled_for,
                        status="pending",
                        created_at=utcnow(),
                    )
                    .on_conflict_do_nothing(index_elements=["job_id", "followup_number"])
                    .returning(FollowUpRecord.id)
                )
                result = await session.execute(stmt)
                if result.scalar_one_or_none() is not None:
                    inserted += 1
        return inserted

    async def list_followups(self, posting_id: str) -> List[FollowUp]:
        stmt = (
            select(FollowUpRecord)
            .where(FollowUpRecord.job_id == posting_id)
            .order_by(FollowUpRecord.followup_number)
        )
        async with self.sessions() as session:
            records = (await session.scalars(stmt)).all()
            return [FollowUp.model_validate(record) for record in records]
