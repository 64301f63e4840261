"""Tests for the job store."""

from datetime import date, timedelta

import pytest

from career_pipeline.core.errors import RecordNotFoundError
from career_pipeline.core.models import FollowUpStatus, NewPosting, PostingStatus
from career_pipeline.store.schema import utcnow


def new_posting(source_job_id: str = "4012345", **overrides) -> NewPosting:
    values = dict(
        source="greenhouse",
        source_job_id=source_job_id,
        company="Example",
        title="Software Engineering Intern",
        location="SF",
        description_raw="<p>Python</p>",
        description_structured={"techStack": ["Python"]},
    )
    values.update(overrides)
    return NewPosting(**values)


class TestPostings:

    @pytest.mark.asyncio
    async def test_insert_and_get(self, store):
        posting_id = await store.insert_posting(new_posting())
        posting = await store.get_posting(posting_id)

        assert posting is not None
        assert posting.status is PostingStatus.DISCOVERED
        assert posting.description_structured == {"techStack": ["Python"]}
        assert posting.created_at is not None

    @pytest.mark.asyncio
    async def test_insert_is_deduplicated_by_source_key(self, store):
        """Re-inserting the same (source, source_job_id) is a no-op."""
        first = await store.insert_posting(new_posting())
        second = await store.insert_posting(new_posting(title="Changed Title"))

        assert first is not None
        assert second is None
        postings = await store.list_postings()
        assert len(postings) == 1
        assert postings[0].title == "Software Engineering Intern"

    @pytest.mark.asyncio
    async def test_same_job_id_from_another_source_is_distinct(self, store):
        assert await store.insert_posting(new_posting()) is not None
        assert await store.insert_posting(new_posting(source="lever")) is not None

    @pytest.mark.asyncio
    async def test_missing_posting(self, store):
        assert await store.get_posting("nope") is None
        with pytest.raises(RecordNotFoundError) as exc_info:
            await store.require_posting("nope")
        assert exc_info.value.posting_id == "nope"

    @pytest.mark.asyncio
    async def test_normalization_coalesces(self, store):
        """A None value never overwrites a stored column."""
        posting_id = await store.insert_posting(new_posting())

        updated = await store.apply_normalization(posting_id, {
            "title": "Software Engineering Intern, Summer",
            "level": "intern",
            "location": None,
        })

        posting = await store.get_posting(posting_id)
        assert updated
        assert posting.title == "Software Engineering Intern, Summer"
        assert posting.level == "intern"
        assert posting.location == "SF"
        assert posting.remote_mode == "unknown"

    @pytest.mark.asyncio
    async def test_normalization_of_missing_posting(self, store):
        assert not await store.apply_normalization("nope", {"title": "x"})

    @pytest.mark.asyncio
    async def test_record_fit_is_one_update(self, store):
        posting_id = await store.insert_posting(new_posting())

        await store.record_fit(
            posting_id,
            score=72,
            reasoning=["Python match"],
            risks=["Onsite only"],
            status=PostingStatus.SHORTLISTED,
        )

        posting = await store.get_posting(posting_id)
        assert posting.fit_score == 72
        assert posting.fit_reasoning == ["Python match"]
        assert posting.risks == ["Onsite only"]
        assert posting.status is PostingStatus.SHORTLISTED

    @pytest.mark.asyncio
    async def test_record_fit_only_from_other_status_writes_nothing(self, store):
        posting_id = await store.insert_posting(new_posting())
        await store.set_status(posting_id, PostingStatus.READY_FOR_REVIEW)

        updated = await store.record_fit(
            posting_id,
            score=40,
            reasoning=[],
            risks=[],
            status=PostingStatus.ARCHIVED,
            only_from=[PostingStatus.DISCOVERED],
        )

        assert updated is False
        posting = await store.get_posting(posting_id)
        assert posting.status is PostingStatus.READY_FOR_REVIEW
        assert posting.fit_score is None

    @pytest.mark.asyncio
    async def test_set_status_only_from(self, store):
        posting_id = await store.insert_posting(new_posting())

        assert await store.set_status(
            posting_id, PostingStatus.DRAFTING, only_from=[PostingStatus.SHORTLISTED]
        ) is False
        assert await store.set_status(
            posting_id, PostingStatus.SHORTLISTED, only_from=[PostingStatus.DISCOVERED]
        ) is True
        assert (await store.get_posting(posting_id)).status is PostingStatus.SHORTLISTED

    @pytest.mark.asyncio
    async def test_count_by_status(self, store):
        a = await store.insert_posting(new_posting("1"))
        await store.insert_posting(new_posting("2"))
        await store.set_status(a, PostingStatus.ARCHIVED)

        assert await store.count_by_status() == {"Discovered": 1, "Archived": 1}

    @pytest.mark.asyncio
    async def test_list_by_status(self, store):
        a = await store.insert_posting(new_posting("1"))
        await store.insert_posting(new_posting("2"))
        await store.set_status(a, PostingStatus.SHORTLISTED)

        shortlisted = await store.list_postings(PostingStatus.SHORTLISTED)
        assert [p.id for p in shortlisted] == [a]

    @pytest.mark.asyncio
    async def test_stale_postings(self, store):
        posting_id = await store.insert_posting(new_posting())
        await store.set_status(posting_id, PostingStatus.DRAFTING)

        assert await store.stale_postings(PostingStatus.DRAFTING, utcnow() - timedelta(hours=1)) == []
        assert await store.stale_postings(PostingStatus.DRAFTING, utcnow() + timedelta(hours=1)) == [posting_id]

    @pytest.mark.asyncio
    async def test_materials_notes(self, store):
        posting_id = await store.insert_posting(new_posting())
        await store.save_materials_notes(posting_id, {"coverLetter": "Dear team", "qaAnswers": None})

        posting = await store.get_posting(posting_id)
        assert posting.notes == {"coverLetter": "Dear team", "qaAnswers": None}


class TestApplications:

    @pytest.mark.asyncio
    async def test_at_most_one_application_per_posting(self, store):
        posting_id = await store.insert_posting(new_posting())
        first_version = await store.create_resume_version("abc123", "Intern", ["b1"])
        second_version = await store.create_resume_version("abc123", "Intern", ["b2"])

        assert await store.create_application(posting_id, first_version, f"cl-{posting_id}", None)
        assert not await store.create_application(posting_id, second_version, None, None)

        application = await store.get_application(posting_id)
        assert application.resume_version_id == first_version
        assert application.cover_letter_id == f"cl-{posting_id}"

    @pytest.mark.asyncio
    async def test_resume_versions_are_distinct_snapshots(self, store):
        a = await store.create_resume_version("abc123", "Intern", ["b1"])
        b = await store.create_resume_version("abc123", "Intern", ["b1"])

        assert a != b
        version = await store.get_resume_version(a)
        assert version.tailored_bullets == ["b1"]


class TestFollowUps:

    @pytest.mark.asyncio
    async def test_schedule_is_idempotent(self, store):
        posting_id = await store.insert_posting(new_posting())
        today = date(2026, 3, 2)
        schedule = [(1, today + timedelta(days=7)), (2, today + timedelta(days=14))]

        assert await store.schedule_followups(posting_id, schedule) == 2
        assert await store.schedule_followups(posting_id, schedule) == 0

        followups = await store.list_followups(posting_id)
        assert [(f.followup_number, f.scheduled_for) for f in followups] == [
            (1, date(2026, 3, 9)),
            (2, date(2026, 3, 16)),
        ]
        assert all(f.status is FollowUpStatus.PENDING for f in followups)
