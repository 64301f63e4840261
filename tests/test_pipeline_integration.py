"""End-to-end pipeline runs against a temp database with scripted reasoning replies."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from career_pipeline.config import Settings
from career_pipeline.core.models import PostingStatus
from career_pipeline.core.pipeline import concurrency_for, create_pipeline
from career_pipeline.core.transitions import Stage
from career_pipeline.reasoning.client import ReasoningClient
from doubles import SAMPLE_KB, FakeSource, source_posting

PASSED_ON = date(2026, 3, 2)


def scripted_reasoning(fit_score: int = 82, compliance_pass: bool = True) -> AsyncMock:
    """Reasoning double answering each stage by its system prompt."""
    calls = []

    async def complete_json(tier, messages):
        system = messages[0].content
        calls.append(system)
        if "extract structured fields" in system:
            return {"level": "intern", "remoteMode": "onsite", "visaSponsorship": "unknown"}
        if "normalize job posting metadata" in system:
            return {"normalizedTitle": "Software Engineering Intern", "normalizedLocation": "San Francisco, CA"}
        if "job-fit evaluator" in system:
            return {"fitScore": fit_score, "reasoning": ["Python"], "risks": [], "recommendation": "shortlist"}
        if "job application writer" in system:
            return {
                "coverLetter": "Dear team",
                "tailoredBullets": ["b1", "b2", "b3", "b4", "b5"],
                "whyCompany": "Because",
                "qaAnswers": {"whyThisRole": "Backend"},
            }
        if "compliance checker" in system:
            if compliance_pass:
                return {"pass": True, "flags": [], "summary": "Clean"}
            return {"pass": True, "flags": [{"excerpt": "300%", "issue": "unverified metric"}]}
        raise AssertionError(f"unexpected prompt: {system}")

    client = AsyncMock(spec=ReasoningClient)
    client.complete_json.side_effect = complete_json
    client.calls = calls
    return client


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'pipeline.db'}",
        knowledge_base_dir=str(SAMPLE_KB),
        fit_threshold=60,
        followup_offsets_days=[7, 14],
        task_backoff_base=0,
        drafting_redrive="manual",
    )


@pytest.fixture
def source():
    return FakeSource("Example", [
        source_posting("4012345", "SWE Intern"),
        source_posting("4012346", "Senior Engineer"),
    ])


async def build(settings, source, reasoning):
    pipeline = create_pipeline(settings=settings, reasoning=reasoning, sources=[source])
    pipeline.stages[Stage.COMPLIANCE].today = lambda: PASSED_ON
    await pipeline.init_db()
    return pipeline


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_intern_posting_reaches_ready_for_review(self, settings, source):
        pipeline = await build(settings, source, scripted_reasoning())
        try:
            processed = await pipeline.run_once()

            assert processed == 5
            [posting] = await pipeline.store.list_postings()
            assert posting.title == "Software Engineering Intern"
            assert posting.location == "San Francisco, CA"
            assert posting.fit_score == 82
            assert posting.status is PostingStatus.READY_FOR_REVIEW
            assert posting.notes["coverLetter"] == "Dear team"

            application = await pipeline.store.get_application(posting.id)
            version = await pipeline.store.get_resume_version(application.resume_version_id)
            assert version.tailored_bullets == ["b1", "b2", "b3", "b4", "b5"]

            followups = await pipeline.store.list_followups(posting.id)
            assert [(f.followup_number, f.scheduled_for) for f in followups] == [
                (1, date(2026, 3, 9)),
                (2, date(2026, 3, 16)),
            ]
            assert await pipeline.broker.pending_count() == 0
        finally:
            await pipeline.close()

    @pytest.mark.asyncio
    async def test_second_run_finds_nothing_new(self, settings, source):
        reasoning = scripted_reasoning()
        pipeline = await build(settings, source, reasoning)
        try:
            await pipeline.run_once()
            calls_after_first = len(reasoning.calls)

            processed = await pipeline.run_once()

            # Only the scout task runs; the known posting chains nothing
            assert processed == 1
            assert len(reasoning.calls) == calls_after_first + 1
            assert await pipeline.store.count_by_status() == {"ReadyForReview": 1}
        finally:
            await pipeline.close()

    @pytest.mark.asyncio
    async def test_low_score_is_archived(self, settings, source):
        pipeline = await build(settings, source, scripted_reasoning(fit_score=59))
        try:
            processed = await pipeline.run_once()

            assert processed == 3
            [posting] = await pipeline.store.list_postings()
            assert posting.status is PostingStatus.ARCHIVED
            assert await pipeline.store.get_application(posting.id) is None
        finally:
            await pipeline.close()

    @pytest.mark.asyncio
    async def test_compliance_failure_waits_for_redrive(self, settings, source):
        pipeline = await build(settings, source, scripted_reasoning(compliance_pass=False))
        try:
            await pipeline.run_once()

            [posting] = await pipeline.store.list_postings()
            assert posting.status is PostingStatus.DRAFTING
            assert await pipeline.store.list_followups(posting.id) == []
            assert await pipeline.broker.pending_count() == 0

            await pipeline.runner.redrive(posting.id)
            processed = await pipeline.pool.run_until_idle()

            # Materials and compliance run again; the draft still fails
            assert processed == 2
            assert (await pipeline.store.get_posting(posting.id)).status is PostingStatus.DRAFTING
        finally:
            await pipeline.close()


class TestWiring:

    @pytest.mark.asyncio
    async def test_queue_concurrency_from_settings(self, settings, source):
        pipeline = create_pipeline(settings=settings, reasoning=scripted_reasoning(), sources=[source])
        try:
            caps = {queue: worker.concurrency for queue, worker in pipeline.pool.workers.items()}
            assert caps == {
                "scout": 1,
                "normalize": 5,
                "fit-score": 3,
                "materials": 2,
                "compliance": 3,
            }
            assert concurrency_for(Stage.MATERIALS, settings) == 2
        finally:
            await pipeline.close()
