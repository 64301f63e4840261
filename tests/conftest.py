"""Shared fixtures: a temp-file SQLite database, the store, the broker and test doubles."""

from unittest.mock import AsyncMock

import pytest

from career_pipeline.core.models import NewPosting, PostingStatus
from career_pipeline.knowledge.provider import KnowledgeBase
from career_pipeline.queue.broker import TaskBroker
from career_pipeline.reasoning.client import ReasoningClient
from career_pipeline.store.database import create_engine, create_session_factory, init_db
from career_pipeline.store.repository import JobStore
from doubles import SAMPLE_KB, FakeClock


@pytest.fixture
async def engine(tmp_path):
    """Engine over a fresh SQLite file with all tables created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'pipeline.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(engine, sessions):
    return JobStore(engine, sessions)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def broker(engine, sessions, clock):
    return TaskBroker(
        engine,
        sessions,
        max_attempts=3,
        backoff_base=2,
        backoff_max=60,
        lease_seconds=30,
        clock=clock,
    )


@pytest.fixture
def reasoning():
    """Reasoning client double; set ``complete_json.return_value`` or ``side_effect`` per test."""
    client = AsyncMock(spec=ReasoningClient)
    client.complete_json.return_value = {}
    return client


@pytest.fixture
def knowledge():
    return KnowledgeBase(SAMPLE_KB)


@pytest.fixture
def make_posting(store):
    """Insert a posting and optionally move it to a status. Returns the posting id."""
    counter = {"n": 0}

    async def _make(
        title: str = "Software Engineering Intern",
        status: PostingStatus = PostingStatus.DISCOVERED,
        **fields
    ) -> str:
        counter["n"] += 1
        values = dict(
            source="greenhouse",
            source_job_id=f"job-{counter['n']}",
            company="Example",
            title=title,
            location="San Francisco, CA",
            description_raw="<p>Build Python services on distributed systems.</p>",
        )
        values.update(fields)
        posting_id = await store.insert_posting(NewPosting(**values))
        if status is not PostingStatus.DISCOVERED:
            await store.set_status(posting_id, status)
        return posting_id

    return _make
