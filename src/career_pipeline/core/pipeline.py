"""Wires the store, broker, stages, workers and scheduler into one pipeline."""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine

from career_pipeline.config import Settings, settings as default_settings
from career_pipeline.core.runner import PipelineRunner
from career_pipeline.core.transitions import Stage
from career_pipeline.knowledge.provider import KnowledgeBase
from career_pipeline.queue.broker import TaskBroker
from career_pipeline.queue.scheduler import Scheduler
from career_pipeline.queue.worker import QueueWorker, WorkerPool
from career_pipeline.reasoning.client import ReasoningClient
from career_pipeline.sources import PostingSource, build_sources
from career_pipeline.stages import (
    StageWorker,
    create_compliance_stage,
    create_fit_score_stage,
    create_materials_stage,
    create_normalize_stage,
    create_scout_stage,
)
from career_pipeline.store.database import create_engine, create_session_factory, init_db
from career_pipeline.store.repository import JobStore
from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


def concurrency_for(stage: Stage, cfg: Settings) -> int:
    """Maximum in-flight tasks for a stage's queue."""
    return {
        Stage.SCOUT: cfg.scout_concurrency,
        Stage.NORMALIZE: cfg.normalize_concurrency,
        Stage.FIT_SCORE: cfg.fit_score_concurrency,
        Stage.MATERIALS: cfg.materials_concurrency,
        Stage.COMPLIANCE: cfg.compliance_concurrency,
    }[stage]


@dataclass
class Pipeline:
    """A fully wired pipeline."""
    engine: AsyncEngine
    store: JobStore
    broker: TaskBroker
    stages: Dict[Stage, StageWorker]
    runner: PipelineRunner
    pool: WorkerPool
    scheduler: Scheduler

    async def init_db(self) -> None:
        await init_db(self.engine)

    async def run_once(self) -> int:
        """Enqueue one scout run and drain every queue. Returns tasks processed."""
        await self.scheduler.trigger()
        return await self.pool.run_until_idle()

    async def run_forever(self, stop: asyncio.Event, fire_immediately: bool = False) -> None:
        """Run the workers and the scheduler until ``stop`` is set."""
        await asyncio.gather(
            self.pool.run_forever(stop),
            self.scheduler.run(stop, fire_immediately=fire_immediately),
        )

    async def close(self) -> None:
        await self.engine.dispose()


def create_pipeline(
    settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
    reasoning: Optional[ReasoningClient] = None,
    knowledge: Optional[KnowledgeBase] = None,
    sources: Optional[Sequence[PostingSource]] = None,
    broker: Optional[TaskBroker] = None
) -> Pipeline:
    """
    Factory function to create a pipeline.

    Args:
        settings: Optional settings override
        engine: Optional database engine, created from settings if omitted
        reasoning: Optional reasoning client
        knowledge: Optional knowledge base
        sources: Optional posting sources, built from the configured boards if omitted
        broker: Optional task broker sharing the engine

    Returns:
        The wired pipeline. Call ``init_db`` before first use.
    """
    cfg = settings or default_settings
    engine = engine or create_engine(cfg.database_url)
    sessions = create_session_factory(engine)

    store = JobStore(engine, sessions)
    broker = broker or TaskBroker(
        engine,
        sessions,
        max_attempts=cfg.task_max_attempts,
        backoff_base=cfg.task_backoff_base,
        backoff_max=cfg.task_backoff_max,
        lease_seconds=cfg.task_lease_seconds,
    )
    reasoning = reasoning or ReasoningClient(settings=cfg)
    knowledge = knowledge or KnowledgeBase(cfg.knowledge_base_dir)
    sources = list(sources) if sources is not None else build_sources(cfg)

    stages: Dict[Stage, StageWorker] = {
        Stage.SCOUT: create_scout_stage(store, reasoning, sources),
        Stage.NORMALIZE: create_normalize_stage(store, reasoning),
        Stage.FIT_SCORE: create_fit_score_stage(store, reasoning, knowledge, threshold=cfg.fit_threshold),
        Stage.MATERIALS: create_materials_stage(store, reasoning, knowledge),
        Stage.COMPLIANCE: create_compliance_stage(
            store, reasoning, knowledge, followup_offsets_days=cfg.followup_offsets_days
        ),
    }

    runner = PipelineRunner(broker, stages, store=store)
    pool = WorkerPool([
        QueueWorker(
            broker,
            stage.value,
            handler,
            concurrency=concurrency_for(stage, cfg),
            poll_interval=cfg.queue_poll_interval,
        )
        for stage, handler in runner.handlers().items()
    ])
    scheduler = Scheduler(
        broker,
        interval_hours=cfg.scout_interval_hours,
        store=store,
        redrive_policy=cfg.drafting_redrive,
        redrive_after_hours=cfg.drafting_redrive_after_hours,
    )

    logger.info(
        "Pipeline created",
        sources=len(sources),
        redrive_policy=cfg.drafting_redrive,
        fit_threshold=cfg.fit_threshold
    )
    return Pipeline(
        engine=engine,
        store=store,
        broker=broker,
        stages=stages,
        runner=runner,
        pool=pool,
        scheduler=scheduler,
    )
