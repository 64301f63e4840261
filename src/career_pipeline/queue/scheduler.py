"""Periodic trigger for scout runs."""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from career_pipeline.config import settings
from career_pipeline.core.models import PostingStatus, PostingTask
from career_pipeline.core.transitions import Stage
from career_pipeline.queue.broker import TaskBroker
from career_pipeline.store.repository import JobStore
from career_pipeline.store.schema import utcnow
from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


class Scheduler:
    """
    Enqueues one empty scout task per interval.

    Firing twice in quick succession is harmless: Scout deduplicates on
    insert, so the second run only repeats work.

    With the ``sweep`` redrive policy each tick also re-enqueues Materials for
    postings that have sat in Drafting longer than ``redrive_after_hours``.
    """

    def __init__(
        self,
        broker: TaskBroker,
        interval_hours: Optional[float] = None,
        store: Optional[JobStore] = None,
        redrive_policy: Optional[str] = None,
        redrive_after_hours: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.broker = broker
        self.interval = timedelta(hours=interval_hours if interval_hours is not None else settings.scout_interval_hours)
        self.store = store
        self.redrive_policy = redrive_policy or settings.drafting_redrive
        self.redrive_after = timedelta(
            hours=redrive_after_hours if redrive_after_hours is not None else settings.drafting_redrive_after_hours
        )
        self.clock = clock
        self.logger = logger.bind(component="scheduler")

        if self.redrive_policy == "sweep" and store is None:
            raise ValueError("The sweep redrive policy needs a job store")

    async def trigger(self) -> str:
        """Enqueue one scout run."""
        task_id = await self.broker.enqueue(Stage.SCOUT.value, {})
        self.logger.info("Enqueued scout run", task_id=task_id)
        return task_id

    async def sweep_drafting(self) -> List[str]:
        """Re-enqueue Materials for stale Drafting postings. Returns their ids."""
        if self.redrive_policy != "sweep":
            return []

        stale = await self.store.stale_postings(PostingStatus.DRAFTING, self.clock() - self.redrive_after)
        for posting_id in stale:
            await self.broker.enqueue(
                Stage.MATERIALS.value, PostingTask(posting_id=posting_id).model_dump(by_alias=True)
            )
        if stale:
            self.logger.info("Swept stale Drafting postings", count=len(stale))
        return stale

    async def tick(self) -> None:
        await self.trigger()
        await self.sweep_drafting()

    async def run(self, stop: asyncio.Event, fire_immediately: bool = False) -> None:
        """Tick every interval until ``stop`` is set."""
        self.logger.info(
            "Scheduler started",
            interval_hours=self.interval.total_seconds() / 3600,
            redrive_policy=self.redrive_policy
        )
        if fire_immediately:
            await self.tick()

        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval.total_seconds())
            except asyncio.TimeoutError:
                try:
                    await self.tick()
                except Exception as e:
                    # The next tick retries
                    self.logger.error("Scheduler tick failed", error=str(e), error_type=type(e).__name__)
        self.logger.info("Scheduler stopped")
