"""Queue workers: one dispatcher per queue with a bounded number of in-flight tasks."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from career_pipeline.queue.broker import Task, TaskBroker
from career_pipeline.utils.logging import get_logger, task_context

logger = get_logger(__name__)

TaskHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class QueueWorker:
    """
    Consumes one queue.

    Up to ``concurrency`` tasks run at once. A handler that returns normally
    acknowledges its task; a handler that raises hands the task back to the
    broker for retry.
    """

    def __init__(
        self,
        broker: TaskBroker,
        queue: str,
        handler: TaskHandler,
        concurrency: int = 1,
        poll_interval: float = 1.0
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.broker = broker
        self.queue = queue
        self.handler = handler
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self._slots = asyncio.Semaphore(concurrency)
        self._in_flight: Set[asyncio.Task] = set()
        self.logger = logger.bind(component="queue_worker", queue=queue)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def running_tasks(self) -> Set[asyncio.Task]:
        return set(self._in_flight)

    async def dispatch_once(self) -> bool:
        """
        Wait for a free slot, then claim and start one task.

        Returns:
            True if a task was started, False if the queue had nothing available
        """
        await self._slots.acquire()
        try:
            task = await self.broker.claim(self.queue)
        except BaseException:
            self._slots.release()
            raise

        if task is None:
            self._slots.release()
            return False

        running = asyncio.create_task(self._process(task))
        self._in_flight.add(running)
        running.add_done_callback(self._in_flight.discard)
        return True

    async def _process(self, task: Task) -> None:
        with task_context(self.queue, task.id, task.attempts, posting_id=task.payload.get("postingId")):
            try:
                self.logger.debug("Task started")
                await self.handler(task.payload)
            except Exception as e:
                self.logger.error("Task handler failed", error=str(e), error_type=type(e).__name__)
                await self._settle(self.broker.fail(task, f"{type(e).__name__}: {e}"))
            else:
                if await self._settle(self.broker.ack(task)):
                    self.logger.debug("Task completed")
            finally:
                self._slots.release()

    async def _settle(self, call: Awaitable[Any]) -> bool:
        """Run an ack or fail. On a store error the lease expires and the task is redelivered."""
        try:
            await call
        except Exception as e:
            self.logger.error("Task bookkeeping failed", error=str(e), error_type=type(e).__name__)
            return False
        return True

    async def run(self, stop: asyncio.Event) -> None:
        """
        Dispatch until ``stop`` is set, then wait for in-flight tasks.

        A failed claim is logged and retried after ``poll_interval``; the
        dispatcher only exits on ``stop``.
        """
        self.logger.info("Queue worker started", concurrency=self.concurrency)
        while not stop.is_set():
            try:
                started = await self.dispatch_once()
            except Exception as e:
                self.logger.error("Task claim failed", error=str(e), error_type=type(e).__name__)
                started = False
            if not started:
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        await self.wait_idle()
        self.logger.info("Queue worker stopped")

    async def wait_idle(self) -> None:
        """Wait for every in-flight task of this queue to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)


class WorkerPool:
    """One ``QueueWorker`` per queue."""

    def __init__(self, workers: List[QueueWorker]):
        self.workers = {worker.queue: worker for worker in workers}
        self.logger = logger.bind(component="worker_pool")

    def __getitem__(self, queue: str) -> QueueWorker:
        return self.workers[queue]

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        stop = stop or asyncio.Event()
        self.logger.info("Worker pool started", queues=list(self.workers))
        await asyncio.gather(*(worker.run(stop) for worker in self.workers.values()))

    async def run_until_idle(self, max_rounds: int = 10_000) -> int:
        """
        Process tasks until no queue has an available task and nothing is in flight.

        Tasks waiting out a retry backoff are not waited for.

        Returns:
            Number of tasks started
        """
        started = 0
        for _ in range(max_rounds):
            progressed = False
            for worker in self.workers.values():
                # Fill the worker's free slots without blocking on a full one
                while worker.in_flight < worker.concurrency and await worker.dispatch_once():
                    started += 1
                    progressed = True

            if progressed:
                await asyncio.sleep(0)
                continue

            busy = [worker for worker in self.workers.values() if worker.in_flight]
            if not busy:
                return started
            await asyncio.wait(
                {task for worker in busy for task in worker.running_tasks()},
                return_when=asyncio.FIRST_COMPLETED
            )
        raise RuntimeError(f"Queues still busy after {max_rounds} rounds")
