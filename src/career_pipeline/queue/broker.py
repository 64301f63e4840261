"""
Durable task broker backed by the ``tasks`` table.

Delivery is at-least-once: a claimed task holds a lease, and a task whose
lease expires before it is acknowledged (the worker crashed mid-task) is
handed out again. Handlers must therefore tolerate redelivery.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from career_pipeline.config import settings
from career_pipeline.store.database import create_session_factory
from career_pipeline.store.schema import TaskRecord, new_id, utcnow
from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


class TaskState:
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Task:
    """A leased delivery of a queued task."""
    id: str
    queue: str
    payload: Dict[str, Any] = field(default_factory=dict)
    attempts: int = 1
    max_attempts: int = 5


class TaskBroker:
    """
    Named durable work queues with retry and exponential backoff.

    Claims are issued by a single dispatcher per queue in a process, and each
    claim is a conditional UPDATE, so two processes racing for the same row
    cannot both win it.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None,
        lease_seconds: Optional[float] = None,
        clock=utcnow
    ):
        """
        Initialize the broker.

        Args:
            engine: Engine of the shared pipeline database
            session_factory: Optional session factory to share with the job store
            max_attempts: Deliveries before a task is dead-lettered
            backoff_base: First retry delay in seconds
            backoff_max: Upper bound on the retry delay in seconds
            lease_seconds: How long a claimed task stays invisible to other claims
            clock: Returns the current naive UTC time
        """
        self.engine = engine
        self.sessions = session_factory or create_session_factory(engine)
        self.max_attempts = max_attempts or settings.task_max_attempts
        self.backoff_base = backoff_base if backoff_base is not None else settings.task_backoff_base
        self.backoff_max = backoff_max if backoff_max is not None else settings.task_backoff_max
        self.lease_seconds = lease_seconds if lease_seconds is not None else settings.task_lease_seconds
        self.clock = clock
        self.logger = logger.bind(component="task_broker")

    async def enqueue(self, queue: str, payload: Optional[Dict[str, Any]] = None, delay: float = 0.0) -> str:
        """
        Persist a task. Returns once the row is committed.

        Args:
            queue: Queue name
            payload: JSON-serializable task payload
            delay: Seconds before the task becomes claimable

        Returns:
            The task id
        """
        now = self.clock()
        record = TaskRecord(
            id=new_id(),
            queue=queue,
            payload=dict(payload or {}),
            status=TaskState.PENDING,
            attempts=0,
            max_attempts=self.max_attempts,
            available_at=now + timedelta(seconds=delay),
            created_at=now,
            updated_at=now,
        )
        async with self.sessions() as session, session.begin():
            session.add(record)

        self.logger.debug("Task enqueued", queue=queue, task_id=record.id)
        return record.id

    def _claimable(self, queue: str, now: datetime):
        return and_(
            TaskRecord.queue == queue,
            or_(
                and_(TaskRecord.status == TaskState.PENDING, TaskRecord.available_at <= now),
                and_(TaskRecord.status == TaskState.RUNNING, TaskRecord.locked_until < now),
            ),
        )

    async def claim(self, queue: str) -> Optional[Task]:
        """
        Lease the oldest available task on ``queue``.

        A task is available when it is pending and due, or when it is running
        but its lease has expired.

        Returns:
            The leased task, or None if the queue has nothing available
        """
        for _ in range(3):
            now = self.clock()
            async with self.sessions() as session, session.begin():
                candidate = (await session.execute(
                    select(TaskRecord.id, TaskRecord.attempts, TaskRecord.status)
                    .where(self._claimable(queue, now))
                    .order_by(TaskRecord.available_at, TaskRecord.created_at)
                    .limit(1)
                )).first()
                if candidate is None:
                    return None

                task_id, attempts, previous_status = candidate
                result = await session.execute(
                    update(TaskRecord)
                    .where(TaskRecord.id == task_id)
                    .where(TaskRecord.attempts == attempts)
                    .where(self._claimable(queue, now))
                    .values(
                        status=TaskState.RUNNING,
                        attempts=attempts + 1,
                        locked_until=now + timedelta(seconds=self.lease_seconds),
                        updated_at=now,
                    )
                    .returning(TaskRecord.payload, TaskRecord.max_attempts)
                )
                claimed = result.first()

            if claimed is None:
                # Another claimer won the row; try the next one
                continue

            if previous_status == TaskState.RUNNING:
                self.logger.warning("Lease expired, redelivering task", queue=queue, task_id=task_id)

            payload, max_attempts = claimed
            return Task(
                id=task_id,
                queue=queue,
                payload=payload or {},
                attempts=attempts + 1,
                max_attempts=max_attempts,
            )
        return None

    async def ack(self, task: Task) -> None:
        """Mark a task as done."""
        async with self.sessions() as session, session.begin():
            await session.execute(
                update(TaskRecord)
                .where(TaskRecord.id == task.id)
                .values(status=TaskState.DONE, locked_until=None, updated_at=self.clock())
            )

    def backoff_delay(self, attempts: int) -> float:
        """Exponential backoff in seconds before delivery ``attempts + 1``."""
        return min(self.backoff_base * (2 ** max(attempts - 1, 0)), self.backoff_max)

    async def fail(self, task: Task, error: str) -> bool:
        """
        Record a failed delivery.

        Args:
            task: The delivery that failed
            error: Error description kept on the row

        Returns:
            True if the task will be retried, False if it was dead-lettered
        """
        now = self.clock()
        retry = task.attempts < task.max_attempts
        values: Dict[str, Any] = {"last_error": error[:2000], "locked_until": None, "updated_at": now}
        if retry:
            delay = self.backoff_delay(task.attempts)
            values.update(status=TaskState.PENDING, available_at=now + timedelta(seconds=delay))
            self.logger.warning(
                "Task failed, retry scheduled",
                queue=task.queue,
                task_id=task.id,
                attempt=task.attempts,
                max_attempts=task.max_attempts,
                delay_seconds=delay,
                error=error
            )
        else:
            values.update(status=TaskState.FAILED)
            self.logger.error(
                "Task dead-lettered",
                queue=task.queue,
                task_id=task.id,
                attempts=task.attempts,
                error=error
            )

        async with self.sessions() as session, session.begin():
            await session.execute(update(TaskRecord).where(TaskRecord.id == task.id).values(**values))
        return retry

    async def pending_count(self, queue: Optional[str] = None) -> int:
        """Tasks not yet done or dead-lettered."""
        stmt = select(func.count()).select_from(TaskRecord).where(
            TaskRecord.status.in_([TaskState.PENDING, TaskState.RUNNING])
        )
        if queue is not None:
            stmt = stmt.where(TaskRecord.queue == queue)
        async with self.sessions() as session:
            return (await session.execute(stmt)).scalar_one()

    async def get_task(self, task_id: str) -> Optional[TaskRecord]:
        async with self.sessions() as session:
            return await session.get(TaskRecord, task_id)
