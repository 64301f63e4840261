"""Tests for queue workers and the worker pool."""

import asyncio

import pytest
import structlog
from sqlalchemy.exc import OperationalError

from career_pipeline.queue.broker import TaskState
from career_pipeline.queue.worker import QueueWorker, WorkerPool


class TestQueueWorker:

    def test_concurrency_must_be_positive(self, broker):
        with pytest.raises(ValueError):
            QueueWorker(broker, "scout", handler=lambda payload: None, concurrency=0)

    @pytest.mark.asyncio
    async def test_in_flight_is_bounded(self, broker):
        """A worker never holds more than ``concurrency`` tasks at once."""
        gate = asyncio.Event()
        started = []

        async def handler(payload):
            started.append(payload["n"])
            await gate.wait()

        for n in range(3):
            await broker.enqueue("materials", {"n": n})
        worker = QueueWorker(broker, "materials", handler, concurrency=2)

        assert await worker.dispatch_once()
        assert await worker.dispatch_once()
        assert worker.in_flight == 2

        # Third dispatch waits for a free slot
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(worker.dispatch_once(), timeout=0.2)
        assert worker.in_flight == 2

        gate.set()
        await worker.wait_idle()
        assert worker.in_flight == 0
        assert sorted(started) == [0, 1]
        assert await broker.pending_count("materials") == 1

    @pytest.mark.asyncio
    async def test_success_acknowledges(self, broker):
        task_id = await broker.enqueue("normalize", {"postingId": "p1"})
        worker = QueueWorker(broker, "normalize", handler=lambda payload: asyncio.sleep(0))

        assert await worker.dispatch_once()
        await worker.wait_idle()

        assert (await broker.get_task(task_id)).status == TaskState.DONE

    @pytest.mark.asyncio
    async def test_handler_error_schedules_retry(self, broker):
        task_id = await broker.enqueue("fit-score", {"postingId": "p1"})

        async def handler(payload):
            raise RuntimeError("reasoning service down")

        worker = QueueWorker(broker, "fit-score", handler)
        await worker.dispatch_once()
        await worker.wait_idle()

        record = await broker.get_task(task_id)
        assert record.status == TaskState.PENDING
        assert record.attempts == 1
        assert "reasoning service down" in record.last_error

    @pytest.mark.asyncio
    async def test_empty_queue_releases_slot(self, broker):
        worker = QueueWorker(broker, "scout", handler=lambda payload: asyncio.sleep(0), concurrency=1)

        assert not await worker.dispatch_once()
        assert not await worker.dispatch_once()

    @pytest.mark.asyncio
    async def test_run_stops_on_event(self, broker):
        seen = []

        async def handler(payload):
            seen.append(payload)

        await broker.enqueue("scout", {})
        worker = QueueWorker(broker, "scout", handler, poll_interval=0.01)
        stop = asyncio.Event()
        running = asyncio.create_task(worker.run(stop))

        for _ in range(100):
            if seen:
                break
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(running, timeout=2)

        assert seen == [{}]

    @pytest.mark.asyncio
    async def test_run_survives_a_failing_claim(self, broker, monkeypatch):
        claim = broker.claim
        failures = []

        async def flaky_claim(queue):
            if not failures:
                failures.append(queue)
                raise OperationalError("UPDATE tasks", {}, Exception("database is locked"))
            return await claim(queue)

        monkeypatch.setattr(broker, "claim", flaky_claim)
        seen = []

        async def handler(payload):
            seen.append(payload)

        worker = QueueWorker(broker, "normalize", handler, poll_interval=0.01)
        stop = asyncio.Event()
        running = asyncio.create_task(worker.run(stop))
        await broker.enqueue("normalize", {"postingId": "p1"})

        for _ in range(200):
            if seen or running.done():
                break
            await asyncio.sleep(0.01)
        assert not running.done()
        stop.set()
        await asyncio.wait_for(running, timeout=2)

        assert failures == ["normalize"]
        assert seen == [{"postingId": "p1"}]

    @pytest.mark.asyncio
    async def test_failed_ack_leaves_task_for_redelivery(self, broker, clock, monkeypatch):
        task_id = await broker.enqueue("normalize", {"postingId": "p1"})

        async def broken_ack(task):
            raise OperationalError("UPDATE tasks", {}, Exception("database is locked"))

        monkeypatch.setattr(broker, "ack", broken_ack)
        worker = QueueWorker(broker, "normalize", handler=lambda payload: asyncio.sleep(0))

        assert await worker.dispatch_once()
        await worker.wait_idle()

        assert worker.in_flight == 0
        assert (await broker.get_task(task_id)).status == TaskState.RUNNING
        clock.advance(31)
        assert (await broker.claim("normalize")).id == task_id

    @pytest.mark.asyncio
    async def test_handler_logs_carry_task_context(self, broker):
        task_id = await broker.enqueue("fit-score", {"postingId": "p1"})
        seen = []

        async def handler(payload):
            seen.append(structlog.contextvars.get_contextvars())

        worker = QueueWorker(broker, "fit-score", handler)
        await worker.dispatch_once()
        await worker.wait_idle()

        assert seen == [{"queue": "fit-score", "task_id": task_id, "attempt": 1, "posting_id": "p1"}]
        assert structlog.contextvars.get_contextvars() == {}


class TestWorkerPool:

    @pytest.mark.asyncio
    async def test_run_until_idle_follows_chained_work(self, broker):
        """Handlers that enqueue onto another queue are drained in the same run."""
        order = []

        async def first(payload):
            order.append(("first", payload["n"]))
            await broker.enqueue("second", {"n": payload["n"]})

        async def second(payload):
            order.append(("second", payload["n"]))

        for n in range(3):
            await broker.enqueue("first", {"n": n})
        pool = WorkerPool([
            QueueWorker(broker, "first", first, concurrency=2),
            QueueWorker(broker, "second", second, concurrency=1),
        ])

        started = await pool.run_until_idle()

        assert started == 6
        assert sorted(n for stage, n in order if stage == "second") == [0, 1, 2]
        assert await broker.pending_count() == 0
        assert pool["first"].concurrency == 2
