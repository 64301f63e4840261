"""Durable task queues, workers and the periodic scheduler."""

from career_pipeline.queue.broker import Task, TaskBroker, TaskState
from career_pipeline.queue.scheduler import Scheduler
from career_pipeline.queue.worker import QueueWorker, WorkerPool

__all__ = ["Task", "TaskBroker", "TaskState", "Scheduler", "QueueWorker", "WorkerPool"]
