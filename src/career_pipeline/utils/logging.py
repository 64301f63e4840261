"""Structured logging configuration using structlog."""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from rich.logging import RichHandler

from career_pipeline.config import settings

# Libraries that log every request or statement at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite", "openai", "groq")


def configure_logging(level: Optional[str] = None, debug: Optional[bool] = None) -> None:
    """
    Configure structured logging with rich output.

    Events carry whatever task context is bound with ``task_context`` (queue,
    task id, attempt, posting id), so a stage's log lines can be traced back
    to the delivery that produced them.

    Args:
        level: Log level name, defaults to ``settings.log_level``
        debug: Console renderer instead of JSON, defaults to ``settings.debug``
    """
    level_name = (level or settings.log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    debug = settings.debug if debug is None else debug

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="ISO", utc=True),
    ]
    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def task_context(queue: str, task_id: str, attempt: int, **kwargs: Any) -> Iterator[None]:
    """
    Bind a task delivery to every log event emitted inside the block.

    Bindings live in context variables, so concurrent deliveries running in
    separate asyncio tasks do not see each other's context.
    """
    context = {k: v for k, v in kwargs.items() if v is not None}
    with structlog.contextvars.bound_contextvars(queue=queue, task_id=task_id, attempt=attempt, **context):
        yield
