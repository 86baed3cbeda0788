"""
Structured logging for the email-to-deal sync pipeline.

Every entry emitted while a webhook batch runs carries the batch id, and
every entry emitted while an email is processed carries the email id.
Both ride on structlog's own context variables, so any module that logs
through structlog.get_logger() picks them up without passing them around.

Production (Lambda) renders one JSON object per line; local runs render
coloured console output.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Any, Generator

import structlog
from structlog.types import Processor

from .config import get_settings

BATCH_ID_KEY = 'batch_id'
EMAIL_ID_KEY = 'email_id'


def get_batch_id() -> str | None:
    """Batch id bound by the innermost logging_context, if any."""
    return structlog.contextvars.get_contextvars().get(BATCH_ID_KEY)


def get_email_id() -> str | None:
    """Email id bound by the innermost logging_context, if any."""
    return structlog.contextvars.get_contextvars().get(EMAIL_ID_KEY)


def configure_logging(
    json_output: bool = False,
    log_level: str | None = None,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        json_output: JSON lines (Lambda / CloudWatch) instead of console output
        log_level: Level name; defaults to the LOG_LEVEL setting
    """
    level_name = (log_level or get_settings().LOG_LEVEL).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format='%(message)s', stream=sys.stdout, level=level)

    processors: list[Processor] = [
        # Explicit keys on a call win over bound context
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso', utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def logging_context(
    batch_id: str | None = None,
    email_id: str | None = None,
) -> Generator[None, None, None]:
    """
    Bind batch and/or email ids for the duration of the block.

    Ids left as None keep whatever an enclosing block bound. On exit the
    previous values are restored, so nested blocks compose:

        with logging_context(batch_id=batch.batch_id):
            for event in events:
                with logging_context(email_id=event.object_id):
                    ...
    """
    bound = {
        key: value
        for key, value in ((BATCH_ID_KEY, batch_id), (EMAIL_ID_KEY, email_id))
        if value is not None
    }
    tokens = structlog.contextvars.bind_contextvars(**bound)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


class PipelineTimer:
    """
    Wall-clock durations of the per-email stages (fetch, parse, match,
    fallback, commit), in milliseconds.

    A stage that raises is still recorded, so a failed email's result
    shows how far it got and how long each step took.
    """

    def __init__(self):
        self.started = time.perf_counter()
        self.stages: dict[str, float] = {}

    @contextmanager
    def stage(self, name: str) -> Generator[None, None, None]:
        began = time.perf_counter()
        try:
            yield
        finally:
            self.stages[name] = (time.perf_counter() - began) * 1000

    @property
    def total_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000

    def summary(self) -> dict[str, Any]:
        return {
            'total_ms': round(self.total_ms, 2),
            'stages': {name: round(ms, 2) for name, ms in self.stages.items()},
        }
