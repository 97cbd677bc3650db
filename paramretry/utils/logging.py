"""Structured logging for paramretry.

Library modules log through ``structlog.get_logger()`` and never configure
output themselves. A host that wants readable or JSON output calls
``configure_logging`` (or ``configure_from_settings``) once at start-up.
"""

import logging
import sys
from typing import Any, Optional

import structlog

from paramretry.config import Settings


def build_processors(json_format: bool = False, include_timestamp: bool = True) -> list[Any]:
    """Processor chain shared by console and JSON output.

    Context bound with LogContext is merged first so every event of an
    invocation carries its method and reporting node.
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    processors.append(
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer(colors=False)
    )
    return processors


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_timestamp: bool = True,
) -> None:
    """Route structlog through the stdlib ``logging`` module on stderr.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Render events as JSON lines
        include_timestamp: Add an ISO timestamp to every event
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )

    structlog.configure(
        processors=build_processors(json_format, include_timestamp),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: Settings) -> None:
    """Configure logging from the ``LOG_LEVEL`` and ``LOG_JSON`` settings."""
    configure_logging(level=settings.log_level, json_format=settings.log_json)


def get_logger(name: Optional[str] = None, **context) -> structlog.BoundLogger:
    """Logger with ``context`` bound to every event it emits."""
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger


class LogContext:
    """Binds context variables for the duration of a block.

    Keys that were already bound outside the block get their outer values
    back on exit, so contexts nest.

    Usage:
        with LogContext(method="test_add", node="[0] 1, 2 (test_add)"):
            logger.info("Retrying failed invocation")
    """

    def __init__(self, **context):
        self.context = context
        self._manager = None

    def __enter__(self) -> "LogContext":
        self._manager = structlog.contextvars.bound_contextvars(**self.context)
        self._manager.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._manager is not None:
            self._manager.__exit__(exc_type, exc_val, exc_tb)
            self._manager = None
