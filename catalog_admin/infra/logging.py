"""Structured logging for catalog-admin.

Every record carries the service name and environment. Catalog mutations and
image batches bind their operation name and the slugs/ids they touch through
`operation_context`, so each log line emitted while they run can be traced
back to the change that caused it.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from catalog_admin.config import settings

SERVICE_NAME = "catalog-admin"

# Loggers of libraries that are chatty at INFO
NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "httpx", "httpcore", "PIL", "multipart")


def add_service_context(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Stamp the service name and environment on every record."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def setup_logging() -> None:
    """Configure structlog and route stdlib logging to stdout.

    JSON lines outside dev (when log_json is set), colored console output
    otherwise.
    """
    use_json = settings.log_json and settings.environment != "dev"
    level = logging.getLevelName(settings.log_level.upper())

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Processor
    if use_json:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def operation_context(operation: str, **identifiers: Any) -> Iterator[None]:
    """Bind an operation name and its identifiers for the enclosed block.

    Identifiers that are None or empty are left out.

    Example:
        with operation_context("delete_category", slug="apparel"):
            logger.info("Category deleted")  # carries operation and slug
    """
    bound = {key: value for key, value in identifiers.items() if value not in (None, "")}
    with structlog.contextvars.bound_contextvars(operation=operation, **bound):
        yield


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (usually __name__)
        **initial_context: Initial context to bind to the logger

    Returns:
        Bound structlog logger
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
