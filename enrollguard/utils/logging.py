# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

Logs are formatted as JSON in production and as colored console output
in development. The monitoring job binds the tenant being scanned into
the logging context so every line of a tenant's batch carries it.

Example:
    >>> import logging
    >>> from enrollguard.utils.logging import setup_logging
    >>> from enrollguard.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> logger = logging.getLogger(__name__)
    >>> logger.info("Cycle finished for %d tenants", 3)
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from enrollguard.core.config.settings import Settings


def setup_logging(settings: "Settings") -> None:
    """Configure structured logging for the worker.

    Sets up structlog with appropriate processors based on environment:
    - Development: Colored console output with pretty formatting
    - Production: JSON output for log aggregation

    Args:
        settings: Application settings containing log_level and debug flag.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.debug:
        processors: list[Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Also configure standard library logging
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    # Third-party loggers stay at WARNING
    for logger_name in [
        "httpx",
        "httpcore",
        "sqlalchemy",
        "asyncio",
        "apscheduler",
        "dramatiq",
    ]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("enrollguard").setLevel(log_level)


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log calls in this context.

    Args:
        **kwargs: Key-value pairs to bind to the logging context.

    Example:
        >>> bind_context(tenant_id=7)
        >>> logger.info("Scanning enrollments")  # includes tenant_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables.

    Called when a tenant's scan ends so the next tenant starts clean.
    """
    structlog.contextvars.clear_contextvars()
