# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worker process entrypoint.

Boots logging, the Dramatiq broker, an in-process Dramatiq worker and the
scheduler that fires the enrollment monitoring cycle, then runs until
SIGINT/SIGTERM.

Usage:
    python -m enrollguard.worker
"""

import asyncio
import logging
import signal

import dramatiq

from enrollguard.core.config import Settings, get_settings
from enrollguard.infrastructure.background import (
    setup_dramatiq,
    shutdown_dramatiq,
    start_scheduler,
    stop_scheduler,
)
from enrollguard.infrastructure.database import DatabaseManager
from enrollguard.utils.logging import setup_logging

logger = logging.getLogger(__name__)


async def run(settings: Settings, stop_event: asyncio.Event | None = None) -> None:
    """Run the worker until stop_event is set.

    Args:
        settings: Application settings.
        stop_event: Event that ends the run. Signal handlers set it when
            omitted.
    """
    if stop_event is None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

    db = DatabaseManager(settings)
    if await db.check_connection():
        logger.info("Database connection OK")
    else:
        logger.warning("Database unreachable at startup, cycles will retry on schedule")
    await db.close()

    broker = setup_dramatiq()
    # Registers the actors with the broker
    from enrollguard.infrastructure.background import tasks  # noqa: F401

    worker = dramatiq.Worker(broker, worker_threads=settings.worker.threads)
    worker.start()
    logger.info("Dramatiq worker started with %d threads", settings.worker.threads)

    try:
        await start_scheduler(settings)
        await stop_event.wait()
    finally:
        logger.info("Shutting down worker")
        await stop_scheduler()
        worker.stop()
        shutdown_dramatiq()


def main() -> None:
    """Console entrypoint."""
    settings = get_settings()
    setup_logging(settings)
    logger.info("Starting enrollguard worker (%s)", settings.environment)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
