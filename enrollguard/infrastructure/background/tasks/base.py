# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Base utilities for Dramatiq tasks.

Thread-Local Event Loop Management:
    Dramatiq workers run actors on several threads. SQLAlchemy async
    engines and asyncpg connections are bound to the event loop that
    created them, so each worker thread keeps one persistent loop and
    reuses it for every task it runs. When a thread gets a new loop, the
    thread's cached database engine is dropped so it is rebuilt on the
    new loop.
"""

import asyncio
import logging
import threading
from typing import Any, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_thread_local = threading.local()


def _get_thread_event_loop() -> asyncio.AbstractEventLoop:
    """Get or create a persistent event loop for the current thread.

    Returns:
        Event loop for current thread.
    """
    loop = getattr(_thread_local, "event_loop", None)

    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.event_loop = loop

        # Import here to avoid circular imports
        from enrollguard.infrastructure.database.connection import (
            _clear_thread_db_connections,
        )

        _clear_thread_db_connections()

        logger.debug(
            "Created new event loop for thread %s",
            threading.current_thread().name,
        )

    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run async coroutine in sync Dramatiq worker context.

    Args:
        coro: Coroutine to run.

    Returns:
        Result of coroutine.

    Example:
        @dramatiq.actor
        def my_task(tenant_id: int):
            async def _process():
                repository = EnrollmentRepository(get_worker_db_manager())
                return await repository.list_by_status(tenant_id, statuses)
            return run_async(_process())
    """
    loop = _get_thread_event_loop()
    return loop.run_until_complete(coro)
