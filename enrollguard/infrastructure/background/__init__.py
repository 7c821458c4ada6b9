# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task infrastructure for enrollguard.

- Redis broker (StubBroker in test mode)
- Enrollment monitoring actors
- APScheduler integration for the periodic monitoring cycle

Running Workers:
    dramatiq enrollguard.infrastructure.background.tasks --processes 1 --threads 2

Scheduler:
    from enrollguard.infrastructure.background import start_scheduler, stop_scheduler

    await start_scheduler()
    await stop_scheduler()
"""

from enrollguard.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    get_broker_manager,
    setup_dramatiq,
    shutdown_dramatiq,
)
from enrollguard.infrastructure.background.scheduler import (
    DramatiqScheduler,
    ScheduledTask,
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)

# Tasks are imported lazily to avoid circular imports:
# from enrollguard.infrastructure.background.tasks import enrollment_status_job

__all__ = [
    # Broker
    "BrokerManager",
    "Priority",
    "Queues",
    "get_broker_manager",
    "setup_dramatiq",
    "shutdown_dramatiq",
    # Scheduler
    "DramatiqScheduler",
    "ScheduledTask",
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
]
