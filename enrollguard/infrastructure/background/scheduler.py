# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler for periodic Dramatiq tasks.

APScheduler fires interval jobs that enqueue Dramatiq actors; the actors
do the work on the worker threads. Each job is registered with
``max_instances=1`` and ``coalesce=True`` so a late or missed firing
never enqueues a burst of runs.

Example:
    from enrollguard.infrastructure.background.scheduler import get_scheduler

    scheduler = get_scheduler()
    await scheduler.start()

    scheduler.add_interval_task(
        name="Enrollment Status Monitoring",
        actor_name="enrollment_status_job",
        hours=24,
        first_run_delay=timedelta(minutes=5),
    )
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from enrollguard.core.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ScheduledTask:
    """Configuration for a scheduled Dramatiq task.

    Attributes:
        id: Unique task identifier.
        name: Human-readable task name.
        actor_name: Name of the Dramatiq actor to call.
        args: Positional arguments for the actor.
        kwargs: Keyword arguments for the actor.
        enabled: Whether the task is enabled.
    """

    name: str
    actor_name: str
    args: tuple = field(default_factory=tuple)
    kwargs: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    enabled: bool = True


class DramatiqScheduler:
    """Scheduler for periodic Dramatiq task execution.

    Attributes:
        _scheduler: APScheduler instance.
        _tasks: Dictionary of scheduled tasks.
        _running: Whether scheduler is running.
    """

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._tasks: dict[str, ScheduledTask] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def _get_actor(self, actor_name: str) -> Callable[..., Any] | None:
        """Get a Dramatiq actor by name from the tasks package."""
        from enrollguard.infrastructure.background import tasks

        return getattr(tasks, actor_name, None)

    def add_interval_task(
        self,
        name: str,
        actor_name: str,
        seconds: int = 0,
        minutes: int = 0,
        hours: int = 0,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
        enabled: bool = True,
        first_run_delay: timedelta | None = None,
    ) -> ScheduledTask:
        """Add an interval-scheduled task.

        Args:
            name: Task name.
            actor_name: Dramatiq actor to call.
            seconds: Interval seconds.
            minutes: Interval minutes.
            hours: Interval hours.
            args: Actor arguments.
            kwargs: Actor keyword arguments.
            enabled: Whether task is enabled.
            first_run_delay: Delay before the first run. Defaults to one
                full interval.

        Returns:
            Created ScheduledTask.
        """
        task = ScheduledTask(
            name=name,
            actor_name=actor_name,
            args=args,
            kwargs=kwargs or {},
            enabled=enabled,
        )

        self._tasks[task.id] = task

        if self._scheduler and enabled:
            job_options: dict[str, Any] = {}
            if first_run_delay is not None:
                job_options["next_run_time"] = datetime.now(timezone.utc) + first_run_delay

            self._scheduler.add_job(
                self._execute_task,
                trigger=IntervalTrigger(seconds=seconds, minutes=minutes, hours=hours),
                args=[task.id],
                id=task.id,
                name=name,
                max_instances=1,
                coalesce=True,
                **job_options,
            )

        logger.info(
            "Added interval task: %s (every %dh %dm %ds)",
            name,
            hours,
            minutes,
            seconds,
        )
        return task

    async def _execute_task(self, task_id: str) -> None:
        """Send a scheduled task's actor to its queue.

        Args:
            task_id: ID of the task to execute.
        """
        task = self._tasks.get(task_id)
        if not task or not task.enabled:
            return

        logger.debug("Executing scheduled task: %s", task.name)

        try:
            actor = self._get_actor(task.actor_name)
            if actor is None:
                raise ValueError(f"Actor not found: {task.actor_name}")

            actor.send(*task.args, **task.kwargs)

            logger.debug("Scheduled task %s sent to queue", task.name)

        except Exception as e:
            logger.error("Scheduled task %s failed: %s", task.name, str(e))

    def list_tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    async def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            return

        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.start()
        self._running = True

        logger.info("Dramatiq scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Dramatiq scheduler stopped")



_scheduler: DramatiqScheduler | None = None


def get_scheduler() -> DramatiqScheduler:
    """Get the singleton scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = DramatiqScheduler()
    return _scheduler


async def start_scheduler(settings: "Settings | None" = None) -> DramatiqScheduler:
    """Start the scheduler and register the monitoring job.

    Args:
        settings: Application settings. Defaults to get_settings().

    Returns:
        Started scheduler instance.
    """
    if settings is None:
        from enrollguard.core.config import get_settings

        settings = get_settings()

    scheduler = get_scheduler()
    await scheduler.start()

    monitoring = settings.monitoring
    if monitoring.enabled:
        scheduler.add_interval_task(
            name="Enrollment Status Monitoring",
            actor_name="enrollment_status_job",
            hours=monitoring.interval_hours,
            first_run_delay=timedelta(minutes=monitoring.initial_delay_minutes),
        )
    else:
        logger.info("Enrollment monitoring disabled, no job registered")

    logger.info("Registered %d scheduled tasks", len(scheduler.list_tasks()))
    return scheduler


async def stop_scheduler() -> None:
    """Stop the scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None
