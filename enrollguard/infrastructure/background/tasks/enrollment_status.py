# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment status monitoring tasks.

Tasks:
    - enrollment_status_job: Full monitoring cycle over all tenants,
      fired by the scheduler
    - check_tenant_enrollments: Monitoring pass over a single tenant,
      for manual triggering

Both tasks share one CycleGuard per worker process: while a cycle or a
tenant check is running, further invocations are skipped rather than
queued. Neither task retries; the next scheduled cycle picks up whatever
a failed run left behind.

Example:
    >>> from enrollguard.infrastructure.background.tasks import check_tenant_enrollments
    >>> check_tenant_enrollments.send(7)
"""

import logging
from typing import TYPE_CHECKING, Any

import dramatiq

from enrollguard.core.config import get_settings
from enrollguard.domains.enrollment.rules import build_rules
from enrollguard.domains.enrollment.tracker import (
    CycleGuard,
    EnrollmentStatusTracker,
    PaymentGateway,
)
from enrollguard.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from enrollguard.infrastructure.background.tasks.base import run_async
from enrollguard.infrastructure.database import EnrollmentRepository, get_worker_db_manager
from enrollguard.infrastructure.payments import AsaasClient

if TYPE_CHECKING:
    from enrollguard.core.config.settings import Settings

setup_dramatiq()

logger = logging.getLogger(__name__)

_cycle_guard = CycleGuard()


def get_cycle_guard() -> CycleGuard:
    """Get the process-wide monitoring guard."""
    return _cycle_guard


def build_status_tracker(
    gateway: PaymentGateway,
    settings: "Settings | None" = None,
) -> EnrollmentStatusTracker:
    """Build a tracker bound to the current worker thread's database.

    Args:
        gateway: Payment gateway client.
        settings: Application settings. Defaults to get_settings().

    Returns:
        Tracker sharing the process-wide guard.
    """
    settings = settings or get_settings()
    return EnrollmentStatusTracker(
        repository=EnrollmentRepository(get_worker_db_manager()),
        gateway=gateway,
        rules=build_rules(settings.monitoring),
        guard=_cycle_guard,
    )


async def execute_status_cycle() -> dict[str, Any]:
    """Run one monitoring cycle.

    Returns:
        Cycle report as a dict, or a skipped/disabled status.
    """
    settings = get_settings()
    if not settings.monitoring.enabled:
        logger.info("Enrollment monitoring is disabled in settings")
        return {"status": "disabled"}

    async with AsaasClient(settings.asaas) as gateway:
        tracker = build_status_tracker(gateway, settings)
        report = await tracker.run_cycle()

    if report is None:
        return {"status": "skipped"}
    return report.to_dict()


async def execute_tenant_check(tenant_id: int) -> dict[str, Any]:
    """Run the monitoring pass for one tenant.

    Args:
        tenant_id: Tenant to scan.

    Returns:
        Tenant report as a dict, or a skipped/disabled status.
    """
    settings = get_settings()
    if not settings.monitoring.enabled:
        logger.info("Enrollment monitoring is disabled in settings")
        return {"status": "disabled", "tenant_id": tenant_id}

    with _cycle_guard.hold() as acquired:
        if not acquired:
            logger.warning(
                "Enrollment monitoring already running, skipping tenant %s",
                tenant_id,
            )
            return {"status": "skipped", "tenant_id": tenant_id}

        async with AsaasClient(settings.asaas) as gateway:
            tracker = build_status_tracker(gateway, settings)
            report = await tracker.process_tenant(tenant_id)

    return {"status": "completed", **report.to_dict()}


@dramatiq.actor(
    queue_name=Queues.ENROLLMENT,
    max_retries=0,
    time_limit=3600000,  # 1 hour
    priority=Priority.NORMAL,
)
def enrollment_status_job() -> dict[str, Any]:
    """Scheduler job: run the enrollment monitoring cycle.

    Returns:
        Cycle report.
    """
    logger.info("Enrollment status job triggered")

    try:
        result = run_async(execute_status_cycle())
        logger.info(
            "Enrollment status job %s: %d transitions",
            result.get("status"),
            result.get("transitioned", 0),
        )
        return result
    except Exception as e:
        logger.error("Enrollment status job failed: %s", e, exc_info=True)
        return {"status": "failed", "error": str(e)}


@dramatiq.actor(
    queue_name=Queues.ENROLLMENT,
    max_retries=0,
    time_limit=600000,  # 10 minutes
    priority=Priority.HIGH,
)
def check_tenant_enrollments(tenant_id: int) -> dict[str, Any]:
    """Run the enrollment monitoring pass for a single tenant.

    Args:
        tenant_id: Tenant to scan.

    Returns:
        Tenant report.
    """
    logger.info("Checking enrollments of tenant %s", tenant_id)

    try:
        return run_async(execute_tenant_check(tenant_id))
    except Exception as e:
        logger.error("Tenant %s enrollment check failed: %s", tenant_id, e, exc_info=True)
        return {"status": "failed", "tenant_id": tenant_id, "error": str(e)}


def get_enrollment_actors() -> list:
    """Get all enrollment monitoring actors."""
    return [
        enrollment_status_job,
        check_tenant_enrollments,
    ]
