# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment status tracker.

Periodic monitoring of simplified enrollments. Each cycle walks every
tenant, evaluates each monitored enrollment against the rule table and
applies the transition that fires, then evaluates again for the new
status until no rule fires. Each transition is applied as:

1. Status write (refused if the stored status changed since the scan)
2. Billing side effect through the payment gateway
3. Cascade to the matching formal enrollment

Failures are contained per enrollment: a gateway or storage error is
logged and counted, and the loop moves on. Overlapping cycles are
prevented by a CycleGuard; a cycle that finds the guard taken is skipped.

Example:
    tracker = EnrollmentStatusTracker(
        repository=EnrollmentRepository(db),
        gateway=AsaasClient(settings.asaas),
        rules=build_rules(settings.monitoring),
    )
    report = await tracker.run_cycle()
"""

import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from enrollguard.domains.enrollment.exceptions import StaleEnrollmentStateError
from enrollguard.domains.enrollment.rules import (
    HasDueDate,
    RuleClock,
    SideEffect,
    TransitionRule,
    monitored_statuses,
    oldest_overdue_age,
)
from enrollguard.domains.enrollment.status import (
    CASCADED_STATUSES,
    FormalEnrollmentStatus,
    SimplifiedEnrollmentStatus,
)
from enrollguard.utils.datetime import days_between, format_iso, utc_now
from enrollguard.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)


class EnrollmentStore(Protocol):
    """Storage operations the tracker depends on."""

    async def list_tenant_ids(self) -> list[int]: ...

    async def list_by_status(
        self,
        tenant_id: int,
        statuses: Iterable[SimplifiedEnrollmentStatus],
    ) -> list[Any]: ...

    async def update_status(
        self,
        enrollment_id: int,
        status: SimplifiedEnrollmentStatus,
        extra: dict[str, Any] | None = None,
        expected: SimplifiedEnrollmentStatus | None = None,
    ) -> Any: ...

    async def find_formal_enrollments(self, student_id: int, course_id: int) -> list[Any]: ...

    async def update_formal_status(
        self,
        enrollment_id: int,
        status: FormalEnrollmentStatus,
    ) -> Any: ...


class PaymentGateway(Protocol):
    """Payment gateway operations the tracker depends on."""

    async def get_overdue_payments_by_customer(self, customer_id: str) -> Sequence[HasDueDate]: ...

    async def cancel_payment(self, payment_id: str) -> bool: ...

    async def cancel_future_payments(self, customer_id: str) -> int: ...


class CycleGuard:
    """Non-blocking guard against overlapping monitoring cycles.

    Shared by every tracker of a worker process; acquiring never waits.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """Try to take the guard for the duration of a block.

        Yields:
            True if the guard was acquired, False if it was busy.
        """
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()


@dataclass(frozen=True)
class StatusChange:
    """A transition decided for one enrollment.

    Attributes:
        enrollment_id: Simplified enrollment id.
        tenant_id: Owning tenant.
        from_status: Status observed during the scan.
        to_status: Status the rule moves the enrollment to.
        rule: Name of the rule that fired.
        elapsed_days: Value of the rule's clock when it fired.
        side_effect: Billing action attached to the rule.
    """

    enrollment_id: int
    tenant_id: int
    from_status: SimplifiedEnrollmentStatus
    to_status: SimplifiedEnrollmentStatus
    rule: str
    elapsed_days: int
    side_effect: SideEffect = SideEffect.NONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "enrollment_id": self.enrollment_id,
            "tenant_id": self.tenant_id,
            "from_status": self.from_status.value,
            "to_status": self.to_status.value,
            "rule": self.rule,
            "elapsed_days": self.elapsed_days,
            "side_effect": self.side_effect.value,
        }


@dataclass
class TenantReport:
    """Outcome of scanning one tenant."""

    tenant_id: int
    scanned: int = 0
    failed: int = 0
    skipped: int = 0
    cascaded: int = 0
    billing_failures: int = 0
    changes: list[StatusChange] = field(default_factory=list)
    error: str | None = None

    @property
    def transitioned(self) -> int:
        return len(self.changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "scanned": self.scanned,
            "transitioned": self.transitioned,
            "failed": self.failed,
            "skipped": self.skipped,
            "cascaded": self.cascaded,
            "billing_failures": self.billing_failures,
            "changes": [change.to_dict() for change in self.changes],
            "error": self.error,
        }


@dataclass
class CycleReport:
    """Outcome of one monitoring cycle across all tenants."""

    started_at: datetime
    finished_at: datetime | None = None
    tenants: list[TenantReport] = field(default_factory=list)
    error: str | None = None

    @property
    def tenants_scanned(self) -> int:
        return len(self.tenants)

    @property
    def transitioned(self) -> int:
        return sum(t.transitioned for t in self.tenants)

    @property
    def failed(self) -> int:
        return sum(t.failed for t in self.tenants)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "failed" if self.error else "completed",
            "started_at": format_iso(self.started_at),
            "finished_at": format_iso(self.finished_at),
            "tenants_scanned": self.tenants_scanned,
            "transitioned": self.transitioned,
            "failed": self.failed,
            "tenants": [t.to_dict() for t in self.tenants],
            "error": self.error,
        }


class _OverdueAge:
    """Oldest overdue age of one customer, fetched at most once."""

    def __init__(self, gateway: PaymentGateway, customer_id: str | None) -> None:
        self._gateway = gateway
        self.customer_id = customer_id
        self._loaded = False
        self._age: int | None = None

    async def get(self, now: datetime) -> int | None:
        if not self._loaded:
            payments = await self._gateway.get_overdue_payments_by_customer(self.customer_id)
            self._age = oldest_overdue_age(payments, now)
            self._loaded = True
        return self._age


class EnrollmentStatusTracker:
    """Applies the transition rules to every tenant's enrollments.

    Attributes:
        rules: Rule table in evaluation order.
        guard: Guard shared with other trackers of the process.
    """

    def __init__(
        self,
        repository: EnrollmentStore,
        gateway: PaymentGateway,
        rules: Sequence[TransitionRule],
        guard: CycleGuard | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the tracker.

        Args:
            repository: Enrollment storage.
            gateway: Payment gateway client.
            rules: Rule table, time-based rules first.
            guard: Overlap guard. A private guard is created if omitted.
            clock: Source of the current time.
        """
        self._repository = repository
        self._gateway = gateway
        self.rules = tuple(rules)
        self.guard = guard or CycleGuard()
        self._clock = clock
        self._statuses = monitored_statuses(self.rules)

    async def run_cycle(self) -> CycleReport | None:
        """Run one monitoring cycle over all tenants.

        Returns:
            Cycle report, or None if another cycle holds the guard.
        """
        with self.guard.hold() as acquired:
            if not acquired:
                logger.warning("Enrollment status cycle already running, skipping")
                return None

            report = CycleReport(started_at=self._clock())
            logger.info("Enrollment status cycle started")

            try:
                tenant_ids = await self._repository.list_tenant_ids()
            except Exception as e:
                logger.error("Enrollment status cycle failed: %s", e, exc_info=True)
                report.error = str(e)
                report.finished_at = self._clock()
                return report

            for tenant_id in tenant_ids:
                try:
                    report.tenants.append(await self.process_tenant(tenant_id))
                except Exception as e:
                    logger.error(
                        "Failed to scan enrollments of tenant %s: %s",
                        tenant_id,
                        e,
                        exc_info=True,
                    )
                    report.tenants.append(TenantReport(tenant_id=tenant_id, error=str(e)))

            report.finished_at = self._clock()
            logger.info(
                "Enrollment status cycle finished: %d tenants, %d transitions, %d failures",
                report.tenants_scanned,
                report.transitioned,
                report.failed,
            )
            return report

    async def process_tenant(self, tenant_id: int) -> TenantReport:
        """Evaluate and transition one tenant's monitored enrollments.

        Per-enrollment failures are counted, not raised.

        Raises:
            Exception: If the tenant's enrollments cannot be listed.
        """
        report = TenantReport(tenant_id=tenant_id)
        bind_context(tenant_id=tenant_id)
        try:
            enrollments = await self._repository.list_by_status(tenant_id, self._statuses)
            now = self._clock()

            for enrollment in enrollments:
                report.scanned += 1
                try:
                    await self._advance(enrollment, now, report)
                except StaleEnrollmentStateError as e:
                    report.skipped += 1
                    logger.info("Skipping enrollment %s: %s", enrollment.id, e)
                except Exception as e:
                    report.failed += 1
                    logger.error(
                        "Failed to process enrollment %s: %s",
                        enrollment.id,
                        e,
                        exc_info=True,
                    )

            logger.info(
                "Tenant %s: %d scanned, %d transitioned, %d failed",
                tenant_id,
                report.scanned,
                report.transitioned,
                report.failed,
            )
            return report
        finally:
            clear_context()

    async def _advance(self, enrollment: Any, now: datetime, report: TenantReport) -> None:
        """Apply transitions to one enrollment until no rule fires.

        After each transition the rules are evaluated again for the new
        status, with the update clock restarted at ``now`` and the overdue
        age reused, so a lapsed payment can suspend and cancel in one pass.
        """
        status = SimplifiedEnrollmentStatus(enrollment.status)
        updated_at = enrollment.updated_at
        overdue = _OverdueAge(self._gateway, enrollment.asaas_customer_id)

        # Statuses only move forward, so each rule fires at most once
        for _ in range(len(self.rules)):
            change = await self._decide(enrollment, status, updated_at, now, overdue)
            if change is None:
                return
            await self._apply(enrollment, change, report)
            report.changes.append(change)
            status, updated_at = change.to_status, now

    async def evaluate(self, enrollment: Any, now: datetime) -> StatusChange | None:
        """Decide the next transition for an enrollment, if any.

        Rules are tried in order and the first that fires wins. The
        customer's overdue payments are fetched only when a payment-based
        rule is reached, and at most once.

        Args:
            enrollment: Simplified enrollment.
            now: Reference instant.

        Returns:
            The decided change, or None if no rule fires.

        Raises:
            PaymentGatewayError: If the overdue lookup fails.
        """
        return await self._decide(
            enrollment,
            SimplifiedEnrollmentStatus(enrollment.status),
            enrollment.updated_at,
            now,
            _OverdueAge(self._gateway, enrollment.asaas_customer_id),
        )

    async def _decide(
        self,
        enrollment: Any,
        status: SimplifiedEnrollmentStatus,
        updated_at: datetime | None,
        now: datetime,
        overdue: _OverdueAge,
    ) -> StatusChange | None:
        for rule in self.rules:
            if not rule.applies_to(status):
                continue

            if rule.clock.needs_gateway:
                if not overdue.customer_id:
                    continue
                elapsed = await overdue.get(now)
            elif rule.clock is RuleClock.CREATED_AT:
                elapsed = self._days_since(enrollment.created_at, now)
            else:
                elapsed = self._days_since(updated_at, now)

            if rule.fires(elapsed):
                return StatusChange(
                    enrollment_id=enrollment.id,
                    tenant_id=enrollment.tenant_id,
                    from_status=status,
                    to_status=rule.to_status,
                    rule=rule.name,
                    elapsed_days=elapsed,
                    side_effect=rule.side_effect,
                )

        return None

    @staticmethod
    def _days_since(reference: datetime | None, now: datetime) -> int | None:
        if reference is None:
            return None
        return days_between(reference, now)

    async def _apply(self, enrollment: Any, change: StatusChange, report: TenantReport) -> None:
        await self._repository.update_status(
            change.enrollment_id,
            change.to_status,
            expected=change.from_status,
        )
        logger.info(
            "Enrollment %s moved %s -> %s by %s (%d days)",
            change.enrollment_id,
            change.from_status.value,
            change.to_status.value,
            change.rule,
            change.elapsed_days,
        )

        report.billing_failures += await self._cancel_billing(enrollment, change.side_effect)
        report.cascaded += await self._cascade(enrollment, change.to_status)

    async def _cancel_billing(self, enrollment: Any, side_effect: SideEffect) -> int:
        """Run a rule's billing side effect. Returns the number of failed calls."""
        if side_effect is SideEffect.NONE:
            return 0

        failures = 0
        if side_effect is SideEffect.CANCEL_BILLING and enrollment.asaas_payment_id:
            try:
                await self._gateway.cancel_payment(enrollment.asaas_payment_id)
            except Exception as e:
                failures += 1
                logger.error(
                    "Failed to cancel payment %s of enrollment %s: %s",
                    enrollment.asaas_payment_id,
                    enrollment.id,
                    e,
                )

        if enrollment.asaas_customer_id:
            try:
                cancelled = await self._gateway.cancel_future_payments(enrollment.asaas_customer_id)
                logger.info(
                    "Cancelled %d future payments of enrollment %s",
                    cancelled,
                    enrollment.id,
                )
            except Exception as e:
                failures += 1
                logger.error(
                    "Failed to cancel future payments of enrollment %s: %s",
                    enrollment.id,
                    e,
                )

        return failures

    async def _cascade(self, enrollment: Any, status: SimplifiedEnrollmentStatus) -> int:
        """Mirror a status onto the formal enrollments. Returns how many changed."""
        formal_status = CASCADED_STATUSES.get(status)
        if formal_status is None or enrollment.student_id is None:
            return 0

        updated = 0
        try:
            formal_enrollments = await self._repository.find_formal_enrollments(
                enrollment.student_id,
                enrollment.course_id,
            )
            for formal in formal_enrollments:
                current = FormalEnrollmentStatus(formal.status)
                if current == formal_status or current == FormalEnrollmentStatus.CANCELLED:
                    continue
                await self._repository.update_formal_status(formal.id, formal_status)
                updated += 1
        except Exception as e:
            logger.error(
                "Failed to cascade %s to formal enrollments of enrollment %s: %s",
                status.value,
                enrollment.id,
                e,
                exc_info=True,
            )
        return updated
