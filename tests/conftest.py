# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

Provides in-memory stand-ins for the enrollment repository and the
payment gateway, a controllable clock and an enrollment factory, so the
monitoring tracker can be exercised without PostgreSQL or Asaas.
"""

import os

# Actor modules set up the broker at import time
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")

from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from enrollguard.core.config import MonitoringSettings
from enrollguard.domains.enrollment.exceptions import (
    EnrollmentNotFoundError,
    InvalidStatusTransitionError,
    StaleEnrollmentStateError,
)
from enrollguard.domains.enrollment.rules import build_rules
from enrollguard.domains.enrollment.status import (
    FormalEnrollmentStatus,
    SimplifiedEnrollmentStatus,
    can_transition,
)
from enrollguard.domains.enrollment.tracker import EnrollmentStatusTracker
from enrollguard.infrastructure.payments import PaymentGatewayError


# =============================================================================
# Clock
# =============================================================================


NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock; call it to read the current time."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# =============================================================================
# In-memory collaborators
# =============================================================================


class FakeEnrollmentStore:
    """In-memory repository with the semantics of EnrollmentRepository."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.tenants: dict[int, list[SimpleNamespace]] = {}
        self.formal: list[SimpleNamespace] = []
        self.calls: list[tuple[str, tuple]] = []
        self.failing_updates: set[int] = set()
        self.failing_tenants: set[int] = set()
        self.stale: set[int] = set()
        self.fail_tenant_listing = False

    def add(self, enrollment: SimpleNamespace) -> SimpleNamespace:
        self.tenants.setdefault(enrollment.tenant_id, []).append(enrollment)
        return enrollment

    def add_formal(self, **fields: Any) -> SimpleNamespace:
        formal = SimpleNamespace(
            id=len(self.formal) + 1,
            status=FormalEnrollmentStatus.ACTIVE,
            **fields,
        )
        self.formal.append(formal)
        return formal

    def get(self, enrollment_id: int) -> SimpleNamespace:
        for enrollments in self.tenants.values():
            for enrollment in enrollments:
                if enrollment.id == enrollment_id:
                    return enrollment
        raise EnrollmentNotFoundError(enrollment_id)

    async def list_tenant_ids(self) -> list[int]:
        self.calls.append(("list_tenant_ids", ()))
        if self.fail_tenant_listing:
            raise RuntimeError("database unavailable")
        return sorted(self.tenants)

    async def list_by_status(
        self,
        tenant_id: int,
        statuses: Iterable[SimplifiedEnrollmentStatus],
    ) -> list[SimpleNamespace]:
        wanted = set(statuses)
        self.calls.append(("list_by_status", (tenant_id, frozenset(wanted))))
        if tenant_id in self.failing_tenants:
            raise RuntimeError(f"cannot list tenant {tenant_id}")
        return [e for e in self.tenants.get(tenant_id, []) if e.status in wanted]

    async def update_status(
        self,
        enrollment_id: int,
        status: SimplifiedEnrollmentStatus,
        extra: dict[str, Any] | None = None,
        expected: SimplifiedEnrollmentStatus | None = None,
    ) -> SimpleNamespace:
        self.calls.append(("update_status", (enrollment_id, status, expected)))
        if enrollment_id in self.failing_updates:
            raise RuntimeError("write failed")

        enrollment = self.get(enrollment_id)
        if enrollment_id in self.stale:
            raise StaleEnrollmentStateError(
                enrollment_id,
                expected.value if expected else "",
                SimplifiedEnrollmentStatus.PAYMENT_CONFIRMED.value,
            )
        if expected is not None and enrollment.status != expected:
            raise StaleEnrollmentStateError(enrollment_id, expected.value, enrollment.status.value)
        if not can_transition(enrollment.status, status):
            raise InvalidStatusTransitionError(enrollment_id, enrollment.status.value, status.value)

        enrollment.status = status
        enrollment.updated_at = self.clock()
        if status == SimplifiedEnrollmentStatus.CANCELLED:
            enrollment.cancelled_at = self.clock()
        for field, value in (extra or {}).items():
            setattr(enrollment, field, value)
        return enrollment

    async def find_formal_enrollments(self, student_id: int, course_id: int) -> list[SimpleNamespace]:
        self.calls.append(("find_formal_enrollments", (student_id, course_id)))
        return [
            f for f in self.formal if f.student_id == student_id and f.course_id == course_id
        ]

    async def update_formal_status(
        self,
        enrollment_id: int,
        status: FormalEnrollmentStatus,
    ) -> SimpleNamespace:
        self.calls.append(("update_formal_status", (enrollment_id, status)))
        for formal in self.formal:
            if formal.id == enrollment_id:
                formal.status = status
                return formal
        raise EnrollmentNotFoundError(enrollment_id, kind="formal")

    def calls_to(self, method: str) -> list[tuple]:
        return [args for name, args in self.calls if name == method]


class FakeGateway:
    """In-memory payment gateway recording every call."""

    def __init__(self) -> None:
        self.overdue: dict[str, list[SimpleNamespace]] = {}
        self.lookup_errors: dict[str, Exception] = {}
        self.cancel_errors: dict[str, Exception] = {}
        self.future_errors: dict[str, Exception] = {}
        self.overdue_lookups: list[str] = []
        self.cancelled_payments: list[str] = []
        self.future_cancellations: list[str] = []

    def set_overdue(self, customer_id: str, *due_dates: date) -> None:
        self.overdue[customer_id] = [
            SimpleNamespace(id=f"pay_{i}", customer=customer_id, due_date=d)
            for i, d in enumerate(due_dates)
        ]

    async def get_overdue_payments_by_customer(self, customer_id: str) -> list[SimpleNamespace]:
        self.overdue_lookups.append(customer_id)
        if customer_id in self.lookup_errors:
            raise self.lookup_errors[customer_id]
        return self.overdue.get(customer_id, [])

    async def cancel_payment(self, payment_id: str) -> bool:
        if payment_id in self.cancel_errors:
            raise self.cancel_errors[payment_id]
        self.cancelled_payments.append(payment_id)
        return True

    async def cancel_future_payments(self, customer_id: str) -> int:
        if customer_id in self.future_errors:
            raise self.future_errors[customer_id]
        self.future_cancellations.append(customer_id)
        return 2


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Provide a clock frozen at NOW."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> FakeEnrollmentStore:
    """Provide an empty in-memory enrollment store."""
    return FakeEnrollmentStore(clock)


@pytest.fixture
def gateway() -> FakeGateway:
    """Provide an in-memory payment gateway."""
    return FakeGateway()


@pytest.fixture
def monitoring_settings() -> MonitoringSettings:
    """Provide default monitoring thresholds (10/30/30/90 days)."""
    return MonitoringSettings()


@pytest.fixture
def tracker(
    store: FakeEnrollmentStore,
    gateway: FakeGateway,
    clock: FakeClock,
    monitoring_settings: MonitoringSettings,
) -> EnrollmentStatusTracker:
    """Provide a tracker wired to the in-memory collaborators."""
    return EnrollmentStatusTracker(
        repository=store,
        gateway=gateway,
        rules=build_rules(monitoring_settings),
        clock=clock,
    )


@pytest.fixture
def make_enrollment(store: FakeEnrollmentStore, clock: FakeClock):
    """Factory adding a simplified enrollment to the store.

    Ages are given in days relative to the clock.
    """
    counter = iter(range(1, 10_000))

    def _make(
        status: SimplifiedEnrollmentStatus = SimplifiedEnrollmentStatus.PENDING,
        tenant_id: int = 1,
        created_days_ago: float = 0,
        updated_days_ago: float | None = None,
        customer_id: str | None = None,
        payment_id: str | None = None,
        student_id: int | None = None,
        course_id: int = 100,
    ) -> SimpleNamespace:
        created_at = clock() - timedelta(days=created_days_ago)
        if updated_days_ago is None:
            updated_at = created_at
        else:
            updated_at = clock() - timedelta(days=updated_days_ago)
        return store.add(
            SimpleNamespace(
                id=next(counter),
                tenant_id=tenant_id,
                course_id=course_id,
                student_id=student_id,
                status=status,
                created_at=created_at,
                updated_at=updated_at,
                cancelled_at=None,
                asaas_customer_id=customer_id,
                asaas_payment_id=payment_id,
            )
        )

    return _make


@pytest.fixture
def gateway_error() -> PaymentGatewayError:
    """Provide a representative gateway failure."""
    return PaymentGatewayError("List OVERDUE payments failed: unavailable", status_code=503)


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
