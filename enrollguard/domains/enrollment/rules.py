# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Transition rules of the enrollment monitoring job.

Each rule reads one clock for an enrollment (days since creation, days
since the last update, or the age of the customer's oldest overdue
payment) and fires when it reaches a threshold. The tracker evaluates the
rules in order and applies the first one that matches, then evaluates
them again for the new status, so one cycle can both suspend and cancel.

Rules are ordered so that every time-based rule comes before every
payment-based rule; payment-based rules need a gateway lookup and the
tracker performs it lazily.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from enrollguard.domains.enrollment.status import SimplifiedEnrollmentStatus
from enrollguard.utils.datetime import days_since_date

if TYPE_CHECKING:
    from enrollguard.core.config.settings import MonitoringSettings


class RuleClock(str, Enum):
    """What a rule measures elapsed days from."""

    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    OLDEST_OVERDUE = "oldest_overdue"

    @property
    def needs_gateway(self) -> bool:
        return self is RuleClock.OLDEST_OVERDUE


class SideEffect(str, Enum):
    """Billing action taken with a transition."""

    NONE = "none"
    # The enrollment's own payment, then the customer's future payments
    CANCEL_BILLING = "cancel_billing"
    CANCEL_FUTURE_PAYMENTS = "cancel_future_payments"


@dataclass(frozen=True)
class TransitionRule:
    """A single row of the rule table.

    Attributes:
        name: Identifier used in logs and reports.
        from_statuses: Statuses the rule applies to.
        clock: Reference the elapsed days are measured from.
        threshold_days: Minimum elapsed days for the rule to fire.
        to_status: Status the enrollment is moved to.
        side_effect: Billing action performed with the transition.
    """

    name: str
    from_statuses: frozenset[SimplifiedEnrollmentStatus]
    clock: RuleClock
    threshold_days: int
    to_status: SimplifiedEnrollmentStatus
    side_effect: SideEffect = SideEffect.NONE

    def applies_to(self, status: SimplifiedEnrollmentStatus | str) -> bool:
        return SimplifiedEnrollmentStatus(status) in self.from_statuses

    def fires(self, elapsed_days: int | None) -> bool:
        return elapsed_days is not None and elapsed_days >= self.threshold_days


class HasDueDate(Protocol):
    due_date: date


def build_rules(settings: "MonitoringSettings") -> tuple[TransitionRule, ...]:
    """Build the rule table from monitoring settings.

    Args:
        settings: Monitoring thresholds.

    Returns:
        Rules in evaluation order.
    """
    S = SimplifiedEnrollmentStatus
    return (
        TransitionRule(
            name="no_first_payment",
            from_statuses=frozenset({S.PENDING, S.WAITING_PAYMENT}),
            clock=RuleClock.CREATED_AT,
            threshold_days=settings.first_payment_grace_days,
            to_status=S.SUSPENDED,
        ),
        TransitionRule(
            name="suspension_timeout",
            from_statuses=frozenset({S.SUSPENDED}),
            clock=RuleClock.UPDATED_AT,
            threshold_days=settings.suspension_timeout_days,
            to_status=S.CANCELLED,
            side_effect=SideEffect.CANCEL_BILLING,
        ),
        TransitionRule(
            name="payment_lapse",
            from_statuses=frozenset({S.PAYMENT_CONFIRMED, S.COMPLETED}),
            clock=RuleClock.OLDEST_OVERDUE,
            threshold_days=settings.overdue_suspension_days,
            to_status=S.SUSPENDED,
        ),
        TransitionRule(
            name="long_term_delinquency",
            from_statuses=frozenset({S.SUSPENDED}),
            clock=RuleClock.OLDEST_OVERDUE,
            threshold_days=settings.overdue_cancellation_days,
            to_status=S.CANCELLED,
            side_effect=SideEffect.CANCEL_FUTURE_PAYMENTS,
        ),
    )


def monitored_statuses(rules: Iterable[TransitionRule]) -> frozenset[SimplifiedEnrollmentStatus]:
    """Union of the statuses any rule applies to."""
    statuses: set[SimplifiedEnrollmentStatus] = set()
    for rule in rules:
        statuses |= rule.from_statuses
    return frozenset(statuses)


def oldest_overdue_age(payments: Iterable[HasDueDate], now: datetime) -> int | None:
    """Age in days of the overdue payment with the earliest due date.

    Args:
        payments: Overdue payments of one customer.
        now: Reference instant; its UTC date is compared to the due dates.

    Returns:
        Days since the earliest due date, or None if there are no payments.
    """
    due_dates = [p.due_date for p in payments]
    if not due_dates:
        return None
    return days_since_date(min(due_dates), now)
