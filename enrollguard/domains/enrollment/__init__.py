# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment lifecycle domain.

Statuses and the transition table, the monitoring rule table, the status
tracker and payment notification handling.
"""

from enrollguard.domains.enrollment.exceptions import (
    EnrollmentError,
    EnrollmentNotFoundError,
    InvalidStatusTransitionError,
    StaleEnrollmentStateError,
)
from enrollguard.domains.enrollment.payment_events import (
    PaymentEvent,
    apply_payment_event,
    parse_enrollment_reference,
)
from enrollguard.domains.enrollment.rules import (
    RuleClock,
    SideEffect,
    TransitionRule,
    build_rules,
    monitored_statuses,
    oldest_overdue_age,
)
from enrollguard.domains.enrollment.status import (
    ALLOWED_TRANSITIONS,
    CASCADED_STATUSES,
    FormalEnrollmentStatus,
    SimplifiedEnrollmentStatus,
    can_transition,
    is_terminal,
)
from enrollguard.domains.enrollment.tracker import (
    CycleGuard,
    CycleReport,
    EnrollmentStatusTracker,
    StatusChange,
    TenantReport,
)

__all__ = [
    # Exceptions
    "EnrollmentError",
    "EnrollmentNotFoundError",
    "InvalidStatusTransitionError",
    "StaleEnrollmentStateError",
    # Status
    "SimplifiedEnrollmentStatus",
    "FormalEnrollmentStatus",
    "ALLOWED_TRANSITIONS",
    "CASCADED_STATUSES",
    "can_transition",
    "is_terminal",
    # Rules
    "RuleClock",
    "SideEffect",
    "TransitionRule",
    "build_rules",
    "monitored_statuses",
    "oldest_overdue_age",
    # Tracker
    "CycleGuard",
    "CycleReport",
    "EnrollmentStatusTracker",
    "StatusChange",
    "TenantReport",
    # Payment events
    "PaymentEvent",
    "apply_payment_event",
    "parse_enrollment_reference",
]
