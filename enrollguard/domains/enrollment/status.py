# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment lifecycle states and the transition table.

Simplified enrollments move forward only: intake, payment, then either
completion or the suspension/cancellation branch driven by the monitoring
job. ``cancelled`` is terminal. Reactivation of a suspended enrollment is
not supported.
"""

from enum import Enum


class SimplifiedEnrollmentStatus(str, Enum):
    """Lifecycle states of a simplified enrollment."""

    PENDING = "pending"
    WAITING_PAYMENT = "waiting_payment"
    PAYMENT_CONFIRMED = "payment_confirmed"
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    FAILED = "failed"


class FormalEnrollmentStatus(str, Enum):
    """Lifecycle states of a formal (course-access) enrollment."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


_S = SimplifiedEnrollmentStatus

ALLOWED_TRANSITIONS: dict[SimplifiedEnrollmentStatus, frozenset[SimplifiedEnrollmentStatus]] = {
    _S.PENDING: frozenset(
        {_S.WAITING_PAYMENT, _S.PAYMENT_CONFIRMED, _S.SUSPENDED, _S.CANCELLED, _S.FAILED}
    ),
    _S.WAITING_PAYMENT: frozenset(
        {_S.PAYMENT_CONFIRMED, _S.COMPLETED, _S.SUSPENDED, _S.CANCELLED, _S.FAILED}
    ),
    _S.PAYMENT_CONFIRMED: frozenset({_S.COMPLETED, _S.SUSPENDED, _S.CANCELLED}),
    _S.COMPLETED: frozenset({_S.SUSPENDED, _S.CANCELLED}),
    _S.SUSPENDED: frozenset({_S.CANCELLED}),
    _S.FAILED: frozenset({_S.CANCELLED}),
    _S.CANCELLED: frozenset(),
}

# Statuses mirrored onto the formal enrollment when the monitoring job
# moves a simplified enrollment into them.
CASCADED_STATUSES: dict[SimplifiedEnrollmentStatus, FormalEnrollmentStatus] = {
    _S.SUSPENDED: FormalEnrollmentStatus.SUSPENDED,
    _S.CANCELLED: FormalEnrollmentStatus.CANCELLED,
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def can_transition(
    current: SimplifiedEnrollmentStatus | str,
    target: SimplifiedEnrollmentStatus | str,
) -> bool:
    """Check whether a simplified enrollment may move between two states.

    Args:
        current: Status the enrollment is in.
        target: Requested status.

    Returns:
        True if the transition table allows the move.

    Raises:
        ValueError: If either value is not a known status.
    """
    return SimplifiedEnrollmentStatus(target) in ALLOWED_TRANSITIONS[
        SimplifiedEnrollmentStatus(current)
    ]


def is_terminal(status: SimplifiedEnrollmentStatus | str) -> bool:
    """Check whether no further transition is possible from a status."""
    return SimplifiedEnrollmentStatus(status) in TERMINAL_STATUSES
