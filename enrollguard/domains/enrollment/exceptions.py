# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for the enrollment domain.

- EnrollmentError: Base exception for enrollment lifecycle errors
- EnrollmentNotFoundError: Enrollment id does not exist
- InvalidStatusTransitionError: Requested status change is not allowed
- StaleEnrollmentStateError: Stored status changed since it was read
"""


class EnrollmentError(Exception):
    """Base exception for enrollment lifecycle errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class EnrollmentNotFoundError(EnrollmentError):
    """Raised when an enrollment id does not exist."""

    def __init__(self, enrollment_id: int, kind: str = "simplified"):
        self.enrollment_id = enrollment_id
        self.kind = kind
        super().__init__(f"{kind.capitalize()} enrollment not found: {enrollment_id}")


class InvalidStatusTransitionError(EnrollmentError):
    """Raised when a status change is not allowed by the transition table.

    Attributes:
        enrollment_id: Enrollment being updated.
        current: Status the enrollment is in.
        requested: Status that was requested.
    """

    def __init__(self, enrollment_id: int, current: str, requested: str):
        self.enrollment_id = enrollment_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Enrollment {enrollment_id} cannot move from {current} to {requested}",
            details={"current": current, "requested": requested},
        )


class StaleEnrollmentStateError(EnrollmentError):
    """Raised when the stored status no longer matches the one a writer read.

    A payment webhook may confirm an enrollment between the monitoring
    job's scan and its write; the write is refused instead of overriding
    the newer status.
    """

    def __init__(self, enrollment_id: int, expected: str, actual: str):
        self.enrollment_id = enrollment_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Enrollment {enrollment_id} is {actual}, expected {expected}",
            details={"expected": expected, "actual": actual},
        )
