# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment storage.

EnrollmentRepository is the persistence boundary of the monitoring job.
Every method runs in its own session so a failure while updating one
enrollment never rolls back another enrollment's committed change.

Example:
    repository = EnrollmentRepository(DatabaseManager(settings))
    pending = await repository.list_by_status(
        tenant_id=1,
        statuses=[SimplifiedEnrollmentStatus.PENDING],
    )
"""

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select

from enrollguard.domains.enrollment.exceptions import (
    EnrollmentNotFoundError,
    InvalidStatusTransitionError,
    StaleEnrollmentStateError,
)
from enrollguard.domains.enrollment.status import (
    FormalEnrollmentStatus,
    SimplifiedEnrollmentStatus,
    can_transition,
)
from enrollguard.infrastructure.database.connection import DatabaseManager
from enrollguard.infrastructure.database.models import (
    Enrollment,
    SimplifiedEnrollment,
    Tenant,
)
from enrollguard.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# Columns a status update may set alongside the status itself
UPDATABLE_FIELDS = frozenset(
    {
        "payment_url",
        "asaas_customer_id",
        "asaas_payment_id",
        "external_reference",
        "student_id",
    }
)


class EnrollmentRepository:
    """Queries and status updates for simplified and formal enrollments.

    Attributes:
        db: Database manager providing sessions.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def list_tenant_ids(self) -> list[int]:
        """List ids of all tenants, in ascending order."""
        async with self.db.get_session() as session:
            result = await session.execute(select(Tenant.id).order_by(Tenant.id))
            return list(result.scalars().all())

    async def list_by_status(
        self,
        tenant_id: int,
        statuses: Iterable[SimplifiedEnrollmentStatus],
    ) -> list[SimplifiedEnrollment]:
        """List a tenant's simplified enrollments in any of the given statuses.

        Args:
            tenant_id: Tenant scope.
            statuses: Statuses to match.

        Returns:
            Matching enrollments ordered by id.
        """
        wanted = [SimplifiedEnrollmentStatus(s) for s in statuses]
        if not wanted:
            return []

        async with self.db.get_session() as session:
            result = await session.execute(
                select(SimplifiedEnrollment)
                .where(
                    SimplifiedEnrollment.tenant_id == tenant_id,
                    SimplifiedEnrollment.status.in_(wanted),
                )
                .order_by(SimplifiedEnrollment.id)
            )
            return list(result.scalars().all())

    async def get_simplified(self, enrollment_id: int) -> SimplifiedEnrollment | None:
        """Get a simplified enrollment by id."""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(SimplifiedEnrollment).where(SimplifiedEnrollment.id == enrollment_id)
            )
            return result.scalar_one_or_none()

    async def update_status(
        self,
        enrollment_id: int,
        status: SimplifiedEnrollmentStatus,
        extra: dict[str, Any] | None = None,
        expected: SimplifiedEnrollmentStatus | None = None,
    ) -> SimplifiedEnrollment:
        """Move a simplified enrollment to a new status.

        The row is locked for the duration of the update. ``updated_at`` is
        always stamped; ``completed_at`` and ``cancelled_at`` are stamped
        when entering those statuses.

        Args:
            enrollment_id: Enrollment to update.
            status: New status.
            extra: Additional columns to set (see UPDATABLE_FIELDS).
            expected: Status the caller observed; the update is refused if
                the stored status differs.

        Returns:
            The updated enrollment.

        Raises:
            ValueError: If extra names a column outside UPDATABLE_FIELDS.
            EnrollmentNotFoundError: If the enrollment does not exist.
            StaleEnrollmentStateError: If expected does not match.
            InvalidStatusTransitionError: If the transition is not allowed.
        """
        target = SimplifiedEnrollmentStatus(status)
        extra = extra or {}
        unknown = set(extra) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        async with self.db.get_session() as session:
            result = await session.execute(
                select(SimplifiedEnrollment)
                .where(SimplifiedEnrollment.id == enrollment_id)
                .with_for_update()
            )
            enrollment = result.scalar_one_or_none()
            if enrollment is None:
                raise EnrollmentNotFoundError(enrollment_id)

            current = SimplifiedEnrollmentStatus(enrollment.status)
            if expected is not None and current != SimplifiedEnrollmentStatus(expected):
                raise StaleEnrollmentStateError(
                    enrollment_id,
                    SimplifiedEnrollmentStatus(expected).value,
                    current.value,
                )
            if not can_transition(current, target):
                raise InvalidStatusTransitionError(enrollment_id, current.value, target.value)

            now = utc_now()
            enrollment.status = target
            enrollment.updated_at = now
            if target == SimplifiedEnrollmentStatus.COMPLETED:
                enrollment.completed_at = now
            elif target == SimplifiedEnrollmentStatus.CANCELLED:
                enrollment.cancelled_at = now
            for field, value in extra.items():
                setattr(enrollment, field, value)

            await session.flush()

            logger.info(
                "Simplified enrollment %s: %s -> %s",
                enrollment_id,
                current.value,
                target.value,
            )
            return enrollment

    async def find_formal_enrollments(
        self,
        student_id: int,
        course_id: int,
    ) -> list[Enrollment]:
        """Find formal enrollments of a student in a course."""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(Enrollment).where(
                    Enrollment.student_id == student_id,
                    Enrollment.course_id == course_id,
                )
            )
            return list(result.scalars().all())

    async def update_formal_status(
        self,
        enrollment_id: int,
        status: FormalEnrollmentStatus,
    ) -> Enrollment:
        """Set the status of a formal enrollment.

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist.
        """
        target = FormalEnrollmentStatus(status)

        async with self.db.get_session() as session:
            result = await session.execute(
                select(Enrollment).where(Enrollment.id == enrollment_id).with_for_update()
            )
            enrollment = result.scalar_one_or_none()
            if enrollment is None:
                raise EnrollmentNotFoundError(enrollment_id, kind="formal")

            enrollment.status = target
            enrollment.updated_at = utc_now()
            await session.flush()

            logger.info("Formal enrollment %s set to %s", enrollment_id, target.value)
            return enrollment
