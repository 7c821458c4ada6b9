# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Simplified and formal enrollment models.

A simplified enrollment is the intake record that starts the payment flow
with the gateway. A formal enrollment is the course-access record of an
existing student, matched to the simplified one by (student, course).
Neither is ever physically deleted.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from enrollguard.domains.enrollment.status import (
    FormalEnrollmentStatus,
    SimplifiedEnrollmentStatus,
)
from enrollguard.infrastructure.database.models.base import Base, TimestampMixin


def _enum_values(enum_cls: type) -> list[str]:
    return [member.value for member in enum_cls]


class SimplifiedEnrollment(Base, TimestampMixin):
    """Intake record of a prospective student prior to/alongside billing.

    Attributes:
        tenant_id: Owning tenant.
        course_id: Course being purchased.
        student_id: Linked student account, once one exists.
        consultant_id: Sales consultant who registered the intake.
        amount: Total amount charged.
        installments: Number of installments (1-12).
        asaas_customer_id: Gateway customer id.
        asaas_payment_id: Gateway payment (checkout) id.
        status: Lifecycle status.
        completed_at: Set when the enrollment reaches ``completed``.
        cancelled_at: Set when the enrollment reaches ``cancelled``.
    """

    __tablename__ = "simplified_enrollments"

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id: Mapped[int] = mapped_column(Integer, nullable=False)
    student_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    consultant_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    polo_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Contact
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    student_email: Mapped[str] = mapped_column(String(255), nullable=False)
    student_cpf: Mapped[str] = mapped_column(String(20), nullable=False)
    student_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Billing
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    installments: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="UNDEFINED")
    payment_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    external_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    asaas_customer_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    asaas_payment_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[SimplifiedEnrollmentStatus] = mapped_column(
        Enum(
            SimplifiedEnrollmentStatus,
            name="simplified_enrollment_status",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=SimplifiedEnrollmentStatus.PENDING,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("installments BETWEEN 1 AND 12", name="installments_range"),
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("ix_simplified_enrollments_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<SimplifiedEnrollment id={self.id} tenant={self.tenant_id} "
            f"status={self.status}>"
        )


class Enrollment(Base, TimestampMixin):
    """Formal course-access enrollment of an existing student."""

    __tablename__ = "enrollments"

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id: Mapped[int] = mapped_column(Integer, nullable=False)
    student_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[FormalEnrollmentStatus] = mapped_column(
        Enum(
            FormalEnrollmentStatus,
            name="enrollment_status",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=FormalEnrollmentStatus.ACTIVE,
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("course_id", "student_id", name="uq_enrollments_course_student"),
    )

    def __repr__(self) -> str:
        return (
            f"<Enrollment id={self.id} student={self.student_id} "
            f"course={self.course_id} status={self.status}>"
        )
