# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for EnrollmentRepository.

The database manager is replaced by a mock whose get_session() yields a
mock AsyncSession; queries are inspected by compiling them for PostgreSQL.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from enrollguard.domains.enrollment.exceptions import (
    EnrollmentNotFoundError,
    InvalidStatusTransitionError,
    StaleEnrollmentStateError,
)
from enrollguard.domains.enrollment.status import (
    FormalEnrollmentStatus,
    SimplifiedEnrollmentStatus as S,
)
from enrollguard.infrastructure.database import EnrollmentRepository
from enrollguard.infrastructure.database.models import Enrollment, SimplifiedEnrollment

CREATED = datetime(2025, 1, 1, tzinfo=timezone.utc)


def compiled(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


@pytest.fixture
def mock_session():
    """Create mock database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    return session


@pytest.fixture
def repository(mock_session):
    """Create repository over a mock database manager."""
    db = MagicMock()

    @asynccontextmanager
    async def get_session():
        yield mock_session

    db.get_session = get_session
    return EnrollmentRepository(db)


def returning(mock_session, value) -> None:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalars.return_value.all.return_value = value if isinstance(value, list) else [value]
    mock_session.execute.return_value = result


def simplified(status: S = S.PENDING) -> SimplifiedEnrollment:
    return SimplifiedEnrollment(
        id=12,
        tenant_id=1,
        course_id=100,
        student_name="Maria Souza",
        student_email="maria@example.com",
        student_cpf="123.456.789-00",
        amount=Decimal("1200.00"),
        installments=6,
        status=status,
        created_at=CREATED,
        updated_at=CREATED,
    )


class TestUpdateStatus:
    """Tests for update_status."""

    @pytest.mark.asyncio
    async def test_allowed_transition(self, repository, mock_session):
        """Test the status is written and updated_at stamped under a row lock."""
        enrollment = simplified(S.PENDING)
        returning(mock_session, enrollment)

        result = await repository.update_status(12, S.PAYMENT_CONFIRMED)

        assert result is enrollment
        assert enrollment.status == S.PAYMENT_CONFIRMED
        assert enrollment.updated_at > CREATED
        assert enrollment.cancelled_at is None
        mock_session.flush.assert_awaited_once()
        assert "FOR UPDATE" in compiled(mock_session.execute.await_args.args[0])

    @pytest.mark.asyncio
    async def test_cancellation_stamps_cancelled_at(self, repository, mock_session):
        """Test cancelled_at is set when cancelling."""
        enrollment = simplified(S.SUSPENDED)
        returning(mock_session, enrollment)

        await repository.update_status(12, S.CANCELLED, expected=S.SUSPENDED)

        assert enrollment.status == S.CANCELLED
        assert enrollment.cancelled_at is not None

    @pytest.mark.asyncio
    async def test_completion_stamps_completed_at(self, repository, mock_session):
        """Test completed_at is set when completing."""
        enrollment = simplified(S.WAITING_PAYMENT)
        returning(mock_session, enrollment)

        await repository.update_status(12, S.COMPLETED)

        assert enrollment.completed_at is not None

    @pytest.mark.asyncio
    async def test_extra_fields(self, repository, mock_session):
        """Test whitelisted extra columns are written."""
        enrollment = simplified(S.PENDING)
        returning(mock_session, enrollment)

        await repository.update_status(
            12,
            S.WAITING_PAYMENT,
            extra={"payment_url": "https://www.asaas.com/c/abc", "asaas_customer_id": "cus_1"},
        )

        assert enrollment.payment_url == "https://www.asaas.com/c/abc"
        assert enrollment.asaas_customer_id == "cus_1"

    @pytest.mark.asyncio
    async def test_unknown_extra_field_rejected(self, repository, mock_session):
        """Test columns outside the whitelist are refused before any query."""
        with pytest.raises(ValueError):
            await repository.update_status(12, S.WAITING_PAYMENT, extra={"amount": 1})

        mock_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_found(self, repository, mock_session):
        """Test a missing enrollment raises EnrollmentNotFoundError."""
        returning(mock_session, None)

        with pytest.raises(EnrollmentNotFoundError):
            await repository.update_status(99, S.SUSPENDED)

    @pytest.mark.asyncio
    async def test_stale_expected_status(self, repository, mock_session):
        """Test a changed status refuses the write."""
        enrollment = simplified(S.PAYMENT_CONFIRMED)
        returning(mock_session, enrollment)

        with pytest.raises(StaleEnrollmentStateError) as exc_info:
            await repository.update_status(12, S.SUSPENDED, expected=S.PENDING)

        assert exc_info.value.actual == "payment_confirmed"
        assert enrollment.status == S.PAYMENT_CONFIRMED
        mock_session.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_illegal_transition(self, repository, mock_session):
        """Test a suspended enrollment cannot be confirmed."""
        returning(mock_session, simplified(S.SUSPENDED))

        with pytest.raises(InvalidStatusTransitionError):
            await repository.update_status(12, S.PAYMENT_CONFIRMED)

    @pytest.mark.asyncio
    async def test_same_status_is_rejected(self, repository, mock_session):
        """Test rewriting the current status is not a transition."""
        returning(mock_session, simplified(S.SUSPENDED))

        with pytest.raises(InvalidStatusTransitionError):
            await repository.update_status(12, S.SUSPENDED)


class TestQueries:
    """Tests for read queries."""

    @pytest.mark.asyncio
    async def test_list_by_status(self, repository, mock_session):
        """Test the query filters by tenant and status."""
        enrollment = simplified()
        returning(mock_session, [enrollment])

        result = await repository.list_by_status(1, [S.PENDING, S.SUSPENDED])

        assert result == [enrollment]
        sql = compiled(mock_session.execute.await_args.args[0])
        assert "simplified_enrollments.tenant_id" in sql
        assert "simplified_enrollments.status IN" in sql

    @pytest.mark.asyncio
    async def test_list_by_no_status(self, repository, mock_session):
        """Test an empty status list short-circuits."""
        assert await repository.list_by_status(1, []) == []

        mock_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_tenant_ids(self, repository, mock_session):
        """Test tenant ids are returned as a list."""
        returning(mock_session, [1, 2, 3])

        assert await repository.list_tenant_ids() == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_get_simplified(self, repository, mock_session):
        """Test fetching by id."""
        enrollment = simplified()
        returning(mock_session, enrollment)

        assert await repository.get_simplified(12) is enrollment

    @pytest.mark.asyncio
    async def test_find_formal_enrollments(self, repository, mock_session):
        """Test the lookup matches student and course."""
        formal = Enrollment(id=5, tenant_id=1, course_id=100, student_id=7)
        returning(mock_session, [formal])

        assert await repository.find_formal_enrollments(7, 100) == [formal]
        sql = compiled(mock_session.execute.await_args.args[0])
        assert "enrollments.student_id" in sql
        assert "enrollments.course_id" in sql


class TestUpdateFormalStatus:
    """Tests for update_formal_status."""

    @pytest.mark.asyncio
    async def test_sets_status(self, repository, mock_session):
        """Test the formal status is written."""
        formal = Enrollment(
            id=5,
            tenant_id=1,
            course_id=100,
            student_id=7,
            status=FormalEnrollmentStatus.ACTIVE,
        )
        returning(mock_session, formal)

        await repository.update_formal_status(5, FormalEnrollmentStatus.SUSPENDED)

        assert formal.status == FormalEnrollmentStatus.SUSPENDED
        mock_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_found(self, repository, mock_session):
        """Test a missing formal enrollment raises."""
        returning(mock_session, None)

        with pytest.raises(EnrollmentNotFoundError) as exc_info:
            await repository.update_formal_status(5, FormalEnrollmentStatus.CANCELLED)

        assert exc_info.value.kind == "formal"
