# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for payment notification handling."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from enrollguard.domains.enrollment.exceptions import (
    EnrollmentNotFoundError,
    InvalidStatusTransitionError,
)
from enrollguard.domains.enrollment.payment_events import (
    PaymentEvent,
    apply_payment_event,
    parse_enrollment_reference,
)
from enrollguard.domains.enrollment.status import SimplifiedEnrollmentStatus


@pytest.fixture
def repository():
    """Create a mock repository."""
    repo = MagicMock()
    repo.update_status = AsyncMock(return_value=MagicMock(id=12))
    return repo


def event(name: str = "PAYMENT_RECEIVED", reference: str | None = "matricula-12") -> dict:
    return {
        "event": name,
        "payment": {
            "object": "payment",
            "id": "pay_1",
            "customer": "cus_1",
            "status": "RECEIVED",
            "externalReference": reference,
        },
    }


class TestApplyPaymentEvent:
    """Tests for apply_payment_event."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["PAYMENT_RECEIVED", "PAYMENT_CONFIRMED"])
    async def test_confirming_events(self, repository, name):
        """Test received and confirmed payments confirm the enrollment."""
        result = await apply_payment_event(repository, event(name))

        assert result.id == 12
        repository.update_status.assert_awaited_once_with(
            12, SimplifiedEnrollmentStatus.PAYMENT_CONFIRMED
        )

    @pytest.mark.asyncio
    async def test_other_events_are_ignored(self, repository):
        """Test overdue notifications do not change anything."""
        assert await apply_payment_event(repository, event("PAYMENT_OVERDUE")) is None

        repository.update_status.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reference", [None, "", "pedido-3", "matricula-12abc", "xmatricula-12"]
    )
    async def test_unmatched_reference_is_ignored(self, repository, reference):
        """Test payments not created for an enrollment are ignored."""
        assert await apply_payment_event(repository, event(reference=reference)) is None

        repository.update_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_enrollment_is_ignored(self, repository):
        """Test a reference to a missing enrollment is logged and ignored."""
        repository.update_status.side_effect = EnrollmentNotFoundError(12)

        assert await apply_payment_event(repository, event()) is None

    @pytest.mark.asyncio
    async def test_illegal_transition_is_ignored(self, repository):
        """Test a payment for a cancelled enrollment does not revive it."""
        repository.update_status.side_effect = InvalidStatusTransitionError(
            12, "cancelled", "payment_confirmed"
        )

        assert await apply_payment_event(repository, event()) is None

    @pytest.mark.asyncio
    async def test_accepts_model(self, repository):
        """Test a pre-validated PaymentEvent is accepted."""
        await apply_payment_event(repository, PaymentEvent.model_validate(event()))

        repository.update_status.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_malformed_payload_raises(self, repository):
        """Test a payload without an event name is rejected."""
        with pytest.raises(ValidationError):
            await apply_payment_event(repository, {"payment": {"id": "pay_1"}})


class TestParseEnrollmentReference:
    """Tests for parse_enrollment_reference."""

    def test_extracts_id(self):
        assert parse_enrollment_reference("matricula-345") == 345

    def test_no_match(self):
        assert parse_enrollment_reference("certificado-3") is None
        assert parse_enrollment_reference(None) is None

    @pytest.mark.parametrize(
        "reference",
        ["matricula-12abc", "xmatricula-12", "pedido-matricula-12", "matricula-12 ", "matricula-"],
    )
    def test_reference_must_match_whole_string(self, reference):
        """Test ids embedded in a longer reference are not extracted."""
        assert parse_enrollment_reference(reference) is None
