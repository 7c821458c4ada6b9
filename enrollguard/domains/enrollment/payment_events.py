# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gateway payment notifications applied to simplified enrollments.

Checkouts are created with ``externalReference`` set to
``matricula-<enrollment id>``. When the gateway reports that such a
payment was received or confirmed, the enrollment moves to
``payment_confirmed``. Everything else in the notification stream is
ignored.
"""

import logging
import re
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from enrollguard.domains.enrollment.exceptions import (
    EnrollmentNotFoundError,
    InvalidStatusTransitionError,
)
from enrollguard.domains.enrollment.status import SimplifiedEnrollmentStatus

logger = logging.getLogger(__name__)

CONFIRMING_EVENTS = frozenset({"PAYMENT_RECEIVED", "PAYMENT_CONFIRMED"})

EXTERNAL_REFERENCE_PATTERN = re.compile(r"matricula-(\d+)")


class PaymentPayload(BaseModel):
    """Payment object embedded in a gateway notification."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    customer: str | None = None
    status: str | None = None
    external_reference: str | None = Field(default=None, alias="externalReference")


class PaymentEvent(BaseModel):
    """Gateway notification, e.g. ``{"event": "PAYMENT_RECEIVED", "payment": {...}}``."""

    model_config = ConfigDict(extra="ignore")

    event: str
    payment: PaymentPayload | None = None


class StatusWriter(Protocol):
    async def update_status(
        self,
        enrollment_id: int,
        status: SimplifiedEnrollmentStatus,
        extra: dict[str, Any] | None = None,
        expected: SimplifiedEnrollmentStatus | None = None,
    ) -> Any: ...


def parse_enrollment_reference(reference: str | None) -> int | None:
    """Extract the enrollment id from a ``matricula-<id>`` reference."""
    if not reference:
        return None
    match = EXTERNAL_REFERENCE_PATTERN.fullmatch(reference)
    return int(match.group(1)) if match else None


async def apply_payment_event(
    repository: StatusWriter,
    event: PaymentEvent | dict[str, Any],
) -> Any | None:
    """Confirm the enrollment referenced by a payment notification.

    Args:
        repository: Storage used to write the status.
        event: Notification payload.

    Returns:
        The updated enrollment, or None if the event was ignored.

    Raises:
        pydantic.ValidationError: If a dict payload is malformed.
        DatabaseError: If the status write fails.
    """
    if not isinstance(event, PaymentEvent):
        event = PaymentEvent.model_validate(event)

    if event.event not in CONFIRMING_EVENTS or event.payment is None:
        logger.debug("Ignoring payment event %s", event.event)
        return None

    enrollment_id = parse_enrollment_reference(event.payment.external_reference)
    if enrollment_id is None:
        logger.debug(
            "Payment %s has no enrollment reference (%r)",
            event.payment.id,
            event.payment.external_reference,
        )
        return None

    try:
        enrollment = await repository.update_status(
            enrollment_id,
            SimplifiedEnrollmentStatus.PAYMENT_CONFIRMED,
        )
    except EnrollmentNotFoundError:
        logger.warning(
            "Payment %s references unknown enrollment %s",
            event.payment.id,
            enrollment_id,
        )
        return None
    except InvalidStatusTransitionError as e:
        logger.warning("Ignoring payment %s: %s", event.payment.id, e)
        return None

    logger.info("Enrollment %s confirmed by payment %s", enrollment_id, event.payment.id)
    return enrollment
