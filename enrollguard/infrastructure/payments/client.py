# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Asaas payment gateway HTTP client.

Covers the part of the Asaas REST API the monitoring job consumes:
overdue-payment lookup per customer, single payment cancellation and
cancellation of a customer's pending (future) payments. Customer and
checkout creation live elsewhere.

Example:
    client = AsaasClient(get_settings().asaas)
    overdue = await client.get_overdue_payments_by_customer("cus_000005")
    await client.close()
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from enrollguard.core.config.settings import AsaasSettings
from enrollguard.infrastructure.payments.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

# Asaas caps list pages at 100 items
PAGE_SIZE = 100


class OverduePayment(BaseModel):
    """A gateway payment as returned by ``GET /v3/payments``.

    Only the fields the monitoring job reads are typed; the rest of the
    payload is ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    customer: str
    value: Decimal = Decimal("0")
    status: str = "OVERDUE"
    due_date: date = Field(alias="dueDate")
    description: str | None = None
    external_reference: str | None = Field(default=None, alias="externalReference")
    invoice_url: str | None = Field(default=None, alias="invoiceUrl")


class AsaasClient:
    """Async client for the Asaas v3 payments API.

    Attributes:
        base_url: API root, without the ``/v3`` suffix.
    """

    def __init__(
        self,
        settings: AsaasSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Gateway settings. Defaults to environment settings.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._settings = settings or AsaasSettings()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._settings.api_url.rstrip("/")

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the underlying HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._settings.timeout,
                transport=self._transport,
                headers={
                    "access_token": self._settings.api_key.get_secret_value(),
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AsaasClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request and map transport failures to PaymentGatewayError."""
        try:
            return await self._get_client().request(method, path, params=params)
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return

        detail = response.text
        try:
            errors = response.json().get("errors") or []
            if errors:
                detail = errors[0].get("description", detail)
        except ValueError:
            pass

        raise PaymentGatewayError(
            f"{operation} failed: {detail}",
            status_code=response.status_code,
            response_body=response.text,
        )

    async def list_payments(self, customer_id: str, status: str) -> list[dict[str, Any]]:
        """List all payments of a customer in a given gateway status.

        Follows ``hasMore`` pagination until the last page.

        Args:
            customer_id: Gateway customer id.
            status: Gateway payment status (``OVERDUE``, ``PENDING``...).

        Returns:
            Raw payment payloads.

        Raises:
            PaymentGatewayError: On transport failure or non-2xx response.
        """
        payments: list[dict[str, Any]] = []
        offset = 0

        while True:
            response = await self._request(
                "GET",
                "/v3/payments",
                params={
                    "customer": customer_id,
                    "status": status,
                    "offset": offset,
                    "limit": PAGE_SIZE,
                },
            )
            self._raise_for_status(response, f"List {status} payments")

            body = response.json()
            page = body.get("data") or []
            payments.extend(page)

            if not body.get("hasMore") or not page:
                break
            offset += len(page)

        return payments

    async def get_overdue_payments_by_customer(self, customer_id: str) -> list[OverduePayment]:
        """Get a customer's overdue payments.

        Raises:
            PaymentGatewayError: On transport failure or non-2xx response.
        """
        payments = await self.list_payments(customer_id, "OVERDUE")
        logger.debug("Customer %s has %d overdue payments", customer_id, len(payments))
        return [OverduePayment.model_validate(p) for p in payments]

    async def cancel_payment(self, payment_id: str) -> bool:
        """Cancel a single payment.

        Returns:
            True if the gateway cancelled it, False if the payment no
            longer exists (HTTP 404).

        Raises:
            PaymentGatewayError: On transport failure or other non-2xx response.
        """
        response = await self._request("POST", f"/v3/payments/{payment_id}/cancel")
        if response.status_code == httpx.codes.NOT_FOUND:
            logger.warning("Payment %s not found at gateway, nothing to cancel", payment_id)
            return False

        self._raise_for_status(response, f"Cancel payment {payment_id}")
        logger.info("Payment %s cancelled", payment_id)
        return True

    async def cancel_future_payments(self, customer_id: str) -> int:
        """Cancel every pending payment of a customer.

        Each payment is attempted even if an earlier one fails.

        Args:
            customer_id: Gateway customer id.

        Returns:
            Number of payments cancelled.

        Raises:
            PaymentGatewayError: If listing fails, or if any cancellation
                failed (raised after all payments were attempted).
        """
        pending = await self.list_payments(customer_id, "PENDING")
        cancelled = 0
        failures: list[str] = []

        for payment in pending:
            payment_id = payment["id"]
            try:
                if await self.cancel_payment(payment_id):
                    cancelled += 1
            except PaymentGatewayError as e:
                logger.error("Failed to cancel payment %s: %s", payment_id, e)
                failures.append(payment_id)

        logger.info(
            "Cancelled %d of %d future payments for customer %s",
            cancelled,
            len(pending),
            customer_id,
        )

        if failures:
            raise PaymentGatewayError(
                f"Failed to cancel {len(failures)} of {len(pending)} future payments "
                f"for customer {customer_id}: {', '.join(failures)}"
            )
        return cancelled
