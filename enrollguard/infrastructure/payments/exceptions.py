# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment gateway exceptions."""


class PaymentGatewayError(Exception):
    """Raised when a call to the payment gateway fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, when a response was received.
        response_body: Raw response body, when a response was received.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message
