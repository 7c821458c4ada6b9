# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment gateway integration (Asaas)."""

from enrollguard.infrastructure.payments.client import AsaasClient, OverduePayment
from enrollguard.infrastructure.payments.exceptions import PaymentGatewayError

__all__ = [
    "AsaasClient",
    "OverduePayment",
    "PaymentGatewayError",
]
