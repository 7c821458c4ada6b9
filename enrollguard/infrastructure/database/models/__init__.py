# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models for enrollguard."""

from enrollguard.infrastructure.database.models.base import Base, TimestampMixin
from enrollguard.infrastructure.database.models.enrollment import (
    Enrollment,
    SimplifiedEnrollment,
)
from enrollguard.infrastructure.database.models.tenant import Tenant

__all__ = [
    "Base",
    "TimestampMixin",
    "Tenant",
    "SimplifiedEnrollment",
    "Enrollment",
]
