# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant (educational institution) model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from enrollguard.infrastructure.database.models.base import Base, TimestampMixin


class Tenant(Base, TimestampMixin):
    """An isolated institutional customer of the platform.

    Every enrollment row carries the id of the tenant it belongs to.
    """

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} domain={self.domain!r}>"
