# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for PostgreSQL connections and enrollment storage.

Example:
    from enrollguard.infrastructure.database import (
        DatabaseManager,
        EnrollmentRepository,
    )

    repository = EnrollmentRepository(DatabaseManager(settings))
    tenant_ids = await repository.list_tenant_ids()
"""

from enrollguard.infrastructure.database.connection import (
    DatabaseError,
    DatabaseManager,
    _clear_thread_db_connections,
    get_worker_db_manager,
    reset_worker_db_manager,
)
from enrollguard.infrastructure.database.repository import (
    UPDATABLE_FIELDS,
    EnrollmentRepository,
)

__all__ = [
    "DatabaseError",
    "DatabaseManager",
    "EnrollmentRepository",
    "UPDATABLE_FIELDS",
    # Worker thread-local manager
    "get_worker_db_manager",
    "reset_worker_db_manager",
    "_clear_thread_db_connections",
]
