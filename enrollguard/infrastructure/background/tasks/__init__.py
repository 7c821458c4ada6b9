# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors for enrollguard.

Usage:
    from enrollguard.infrastructure.background.tasks import enrollment_status_job

    enrollment_status_job.send()

Running Workers:
    dramatiq enrollguard.infrastructure.background.tasks --processes 1 --threads 2
"""

from enrollguard.infrastructure.background.tasks.enrollment_status import (
    check_tenant_enrollments,
    enrollment_status_job,
    get_enrollment_actors,
)


def get_all_actors() -> list:
    """Get all registered actors, for worker registration."""
    return [*get_enrollment_actors()]


__all__ = [
    "enrollment_status_job",
    "check_tenant_enrollments",
    "get_enrollment_actors",
    "get_all_actors",
]
