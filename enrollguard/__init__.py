"""enrollguard.

Enrollment lifecycle monitoring for a multi-tenant course platform:
suspends and cancels simplified enrollments based on elapsed time and
payment state, keeping formal enrollments and gateway billing in sync.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
