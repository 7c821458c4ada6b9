# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for enrollguard.

Settings are Pydantic-based and loaded from environment variables.

Example:
    >>> from enrollguard.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from enrollguard.core.config.settings import (
    AsaasSettings,
    DatabaseSettings,
    MonitoringSettings,
    RedisSettings,
    Settings,
    WorkerSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "RedisSettings",
    "AsaasSettings",
    "MonitoringSettings",
    "WorkerSettings",
]
