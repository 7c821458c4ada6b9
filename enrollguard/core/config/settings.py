# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for enrollguard.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from enrollguard.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.monitoring.interval_hours)
    24
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Platform database configuration.

    A single PostgreSQL database holds every tenant's enrollments;
    tenant isolation is by the tenant_id column.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "enrollguard"
    password: SecretStr = SecretStr("enrollguard_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "enrollguard"
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for tooling."""
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for the Dramatiq broker.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("")
    database: int = 0

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        pwd = self.password.get_secret_value()
        if pwd:
            return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"
        return f"redis://{self.host}:{self.port}/{self.database}"


class AsaasSettings(BaseSettings):
    """Asaas payment gateway configuration.

    Attributes:
        api_url: Base URL of the Asaas REST API.
        api_key: Access token sent in the ``access_token`` header.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="ASAAS_",
        extra="ignore",
    )

    api_url: str = "https://api.asaas.com"
    api_key: SecretStr = SecretStr("")
    timeout: float = 30.0


class MonitoringSettings(BaseSettings):
    """Enrollment monitoring job configuration.

    Attributes:
        enabled: Whether the periodic job is registered with the scheduler.
        interval_hours: Hours between two monitoring cycles.
        initial_delay_minutes: Delay before the first cycle after startup.
        first_payment_grace_days: Days a pending enrollment may wait for
            its first payment before suspension.
        suspension_timeout_days: Days a suspended enrollment is kept
            before cancellation.
        overdue_suspension_days: Age of the oldest overdue payment that
            suspends an active enrollment.
        overdue_cancellation_days: Age of the oldest overdue payment that
            cancels a suspended enrollment.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENROLLMENT_MONITOR_",
        extra="ignore",
    )

    enabled: bool = True
    interval_hours: int = Field(default=24, ge=1)
    initial_delay_minutes: int = Field(default=5, ge=0)
    first_payment_grace_days: int = Field(default=10, ge=1)
    suspension_timeout_days: int = Field(default=30, ge=1)
    overdue_suspension_days: int = Field(default=30, ge=1)
    overdue_cancellation_days: int = Field(default=90, ge=1)

    @model_validator(mode="after")
    def validate_overdue_thresholds(self) -> Self:
        """Ensure cancellation never triggers before suspension.

        Raises:
            ValueError: If the cancellation threshold is below the
                suspension threshold.
        """
        if self.overdue_cancellation_days < self.overdue_suspension_days:
            raise ValueError(
                "overdue_cancellation_days must be >= overdue_suspension_days"
            )
        return self


class WorkerSettings(BaseSettings):
    """Background worker configuration.

    Attributes:
        processes: Number of worker processes.
        threads: Number of threads per process.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        extra="ignore",
    )

    processes: int = 1
    threads: int = 2


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        redis: Redis settings.
        asaas: Payment gateway settings.
        monitoring: Enrollment monitoring job settings.
        worker: Background worker settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    asaas: AsaasSettings = Field(default_factory=AsaasSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production without a gateway key.
        """
        if self.environment == "production":
            if not self.asaas.api_key.get_secret_value():
                raise ValueError(
                    "Asaas API key must be configured in production. "
                    "Set ASAAS_API_KEY environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
