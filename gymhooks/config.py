"""Application configuration settings.

This module provides centralized configuration management using environment
variables with sensible defaults.
"""

import os
from dataclasses import dataclass


def _get_bool_env(name: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set.

    Returns:
        Boolean value from environment.
    """
    value = os.getenv(name, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _get_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        WEBHOOK_DB_PATH: SQLite file holding subscriptions and delivery history.
        WEBHOOK_DELIVERY_TIMEOUT_SECONDS: Timeout applied to each HTTP attempt.
        WEBHOOK_DEFAULT_RETRY_COUNT: Attempts per event when a webhook sets none.
        WEBHOOK_BACKOFF_UNIT_SECONDS: Length of one backoff unit (delay is 2**n units).
        WEBHOOK_MAX_CONCURRENT_DELIVERIES: Concurrent outbound HTTP attempts.
        WEBHOOK_SHUTDOWN_GRACE_SECONDS: How long shutdown waits for in-flight deliveries.
        ADMIN_API_KEY: Key expected in the X-Admin-Api-Key header.
        LOG_LEVEL: Logging level.
        LOG_JSON: Render logs as JSON lines instead of console output.
        ENVIRONMENT: Deployment environment name.
    """

    # Delivery
    WEBHOOK_DB_PATH: str = "data/webhooks.db"
    WEBHOOK_DELIVERY_TIMEOUT_SECONDS: float = 10.0
    WEBHOOK_DEFAULT_RETRY_COUNT: int = 3
    WEBHOOK_BACKOFF_UNIT_SECONDS: float = 1.0
    WEBHOOK_MAX_CONCURRENT_DELIVERIES: int = 10
    WEBHOOK_SHUTDOWN_GRACE_SECONDS: float = 5.0

    # Admin access
    ADMIN_API_KEY: str | None = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    ENVIRONMENT: str = "development"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.
        """
        return cls(
            WEBHOOK_DB_PATH=os.getenv("WEBHOOK_DB_PATH", "data/webhooks.db"),
            WEBHOOK_DELIVERY_TIMEOUT_SECONDS=_get_float_env(
                "WEBHOOK_DELIVERY_TIMEOUT_SECONDS", 10.0
            ),
            WEBHOOK_DEFAULT_RETRY_COUNT=_get_int_env("WEBHOOK_DEFAULT_RETRY_COUNT", 3),
            WEBHOOK_BACKOFF_UNIT_SECONDS=_get_float_env("WEBHOOK_BACKOFF_UNIT_SECONDS", 1.0),
            WEBHOOK_MAX_CONCURRENT_DELIVERIES=_get_int_env(
                "WEBHOOK_MAX_CONCURRENT_DELIVERIES", 10
            ),
            WEBHOOK_SHUTDOWN_GRACE_SECONDS=_get_float_env(
                "WEBHOOK_SHUTDOWN_GRACE_SECONDS", 5.0
            ),
            ADMIN_API_KEY=os.getenv("ADMIN_API_KEY") or None,
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            LOG_JSON=_get_bool_env("LOG_JSON", default=False),
            ENVIRONMENT=os.getenv("ENVIRONMENT", "development"),
        )


# Global settings instance
settings = Settings.from_env()
