"""
Runtime settings for the captive core.

Values come from CAPTIVE_* environment variables or a local .env file.
"""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CaptiveSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CAPTIVE_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Firewall worker
    WORKER_TIMEOUT: float = Field(default=5.0, gt=0)  # seconds, synchronous calls
    WORKER_QUEUE_SIZE: int = Field(default=0, ge=0)  # backlog limit for sync calls, 0 = unbounded

    # Revocation retries (asynchronous channel)
    REVOKE_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    REVOKE_BACKOFF_SECONDS: float = Field(default=0.5, ge=0)
    REVOKE_BACKOFF_MULTIPLIER: float = Field(default=2.0, ge=1)
    FAILED_REVOCATIONS_MAX_ENTRIES: int = Field(default=1000, ge=1)

    # Audit trail
    AUDIT_MAX_ENTRIES: int = Field(default=10000, ge=1)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@lru_cache()
def get_settings() -> CaptiveSettings:
    return CaptiveSettings()


def configure_logging(settings: CaptiveSettings = None) -> None:
    """Install a root handler using the configured level and format."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )
