"""Configuration for webhook delivery.

All configuration is loaded from environment variables with defaults
matching the delivery protocol.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "API_VERSION",
    "FAILED_QUEUE_LIMIT",
    "FAILED_RETENTION_SECONDS",
    "MAX_RETRIES",
    "RETRY_DELAY",
    "SIGNATURE_MAX_AGE",
    "TIMEOUT",
    "WebhookConfig",
]

# Attempts per delivery cycle
MAX_RETRIES = 3

# Base backoff in seconds; attempt N waits RETRY_DELAY * N before the next one
RETRY_DELAY = 5

# HTTP timeout in seconds
TIMEOUT = 30

# Failed deliveries kept for re-drive (oldest evicted first)
FAILED_QUEUE_LIMIT = 100

# Failed deliveries older than this are dropped on re-drive
FAILED_RETENTION_SECONDS = 86400

# Maximum distance between signature timestamp and now
SIGNATURE_MAX_AGE = 300

API_VERSION = "1.0"


class WebhookConfig(BaseSettings):
    """Webhook delivery configuration.

    Environment Variables:
        UCP_WEBHOOK_URL: Destination for order events (unset disables delivery)
        UCP_WEBHOOK_TIMEOUT: HTTP timeout in seconds (default: 30)
        UCP_WEBHOOK_MAX_RETRIES: Attempts per delivery cycle (default: 3)
        UCP_WEBHOOK_RETRY_DELAY: Base backoff in seconds (default: 5)
        UCP_WEBHOOK_FAILED_QUEUE_LIMIT: Failed deliveries kept (default: 100)
        UCP_WEBHOOK_FAILED_RETENTION: Failed delivery lifetime in seconds (default: 86400)
        UCP_WEBHOOK_SIGNATURE_MAX_AGE: Signature freshness window (default: 300)

    Example:
        >>> config = WebhookConfig()
        >>> config.url is None
        True
        >>> config = WebhookConfig(url="https://agent.example.com/hooks")
    """

    model_config = SettingsConfigDict(
        env_prefix="UCP_WEBHOOK_",
        env_file=".env",
        extra="ignore",
    )

    url: str | None = Field(
        default=None,
        description="Webhook destination URL",
    )

    # Delivery settings
    timeout: int = Field(
        default=TIMEOUT,
        description="HTTP timeout for webhook delivery in seconds",
        ge=1,
        le=120,
    )
    max_retries: int = Field(
        default=MAX_RETRIES,
        description="Maximum attempts per delivery cycle",
        ge=1,
        le=10,
    )
    retry_delay: float = Field(
        default=RETRY_DELAY,
        description="Base backoff in seconds, multiplied by the attempt number",
        ge=0,
    )

    # Failed delivery queue
    failed_queue_limit: int = Field(
        default=FAILED_QUEUE_LIMIT,
        description="Maximum failed deliveries kept for re-drive",
        ge=1,
    )
    failed_retention: int = Field(
        default=FAILED_RETENTION_SECONDS,
        description="Seconds a failed delivery stays eligible for re-drive",
        ge=1,
    )

    signature_max_age: int = Field(
        default=SIGNATURE_MAX_AGE,
        description="Maximum signature age in seconds for replay protection",
        ge=1,
    )

    @property
    def destination(self) -> str | None:
        """Configured URL, or None when blank."""
        if self.url is None:
            return None
        url = self.url.strip()
        return url or None
