"""Connector configuration.

The connector is configured through a single ``ConnectorConfig`` object that
is passed to every component at construction time.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ucp_connector import __version__
from ucp_connector.webhooks.config import WebhookConfig

__all__ = [
    "PLUGIN_SLUG",
    "ConnectorConfig",
]

PLUGIN_SLUG = "harmonytics-ucp-connector-for-woocommerce"


class ConnectorConfig(BaseSettings):
    """Complete connector configuration.

    Attributes:
        enabled: Master switch for the admin surface
        site_url: Public store URL, reported in every webhook envelope
        plugin_slug: Plugin identifier reported in webhook envelopes
        plugin_version: Plugin version reported in envelopes and User-Agent
        debug_logging: Log every webhook attempt
        redis_url: Redis URL for options and credentials (memory if unset)
        fallback_enabled: Degrade to memory when Redis is unreachable
        bcrypt_rounds: Cost factor for API secret hashes
        host: Server host
        port: Server port
        webhook: Webhook delivery configuration

    Environment Variables:
        UCP_ENABLED, UCP_SITE_URL, UCP_DEBUG_LOGGING, UCP_REDIS_URL,
        UCP_FALLBACK_ENABLED, UCP_BCRYPT_ROUNDS, UCP_HOST, UCP_PORT

        See WebhookConfig for UCP_WEBHOOK_* variables.

    Example:
        >>> config = ConnectorConfig(
        ...     site_url="https://shop.example.com",
        ...     webhook=WebhookConfig(url="https://agent.example.com/hooks"),
        ... )
    """

    model_config = SettingsConfigDict(
        env_prefix="UCP_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = Field(
        default=True,
        description="Enable the UCP connector",
    )
    site_url: str = Field(
        default="http://localhost",
        description="Public URL of the store",
    )
    plugin_slug: str = Field(
        default=PLUGIN_SLUG,
        description="Plugin identifier reported in webhook envelopes",
    )
    plugin_version: str = Field(
        default=__version__,
        description="Plugin version reported in webhook envelopes",
    )
    debug_logging: bool = Field(
        default=False,
        description="Log every webhook delivery attempt",
    )

    # Storage
    redis_url: str | None = Field(
        default=None,
        description="Redis URL for connector state (in-memory if unset)",
    )
    fallback_enabled: bool = Field(
        default=False,
        description="Enable in-memory fallback if Redis unavailable",
    )

    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor for API key secrets",
        ge=4,
        le=31,
    )

    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=8000,
        description="Server port",
    )

    webhook: WebhookConfig = Field(
        default_factory=WebhookConfig,
        description="Webhook delivery configuration",
    )

    @property
    def user_agent(self) -> str:
        return f"WooCommerce-UCP/{self.plugin_version}"
