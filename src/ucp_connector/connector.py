"""Component wiring for the connector.

Builds every component from one ``ConnectorConfig`` so the REST server and
the CLI share the same construction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ucp_connector.auth.middleware import APIKeyAuth
from ucp_connector.auth.service import APIKeyService
from ucp_connector.signing import SigningKeyManager
from ucp_connector.storage import StorageBackends, create_storage
from ucp_connector.webhooks.emitter import OrderEventEmitter
from ucp_connector.webhooks.queue import FailedDeliveryQueue
from ucp_connector.webhooks.sender import WebhookSender

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from ucp_connector.config import ConnectorConfig

__all__ = [
    "Connector",
    "build_connector",
]

logger = logging.getLogger(__name__)


@dataclass
class Connector:
    """All connector components, built from a single configuration."""

    config: ConnectorConfig
    storage: StorageBackends
    signing: SigningKeyManager
    failed_queue: FailedDeliveryQueue
    sender: WebhookSender
    emitter: OrderEventEmitter
    keys: APIKeyService
    auth: APIKeyAuth

    async def close(self) -> None:
        """Wait for background deliveries and release the HTTP client."""
        await self.emitter.drain()
        await self.sender.close()


def build_connector(
    config: ConnectorConfig,
    storage: StorageBackends | None = None,
    http_client: httpx.AsyncClient | None = None,
    owner_exists: Callable[[str], bool] | None = None,
) -> Connector:
    """Build connector components.

    Args:
        config: Connector configuration
        storage: Storage backends (created from config if not provided)
        http_client: HTTP client for webhook delivery (created lazily if not provided)
        owner_exists: Resolves API key owner references to principals

    Raises:
        RuntimeError: If Redis is configured but unavailable without fallback
    """
    if storage is None:
        storage = create_storage(config)

    signing = SigningKeyManager(storage.options)
    failed_queue = FailedDeliveryQueue(
        storage.options,
        limit=config.webhook.failed_queue_limit,
        retention_seconds=config.webhook.failed_retention,
    )
    sender = WebhookSender(config, signing, failed_queue, client=http_client)
    keys = APIKeyService(
        storage.credentials,
        owner_exists=owner_exists,
        bcrypt_rounds=config.bcrypt_rounds,
    )

    logger.debug(f"Connector built with {storage.mode} storage")
    return Connector(
        config=config,
        storage=storage,
        signing=signing,
        failed_queue=failed_queue,
        sender=sender,
        emitter=OrderEventEmitter(sender),
        keys=keys,
        auth=APIKeyAuth(keys),
    )
