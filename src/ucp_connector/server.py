"""Server factory for the connector's REST surface.

Example:
    >>> from ucp_connector import ConnectorConfig, create_app
    >>> app = create_app(ConnectorConfig())
    >>> app.state.connector.keys  # APIKeyService

Endpoints:
    GET  /health                         Service status (public)
    GET  /.well-known/ucp                Discovery signing keys (public)
    POST /auth/verify                    Verify a credential (public)
    *    /auth/keys...                   API key management (admin)
    *    /webhooks/...                   Webhook administration (admin)

Admin and verification endpoints answer 503 while the connector is
disabled (UCP_ENABLED=false).
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from ucp_connector.auth.router import create_auth_router
from ucp_connector.config import ConnectorConfig
from ucp_connector.connector import Connector, build_connector
from ucp_connector.errors import ErrorCode, create_error_response
from ucp_connector.webhooks.config import API_VERSION
from ucp_connector.webhooks.router import create_webhook_router

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

__all__ = [
    "DiscoveryResponse",
    "HealthResponse",
    "create_app",
]

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check endpoint response schema."""

    status: str = Field(description="Always 'ok' when the service is running")
    version: str = Field(description="Connector version")
    enabled: bool = Field(description="Whether the connector is enabled")
    storage: str = Field(description="Storage mode: redis, memory or degraded")
    timestamp: str = Field(description="ISO 8601 time of the check")


class DiscoveryResponse(BaseModel):
    """Signing key part of the UCP discovery document."""

    ucp_version: str = Field(description="Webhook envelope API version")
    signing_keys: list[dict[str, Any]] = Field(
        description="Active signing keys (hashed IDs only)"
    )


def create_app(
    config: ConnectorConfig | None = None,
    connector: Connector | None = None,
) -> FastAPI:
    """Create the connector FastAPI application.

    Args:
        config: Connector configuration (loaded from environment if not provided)
        connector: Prebuilt components (built from config if not provided)

    Returns:
        Configured FastAPI application. Components are available at
        ``app.state.connector``.

    Raises:
        RuntimeError: If Redis is configured but unavailable without fallback
    """
    if connector is None:
        connector = build_connector(config or ConnectorConfig())
    config = connector.config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context for startup and shutdown events."""
        logger.info(
            f"Starting UCP connector v{config.plugin_version} "
            f"({connector.storage.mode} storage)"
        )
        yield
        await connector.close()
        logger.info("Shutting down gracefully...")

    app = FastAPI(
        title="UCP Connector",
        version=config.plugin_version,
        lifespan=lifespan,
    )
    app.state.connector = connector

    async def require_enabled() -> None:
        if not config.enabled:
            raise HTTPException(
                status_code=503,
                detail=create_error_response(ErrorCode.CONNECTOR_DISABLED),
            )

    @app.get("/health", tags=["monitoring"], response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            version=config.plugin_version,
            enabled=config.enabled,
            storage=connector.storage.mode,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/.well-known/ucp", tags=["discovery"], response_model=DiscoveryResponse)
    async def discovery() -> DiscoveryResponse:
        """Publish signing key IDs so receivers can match signatures to keys."""
        signing_keys = await asyncio.to_thread(connector.signing.signing_keys)
        return DiscoveryResponse(ucp_version=API_VERSION, signing_keys=signing_keys)

    app.include_router(
        create_auth_router(connector.keys, connector.auth),
        dependencies=[Depends(require_enabled)],
    )
    app.include_router(
        create_webhook_router(
            connector.sender,
            connector.emitter,
            connector.signing,
            connector.auth,
        ),
        dependencies=[Depends(require_enabled)],
    )

    return app
