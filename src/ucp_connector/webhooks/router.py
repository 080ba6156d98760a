"""FastAPI router for webhook administration endpoints.

Provides the operator surface: send a test webhook, re-drive failed
deliveries, inspect the failed delivery queue, and rotate the signing key.
All endpoints require an admin key.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ucp_connector.auth.models import APIKeyInfo, Permission
from ucp_connector.signing import derive_key_id
from ucp_connector.webhooks.models import FailedDelivery, RetryOutcome

if TYPE_CHECKING:
    from ucp_connector.auth.middleware import APIKeyAuth
    from ucp_connector.signing import SigningKeyManager
    from ucp_connector.webhooks.emitter import OrderEventEmitter
    from ucp_connector.webhooks.sender import WebhookSender

logger = logging.getLogger(__name__)

__all__ = [
    "FailedListResponse",
    "RetryResponse",
    "RotateResponse",
    "TestWebhookResponse",
    "create_webhook_router",
]


# =============================================================================
# Response Models
# =============================================================================


class TestWebhookResponse(BaseModel):
    """Response for test webhook endpoint."""

    success: bool = Field(description="Whether the test webhook was delivered")
    message: str = Field(description="Status message")
    error: str | None = Field(default=None, description="Error code if not delivered")


class RetryResponse(BaseModel):
    """Response for the re-drive endpoint."""

    success_count: int = Field(description="Deliveries that succeeded")
    failed_count: int = Field(description="Deliveries that failed again")
    dropped_count: int = Field(description="Expired deliveries removed")
    results: list[RetryOutcome] = Field(description="Per-delivery outcomes")


class FailedListResponse(BaseModel):
    """Response for listing failed deliveries."""

    deliveries: list[FailedDelivery] = Field(description="Failed deliveries, oldest first")
    count: int = Field(description="Number of failed deliveries")


class ClearResponse(BaseModel):
    """Response for clearing failed deliveries."""

    removed: int = Field(description="Number of records removed")


class RotateResponse(BaseModel):
    """Response for signing key rotation. Never includes the key itself."""

    key_id: str = Field(description="Public ID of the new key")
    created_at: str | None = Field(description="Creation time of the new key")
    message: str = Field(description="Status message")


# =============================================================================
# Router Factory
# =============================================================================


def create_webhook_router(
    sender: WebhookSender,
    emitter: OrderEventEmitter,
    signing: SigningKeyManager,
    auth: APIKeyAuth,
) -> APIRouter:
    """Create FastAPI router for webhook endpoints.

    Args:
        sender: Webhook sender (re-drive and failed queue access)
        emitter: Event emitter (test webhooks)
        signing: Signing key manager (rotation)
        auth: Authentication dependency factory

    Returns:
        Configured APIRouter mounted under ``/webhooks``
    """
    router = APIRouter(prefix="/webhooks", tags=["webhooks"])
    require_admin = auth.require(Permission.ADMIN)

    # -------------------------------------------------------------------------
    # POST /webhooks/test - Send test webhook
    # -------------------------------------------------------------------------

    @router.post(
        "/test",
        response_model=TestWebhookResponse,
        summary="Send a test webhook",
    )
    async def send_test(
        _: APIKeyInfo = Depends(require_admin),
    ) -> TestWebhookResponse:
        if not sender.config.webhook.destination:
            return TestWebhookResponse(
                success=False,
                message="Please configure a webhook URL first.",
            )

        result = await emitter.send_test()
        if result.error is not None:
            return TestWebhookResponse(
                success=False,
                message=result.error.message,
                error=result.error.error,
            )
        return TestWebhookResponse(success=True, message="Test webhook sent successfully!")

    # -------------------------------------------------------------------------
    # POST /webhooks/retry - Re-drive failed deliveries
    # -------------------------------------------------------------------------

    @router.post(
        "/retry",
        response_model=RetryResponse,
        summary="Retry failed webhooks",
    )
    async def retry_failed(
        _: APIKeyInfo = Depends(require_admin),
    ) -> RetryResponse:
        results = await sender.retry_failed_webhooks()
        success_count = sum(1 for r in results if r.success)
        dropped_count = sum(1 for r in results if r.dropped)
        logger.info(
            f"Webhook retry: {success_count} delivered, "
            f"{len(results) - success_count} failed"
        )
        return RetryResponse(
            success_count=success_count,
            failed_count=len(results) - success_count,
            dropped_count=dropped_count,
            results=results,
        )

    # -------------------------------------------------------------------------
    # GET /webhooks/failed - Failed delivery queue
    # -------------------------------------------------------------------------

    @router.get(
        "/failed",
        response_model=FailedListResponse,
        summary="List failed webhook deliveries",
    )
    async def list_failed(
        _: APIKeyInfo = Depends(require_admin),
    ) -> FailedListResponse:
        deliveries = await asyncio.to_thread(sender.queue.list)
        return FailedListResponse(deliveries=deliveries, count=len(deliveries))

    @router.delete(
        "/failed",
        response_model=ClearResponse,
        summary="Clear failed webhook deliveries",
    )
    async def clear_failed(
        _: APIKeyInfo = Depends(require_admin),
    ) -> ClearResponse:
        removed = await asyncio.to_thread(sender.queue.clear)
        return ClearResponse(removed=removed)

    # -------------------------------------------------------------------------
    # POST /webhooks/signing-key/rotate - Rotate signing key
    # -------------------------------------------------------------------------

    @router.post(
        "/signing-key/rotate",
        response_model=RotateResponse,
        summary="Rotate the webhook signing key",
    )
    async def rotate_signing_key(
        _: APIKeyInfo = Depends(require_admin),
    ) -> RotateResponse:
        key = await asyncio.to_thread(signing.rotate)
        created_at = await asyncio.to_thread(signing.created_at)
        return RotateResponse(
            key_id=derive_key_id(key),
            created_at=created_at,
            message="Signing key rotated. Webhook receivers must fetch the new key.",
        )

    return router
