"""Webhook delivery for order lifecycle events.

Signs events with HMAC-SHA256, retries transient failures with linear
backoff, and keeps undeliverable events for re-drive.

Example:
    >>> from ucp_connector.webhooks import WebhookEvent, WebhookEventType
    >>> event = WebhookEvent(
    ...     event_type=WebhookEventType.ORDER_PAID,
    ...     order_id=42,
    ...     session_id="sess_abc",
    ...     data={"total": 19.99},
    ... )
"""

from ucp_connector.webhooks.config import WebhookConfig
from ucp_connector.webhooks.emitter import OrderEventEmitter, map_order_status
from ucp_connector.webhooks.models import (
    DeliveryAttempt,
    DeliveryOutcome,
    FailedDelivery,
    OrderSummary,
    RefundSummary,
    RetryOutcome,
    WebhookEnvelope,
    WebhookEvent,
    WebhookEventType,
)
from ucp_connector.webhooks.queue import FailedDeliveryQueue
from ucp_connector.webhooks.router import create_webhook_router
from ucp_connector.webhooks.sender import WebhookSender, validate_webhook_url
from ucp_connector.webhooks.signature import (
    SIGNATURE_HEADER,
    SignatureError,
    sign_payload,
    verify_signature,
)

__all__ = [
    "SIGNATURE_HEADER",
    "DeliveryAttempt",
    "DeliveryOutcome",
    "FailedDelivery",
    "FailedDeliveryQueue",
    "OrderEventEmitter",
    "OrderSummary",
    "RefundSummary",
    "RetryOutcome",
    "SignatureError",
    "WebhookConfig",
    "WebhookEnvelope",
    "WebhookEvent",
    "WebhookEventType",
    "WebhookSender",
    "create_webhook_router",
    "map_order_status",
    "sign_payload",
    "validate_webhook_url",
    "verify_signature",
]
