"""Pydantic models for webhook delivery.

Provides the order event handed to the sender, the envelope sent over the
wire, and the records kept for failed deliveries.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WebhookEventType(str, Enum):
    """Supported webhook event types.

    Order lifecycle events:
        - ORDER_CREATED: Agent-created order placed
        - ORDER_STATUS_CHANGED: Order moved between statuses
        - ORDER_PAID: Payment completed
        - ORDER_REFUNDED: Full or partial refund issued

    Administrative:
        - TEST: Connectivity check sent from the admin surface
    """

    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"
    ORDER_PAID = "order.paid"
    ORDER_REFUNDED = "order.refunded"
    TEST = "test"


class DeliveryOutcome(str, Enum):
    """Result of a single delivery attempt."""

    SUCCESS = "success"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    TRANSPORT_ERROR = "transport_error"


# =============================================================================
# Event & Envelope
# =============================================================================


class WebhookEvent(BaseModel):
    """An order lifecycle event to deliver.

    Example:
        >>> event = WebhookEvent(
        ...     event_type=WebhookEventType.ORDER_PAID,
        ...     order_id=42,
        ...     data={"total": 19.99},
        ... )
    """

    model_config = ConfigDict(frozen=True)

    event_type: WebhookEventType = Field(description="Type of event")
    order_id: int | str | None = Field(default=None, description="Store order ID")
    session_id: str | None = Field(
        default=None, description="Agent checkout session that produced the order"
    )
    data: dict[str, Any] = Field(default_factory=dict, description="Event data")
    timestamp: str | None = Field(
        default=None, description="ISO 8601 event time (defaults to send time)"
    )


class WebhookSource(BaseModel):
    """Identifies the store that sent a webhook."""

    platform: str = Field(default="WooCommerce")
    plugin: str
    version: str
    site_url: str


class WebhookMeta(BaseModel):
    """Correlation identifiers for a webhook."""

    order_id: int | str | None = None
    session_id: str | None = None


class WebhookEnvelope(BaseModel):
    """JSON body of a webhook delivery.

    Example payload:
        {
            "id": "9b2f...",
            "event_type": "order.paid",
            "timestamp": "2025-01-01T00:00:00+00:00",
            "api_version": "1.0",
            "source": {"platform": "WooCommerce", ...},
            "data": {"total": 19.99},
            "meta": {"order_id": 42, "session_id": "sess_abc"}
        }
    """

    id: str = Field(description="Unique delivery ID (UUID4)")
    event_type: WebhookEventType = Field(description="Type of event")
    timestamp: str = Field(description="ISO 8601 event time")
    api_version: str = Field(description="Envelope schema version")
    source: WebhookSource
    data: dict[str, Any] = Field(default_factory=dict)
    meta: WebhookMeta = Field(default_factory=WebhookMeta)


# =============================================================================
# Delivery Records
# =============================================================================


@dataclass
class DeliveryAttempt:
    """Result of a single HTTP delivery attempt."""

    delivery_id: str
    url: str
    attempt_number: int
    outcome: DeliveryOutcome
    status_code: int | None = None
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.outcome is DeliveryOutcome.SUCCESS

    @property
    def should_retry(self) -> bool:
        return self.outcome in (
            DeliveryOutcome.SERVER_ERROR,
            DeliveryOutcome.TRANSPORT_ERROR,
        )


class FailedDelivery(BaseModel):
    """A delivery that failed every attempt, kept for re-drive."""

    url: str = Field(description="Destination URL")
    payload: dict[str, Any] = Field(description="Webhook envelope")
    signature: str = Field(description="Signature of the last attempt")
    error: str = Field(description="Error of the last attempt")
    failed_at: int = Field(description="Unix timestamp of the failure")

    @property
    def delivery_id(self) -> str:
        return str(self.payload.get("id", ""))

    @property
    def event_type(self) -> str:
        return str(self.payload.get("event_type", ""))


class RetryOutcome(BaseModel):
    """Result of re-driving one failed delivery."""

    delivery_id: str = Field(description="Delivery ID of the record")
    event_type: str = Field(description="Event type of the record")
    success: bool = Field(description="Whether the re-drive delivered")
    error: str | None = Field(default=None, description="Error if not delivered")
    dropped: bool = Field(
        default=False,
        description="Whether the record was removed because it expired",
    )


# =============================================================================
# Order Snapshots
# =============================================================================


class OrderSummary(BaseModel):
    """Store order as handed over by the order lifecycle hooks.

    Only ``id`` is required; any extra store fields are carried through to
    the webhook ``order`` object unchanged.
    """

    model_config = ConfigDict(extra="allow")

    id: int | str = Field(description="Store order ID")
    status: str | None = Field(default=None, description="Store order status")
    currency: str | None = Field(default=None, description="ISO 4217 currency")
    total: float = Field(default=0.0, description="Order total")
    total_refunded: float = Field(default=0.0, description="Amount refunded so far")
    payment_method: str | None = Field(default=None, description="Payment method ID")
    transaction_id: str | None = Field(default=None, description="Gateway transaction ID")
    session_id: str | None = Field(
        default=None, description="Agent checkout session that created the order"
    )


class RefundSummary(BaseModel):
    """A refund issued against an order."""

    id: int | str = Field(description="Refund ID")
    amount: float = Field(description="Refunded amount")
    reason: str | None = Field(default=None, description="Refund reason")
