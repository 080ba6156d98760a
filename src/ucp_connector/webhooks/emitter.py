"""Order event emitter for triggering webhook deliveries.

Called from the store's order lifecycle hooks. Only orders created through
an agent checkout session (orders carrying a ``session_id``) produce
webhooks. Emission never raises: a failing destination must not break the
order transition that produced the event.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ucp_connector.webhooks.models import (
    OrderSummary,
    RefundSummary,
    WebhookEvent,
    WebhookEventType,
)

if TYPE_CHECKING:
    from ucp_connector.errors import Result
    from ucp_connector.webhooks.models import DeliveryAttempt
    from ucp_connector.webhooks.sender import WebhookSender

logger = logging.getLogger(__name__)

__all__ = [
    "ORDER_STATUS_MAP",
    "TEST_MESSAGE",
    "OrderEventEmitter",
    "map_order_status",
]

TEST_MESSAGE = "This is a test webhook from WooCommerce UCP."

# Store order status -> agent-facing order status
ORDER_STATUS_MAP: dict[str, str] = {
    "pending": "awaiting_payment",
    "on-hold": "awaiting_payment",
    "processing": "preparing",
    "completed": "delivered",
    "cancelled": "cancelled",
    "failed": "cancelled",
    "refunded": "refunded",
}


def map_order_status(status: str) -> str:
    """Map a store order status to its agent-facing status.

    Unknown statuses pass through unchanged.

    Example:
        >>> map_order_status("on-hold")
        'awaiting_payment'
    """
    return ORDER_STATUS_MAP.get(status, status)


class OrderEventEmitter:
    """Turns order lifecycle transitions into webhook deliveries.

    Example:
        >>> emitter = OrderEventEmitter(sender)
        >>> await emitter.emit_order_paid(order)
    """

    def __init__(self, sender: WebhookSender) -> None:
        self._sender = sender
        self._tasks: set[asyncio.Task[Any]] = set()

    async def emit(self, event: WebhookEvent) -> Result[DeliveryAttempt] | None:
        """Deliver an event, logging instead of raising on unexpected errors."""
        try:
            result = await self._sender.send(event)
        except Exception as e:
            logger.error(f"Failed to deliver {event.event_type.value} webhook: {e}")
            return None

        if not result.ok and result.error is not None:
            logger.warning(
                f"Webhook {event.event_type.value} for order {event.order_id} "
                f"not delivered: {result.error.message}"
            )
        return result

    def emit_nowait(self, event: WebhookEvent) -> asyncio.Task[Any]:
        """Schedule delivery in the background and return the task.

        Must be called from a running event loop.
        """
        task = asyncio.create_task(self.emit(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for all background deliveries to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _build_event(
        self,
        event_type: WebhookEventType,
        order: OrderSummary,
        data: dict[str, Any],
    ) -> WebhookEvent | None:
        if not order.session_id:
            logger.debug(f"Order {order.id} has no agent session, skipping {event_type.value}")
            return None
        return WebhookEvent(
            event_type=event_type,
            order_id=order.id,
            session_id=order.session_id,
            data=data,
        )

    def order_payload(self, order: OrderSummary) -> dict[str, Any]:
        """Order object embedded in every order event."""
        payload = order.model_dump(mode="json", exclude={"session_id"})
        if order.status is not None:
            payload["ucp_status"] = map_order_status(order.status)
        return payload

    def order_created_event(self, order: OrderSummary) -> WebhookEvent | None:
        return self._build_event(
            WebhookEventType.ORDER_CREATED, order, {"order": self.order_payload(order)}
        )

    def order_status_changed_event(
        self,
        order: OrderSummary,
        from_status: str,
        to_status: str,
    ) -> WebhookEvent | None:
        return self._build_event(
            WebhookEventType.ORDER_STATUS_CHANGED,
            order,
            {
                "from_status": from_status,
                "to_status": to_status,
                "from_ucp_status": map_order_status(from_status),
                "to_ucp_status": map_order_status(to_status),
                "order": self.order_payload(order),
            },
        )

    def order_paid_event(self, order: OrderSummary) -> WebhookEvent | None:
        return self._build_event(
            WebhookEventType.ORDER_PAID,
            order,
            {
                "payment_method": order.payment_method,
                "transaction_id": order.transaction_id,
                "total": order.total,
                "currency": order.currency,
                "order": self.order_payload(order),
            },
        )

    def order_refunded_event(
        self,
        order: OrderSummary,
        refund: RefundSummary,
    ) -> WebhookEvent | None:
        remaining = round(order.total - order.total_refunded, 2)
        return self._build_event(
            WebhookEventType.ORDER_REFUNDED,
            order,
            {
                "refund_id": refund.id,
                "refund_amount": refund.amount,
                "refund_reason": refund.reason,
                "total_refunded": order.total_refunded,
                "remaining": remaining,
                "is_full_refund": remaining <= 0,
                "order": self.order_payload(order),
            },
        )

    async def _emit_optional(
        self, event: WebhookEvent | None
    ) -> Result[DeliveryAttempt] | None:
        if event is None:
            return None
        return await self.emit(event)

    async def emit_order_created(
        self, order: OrderSummary
    ) -> Result[DeliveryAttempt] | None:
        """Emit an order.created event."""
        return await self._emit_optional(self.order_created_event(order))

    async def emit_order_status_changed(
        self,
        order: OrderSummary,
        from_status: str,
        to_status: str,
    ) -> Result[DeliveryAttempt] | None:
        """Emit an order.status_changed event.

        Args:
            order: Order after the transition
            from_status: Previous store status
            to_status: New store status
        """
        return await self._emit_optional(
            self.order_status_changed_event(order, from_status, to_status)
        )

    async def emit_order_paid(self, order: OrderSummary) -> Result[DeliveryAttempt] | None:
        """Emit an order.paid event."""
        return await self._emit_optional(self.order_paid_event(order))

    async def emit_order_refunded(
        self,
        order: OrderSummary,
        refund: RefundSummary,
    ) -> Result[DeliveryAttempt] | None:
        """Emit an order.refunded event.

        ``order.total_refunded`` must already include this refund.
        """
        return await self._emit_optional(self.order_refunded_event(order, refund))

    async def send_test(self) -> Result[DeliveryAttempt]:
        """Send a test event to the configured destination.

        Unlike order events, the result of a test delivery is returned to
        the caller and errors are not swallowed.
        """
        event = WebhookEvent(
            event_type=WebhookEventType.TEST,
            data={"message": TEST_MESSAGE},
        )
        return await self._sender.send(event)
