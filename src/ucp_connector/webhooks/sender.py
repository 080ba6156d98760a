"""Webhook delivery using httpx.

Turns an order event into a signed HTTP POST, retries transient failures
with linear backoff, and records deliveries that never succeed so they can
be re-driven later.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx

from ucp_connector.errors import ErrorCode, Result, UCPError
from ucp_connector.webhooks.config import API_VERSION
from ucp_connector.webhooks.models import (
    DeliveryAttempt,
    DeliveryOutcome,
    FailedDelivery,
    RetryOutcome,
    WebhookEnvelope,
    WebhookEvent,
    WebhookMeta,
    WebhookSource,
)
from ucp_connector.webhooks.signature import (
    DELIVERY_ID_HEADER,
    EVENT_TYPE_HEADER,
    SIGNATURE_HEADER,
    canonical_json,
    sign_payload,
    verify_signature,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ucp_connector.config import ConnectorConfig
    from ucp_connector.signing import SigningKeyManager
    from ucp_connector.webhooks.queue import FailedDeliveryQueue

logger = logging.getLogger(__name__)

__all__ = [
    "WebhookSender",
    "validate_webhook_url",
]

_OUTCOME_ERRORS = {
    DeliveryOutcome.CLIENT_ERROR: ErrorCode.WEBHOOK_CLIENT_ERROR,
    DeliveryOutcome.SERVER_ERROR: ErrorCode.WEBHOOK_SERVER_ERROR,
    DeliveryOutcome.TRANSPORT_ERROR: ErrorCode.WEBHOOK_TRANSPORT_ERROR,
}


def now_iso() -> str:
    """Get current UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


def validate_webhook_url(url: str) -> str:
    """Check that a destination is an absolute http(s) URL.

    Raises:
        UCPError: WEBHOOK_URL_INVALID if the URL is malformed
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise UCPError(ErrorCode.WEBHOOK_URL_INVALID, f"Invalid webhook URL: {e}") from e

    if parsed.scheme not in ("http", "https"):
        raise UCPError(
            ErrorCode.WEBHOOK_URL_INVALID,
            f"Webhook URL must use http or https, got {parsed.scheme or 'none'!r}",
        )
    if not parsed.hostname:
        raise UCPError(ErrorCode.WEBHOOK_URL_INVALID, "Webhook URL has no host")
    return url


class WebhookSender:
    """Signs and delivers webhook events.

    Each call to ``send`` is one delivery cycle of up to ``max_retries``
    attempts. Attempt N that fails transiently is followed by a wait of
    ``retry_delay * N`` seconds. 4xx responses stop the cycle at once. A
    cycle that does not succeed is pushed to the failed delivery queue.

    Example:
        >>> sender = WebhookSender(config, signing_keys, failed_queue)
        >>> result = await sender.send(event)
        >>> if not result.ok:
        ...     print(result.error.kind)
    """

    def __init__(
        self,
        config: ConnectorConfig,
        signing: SigningKeyManager,
        queue: FailedDeliveryQueue,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize sender.

        Args:
            config: Connector configuration (destination, retry policy, source)
            signing: Signing key manager
            queue: Where failed deliveries are recorded
            client: Optional HTTP client (created lazily if not provided)
            sleep: Awaitable used for backoff
            clock: Unix time source for signatures and failure timestamps
        """
        self.config = config
        self.signing = signing
        self.queue = queue
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._clock = clock

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.webhook.timeout),
                follow_redirects=False,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this sender created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def log(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Log a delivery message when debug logging is enabled."""
        if not self.config.debug_logging:
            return
        if context:
            message = f"{message} {json.dumps(context, default=str)}"
        logger.info(f"[UCP Webhook] {message}")

    def prepare_payload(self, event: WebhookEvent) -> dict[str, Any]:
        """Wrap an event in the webhook envelope."""
        envelope = WebhookEnvelope(
            id=str(uuid.uuid4()),
            event_type=event.event_type,
            timestamp=event.timestamp or now_iso(),
            api_version=API_VERSION,
            source=WebhookSource(
                plugin=self.config.plugin_slug,
                version=self.config.plugin_version,
                site_url=self.config.site_url,
            ),
            data=event.data,
            meta=WebhookMeta(order_id=event.order_id, session_id=event.session_id),
        )
        return envelope.model_dump(mode="json")

    async def sign(self, body: str) -> str:
        """Sign a serialized body with the current key and time."""
        # Key lookup hits the option store, which may block on Redis
        key = await asyncio.to_thread(self.signing.get_key)
        return sign_payload(body.encode("utf-8"), key, int(self._clock()))

    async def send(self, event: WebhookEvent) -> Result[DeliveryAttempt]:
        """Deliver an event to the configured destination.

        Returns:
            Success with the final attempt (or no value when no destination
            is configured), or a failure whose error kind is CONFIGURATION,
            PERMANENT or TRANSIENT.
        """
        url = self.config.webhook.destination
        if not url:
            self.log("No webhook URL configured, skipping", {"event": event.event_type})
            return Result.success(None)

        try:
            validate_webhook_url(url)
        except UCPError as e:
            self.log(f"Invalid webhook URL: {e.message}", {"url": url})
            return Result.failure(e)

        payload = self.prepare_payload(event)
        return await self._deliver(url, payload)

    async def _deliver(self, url: str, payload: dict[str, Any]) -> Result[DeliveryAttempt]:
        """Run one delivery cycle, recording the failure if it never succeeds."""
        max_retries = self.config.webhook.max_retries
        retry_delay = self.config.webhook.retry_delay
        body = canonical_json(payload)
        attempt_number = 0

        while True:
            attempt_number += 1
            # Fresh timestamp and signature for every attempt
            signature = await self.sign(body)
            attempt = await self._send_request(url, payload, body, signature, attempt_number)

            if attempt.success:
                self.log(
                    "Webhook sent successfully",
                    {
                        "event": payload["event_type"],
                        "attempt": attempt_number,
                        "status": attempt.status_code,
                    },
                )
                return Result.success(attempt)

            if not attempt.should_retry:
                self.log(
                    "Webhook rejected by destination, not retrying",
                    {"event": payload["event_type"], "error": attempt.error},
                )
                break

            if attempt_number >= max_retries:
                break

            delay = retry_delay * attempt_number
            self.log(
                f"Webhook attempt {attempt_number} failed, retrying in {delay}s",
                {"event": payload["event_type"], "error": attempt.error},
            )
            await self._sleep(delay)

        self.log(
            "Webhook failed after all retries",
            {"event": payload["event_type"], "error": attempt.error},
        )
        await asyncio.to_thread(
            self.queue.push,
            FailedDelivery(
                url=url,
                payload=payload,
                signature=signature,
                error=attempt.error or attempt.outcome.value,
                failed_at=int(self._clock()),
            ),
        )
        return Result.failure(
            UCPError(
                _OUTCOME_ERRORS[attempt.outcome],
                message=attempt.error,
                details={
                    "delivery_id": attempt.delivery_id,
                    "attempts": attempt.attempt_number,
                    "status_code": attempt.status_code,
                },
            )
        )

    async def _send_request(
        self,
        url: str,
        payload: dict[str, Any],
        body: str,
        signature: str,
        attempt_number: int,
    ) -> DeliveryAttempt:
        """POST a signed body once and classify the outcome.

        2xx is success, 4xx is a client error, anything else (including
        unfollowed 3xx redirects) is a server error. Network failures are
        transport errors.
        """
        delivery_id = str(payload.get("id", ""))
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.config.user_agent,
            SIGNATURE_HEADER: signature,
            EVENT_TYPE_HEADER: str(payload.get("event_type", "")),
            DELIVERY_ID_HEADER: delivery_id,
        }

        client = await self._get_client()
        start_time = time.monotonic()

        try:
            response = await client.post(url, content=body.encode("utf-8"), headers=headers)
        except httpx.TimeoutException as e:
            return DeliveryAttempt(
                delivery_id=delivery_id,
                url=url,
                attempt_number=attempt_number,
                outcome=DeliveryOutcome.TRANSPORT_ERROR,
                error=f"Request timed out: {e}",
                duration_ms=(time.monotonic() - start_time) * 1000,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return DeliveryAttempt(
                delivery_id=delivery_id,
                url=url,
                attempt_number=attempt_number,
                outcome=DeliveryOutcome.TRANSPORT_ERROR,
                error=f"Request failed: {str(e) or type(e).__name__}",
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

        duration_ms = (time.monotonic() - start_time) * 1000
        status_code = response.status_code

        if 200 <= status_code < 300:
            outcome = DeliveryOutcome.SUCCESS
            error = None
        elif 400 <= status_code < 500:
            outcome = DeliveryOutcome.CLIENT_ERROR
            error = f"HTTP {status_code}: {response.text[:200]}"
        else:
            outcome = DeliveryOutcome.SERVER_ERROR
            error = f"HTTP {status_code}: {response.text[:200]}"

        return DeliveryAttempt(
            delivery_id=delivery_id,
            url=url,
            attempt_number=attempt_number,
            outcome=outcome,
            status_code=status_code,
            error=error,
            duration_ms=duration_ms,
        )

    async def retry_failed_webhooks(self) -> list[RetryOutcome]:
        """Re-drive every stored failed delivery once.

        Delivered records are removed. Records that fail again stay queued
        while younger than the retention window and are dropped otherwise.
        Records added while the pass runs are not touched.
        """
        records = await asyncio.to_thread(self.queue.list)
        now = self._clock()
        resolved: list[str] = []
        outcomes: list[RetryOutcome] = []

        for record in records:
            body = canonical_json(record.payload)
            attempt = await self._send_request(
                record.url, record.payload, body, await self.sign(body), 1
            )

            if attempt.success:
                resolved.append(record.delivery_id)
                outcomes.append(
                    RetryOutcome(
                        delivery_id=record.delivery_id,
                        event_type=record.event_type,
                        success=True,
                    )
                )
                continue

            expired = self.queue.is_expired(record, now)
            if expired:
                resolved.append(record.delivery_id)
            outcomes.append(
                RetryOutcome(
                    delivery_id=record.delivery_id,
                    event_type=record.event_type,
                    success=False,
                    error=attempt.error,
                    dropped=expired,
                )
            )

        await asyncio.to_thread(self.queue.remove, resolved)
        self.log(
            "Retried failed webhooks",
            {
                "total": len(outcomes),
                "delivered": sum(1 for o in outcomes if o.success),
                "dropped": sum(1 for o in outcomes if o.dropped),
            },
        )
        return outcomes

    def verify_signature(self, payload: bytes, signature: str) -> bool:
        """Verify a signature against the current signing key."""
        return verify_signature(
            payload,
            signature,
            self.signing.get_key(),
            max_age_seconds=self.config.webhook.signature_max_age,
            now=self._clock(),
        )
