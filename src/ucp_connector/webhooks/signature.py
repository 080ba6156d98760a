"""HMAC-SHA256 signature generation and verification for webhooks.

Signature Format:
    X-UCP-Signature: t=1735689600,v1=abc123def456...

The signature is computed as:
    HMAC-SHA256(signing_key, "{timestamp}.{raw_payload}")

Example:
    >>> key = "k" * 64
    >>> payload = b'{"id":"evt_123","event_type":"order.paid"}'
    >>> signature = sign_payload(payload, key)
    >>> verify_signature(payload, signature, key)
    True
"""

from __future__ import annotations

import hashlib
import hmac
import json
import re
import time
from typing import Any

__all__ = [
    "DELIVERY_ID_HEADER",
    "EVENT_TYPE_HEADER",
    "SIGNATURE_HEADER",
    "SignatureError",
    "canonical_json",
    "compute_signature",
    "parse_signature",
    "sign_payload",
    "verify_signature",
]

# Header names for webhook deliveries
SIGNATURE_HEADER = "X-UCP-Signature"
EVENT_TYPE_HEADER = "X-UCP-Event-Type"
DELIVERY_ID_HEADER = "X-UCP-Delivery-ID"

# Current signature version
SIGNATURE_VERSION = "v1"

_SIGNATURE_RE = re.compile(r"^t=(\d+),v1=([a-f0-9]+)$")


class SignatureError(Exception):
    """Malformed signature header."""

    pass


def canonical_json(payload: dict[str, Any]) -> str:
    """Serialize a payload exactly as it is signed and sent."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    """Compute raw hex HMAC-SHA256 over ``"{timestamp}.{payload}"``."""
    signing_string = f"{timestamp}.{payload.decode('utf-8')}"
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=signing_string.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


def sign_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Generate HMAC-SHA256 signature for webhook payload.

    Args:
        payload: Raw request body bytes
        secret: Signing key
        timestamp: Unix timestamp (defaults to current time)

    Returns:
        Signature string in format: t={timestamp},v1={hex_signature}
    """
    if timestamp is None:
        timestamp = int(time.time())

    signature = compute_signature(payload, secret, timestamp)
    return f"t={timestamp},{SIGNATURE_VERSION}={signature}"


def parse_signature(signature: str) -> tuple[int, str]:
    """Parse signature header into ``(timestamp, hex_signature)``.

    Raises:
        SignatureError: If the header is not ``t=<digits>,v1=<hex>``
    """
    match = _SIGNATURE_RE.match(signature.strip())
    if not match:
        raise SignatureError(f"Invalid signature header: {signature[:64]!r}")
    return int(match.group(1)), match.group(2)


def verify_signature(
    payload: bytes,
    signature: str,
    secret: str,
    max_age_seconds: int = 300,
    now: float | None = None,
) -> bool:
    """Verify webhook signature with replay protection.

    Args:
        payload: Raw request body bytes
        signature: Signature header value
        secret: Signing key
        max_age_seconds: Maximum distance between signature time and now
        now: Current Unix time (defaults to ``time.time()``)

    Returns:
        True only if the header is well formed, fresh, and matches.
        Malformed headers and stale timestamps return False.
    """
    try:
        timestamp, provided_signature = parse_signature(signature)
    except SignatureError:
        return False

    current_time = time.time() if now is None else now
    if abs(current_time - timestamp) > max_age_seconds:
        return False

    try:
        expected_signature = compute_signature(payload, secret, timestamp)
    except UnicodeDecodeError:
        return False

    # Timing-safe comparison
    return hmac.compare_digest(expected_signature, provided_signature)
