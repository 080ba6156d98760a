"""Process-wide signing key for webhooks and discovery.

A single signing key signs outgoing webhooks. Receivers learn which key is
active through the discovery document, which publishes a short hash of the
key, never the key itself.

Example:
    >>> from ucp_connector.storage import MemoryOptionStore
    >>> keys = SigningKeyManager(MemoryOptionStore())
    >>> len(keys.get_key())
    64
    >>> keys.signing_keys()[0]["algorithm"]
    'HMAC-SHA256'
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import string
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ucp_connector.storage import OptionStoreProtocol

__all__ = [
    "SIGNING_ALGORITHM",
    "SigningKeyManager",
    "derive_key_id",
    "generate_signing_key",
]

logger = logging.getLogger(__name__)

SIGNING_KEY_OPTION = "ucp_signing_key"
KEY_CREATED_OPTION = "ucp_key_created_at"

SIGNING_ALGORITHM = "HMAC-SHA256"
SIGNING_KEY_LENGTH = 64

_KEY_ALPHABET = string.ascii_letters + string.digits


def generate_signing_key(length: int = SIGNING_KEY_LENGTH) -> str:
    """Generate a random alphanumeric signing key."""
    return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(length))


def derive_key_id(key: str) -> str:
    """Public identifier of a key: first 16 hex chars of its SHA-256."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


def now_iso() -> str:
    """Get current UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


class SigningKeyManager:
    """Owns the signing key and its rotation.

    The key lives only in the option store and is read on every use, so a
    rotation made by another process sharing the store takes effect at once.
    ``rotate`` writes a new key and returns it; signatures made with the old
    key stop verifying immediately.
    """

    def __init__(self, store: OptionStoreProtocol) -> None:
        self._store = store

    def exists(self) -> bool:
        return bool(self._store.get(SIGNING_KEY_OPTION))

    def get_key(self) -> str:
        """Return the active key, generating one on first use."""
        stored: str | None = self._store.get(SIGNING_KEY_OPTION)
        if stored:
            return stored

        candidate = generate_signing_key()
        # Only the first writer's key survives a concurrent first use
        key: str = self._store.update(
            SIGNING_KEY_OPTION, lambda current: current or candidate
        )
        if key == candidate:
            self._store.set(KEY_CREATED_OPTION, now_iso())
            logger.info("Generated new UCP signing key")
        return key

    def rotate(self) -> str:
        """Replace the active key. Returns the new key."""
        key = generate_signing_key()
        self._store.set(SIGNING_KEY_OPTION, key)
        self._store.set(KEY_CREATED_OPTION, now_iso())
        logger.info(f"Rotated UCP signing key, new key_id {derive_key_id(key)}")
        return key

    def key_id(self) -> str:
        return derive_key_id(self.get_key())

    def created_at(self) -> str | None:
        value: str | None = self._store.get(KEY_CREATED_OPTION)
        return value

    def signing_keys(self) -> list[dict[str, Any]]:
        """Signing key entries for the discovery document.

        Returns an empty list when no key has been generated yet.
        """
        if not self.exists():
            return []
        return [
            {
                "key_id": self.key_id(),
                "algorithm": SIGNING_ALGORITHM,
                "status": "active",
                "created_at": self.created_at(),
            }
        ]
