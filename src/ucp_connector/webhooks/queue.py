"""Bounded queue of failed webhook deliveries.

Failed deliveries are stored as a single list option. Every change goes
through the option store's atomic update, so a re-drive pass and a new
failure recorded at the same time never overwrite each other.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from ucp_connector.webhooks.config import FAILED_QUEUE_LIMIT, FAILED_RETENTION_SECONDS
from ucp_connector.webhooks.models import FailedDelivery

if TYPE_CHECKING:
    from collections.abc import Collection

    from ucp_connector.storage import OptionStoreProtocol

__all__ = [
    "FAILED_WEBHOOKS_OPTION",
    "FailedDeliveryQueue",
]

logger = logging.getLogger(__name__)

FAILED_WEBHOOKS_OPTION = "ucp_wc_failed_webhooks"


class FailedDeliveryQueue:
    """FIFO list of failed deliveries, capped at ``limit`` entries.

    Example:
        >>> from ucp_connector.storage import MemoryOptionStore
        >>> queue = FailedDeliveryQueue(MemoryOptionStore())
        >>> queue.count()
        0
    """

    def __init__(
        self,
        store: OptionStoreProtocol,
        limit: int = FAILED_QUEUE_LIMIT,
        retention_seconds: int = FAILED_RETENTION_SECONDS,
    ) -> None:
        self._store = store
        self.limit = limit
        self.retention_seconds = retention_seconds

    def push(self, record: FailedDelivery) -> None:
        """Append a record, evicting the oldest ones beyond the cap."""
        entry = record.model_dump()
        limit = self.limit

        def append(items: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
            items = list(items or [])
            items.append(entry)
            return items[-limit:]

        self._store.update(FAILED_WEBHOOKS_OPTION, append, default=[])

    def list(self) -> list[FailedDelivery]:
        items = self._store.get(FAILED_WEBHOOKS_OPTION, default=[]) or []
        return [FailedDelivery.model_validate(item) for item in items]

    def count(self) -> int:
        return len(self._store.get(FAILED_WEBHOOKS_OPTION, default=[]) or [])

    def clear(self) -> int:
        """Remove all records. Returns how many were removed."""
        removed = 0

        def drop_all(items: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
            nonlocal removed
            removed = len(items or [])
            return []

        self._store.update(FAILED_WEBHOOKS_OPTION, drop_all, default=[])
        return removed

    def is_expired(self, record: FailedDelivery, now: float | None = None) -> bool:
        """Whether a record is past its re-drive window."""
        current_time = time.time() if now is None else now
        return current_time - record.failed_at >= self.retention_seconds

    def remove(self, delivery_ids: Collection[str]) -> int:
        """Atomically remove records by delivery ID.

        Records appended after the caller read the queue are left in place.
        Returns how many records were removed.
        """
        if not delivery_ids:
            return 0

        ids = set(delivery_ids)
        removed = 0

        def drop(items: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
            nonlocal removed
            items = list(items or [])
            kept = [
                item for item in items if str(item.get("payload", {}).get("id")) not in ids
            ]
            removed = len(items) - len(kept)
            return kept

        self._store.update(FAILED_WEBHOOKS_OPTION, drop, default=[])
        logger.debug(f"Removed {removed} failed webhook record(s)")
        return removed
