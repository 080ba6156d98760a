"""API key storage with Redis backend.

Stores credential records (never raw secrets) keyed by ``key_id``.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ucp_connector.auth.models import APIKeyRecord, KeyStatus, StatusFilter

if TYPE_CHECKING:
    from collections.abc import Callable

    import redis

__all__ = [
    "CredentialStoreProtocol",
    "MemoryCredentialStore",
    "RedisCredentialStore",
]

logger = logging.getLogger(__name__)


def _matches(record: APIKeyRecord, status: StatusFilter) -> bool:
    return status is StatusFilter.ALL or record.status.value == status.value


class CredentialStoreProtocol(ABC):
    """Protocol for API key storage backends."""

    @abstractmethod
    def add(self, record: APIKeyRecord) -> None:
        """Store a new key record."""
        ...

    @abstractmethod
    def get(self, key_id: str) -> APIKeyRecord | None:
        """Get a key record by ID."""
        ...

    @abstractmethod
    def list(
        self,
        status: StatusFilter = StatusFilter.ALL,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[APIKeyRecord], int]:
        """List records newest first.

        Returns:
            Tuple of (records in the requested window, total matching)
        """
        ...

    @abstractmethod
    def transition_status(
        self, key_id: str, from_status: KeyStatus, to_status: KeyStatus
    ) -> APIKeyRecord | None:
        """Atomically move a key from ``from_status`` to ``to_status``.

        The key is left untouched when its current status is not
        ``from_status``.

        Returns:
            The record as it was before the call, or None if the key does
            not exist
        """
        ...

    @abstractmethod
    def touch_last_used(self, key_id: str, used_at: str) -> None:
        """Record the time a key was last used. Status is never changed."""
        ...

    @abstractmethod
    def delete(self, key_id: str) -> bool:
        """Delete a key permanently. Returns True if it existed."""
        ...


class MemoryCredentialStore(CredentialStoreProtocol):
    """In-memory API key storage (non-persistent, for development/testing)."""

    def __init__(self) -> None:
        self._records: dict[str, APIKeyRecord] = {}
        self._lock = threading.RLock()

    def add(self, record: APIKeyRecord) -> None:
        with self._lock:
            self._records[record.key_id] = record.model_copy(deep=True)

    def get(self, key_id: str) -> APIKeyRecord | None:
        with self._lock:
            record = self._records.get(key_id)
            return record.model_copy(deep=True) if record else None

    def list(
        self,
        status: StatusFilter = StatusFilter.ALL,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[APIKeyRecord], int]:
        with self._lock:
            # Insertion order is creation order
            matching = [
                r for r in reversed(self._records.values()) if _matches(r, status)
            ]
            window = matching[offset : offset + limit]
            return [r.model_copy(deep=True) for r in window], len(matching)

    def transition_status(
        self, key_id: str, from_status: KeyStatus, to_status: KeyStatus
    ) -> APIKeyRecord | None:
        with self._lock:
            record = self._records.get(key_id)
            if not record:
                return None
            previous = record.model_copy(deep=True)
            if record.status is from_status:
                record.status = to_status
            return previous

    def touch_last_used(self, key_id: str, used_at: str) -> None:
        with self._lock:
            record = self._records.get(key_id)
            if record:
                record.last_used_at = used_at

    def delete(self, key_id: str) -> bool:
        with self._lock:
            return self._records.pop(key_id, None) is not None


class RedisCredentialStore(CredentialStoreProtocol):
    """Redis-backed API key storage.

    Key schema:
        ucp:apikey:{key_id}  -> JSON: APIKeyRecord
        ucp:apikey:index     -> Sorted set: key IDs scored by creation time
    """

    def __init__(self, redis_client: redis.Redis[bytes], prefix: str = "ucp:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key_id: str) -> str:
        return f"{self._prefix}apikey:{key_id}"

    @property
    def _index_key(self) -> str:
        return f"{self._prefix}apikey:index"

    def add(self, record: APIKeyRecord) -> None:
        pipe = self._redis.pipeline()
        pipe.set(self._key(record.key_id), record.model_dump_json())
        pipe.zadd(self._index_key, {record.key_id: time.time()})
        pipe.execute()

    def get(self, key_id: str) -> APIKeyRecord | None:
        data = self._redis.get(self._key(key_id))
        if not data:
            return None
        return APIKeyRecord.model_validate_json(data)

    def list(
        self,
        status: StatusFilter = StatusFilter.ALL,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[APIKeyRecord], int]:
        key_ids = self._redis.zrevrange(self._index_key, 0, -1)
        matching: list[APIKeyRecord] = []
        for key_id in key_ids:
            key_id_str = key_id.decode() if isinstance(key_id, bytes) else key_id
            record = self.get(key_id_str)
            if record and _matches(record, status):
                matching.append(record)
        return matching[offset : offset + limit], len(matching)

    def _modify(
        self, key_id: str, change: Callable[[APIKeyRecord], bool]
    ) -> APIKeyRecord | None:
        """Read, change and write back one record in a WATCH/MULTI transaction.

        ``change`` mutates the record it is given and returns whether it
        should be written. Returns the record as read, or None if missing.
        """
        key = self._key(key_id)

        def apply(pipe: redis.client.Pipeline) -> APIKeyRecord | None:
            data = pipe.get(key)
            if not data:
                return None
            current = APIKeyRecord.model_validate_json(data)
            updated = current.model_copy(deep=True)
            if change(updated):
                pipe.multi()
                pipe.set(key, updated.model_dump_json())
            return current

        # Retried by redis-py when the record changes mid-update
        previous: APIKeyRecord | None = self._redis.transaction(
            apply, key, value_from_callable=True
        )
        return previous

    def transition_status(
        self, key_id: str, from_status: KeyStatus, to_status: KeyStatus
    ) -> APIKeyRecord | None:
        def change(record: APIKeyRecord) -> bool:
            if record.status is not from_status:
                return False
            record.status = to_status
            return True

        return self._modify(key_id, change)

    def touch_last_used(self, key_id: str, used_at: str) -> None:
        def change(record: APIKeyRecord) -> bool:
            record.last_used_at = used_at
            return True

        self._modify(key_id, change)

    def delete(self, key_id: str) -> bool:
        pipe = self._redis.pipeline()
        pipe.delete(self._key(key_id))
        pipe.zrem(self._index_key, key_id)
        deleted, _ = pipe.execute()
        return bool(deleted)
