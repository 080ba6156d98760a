"""Option storage with Redis backend and optional memory fallback.

Connector state (signing key, failed webhook queue) lives in named options,
the way a store platform keeps plugin settings. Every option store offers an
atomic ``update`` so concurrent writers never lose each other's changes.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ucp_connector.auth.store import (
    CredentialStoreProtocol,
    MemoryCredentialStore,
    RedisCredentialStore,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    import redis

    from ucp_connector.config import ConnectorConfig

__all__ = [
    "MemoryOptionStore",
    "OptionStoreProtocol",
    "RedisOptionStore",
    "StorageBackends",
    "create_storage",
]

logger = logging.getLogger(__name__)


class OptionStoreProtocol(ABC):
    """Protocol for named option storage backends.

    Values are JSON-compatible (dicts, lists, strings, numbers).
    """

    @abstractmethod
    def get(self, name: str, default: Any = None) -> Any:
        """Get an option value, or ``default`` if unset."""
        ...

    @abstractmethod
    def set(self, name: str, value: Any) -> None:
        """Set an option value."""
        ...

    @abstractmethod
    def delete(self, name: str) -> bool:
        """Delete an option. Returns True if it existed."""
        ...

    @abstractmethod
    def update(
        self,
        name: str,
        func: Callable[[Any], Any],
        default: Any = None,
    ) -> Any:
        """Atomically replace an option with ``func(current)``.

        ``func`` receives the current value (or ``default``) and returns the
        new one. It may be called more than once if a concurrent writer
        interferes, so it must not have side effects. Returns the stored
        value.
        """
        ...


class MemoryOptionStore(OptionStoreProtocol):
    """In-memory option storage (non-persistent, for development/testing)."""

    def __init__(self) -> None:
        self._options: dict[str, Any] = {}
        self._lock = threading.RLock()

    def get(self, name: str, default: Any = None) -> Any:
        with self._lock:
            if name not in self._options:
                return default
            return copy.deepcopy(self._options[name])

    def set(self, name: str, value: Any) -> None:
        with self._lock:
            self._options[name] = copy.deepcopy(value)

    def delete(self, name: str) -> bool:
        with self._lock:
            if name not in self._options:
                return False
            del self._options[name]
            return True

    def update(
        self,
        name: str,
        func: Callable[[Any], Any],
        default: Any = None,
    ) -> Any:
        with self._lock:
            current = copy.deepcopy(self._options.get(name, default))
            value = func(current)
            self._options[name] = copy.deepcopy(value)
            return value


class RedisOptionStore(OptionStoreProtocol):
    """Redis-backed option storage.

    Key schema:
        ucp:option:{name} -> JSON value
    """

    def __init__(self, redis_client: redis.Redis[bytes], prefix: str = "ucp:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _option_key(self, name: str) -> str:
        return f"{self._prefix}option:{name}"

    def get(self, name: str, default: Any = None) -> Any:
        data = self._redis.get(self._option_key(name))
        if data is None:
            return default
        return json.loads(data)

    def set(self, name: str, value: Any) -> None:
        self._redis.set(self._option_key(name), json.dumps(value))

    def delete(self, name: str) -> bool:
        return bool(self._redis.delete(self._option_key(name)))

    def update(
        self,
        name: str,
        func: Callable[[Any], Any],
        default: Any = None,
    ) -> Any:
        key = self._option_key(name)

        def apply(pipe: redis.client.Pipeline) -> Any:
            data = pipe.get(key)
            current = json.loads(data) if data is not None else default
            value = func(current)
            pipe.multi()
            pipe.set(key, json.dumps(value))
            return value

        # WATCH/MULTI: retried by redis-py when the key changes mid-update
        return self._redis.transaction(apply, key, value_from_callable=True)


@dataclass
class StorageBackends:
    """Stores the connector runs on."""

    options: OptionStoreProtocol
    credentials: CredentialStoreProtocol
    mode: str


def create_storage(config: ConnectorConfig, prefix: str = "ucp:") -> StorageBackends:
    """Create option and credential stores from configuration.

    Uses Redis when ``redis_url`` is set. If Redis cannot be reached the
    connector refuses to start unless ``fallback_enabled`` is set, in which
    case it runs on in-memory stores in ``degraded`` mode.

    Raises:
        RuntimeError: If Redis is configured, unreachable and fallback is off.
    """
    if not config.redis_url:
        logger.info("UCP storage: Using in-memory storage (no Redis URL)")
        return StorageBackends(
            options=MemoryOptionStore(),
            credentials=MemoryCredentialStore(),
            mode="memory",
        )

    try:
        import redis as redis_lib

        client = redis_lib.from_url(config.redis_url)
        client.ping()
    except Exception as e:
        if not config.fallback_enabled:
            raise RuntimeError(
                f"UCP Redis store unavailable: {e}. "
                "Set UCP_FALLBACK_ENABLED=true for degraded mode."
            ) from e

        logger.warning(
            "UCP Redis unavailable - using in-memory fallback. "
            "API keys and failed webhooks will not persist across restarts."
        )
        return StorageBackends(
            options=MemoryOptionStore(),
            credentials=MemoryCredentialStore(),
            mode="degraded",
        )

    logger.info(f"UCP storage: Redis ({config.redis_url})")
    return StorageBackends(
        options=RedisOptionStore(client, prefix),
        credentials=RedisCredentialStore(client, prefix),
        mode="redis",
    )
