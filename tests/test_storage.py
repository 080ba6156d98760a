"""Tests for option storage and backend selection."""

from __future__ import annotations

import json
import threading
from unittest.mock import MagicMock, patch

import pytest

from ucp_connector.auth.store import MemoryCredentialStore, RedisCredentialStore
from ucp_connector.config import ConnectorConfig
from ucp_connector.storage import (
    MemoryOptionStore,
    RedisOptionStore,
    create_storage,
)


class TestMemoryOptionStore:
    """Tests for MemoryOptionStore."""

    def test_get_default(self, options: MemoryOptionStore) -> None:
        assert options.get("missing") is None
        assert options.get("missing", default=[]) == []

    def test_set_get_delete(self, options: MemoryOptionStore) -> None:
        options.set("name", {"a": [1, 2]})

        assert options.get("name") == {"a": [1, 2]}
        assert options.delete("name") is True
        assert options.delete("name") is False

    def test_delete_stored_none(self, options: MemoryOptionStore) -> None:
        """An option holding None still exists until deleted."""
        options.set("name", None)

        assert options.delete("name") is True
        assert options.delete("name") is False

    def test_values_are_copies(self, options: MemoryOptionStore) -> None:
        value = {"items": [1]}
        options.set("name", value)
        value["items"].append(2)

        stored = options.get("name")
        stored["items"].append(3)

        assert options.get("name") == {"items": [1]}

    def test_update(self, options: MemoryOptionStore) -> None:
        result = options.update("counter", lambda n: n + 1, default=0)

        assert result == 1
        assert options.get("counter") == 1

    def test_update_is_atomic(self, options: MemoryOptionStore) -> None:
        def worker() -> None:
            for _ in range(100):
                options.update("counter", lambda n: n + 1, default=0)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert options.get("counter") == 400


class TestRedisOptionStore:
    """Tests for RedisOptionStore with a mocked client."""

    @pytest.fixture
    def redis_client(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture
    def store(self, redis_client: MagicMock) -> RedisOptionStore:
        return RedisOptionStore(redis_client)

    def test_get_decodes_json(
        self, store: RedisOptionStore, redis_client: MagicMock
    ) -> None:
        redis_client.get.return_value = b'{"a": 1}'

        assert store.get("name") == {"a": 1}
        redis_client.get.assert_called_once_with("ucp:option:name")

    def test_get_default(self, store: RedisOptionStore, redis_client: MagicMock) -> None:
        redis_client.get.return_value = None

        assert store.get("name", default=[]) == []

    def test_set(self, store: RedisOptionStore, redis_client: MagicMock) -> None:
        store.set("name", [1, 2])

        redis_client.set.assert_called_once_with("ucp:option:name", "[1, 2]")

    def test_delete(self, store: RedisOptionStore, redis_client: MagicMock) -> None:
        redis_client.delete.return_value = 1

        assert store.delete("name") is True

    def test_update_uses_transaction(
        self, store: RedisOptionStore, redis_client: MagicMock
    ) -> None:
        """update runs inside a WATCH/MULTI transaction on the option key."""
        pipe = MagicMock()
        pipe.get.return_value = b"[1]"

        def transaction(func, *watches, value_from_callable=False):  # type: ignore[no-untyped-def]
            assert watches == ("ucp:option:queue",)
            assert value_from_callable is True
            return func(pipe)

        redis_client.transaction.side_effect = transaction

        result = store.update("queue", lambda items: [*items, 2], default=[])

        assert result == [1, 2]
        pipe.multi.assert_called_once()
        key, value = pipe.set.call_args.args
        assert key == "ucp:option:queue"
        assert json.loads(value) == [1, 2]

    def test_update_missing_uses_default(
        self, store: RedisOptionStore, redis_client: MagicMock
    ) -> None:
        pipe = MagicMock()
        pipe.get.return_value = None
        redis_client.transaction.side_effect = (
            lambda func, *watches, **kwargs: func(pipe)
        )

        assert store.update("queue", lambda items: [*items, "x"], default=[]) == ["x"]


class TestCreateStorage:
    """Tests for create_storage backend selection."""

    def test_memory_without_redis_url(self) -> None:
        storage = create_storage(ConnectorConfig(redis_url=None))

        assert storage.mode == "memory"
        assert isinstance(storage.options, MemoryOptionStore)
        assert isinstance(storage.credentials, MemoryCredentialStore)

    def test_redis_when_reachable(self) -> None:
        client = MagicMock()
        with patch("redis.from_url", return_value=client) as from_url:
            storage = create_storage(ConnectorConfig(redis_url="redis://cache:6379/0"))

        from_url.assert_called_once_with("redis://cache:6379/0")
        client.ping.assert_called_once()
        assert storage.mode == "redis"
        assert isinstance(storage.options, RedisOptionStore)
        assert isinstance(storage.credentials, RedisCredentialStore)

    def test_unreachable_without_fallback_raises(self) -> None:
        client = MagicMock()
        client.ping.side_effect = ConnectionError("refused")
        with patch("redis.from_url", return_value=client):
            with pytest.raises(RuntimeError, match="UCP_FALLBACK_ENABLED"):
                create_storage(ConnectorConfig(redis_url="redis://localhost:59999/0"))

    def test_unreachable_with_fallback_degrades(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = MagicMock()
        client.ping.side_effect = ConnectionError("refused")
        with patch("redis.from_url", return_value=client):
            storage = create_storage(
                ConnectorConfig(
                    redis_url="redis://localhost:59999/0", fallback_enabled=True
                )
            )

        assert storage.mode == "degraded"
        assert isinstance(storage.options, MemoryOptionStore)
        assert "in-memory fallback" in caplog.text
