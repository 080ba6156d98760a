"""Pytest configuration and shared fixtures for connector tests."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from ucp_connector.auth.service import APIKeyService
from ucp_connector.auth.store import MemoryCredentialStore
from ucp_connector.config import ConnectorConfig
from ucp_connector.signing import SigningKeyManager
from ucp_connector.storage import MemoryOptionStore, StorageBackends
from ucp_connector.webhooks.config import WebhookConfig
from ucp_connector.webhooks.queue import FailedDeliveryQueue

WEBHOOK_URL = "https://agent.example.com/webhooks"


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    """Adjustable Unix clock."""

    def __init__(self, now: float = 1_735_689_600.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def mock_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> httpx.AsyncClient:
    """HTTP client whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def config() -> ConnectorConfig:
    """Connector configuration with a webhook destination and cheap hashing."""
    return ConnectorConfig(
        site_url="https://shop.example.com",
        bcrypt_rounds=4,
        webhook=WebhookConfig(url=WEBHOOK_URL),
    )


@pytest.fixture
def options() -> MemoryOptionStore:
    return MemoryOptionStore()


@pytest.fixture
def storage(options: MemoryOptionStore) -> StorageBackends:
    return StorageBackends(
        options=options,
        credentials=MemoryCredentialStore(),
        mode="memory",
    )


@pytest.fixture
def signing(options: MemoryOptionStore) -> SigningKeyManager:
    return SigningKeyManager(options)


@pytest.fixture
def failed_queue(options: MemoryOptionStore) -> FailedDeliveryQueue:
    return FailedDeliveryQueue(options)


@pytest.fixture
def key_service() -> APIKeyService:
    return APIKeyService(MemoryCredentialStore(), bcrypt_rounds=4)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
