"""Tests for the webhook administration endpoints."""

from __future__ import annotations

import json
import time

import httpx
import pytest
from conftest import mock_client
from fastapi.testclient import TestClient

from ucp_connector.auth.middleware import API_KEY_HEADER
from ucp_connector.config import ConnectorConfig
from ucp_connector.connector import Connector, build_connector
from ucp_connector.server import create_app
from ucp_connector.storage import StorageBackends
from ucp_connector.webhooks.config import WebhookConfig
from ucp_connector.webhooks.models import FailedDelivery
from ucp_connector.webhooks.signature import SIGNATURE_HEADER, verify_signature


class Destination:
    """Webhook receiver answering with a fixed status code."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)


@pytest.fixture
def destination() -> Destination:
    return Destination()


@pytest.fixture
def connector(
    config: ConnectorConfig, storage: StorageBackends, destination: Destination
) -> Connector:
    return build_connector(config, storage=storage, http_client=mock_client(destination))


@pytest.fixture
def client(connector: Connector) -> TestClient:
    return TestClient(create_app(connector=connector))


@pytest.fixture
def admin_headers(connector: Connector) -> dict[str, str]:
    created = connector.keys.generate_api_key("admin", ["admin"]).unwrap()
    assert created is not None
    return {API_KEY_HEADER: created.credential}


def failed_record(delivery_id: str, failed_at: int) -> FailedDelivery:
    return FailedDelivery(
        url="https://agent.example.com/webhooks",
        payload={"id": delivery_id, "event_type": "order.paid", "data": {}},
        signature="t=1,v1=ab",
        error="HTTP 500: ",
        failed_at=failed_at,
    )


class TestAdminOnly:
    """Webhook endpoints demand an admin key."""

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("POST", "/webhooks/test"),
            ("POST", "/webhooks/retry"),
            ("GET", "/webhooks/failed"),
            ("DELETE", "/webhooks/failed"),
            ("POST", "/webhooks/signing-key/rotate"),
        ],
    )
    def test_write_key_forbidden(
        self, client: TestClient, connector: Connector, method: str, path: str
    ) -> None:
        created = connector.keys.generate_api_key("writer", ["write"]).unwrap()
        assert created is not None

        response = client.request(method, path, headers={API_KEY_HEADER: created.credential})

        assert response.status_code == 403

    def test_no_key(self, client: TestClient) -> None:
        assert client.post("/webhooks/test").status_code == 401


class TestSendTestWebhook:
    """Tests for POST /webhooks/test."""

    def test_delivered(
        self,
        client: TestClient,
        connector: Connector,
        destination: Destination,
        admin_headers: dict[str, str],
    ) -> None:
        response = client.post("/webhooks/test", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["message"] == "Test webhook sent successfully!"

        request = destination.requests[0]
        assert json.loads(request.content)["event_type"] == "test"
        assert verify_signature(
            request.content, request.headers[SIGNATURE_HEADER], connector.signing.get_key()
        )

    def test_destination_rejects(
        self, client: TestClient, destination: Destination, admin_headers: dict[str, str]
    ) -> None:
        destination.status_code = 410

        response = client.post("/webhooks/test", headers=admin_headers)

        data = response.json()
        assert data["success"] is False
        assert data["error"] == "webhook_client_error"
        assert data["message"].startswith("HTTP 410")

    def test_no_destination(self, storage: StorageBackends) -> None:
        config = ConnectorConfig(bcrypt_rounds=4, webhook=WebhookConfig(url=None))
        connector = build_connector(config, storage=storage)
        created = connector.keys.generate_api_key("admin", ["admin"]).unwrap()
        assert created is not None
        client = TestClient(create_app(connector=connector))

        response = client.post(
            "/webhooks/test", headers={API_KEY_HEADER: created.credential}
        )

        assert response.json() == {
            "success": False,
            "message": "Please configure a webhook URL first.",
            "error": None,
        }


class TestFailedQueueEndpoints:
    """Tests for /webhooks/failed and /webhooks/retry."""

    def test_list_and_clear(
        self, client: TestClient, connector: Connector, admin_headers: dict[str, str]
    ) -> None:
        connector.failed_queue.push(failed_record("d1", 1_735_689_600))

        listed = client.get("/webhooks/failed", headers=admin_headers).json()
        assert listed["count"] == 1
        assert listed["deliveries"][0]["payload"]["id"] == "d1"

        cleared = client.delete("/webhooks/failed", headers=admin_headers).json()
        assert cleared == {"removed": 1}
        assert connector.failed_queue.count() == 0

    def test_retry_counts(
        self,
        config: ConnectorConfig,
        storage: StorageBackends,
    ) -> None:
        """Delivered records leave the queue and expired failures are dropped."""
        now = int(time.time())

        def handler(request: httpx.Request) -> httpx.Response:
            delivery_id = request.headers["X-UCP-Delivery-ID"]
            return httpx.Response(200 if delivery_id == "ok" else 500)

        connector = build_connector(config, storage=storage, http_client=mock_client(handler))
        connector.failed_queue.push(failed_record("ok", now - 60))
        connector.failed_queue.push(failed_record("young", now - 3600))
        connector.failed_queue.push(failed_record("old", now - 25 * 3600))
        created = connector.keys.generate_api_key("admin", ["admin"]).unwrap()
        assert created is not None
        client = TestClient(create_app(connector=connector))

        response = client.post(
            "/webhooks/retry", headers={API_KEY_HEADER: created.credential}
        )

        data = response.json()
        assert data["success_count"] == 1
        assert data["failed_count"] == 2
        assert data["dropped_count"] == 1
        assert [r.delivery_id for r in connector.failed_queue.list()] == ["young"]


class TestRotateSigningKey:
    """Tests for POST /webhooks/signing-key/rotate."""

    def test_rotate(
        self, client: TestClient, connector: Connector, admin_headers: dict[str, str]
    ) -> None:
        old_key = connector.signing.get_key()

        response = client.post("/webhooks/signing-key/rotate", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        new_key = connector.signing.get_key()
        assert new_key != old_key
        assert data["key_id"] == connector.signing.key_id()
        assert data["created_at"] is not None
        assert new_key not in response.text
