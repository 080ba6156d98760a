"""Tests for the connector application factory."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ucp_connector import __version__
from ucp_connector.auth.middleware import API_KEY_HEADER
from ucp_connector.config import ConnectorConfig
from ucp_connector.connector import Connector, build_connector
from ucp_connector.server import create_app
from ucp_connector.signing import derive_key_id
from ucp_connector.storage import StorageBackends


@pytest.fixture
def connector(config: ConnectorConfig, storage: StorageBackends) -> Connector:
    return build_connector(config, storage=storage)


@pytest.fixture
def client(connector: Connector) -> TestClient:
    return TestClient(create_app(connector=connector))


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == __version__
        assert data["enabled"] is True
        assert data["storage"] == "memory"


class TestDiscovery:
    """Tests for GET /.well-known/ucp."""

    def test_no_key_yet(self, client: TestClient) -> None:
        """Discovery never creates a key by itself."""
        response = client.get("/.well-known/ucp")

        assert response.status_code == 200
        assert response.json() == {"ucp_version": "1.0", "signing_keys": []}

    def test_active_key(self, client: TestClient, connector: Connector) -> None:
        key = connector.signing.get_key()

        response = client.get("/.well-known/ucp")

        entry = response.json()["signing_keys"][0]
        assert entry["key_id"] == derive_key_id(key)
        assert entry["algorithm"] == "HMAC-SHA256"
        assert entry["status"] == "active"
        assert key not in response.text

    def test_follows_rotation(self, client: TestClient, connector: Connector) -> None:
        connector.signing.get_key()
        new_key = connector.signing.rotate()

        response = client.get("/.well-known/ucp")

        assert response.json()["signing_keys"][0]["key_id"] == derive_key_id(new_key)


class TestDisabledConnector:
    """Tests for the connector master switch."""

    @pytest.fixture
    def disabled(self, config: ConnectorConfig, storage: StorageBackends) -> Connector:
        return build_connector(
            config.model_copy(update={"enabled": False}), storage=storage
        )

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("GET", "/auth/keys"),
            ("POST", "/auth/verify"),
            ("POST", "/webhooks/test"),
            ("POST", "/webhooks/retry"),
        ],
    )
    def test_returns_503(self, disabled: Connector, method: str, path: str) -> None:
        client = TestClient(create_app(connector=disabled))
        created = disabled.keys.generate_api_key("admin", ["admin"]).unwrap()
        assert created is not None

        response = client.request(
            method, path, headers={API_KEY_HEADER: created.credential}
        )

        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "ucp_disabled"

    def test_health_still_served(self, disabled: Connector) -> None:
        client = TestClient(create_app(connector=disabled))

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["enabled"] is False


class TestLifespan:
    """Tests for application startup and shutdown."""

    def test_shutdown_closes_connector(self, connector: Connector) -> None:
        app = create_app(connector=connector)

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            assert app.state.connector is connector

        assert connector.emitter.pending == 0
