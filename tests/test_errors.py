"""Tests for the error catalog and results."""

from __future__ import annotations

import pytest

from ucp_connector.errors import (
    ERROR_REGISTRY,
    ErrorCode,
    ErrorKind,
    Result,
    UCPError,
    create_error_response,
    get_error_http_status,
)


class TestErrorRegistry:
    """Tests for ERROR_REGISTRY."""

    def test_every_code_registered(self) -> None:
        assert set(ERROR_REGISTRY) == set(ErrorCode)

    @pytest.mark.parametrize("code", list(ErrorCode))
    def test_entry_shape(self, code: ErrorCode) -> None:
        entry = ERROR_REGISTRY[code]

        assert isinstance(entry["kind"], ErrorKind)
        assert isinstance(entry["recoverable"], bool)
        assert 400 <= entry["http_status"] < 600
        assert entry["error"]
        assert entry["message"]

    def test_delivery_kinds(self) -> None:
        """Only server and transport failures are retried."""
        assert ERROR_REGISTRY[ErrorCode.WEBHOOK_CLIENT_ERROR]["kind"] is ErrorKind.PERMANENT
        assert ERROR_REGISTRY[ErrorCode.WEBHOOK_SERVER_ERROR]["kind"] is ErrorKind.TRANSIENT
        assert (
            ERROR_REGISTRY[ErrorCode.WEBHOOK_TRANSPORT_ERROR]["kind"] is ErrorKind.TRANSIENT
        )
        assert ERROR_REGISTRY[ErrorCode.WEBHOOK_URL_INVALID]["kind"] is ErrorKind.CONFIGURATION

    def test_http_status(self) -> None:
        assert get_error_http_status(ErrorCode.NO_API_KEY) == 401
        assert get_error_http_status(ErrorCode.FORBIDDEN) == 403
        assert get_error_http_status(ErrorCode.KEY_NOT_FOUND) == 404
        assert get_error_http_status(ErrorCode.CONNECTOR_DISABLED) == 503


class TestCreateErrorResponse:
    """Tests for create_error_response."""

    def test_default_message(self) -> None:
        response = create_error_response(ErrorCode.ALREADY_REVOKED)

        assert response["code"] == "E032"
        assert response["error"] == "already_revoked"
        assert response["message"] == "API key is already revoked"
        assert response["recoverable"] is False
        assert response["details"] is None
        assert "timestamp" in response

    def test_custom_message_and_details(self) -> None:
        response = create_error_response(
            ErrorCode.FORBIDDEN, message="Nope", details={"required": "admin"}
        )

        assert response["message"] == "Nope"
        assert response["details"] == {"required": "admin"}


class TestUCPError:
    """Tests for UCPError."""

    def test_properties(self) -> None:
        error = UCPError(ErrorCode.KEY_NOT_FOUND, details={"key_id": "ucp_x"})

        assert error.kind is ErrorKind.NOT_FOUND
        assert error.error == "key_not_found"
        assert error.http_status == 404
        assert error.recoverable is False
        assert str(error) == "API key not found"

    def test_to_response(self) -> None:
        error = UCPError(ErrorCode.WEBHOOK_SERVER_ERROR, "HTTP 503: busy")

        response = error.to_response()

        assert response["code"] == "E511"
        assert response["message"] == "HTTP 503: busy"
        assert response["recoverable"] is True

    def test_repr(self) -> None:
        assert repr(UCPError(ErrorCode.NO_API_KEY)) == (
            "UCPError(code=E010, message='No API key provided')"
        )


class TestResult:
    """Tests for Result."""

    def test_success(self) -> None:
        result = Result.success(42)

        assert result.ok
        assert result.kind is None
        assert result.unwrap() == 42

    def test_failure(self) -> None:
        error = UCPError(ErrorCode.INVALID_USER)
        result: Result[int] = Result.failure(error)

        assert not result.ok
        assert result.kind is ErrorKind.VALIDATION
        with pytest.raises(UCPError) as exc_info:
            result.unwrap()
        assert exc_info.value is error
