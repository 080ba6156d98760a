"""Error code catalog and tagged results for the UCP connector.

Every failure the core can report carries an ``ErrorCode``. The registry
maps each code to its error kind, HTTP status, recoverability and default
message, so the webhook engine, the credential verifier and the REST layer
all describe the same failure the same way.

Error Code Ranges:
    E01x: Authentication errors (401/403)
    E03x: Credential validation errors (400)
    E04x: Lookup errors (404)
    E05x: Connector state errors (503)
    E5xx: Webhook delivery errors

Example:
    >>> from ucp_connector.errors import ErrorCode, Result, UCPError
    >>> result = Result.failure(UCPError(ErrorCode.KEY_NOT_FOUND))
    >>> result.ok
    False
    >>> result.error.kind
    <ErrorKind.NOT_FOUND: 'not_found'>
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

__all__ = [
    "ERROR_REGISTRY",
    "ErrorCode",
    "ErrorKind",
    "Result",
    "UCPError",
    "create_error_response",
    "get_error_http_status",
]

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Broad failure categories used to decide retry and surfacing."""

    CONFIGURATION = "configuration"
    PERMANENT = "permanent"
    TRANSIENT = "transient"
    AUTH = "auth"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"


class ErrorCode(str, Enum):
    """Standardized connector error codes."""

    # E01x - Authentication errors
    NO_API_KEY = "E010"
    INVALID_API_KEY = "E011"
    FORBIDDEN = "E013"

    # E03x - Credential validation errors
    INVALID_PERMISSIONS = "E030"
    INVALID_USER = "E031"
    ALREADY_REVOKED = "E032"

    # E04x - Lookup errors
    KEY_NOT_FOUND = "E040"

    # E05x - Connector state errors
    CONNECTOR_DISABLED = "E050"

    # E5xx - Webhook delivery errors
    WEBHOOK_URL_INVALID = "E501"
    WEBHOOK_CLIENT_ERROR = "E510"
    WEBHOOK_SERVER_ERROR = "E511"
    WEBHOOK_TRANSPORT_ERROR = "E512"


ERROR_REGISTRY: dict[ErrorCode, dict[str, Any]] = {
    # E01x - Authentication errors
    ErrorCode.NO_API_KEY: {
        "error": "no_api_key",
        "kind": ErrorKind.AUTH,
        "http_status": 401,
        "recoverable": False,
        "message": "No API key provided",
    },
    ErrorCode.INVALID_API_KEY: {
        "error": "invalid_api_key",
        "kind": ErrorKind.AUTH,
        "http_status": 401,
        "recoverable": False,
        "message": "Invalid or revoked API key",
    },
    ErrorCode.FORBIDDEN: {
        "error": "insufficient_permissions",
        "kind": ErrorKind.AUTH,
        "http_status": 403,
        "recoverable": False,
        "message": "API key does not have the required permission",
    },
    # E03x - Credential validation errors
    ErrorCode.INVALID_PERMISSIONS: {
        "error": "invalid_permissions",
        "kind": ErrorKind.VALIDATION,
        "http_status": 400,
        "recoverable": False,
        "message": "Permissions must be a non-empty subset of read, write, admin",
    },
    ErrorCode.INVALID_USER: {
        "error": "invalid_user",
        "kind": ErrorKind.VALIDATION,
        "http_status": 400,
        "recoverable": False,
        "message": "Owner does not exist",
    },
    ErrorCode.ALREADY_REVOKED: {
        "error": "already_revoked",
        "kind": ErrorKind.VALIDATION,
        "http_status": 400,
        "recoverable": False,
        "message": "API key is already revoked",
    },
    # E04x - Lookup errors
    ErrorCode.KEY_NOT_FOUND: {
        "error": "key_not_found",
        "kind": ErrorKind.NOT_FOUND,
        "http_status": 404,
        "recoverable": False,
        "message": "API key not found",
    },
    # E05x - Connector state errors
    ErrorCode.CONNECTOR_DISABLED: {
        "error": "ucp_disabled",
        "kind": ErrorKind.CONFIGURATION,
        "http_status": 503,
        "recoverable": True,
        "message": "UCP connector is disabled",
    },
    # E5xx - Webhook delivery errors
    ErrorCode.WEBHOOK_URL_INVALID: {
        "error": "webhook_url_invalid",
        "kind": ErrorKind.CONFIGURATION,
        "http_status": 400,
        "recoverable": False,
        "message": "Webhook URL is not a valid http(s) URL",
    },
    ErrorCode.WEBHOOK_CLIENT_ERROR: {
        "error": "webhook_client_error",
        "kind": ErrorKind.PERMANENT,
        "http_status": 502,
        "recoverable": False,
        "message": "Webhook destination rejected the delivery",
    },
    ErrorCode.WEBHOOK_SERVER_ERROR: {
        "error": "webhook_server_error",
        "kind": ErrorKind.TRANSIENT,
        "http_status": 502,
        "recoverable": True,
        "message": "Webhook destination failed on every attempt",
    },
    ErrorCode.WEBHOOK_TRANSPORT_ERROR: {
        "error": "webhook_transport_error",
        "kind": ErrorKind.TRANSIENT,
        "http_status": 504,
        "recoverable": True,
        "message": "Webhook destination could not be reached",
    },
}


def get_error_http_status(code: ErrorCode) -> int:
    """Get the HTTP status code for an error code.

    Example:
        >>> get_error_http_status(ErrorCode.INVALID_API_KEY)
        401
    """
    status: int = ERROR_REGISTRY[code]["http_status"]
    return status


def create_error_response(
    code: ErrorCode,
    message: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a standardized error response dictionary.

    Args:
        code: The error code from ErrorCode enum.
        message: Optional custom message (uses default if not provided).
        details: Optional additional context.

    Returns:
        Dictionary with code, error, message, recoverable, details and
        timestamp fields.
    """
    metadata = ERROR_REGISTRY[code]
    return {
        "code": code.value,
        "error": metadata["error"],
        "message": message or metadata["message"],
        "recoverable": metadata["recoverable"],
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class UCPError(Exception):
    """A failure described by an entry of the error registry."""

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message or ERROR_REGISTRY[code]["message"]
        self.details = details or {}
        super().__init__(self.message)

    @property
    def kind(self) -> ErrorKind:
        kind: ErrorKind = ERROR_REGISTRY[self.code]["kind"]
        return kind

    @property
    def error(self) -> str:
        """Machine-readable error identifier (e.g. ``already_revoked``)."""
        error: str = ERROR_REGISTRY[self.code]["error"]
        return error

    @property
    def http_status(self) -> int:
        return get_error_http_status(self.code)

    @property
    def recoverable(self) -> bool:
        return bool(ERROR_REGISTRY[self.code]["recoverable"])

    def to_response(self) -> dict[str, Any]:
        """Render as a standardized error response body."""
        return create_error_response(self.code, self.message, self.details or None)

    def __repr__(self) -> str:
        return f"UCPError(code={self.code.value}, message={self.message!r})"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation: either a value or a ``UCPError``.

    Example:
        >>> result = Result.success(42)
        >>> result.ok, result.value
        (True, 42)
    """

    value: T | None = None
    error: UCPError | None = None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: UCPError) -> Result[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        """Error kind of a failed result, ``None`` on success."""
        return self.error.kind if self.error else None

    def unwrap(self) -> T | None:
        """Return the value, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value
