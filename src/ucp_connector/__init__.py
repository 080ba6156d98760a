"""UCP connector core for WooCommerce stores.

Signed webhook delivery for order lifecycle events, and API key
authentication with a read/write/admin permission hierarchy.

Example:
    >>> from ucp_connector import ConnectorConfig, create_app
    >>> app = create_app(ConnectorConfig(site_url="https://shop.example.com"))
"""

from __future__ import annotations

__version__ = "1.0.0"

from ucp_connector.config import ConnectorConfig
from ucp_connector.errors import ErrorCode, ErrorKind, Result, UCPError
from ucp_connector.server import create_app

__all__ = [
    "ConnectorConfig",
    "ErrorCode",
    "ErrorKind",
    "Result",
    "UCPError",
    "__version__",
    "create_app",
]
