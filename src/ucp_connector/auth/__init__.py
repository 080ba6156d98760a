"""API key authentication.

Keys are presented as ``key_id:secret`` and carry permission tiers where
``admin`` includes ``write`` and ``write`` includes ``read``.
"""

from ucp_connector.auth.middleware import API_KEY_HEADER, API_KEY_QUERY, APIKeyAuth
from ucp_connector.auth.models import (
    APIKeyInfo,
    APIKeyPage,
    CreatedAPIKey,
    KeyStatus,
    Permission,
    StatusFilter,
)
from ucp_connector.auth.permissions import check_permission
from ucp_connector.auth.router import create_auth_router
from ucp_connector.auth.service import APIKeyService
from ucp_connector.auth.store import (
    CredentialStoreProtocol,
    MemoryCredentialStore,
    RedisCredentialStore,
)

__all__ = [
    "API_KEY_HEADER",
    "API_KEY_QUERY",
    "APIKeyAuth",
    "APIKeyInfo",
    "APIKeyPage",
    "APIKeyService",
    "CreatedAPIKey",
    "CredentialStoreProtocol",
    "KeyStatus",
    "MemoryCredentialStore",
    "Permission",
    "RedisCredentialStore",
    "StatusFilter",
    "check_permission",
    "create_auth_router",
]
