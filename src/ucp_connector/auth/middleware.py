"""API key authentication for FastAPI.

Credentials are accepted from the ``X-UCP-API-Key`` header or the
``ucp_api_key`` query parameter, the header taking precedence.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader, APIKeyQuery

from ucp_connector.auth.models import APIKeyInfo, Permission
from ucp_connector.auth.permissions import check_permission
from ucp_connector.errors import ErrorCode, create_error_response

if TYPE_CHECKING:
    from collections.abc import Callable

    from ucp_connector.auth.service import APIKeyService

logger = logging.getLogger(__name__)

__all__ = [
    "API_KEY_HEADER",
    "API_KEY_QUERY",
    "APIKeyAuth",
]

API_KEY_HEADER = "X-UCP-API-Key"
API_KEY_QUERY = "ucp_api_key"


class APIKeyAuth:
    """API key authentication for FastAPI endpoints.

    Attributes:
        service: API key service used to verify credentials
        header_name: HTTP header name (default: X-UCP-API-Key)
        query_name: Query parameter name (default: ucp_api_key)

    Example:
        >>> auth = APIKeyAuth(service)
        >>>
        >>> @app.get("/orders")
        >>> async def orders(key: APIKeyInfo = Depends(auth.require("read"))):
        ...     return {"key_id": key.key_id}
    """

    def __init__(
        self,
        service: APIKeyService,
        header_name: str = API_KEY_HEADER,
        query_name: str = API_KEY_QUERY,
    ) -> None:
        self.service = service
        self.header_name = header_name
        self.query_name = query_name

        # FastAPI security dependencies
        self.header_scheme = APIKeyHeader(name=header_name, auto_error=False)
        self.query_scheme = APIKeyQuery(name=query_name, auto_error=False)

    def authenticate(self, request: Request, presented: str | None) -> APIKeyInfo:
        """Verify a presented credential.

        Raises:
            HTTPException: 401 if no credential is presented or it is invalid
        """
        if not presented:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=create_error_response(
                    ErrorCode.NO_API_KEY,
                    message=f"Provide an API key via '{self.header_name}' header or '{self.query_name}' query parameter",
                ),
                headers={"WWW-Authenticate": f"ApiKey name={self.header_name}"},
            )

        info = self.service.verify_api_key(presented)
        if info is None:
            logger.warning(
                f"Authentication failed for {request.client.host if request.client else 'unknown'} "
                f"on {request.url.path}"
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=create_error_response(ErrorCode.INVALID_API_KEY),
                headers={"WWW-Authenticate": f"ApiKey name={self.header_name}"},
            )

        request.state.api_key = info
        return info

    def require(self, permission: str | Permission = Permission.READ) -> Callable[..., Any]:
        """Create a dependency that demands a permission tier.

        Raises (from the dependency):
            HTTPException: 401 for missing/invalid keys, 403 for keys below
            the required tier
        """
        auth_instance = self
        required = Permission(permission)

        async def dependency(
            request: Request,
            header_key: str | None = Security(auth_instance.header_scheme),
            query_key: str | None = Security(auth_instance.query_scheme),
        ) -> APIKeyInfo:
            # bcrypt and store lookups block, so verify off the event loop
            info = await asyncio.to_thread(
                auth_instance.authenticate, request, header_key or query_key
            )
            if not check_permission(info.permissions, required):
                logger.warning(
                    f"API key {info.key_id} lacks '{required.value}' permission "
                    f"for {request.url.path}"
                )
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=create_error_response(
                        ErrorCode.FORBIDDEN,
                        details={"required": required.value},
                    ),
                )
            return info

        return dependency
