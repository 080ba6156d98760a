"""FastAPI router for API key management endpoints.

All key management endpoints require an admin key. ``POST /auth/verify`` is
public so agents can check a credential before using it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, NoReturn, cast

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from ucp_connector.auth.models import (
    APIKeyCreateRequest,
    APIKeyCreateResponse,
    APIKeyInfo,
    APIKeyPage,
    CreatedAPIKey,
    Permission,
    RevokeResponse,
    StatusFilter,
    VerifyRequest,
    VerifyResponse,
)
from ucp_connector.errors import ErrorCode, UCPError, create_error_response

if TYPE_CHECKING:
    from ucp_connector.auth.middleware import APIKeyAuth
    from ucp_connector.auth.service import APIKeyService

logger = logging.getLogger(__name__)

__all__ = [
    "create_auth_router",
]

TOTAL_HEADER = "X-WP-Total"
TOTAL_PAGES_HEADER = "X-WP-TotalPages"


def _raise_error(error: UCPError) -> NoReturn:
    raise HTTPException(status_code=error.http_status, detail=error.to_response())


def create_auth_router(service: APIKeyService, auth: APIKeyAuth) -> APIRouter:
    """Create FastAPI router for API key endpoints.

    Args:
        service: API key service
        auth: Authentication dependency factory

    Returns:
        Configured APIRouter mounted under ``/auth``
    """
    router = APIRouter(prefix="/auth", tags=["auth"])
    require_admin = auth.require(Permission.ADMIN)

    # -------------------------------------------------------------------------
    # POST /auth/keys - Create key
    # -------------------------------------------------------------------------

    @router.post(
        "/keys",
        response_model=APIKeyCreateResponse,
        status_code=201,
        summary="Create an API key",
    )
    async def create_key(
        request: APIKeyCreateRequest,
        _: APIKeyInfo = Depends(require_admin),
    ) -> APIKeyCreateResponse:
        result = await asyncio.to_thread(
            service.generate_api_key,
            description=request.description,
            permissions=request.permissions,
            owner=request.user_id,
        )
        if result.error is not None:
            _raise_error(result.error)
        created = cast(CreatedAPIKey, result.value)
        return APIKeyCreateResponse(**created.model_dump())

    # -------------------------------------------------------------------------
    # GET /auth/keys - List keys
    # -------------------------------------------------------------------------

    @router.get(
        "/keys",
        response_model=APIKeyPage,
        summary="List API keys",
    )
    async def list_keys(
        response: Response,
        status: StatusFilter = Query(default=StatusFilter.ACTIVE),
        page: int = Query(default=1, ge=1),
        per_page: int = Query(default=20, ge=1, le=100),
        _: APIKeyInfo = Depends(require_admin),
    ) -> APIKeyPage:
        result = await asyncio.to_thread(
            service.list_api_keys, status=status, page=page, per_page=per_page
        )
        response.headers[TOTAL_HEADER] = str(result.total)
        response.headers[TOTAL_PAGES_HEADER] = str(result.total_pages)
        return result

    # -------------------------------------------------------------------------
    # GET /auth/keys/{key_id} - Key details
    # -------------------------------------------------------------------------

    @router.get(
        "/keys/{key_id}",
        response_model=APIKeyInfo,
        summary="Get API key details",
    )
    async def get_key(
        key_id: str,
        _: APIKeyInfo = Depends(require_admin),
    ) -> APIKeyInfo:
        info = await asyncio.to_thread(service.get_api_key, key_id)
        if info is None:
            _raise_error(UCPError(ErrorCode.KEY_NOT_FOUND, details={"key_id": key_id}))
        return info

    # -------------------------------------------------------------------------
    # DELETE /auth/keys/{key_id} - Revoke key
    # -------------------------------------------------------------------------

    @router.delete(
        "/keys/{key_id}",
        response_model=RevokeResponse,
        summary="Revoke an API key",
    )
    async def revoke_key(
        key_id: str,
        _: APIKeyInfo = Depends(require_admin),
    ) -> RevokeResponse:
        result = await asyncio.to_thread(service.revoke_api_key, key_id)
        if result.error is not None:
            _raise_error(result.error)
        return RevokeResponse(
            success=True,
            message="API key revoked successfully.",
            key_id=key_id,
        )

    # -------------------------------------------------------------------------
    # POST /auth/verify - Verify a credential
    # -------------------------------------------------------------------------

    @router.post(
        "/verify",
        response_model=VerifyResponse,
        summary="Verify an API key",
    )
    async def verify_key(
        http_request: Request,
        body: VerifyRequest | None = None,
    ) -> VerifyResponse:
        presented = (
            (body.api_key if body else None)
            or http_request.headers.get(auth.header_name)
            or http_request.query_params.get(auth.query_name)
        )
        if not presented:
            raise HTTPException(
                status_code=400,
                detail=create_error_response(ErrorCode.NO_API_KEY),
            )

        info = await asyncio.to_thread(service.verify_api_key, presented)
        if info is None:
            return VerifyResponse(valid=False, message="Invalid or revoked API key.")
        return VerifyResponse(valid=True, key=info)

    return router
