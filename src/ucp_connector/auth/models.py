"""Pydantic models for API key authentication."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Permission(str, Enum):
    """Permission tiers. Each tier includes the ones below it."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"


class KeyStatus(str, Enum):
    """API key lifecycle status. Revocation is terminal."""

    ACTIVE = "active"
    REVOKED = "revoked"


class StatusFilter(str, Enum):
    """Status filter for listing keys."""

    ACTIVE = "active"
    REVOKED = "revoked"
    ALL = "all"


# =============================================================================
# Storage Models
# =============================================================================


class APIKeyRecord(BaseModel):
    """Stored API credential. Never leaves the service with its hash."""

    key_id: str = Field(description="Public key identifier (ucp_...)")
    secret_hash: str = Field(description="bcrypt hash of the secret")
    description: str = Field(default="", description="Human-readable label")
    permissions: list[Permission] = Field(description="Granted permission tiers")
    owner: str | None = Field(default=None, description="Owning principal, if any")
    status: KeyStatus = Field(default=KeyStatus.ACTIVE)
    created_at: str = Field(description="ISO 8601 creation time")
    last_used_at: str | None = Field(default=None, description="ISO 8601 last use")

    def to_info(self) -> APIKeyInfo:
        """Public view of the record (without the secret hash)."""
        return APIKeyInfo(**self.model_dump(exclude={"secret_hash"}))


# =============================================================================
# Request/Response Models (API)
# =============================================================================


class APIKeyInfo(BaseModel):
    """API key details safe to return to callers."""

    key_id: str
    description: str = ""
    permissions: list[Permission]
    owner: str | None = None
    status: KeyStatus
    created_at: str
    last_used_at: str | None = None


class CreatedAPIKey(APIKeyInfo):
    """A newly created key, including the secret shown only once."""

    secret: str = Field(description="Raw secret; not retrievable later")

    @property
    def credential(self) -> str:
        """The ``key_id:secret`` string clients present."""
        return f"{self.key_id}:{self.secret}"


class APIKeyPage(BaseModel):
    """One page of API keys."""

    keys: list[APIKeyInfo] = Field(description="Keys on this page, newest first")
    total: int = Field(description="Keys matching the filter")
    page: int = Field(description="Current page (1-based)")
    per_page: int = Field(description="Page size")
    total_pages: int = Field(description="Number of pages")


class APIKeyCreateRequest(BaseModel):
    """Request body for creating an API key.

    Permissions are validated by the service so that invalid tiers are
    reported with the connector's own error code.
    """

    description: str = Field(default="", max_length=255)
    permissions: list[str] = Field(default_factory=lambda: [Permission.READ.value])
    user_id: str | None = Field(default=None, description="Owning principal")


class APIKeyCreateResponse(CreatedAPIKey):
    """Response for key creation."""

    message: str = Field(
        default="Store this secret securely. It will not be shown again.",
    )


class VerifyRequest(BaseModel):
    """Request body for verifying a credential."""

    api_key: str | None = Field(default=None, description="key_id:secret")


class VerifyResponse(BaseModel):
    """Response for credential verification."""

    valid: bool
    message: str | None = None
    key: APIKeyInfo | None = None


class RevokeResponse(BaseModel):
    """Response for key revocation."""

    success: bool
    message: str
    key_id: str

