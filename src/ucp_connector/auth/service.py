"""API key lifecycle and verification.

Keys are presented as ``key_id:secret``. The key ID is public and used for
lookup; only a bcrypt hash of the secret is stored, and the raw secret is
returned exactly once, at creation.

Example:
    >>> service = APIKeyService(MemoryCredentialStore(), bcrypt_rounds=4)
    >>> created = service.generate_api_key("agent", ["write"]).unwrap()
    >>> info = service.verify_api_key(created.credential)
    >>> info.key_id == created.key_id
    True
"""

from __future__ import annotations

import logging
import math
import secrets
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ucp_connector.auth.hashing import DEFAULT_ROUNDS, hash_secret, verify_secret
from ucp_connector.auth.models import (
    APIKeyInfo,
    APIKeyPage,
    APIKeyRecord,
    CreatedAPIKey,
    KeyStatus,
    Permission,
    StatusFilter,
)
from ucp_connector.auth.permissions import check_permission, parse_permissions
from ucp_connector.errors import ErrorCode, Result, UCPError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from ucp_connector.auth.store import CredentialStoreProtocol

__all__ = [
    "APIKeyService",
    "generate_key_id",
    "generate_secret",
]

logger = logging.getLogger(__name__)

KEY_ID_PREFIX = "ucp_"
SECRET_PREFIX = "ucp_secret_"


def generate_key_id() -> str:
    """Generate a public key ID."""
    return f"{KEY_ID_PREFIX}{secrets.token_hex(6)}"


def generate_secret() -> str:
    """Generate a raw API secret."""
    return f"{SECRET_PREFIX}{secrets.token_hex(16)}"


def now_iso() -> str:
    """Get current UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


class APIKeyService:
    """Creates, verifies, lists and revokes API keys.

    Args:
        store: Credential storage backend
        owner_exists: Callable telling whether an owner reference resolves
            to a real principal. When not given, any owner is accepted.
        bcrypt_rounds: Cost factor for secret hashes
    """

    def __init__(
        self,
        store: CredentialStoreProtocol,
        owner_exists: Callable[[str], bool] | None = None,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self._store = store
        self._owner_exists = owner_exists
        self._bcrypt_rounds = bcrypt_rounds

    def generate_api_key(
        self,
        description: str = "",
        permissions: Iterable[str | Permission] | None = None,
        owner: str | None = None,
    ) -> Result[CreatedAPIKey]:
        """Create a new API key.

        Args:
            description: Human-readable label
            permissions: Tiers to grant (defaults to read)
            owner: Owning principal reference

        Returns:
            The created key with its secret, or a VALIDATION failure for
            unknown tiers, an empty tier list, or an unknown owner.
        """
        if permissions is None:
            permissions = [Permission.READ]

        try:
            granted = parse_permissions(permissions)
        except ValueError:
            return Result.failure(
                UCPError(
                    ErrorCode.INVALID_PERMISSIONS,
                    details={"allowed": [p.value for p in Permission]},
                )
            )
        if not granted:
            return Result.failure(UCPError(ErrorCode.INVALID_PERMISSIONS))

        if owner is not None and self._owner_exists is not None:
            if not self._owner_exists(owner):
                return Result.failure(
                    UCPError(ErrorCode.INVALID_USER, details={"owner": owner})
                )

        key_id = generate_key_id()
        secret = generate_secret()
        record = APIKeyRecord(
            key_id=key_id,
            secret_hash=hash_secret(secret, self._bcrypt_rounds),
            description=description,
            permissions=granted,
            owner=owner,
            status=KeyStatus.ACTIVE,
            created_at=now_iso(),
        )
        self._store.add(record)

        logger.info(
            f"Created API key {key_id} with permissions "
            f"{','.join(p.value for p in granted)}"
        )
        return Result.success(
            CreatedAPIKey(**record.to_info().model_dump(), secret=secret)
        )

    def verify_api_key(self, presented: str | None) -> APIKeyInfo | None:
        """Verify a ``key_id:secret`` credential.

        Returns the key's info on success. Malformed, unknown, revoked and
        mismatching credentials all return None.
        """
        if not presented or ":" not in presented:
            return None

        key_id, secret = presented.split(":", 1)
        if not key_id or not secret:
            return None

        record = self._store.get(key_id)
        if record is None or record.status is not KeyStatus.ACTIVE:
            return None

        if not verify_secret(secret, record.secret_hash):
            return None

        used_at = now_iso()
        try:
            self._store.touch_last_used(key_id, used_at)
            record.last_used_at = used_at
        except Exception as e:
            logger.warning(f"Failed to update last_used_at for {key_id}: {e}")

        return record.to_info()

    @staticmethod
    def check_permission(info: APIKeyInfo, required: str | Permission) -> bool:
        """Whether a verified key grants the required tier."""
        return check_permission(info.permissions, required)

    def get_api_key(self, key_id: str) -> APIKeyInfo | None:
        """Look up a key by ID regardless of status."""
        record = self._store.get(key_id)
        return record.to_info() if record else None

    def list_api_keys(
        self,
        status: StatusFilter | str = StatusFilter.ACTIVE,
        page: int = 1,
        per_page: int = 20,
    ) -> APIKeyPage:
        """List keys newest first, one page at a time.

        Raises:
            ValueError: If ``status`` is not active, revoked or all
        """
        status = StatusFilter(status)
        page = max(1, page)
        per_page = max(1, per_page)

        records, total = self._store.list(
            status=status,
            offset=(page - 1) * per_page,
            limit=per_page,
        )
        return APIKeyPage(
            keys=[r.to_info() for r in records],
            total=total,
            page=page,
            per_page=per_page,
            total_pages=math.ceil(total / per_page),
        )

    def revoke_api_key(self, key_id: str) -> Result[APIKeyInfo]:
        """Revoke an active key.

        Returns:
            The revoked key, NOT_FOUND for unknown keys, or VALIDATION
            (already_revoked) if the key was revoked before.
        """
        previous = self._store.transition_status(
            key_id, KeyStatus.ACTIVE, KeyStatus.REVOKED
        )
        if previous is None:
            return Result.failure(UCPError(ErrorCode.KEY_NOT_FOUND, details={"key_id": key_id}))
        if previous.status is not KeyStatus.ACTIVE:
            return Result.failure(
                UCPError(ErrorCode.ALREADY_REVOKED, details={"key_id": key_id})
            )

        previous.status = KeyStatus.REVOKED
        logger.info(f"Revoked API key {key_id}")
        return Result.success(previous.to_info())

    def delete_api_key(self, key_id: str) -> Result[None]:
        """Delete a key permanently."""
        if not self._store.delete(key_id):
            return Result.failure(UCPError(ErrorCode.KEY_NOT_FOUND, details={"key_id": key_id}))
        logger.info(f"Deleted API key {key_id}")
        return Result.success(None)
