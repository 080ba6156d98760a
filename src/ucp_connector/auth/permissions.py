"""Permission tier checks.

Tiers form a hierarchy: ``admin`` includes ``write``, which includes
``read``.

Example:
    >>> check_permission(["write"], "read")
    True
    >>> check_permission(["write"], "admin")
    False
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ucp_connector.auth.models import Permission

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = [
    "PERMISSION_LEVELS",
    "check_permission",
    "parse_permissions",
]

PERMISSION_LEVELS: dict[Permission, int] = {
    Permission.READ: 1,
    Permission.WRITE: 2,
    Permission.ADMIN: 3,
}


def parse_permissions(values: Iterable[str | Permission]) -> list[Permission]:
    """Convert tier names to ``Permission`` values, dropping duplicates.

    Raises:
        ValueError: If a value is not a known tier
    """
    permissions: list[Permission] = []
    for value in values:
        permission = Permission(value)
        if permission not in permissions:
            permissions.append(permission)
    return permissions


def check_permission(
    granted: Iterable[str | Permission],
    required: str | Permission,
) -> bool:
    """Whether any granted tier is at or above the required tier.

    Unknown tier names never grant anything.
    """
    try:
        required_level = PERMISSION_LEVELS[Permission(required)]
    except ValueError:
        return False

    for value in granted:
        try:
            level = PERMISSION_LEVELS[Permission(value)]
        except ValueError:
            continue
        if level >= required_level:
            return True
    return False
