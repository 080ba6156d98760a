"""Tests for permission tier checks."""

from __future__ import annotations

import pytest

from ucp_connector.auth.models import Permission
from ucp_connector.auth.permissions import check_permission, parse_permissions


class TestCheckPermission:
    """Tests for check_permission function."""

    @pytest.mark.parametrize(
        ("granted", "required", "expected"),
        [
            (["read"], "read", True),
            (["read"], "write", False),
            (["read"], "admin", False),
            (["write"], "read", True),
            (["write"], "write", True),
            (["write"], "admin", False),
            (["admin"], "read", True),
            (["admin"], "write", True),
            (["admin"], "admin", True),
            (["read", "admin"], "write", True),
        ],
    )
    def test_hierarchy(self, granted: list[str], required: str, expected: bool) -> None:
        assert check_permission(granted, required) is expected

    def test_accepts_enum_values(self) -> None:
        assert check_permission([Permission.WRITE], Permission.READ)

    def test_empty_grant(self) -> None:
        assert check_permission([], "read") is False

    def test_unknown_tiers_grant_nothing(self) -> None:
        assert check_permission(["root"], "read") is False
        assert check_permission(["admin"], "root") is False


class TestParsePermissions:
    """Tests for parse_permissions function."""

    def test_parse(self) -> None:
        assert parse_permissions(["read", "admin"]) == [Permission.READ, Permission.ADMIN]

    def test_dedupes_preserving_order(self) -> None:
        assert parse_permissions(["admin", "read", "admin"]) == [
            Permission.ADMIN,
            Permission.READ,
        ]

    def test_unknown_tier(self) -> None:
        with pytest.raises(ValueError):
            parse_permissions(["read", "owner"])
