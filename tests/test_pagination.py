"""Unit tests for page arithmetic."""
from __future__ import annotations

from stylio.responses import API_LEGACY
from stylio.search.pagination import build_pagination, calculate_offset, clamp_limit


def test_clamp_limit() -> None:
    assert clamp_limit(None, 20, 50) == 20
    assert clamp_limit(500, 20, 50) == 50
    assert clamp_limit(7, 20, 50) == 7


def test_calculate_offset() -> None:
    assert calculate_offset(1, 20) == 0
    assert calculate_offset(3, 20) == 40


def test_pagination_metadata() -> None:
    meta = build_pagination(2, 20, 45)

    assert meta == {
        "page": 2,
        "limit": 20,
        "total": 45,
        "totalPages": 3,
        "hasNextPage": True,
        "hasPrevPage": True,
    }


def test_empty_result_has_no_pages() -> None:
    meta = build_pagination(1, 20, 0)

    assert meta["totalPages"] == 0
    assert meta["hasNextPage"] is False
    assert meta["hasPrevPage"] is False


def test_legacy_clients_also_get_pages() -> None:
    assert build_pagination(1, 10, 25, API_LEGACY)["pages"] == 3
    assert "pages" not in build_pagination(1, 10, 25)
