"""Page arithmetic and response metadata."""
from __future__ import annotations

import math


def clamp_limit(limit: int | None, default: int, maximum: int) -> int:
    if limit is None:
        limit = default
    return min(maximum, max(1, int(limit)))


def calculate_offset(page: int, limit: int) -> int:
    return (max(1, page) - 1) * limit


def build_pagination(page: int, limit: int, total: int, api_version: str = "v1") -> dict[str, object]:
    total_pages = math.ceil(total / limit) if limit else 0
    meta: dict[str, object] = {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }
    if api_version == "legacy":
        meta["pages"] = total_pages
    return meta
