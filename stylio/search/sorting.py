"""Map public sort keys onto concrete orderings."""
from __future__ import annotations

from dataclasses import dataclass

from ..errors import ValidationFailed

DISTANCE = "distance"

SORT_KEYS: dict[str, dict[str, str]] = {
    "salon": {
        "popular": "popularity_score",
        "rating": "average_rating",
        "price": "price_level",
        "name": "name",
        "newest": "created_at",
        DISTANCE: DISTANCE,
    },
    "service": {
        "price": "price",
        "popular": "booking_count",
        "rating": "salon_rating",
        "name": "name",
        "newest": "created_at",
        DISTANCE: DISTANCE,
    },
    "provider": {
        "rating": "average_rating",
        "experience": "experience_years",
        "name": "name",
        DISTANCE: DISTANCE,
    },
}

DEFAULT_SORT = {
    "salon": "popular",
    "service": "price",
    "provider": "rating",
}

# Keys whose natural reading is smallest first.
ASCENDING_KEYS = {DISTANCE, "name", "price"}


@dataclass(frozen=True)
class SortSpec:
    key: str
    field: str
    descending: bool

    @property
    def is_distance(self) -> bool:
        return self.field == DISTANCE


def resolve_sort(kind: str, key: str | None, direction: str | None = None, geo_active: bool = False) -> SortSpec:
    """Resolve ``key``/``direction`` for an entity kind.

    Unknown keys fall back to the entity default, which becomes distance when
    a geo search is active. Asking for distance without coordinates is an
    error rather than a silent fallback.
    """
    keys = SORT_KEYS[kind]
    key = (key or "").strip()

    if key == DISTANCE and not geo_active:
        raise ValidationFailed.for_field("sortBy", "sortBy=distance requires lat and lng")

    if key not in keys:
        if key:
            direction = None
        key = DISTANCE if geo_active else DEFAULT_SORT[kind]

    direction = (direction or "").strip().lower()
    if direction not in ("asc", "desc"):
        direction = "asc" if key in ASCENDING_KEYS else "desc"

    return SortSpec(key=key, field=keys[key], descending=direction == "desc")
