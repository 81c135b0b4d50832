"""Tests for response shaping and legacy field handling."""
from __future__ import annotations

import pytest

from stylio.responses import API_LEGACY, API_V1
from stylio.search.formatters import format_count, format_salon, normalize_document, with_aliases


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, "0"),
        (None, "0"),
        (950, "950"),
        (1000, "1K"),
        (1500, "1.5K"),
        (999_999, "1000K"),
        (1_000_000, "1M"),
        (2_300_000, "2.3M"),
    ],
)
def test_format_count(value, expected) -> None:
    assert format_count(value) == expected


def test_legacy_aliases_only_for_legacy_clients() -> None:
    data = {"averageRating": 4.5, "likeCount": 3}

    assert "rating" not in with_aliases(dict(data), API_V1)

    legacy = with_aliases(dict(data), API_LEGACY)
    assert legacy["rating"] == 4.5
    assert legacy["likesCount"] == 3
    assert legacy["averageRating"] == 4.5


def test_normalize_document_folds_legacy_names() -> None:
    doc = normalize_document({"name": "Old Salon", "rating": 4.1, "coverImage": "cover.jpg"})

    assert doc["averageRating"] == 4.1
    assert "rating" not in doc
    assert doc["thumbnailUrl"] == "cover.jpg"
    assert doc["mode"] == "toSalon"
    assert doc["priceLevel"] == 2


def test_canonical_name_wins_over_legacy() -> None:
    doc = normalize_document({"averageRating": 3.0, "rating": 5.0, "thumbnailUrl": "t.jpg", "coverImage": "c.jpg"})

    assert doc["averageRating"] == 3.0
    assert doc["thumbnailUrl"] == "t.jpg"


def test_format_salon_includes_distance(app, catalog) -> None:
    glow = catalog["salons"]["glow"]

    data = format_salon(glow, API_V1, distance=1374, area_name="Indiranagar", city_name="Bangalore")

    assert data["distanceInMeters"] == 1374
    assert data["distanceKm"] == 1.37
    assert data["area"] == {"id": glow.area_id, "name": "Indiranagar"}
    assert data["audience"] == ["women"]
    assert data["tags"] == ["bridal", "hair"]
