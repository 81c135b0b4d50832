"""Endpoint tests for salon discovery."""
from __future__ import annotations

from stylio.extensions import db
from stylio.models import Favorite

from conftest import auth_headers


def test_geo_listing_with_mode_and_audience(client, catalog) -> None:
    response = client.get(
        "/salons?lat=12.9716&lng=77.5946&radius=5000&mode=toHome&audience=women&page=1&limit=20"
    )
    body = response.get_json()

    assert response.status_code == 200
    assert body["success"] is True
    salons = body["data"]["salons"]
    assert [salon["name"] for salon in salons] == ["Glow Studio"]
    assert salons[0]["distanceInMeters"] == 0
    assert salons[0]["distanceKm"] == 0
    assert salons[0]["area"]["name"] == "Indiranagar"
    assert body["data"]["pagination"]["total"] == 1
    assert body["data"]["sort"] == {"sortBy": "distance", "sortOrder": "asc"}
    assert body["data"]["geo"]["radius"] == 5000


def test_listing_without_geo_sorts_by_popularity(client, catalog) -> None:
    response = client.get("/salons")
    names = [salon["name"] for salon in response.get_json()["data"]["salons"]]

    assert response.status_code == 200
    assert names == ["Faraway Spa", "Glow Studio", "The Barber Room", "Family Cuts"]
    assert "distanceInMeters" not in response.get_json()["data"]["salons"][0]


def test_audience_filter_includes_unisex(client, catalog) -> None:
    response = client.get("/salons?audience=men&sortBy=name")
    names = [salon["name"] for salon in response.get_json()["data"]["salons"]]

    assert names == ["Family Cuts", "The Barber Room"]


def test_text_search_matches_tags(client, catalog) -> None:
    response = client.get("/salons?q=bridal")

    assert [salon["name"] for salon in response.get_json()["data"]["salons"]] == ["Glow Studio"]


def test_text_search_treats_wildcards_literally(client, catalog) -> None:
    response = client.get("/salons?q=%25")

    assert response.status_code == 200
    assert response.get_json()["data"]["salons"] == []


def test_price_and_feature_filters(client, catalog) -> None:
    response = client.get("/salons?maxPrice=600&hasWifi=true")

    assert [salon["name"] for salon in response.get_json()["data"]["salons"]] == ["Glow Studio"]


def test_category_slug_filter(client, catalog) -> None:
    response = client.get("/salons?category=skin&sortBy=name")

    assert [salon["name"] for salon in response.get_json()["data"]["salons"]] == ["Faraway Spa", "Glow Studio"]


def test_unknown_category_returns_nothing(client, catalog) -> None:
    response = client.get("/salons?category=tattoo")

    assert response.status_code == 200
    assert response.get_json()["data"]["salons"] == []


def test_city_filter_covers_salons_tagged_through_area(client, catalog) -> None:
    city_id = catalog["city"].city_id

    response = client.get(f"/salons?cityId={city_id}")

    assert response.get_json()["data"]["pagination"]["total"] == 4


def test_limit_is_clamped(client, catalog) -> None:
    response = client.get("/salons?limit=500")

    assert response.get_json()["data"]["pagination"]["limit"] == 50


def test_inverted_rating_range_is_rejected(client, catalog) -> None:
    response = client.get("/salons?minRating=4.5&maxRating=3")
    body = response.get_json()

    assert response.status_code == 400
    assert body["success"] is False
    assert body["errors"] == [{"field": "minRating", "message": "minRating cannot be greater than maxRating"}]


def test_lat_without_lng_is_rejected(client, catalog) -> None:
    response = client.get("/salons?lat=12.97")

    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "lng"


def test_every_invalid_field_is_reported(client, catalog) -> None:
    response = client.get("/salons?lat=12.97&minPriceLevel=4&maxPriceLevel=1&radius=50")
    fields = {error["field"] for error in response.get_json()["errors"]}

    assert response.status_code == 400
    assert fields == {"lng", "radius", "minPriceLevel"}


def test_bad_types_are_rejected(client, catalog) -> None:
    response = client.get("/salons?page=zero&mode=flying")
    fields = {error["field"] for error in response.get_json()["errors"]}

    assert response.status_code == 400
    assert fields == {"page", "mode"}


def test_distance_sort_requires_coordinates(client, catalog) -> None:
    response = client.get("/salons?sortBy=distance")

    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "sortBy"


def test_legacy_clients_receive_rating_alias(client, catalog) -> None:
    response = client.get("/salons?sortBy=name&limit=1", headers={"X-API-Version": "legacy"})
    data = response.get_json()["data"]

    assert data["salons"][0]["rating"] == data["salons"][0]["averageRating"]
    assert "pages" in data["pagination"]


def test_nearby_requires_coordinates(client, catalog) -> None:
    response = client.get("/salons/nearby")

    assert response.status_code == 400


def test_nearby_orders_by_distance(client, catalog) -> None:
    response = client.get("/salons/nearby?lat=12.9716&lng=77.5946&radius=6000")
    names = [salon["name"] for salon in response.get_json()["data"]["salons"]]

    assert names == ["Glow Studio", "The Barber Room", "Family Cuts"]


def test_salon_detail(client, catalog, customer) -> None:
    glow = catalog["salons"]["glow"]
    db.session.add(Favorite(user_id=customer.user_id, salon_id=glow.salon_id))
    db.session.commit()

    response = client.get(f"/salons/{glow.salon_id}", headers=auth_headers(customer))
    salon = response.get_json()["data"]["salon"]

    assert response.status_code == 200
    assert salon["isFavorite"] is True
    assert salon["serviceCount"] == 2
    assert salon["providerCount"] == 1
    assert salon["priceRange"] == {"min": 500, "max": 1500}
    assert salon["city"]["name"] == "Bangalore"


def test_anonymous_salon_detail_has_no_favorite_flag(client, catalog) -> None:
    response = client.get(f"/salons/{catalog['salons']['glow'].salon_id}")

    assert "isFavorite" not in response.get_json()["data"]["salon"]


def test_inactive_salon_is_not_found(client, catalog) -> None:
    barber = catalog["salons"]["barber"]
    barber.is_active = False
    db.session.commit()

    response = client.get(f"/salons/{barber.salon_id}")

    assert response.status_code == 404
    assert response.get_json() == {"success": False, "message": "Salon not found"}


def test_salon_services_grouped_by_mode(client, catalog) -> None:
    response = client.get(f"/salons/{catalog['salons']['glow'].salon_id}/services")
    data = response.get_json()["data"]

    assert data["total"] == 2
    assert [service["name"] for service in data["grouped"]["toHome"]] == ["Haircut"]
    assert len(data["grouped"]["toSalon"]) == 2


def test_type_and_range_errors_are_reported_together(client, catalog) -> None:
    response = client.get("/salons?page=zero&minRating=5&maxRating=1&lat=12.97")
    fields = {error["field"] for error in response.get_json()["errors"]}

    assert response.status_code == 400
    assert fields == {"page", "minRating", "lng"}


def test_rating_range_bounds_every_result(client, catalog) -> None:
    for low, high in [(4, 4.7), (3.9, 3.9), (0, 5), (4.5, 5)]:
        response = client.get(f"/salons?minRating={low}&maxRating={high}")
        salons = response.get_json()["data"]["salons"]

        assert response.status_code == 200
        assert salons
        assert all(low <= salon["averageRating"] <= high for salon in salons)

    names = {salon["name"] for salon in client.get("/salons?minRating=4&maxRating=4.7").get_json()["data"]["salons"]}
    assert names == {"Glow Studio", "The Barber Room"}


def test_geo_results_are_a_subset_of_the_plain_listing(client, catalog) -> None:
    for filters in ["", "mode=toSalon", "mode=toHome&audience=women", "audience=men", "minPriceLevel=2&maxPriceLevel=4"]:
        plain = client.get(f"/salons?limit=50&{filters}").get_json()["data"]["salons"]
        nearby = client.get(f"/salons?limit=50&lat=12.9716&lng=77.5946&radius=20000&{filters}")
        nearby = nearby.get_json()["data"]["salons"]

        assert {salon["id"] for salon in nearby} <= {salon["id"] for salon in plain}
        assert all(salon["distanceInMeters"] <= 20000 for salon in nearby)
        assert "Faraway Spa" not in {salon["name"] for salon in nearby}


def test_walking_all_pages_returns_each_salon_once(client, catalog) -> None:
    full = client.get("/salons?limit=50&sortBy=rating").get_json()["data"]["salons"]

    collected = []
    page = 1
    while True:
        data = client.get(f"/salons?limit=1&sortBy=rating&page={page}").get_json()["data"]
        pagination = data["pagination"]
        assert pagination["hasNextPage"] == (page * pagination["limit"] < pagination["total"])
        collected.extend(salon["id"] for salon in data["salons"])
        if not pagination["hasNextPage"]:
            break
        page += 1

    assert collected == [salon["id"] for salon in full]
    assert len(set(collected)) == len(collected) == 4
