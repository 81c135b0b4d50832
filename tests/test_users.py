"""Profile, saved addresses and location lookups."""
from __future__ import annotations

from stylio.extensions import db
from stylio.models import Salon

from conftest import auth_headers

ADDRESS = {"street": "12 Lake Road", "city": "Bangalore", "pincode": "560038", "lat": 12.97, "lng": 77.64}


def test_update_profile(client, customer) -> None:
    response = client.patch("/users/profile", json={"firstName": "Caroline", "phone": "+91 99999 00000"},
                            headers=auth_headers(customer))
    user = response.get_json()["data"]["user"]

    assert response.status_code == 200
    assert user["firstName"] == "Caroline"
    assert user["name"] == "Caroline Tester"
    assert user["phone"] == "+91 99999 00000"


def test_oversized_inline_avatar_is_rejected(app, client, customer) -> None:
    app.config["MAX_AVATAR_BYTES"] = 64
    avatar = "data:image/png;base64," + "A" * 100

    response = client.patch("/users/profile", json={"avatar": avatar}, headers=auth_headers(customer))

    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "avatar"


def test_first_address_becomes_default(client, customer) -> None:
    headers = auth_headers(customer)

    first = client.post("/users/addresses", json=ADDRESS, headers=headers).get_json()["data"]["address"]
    second = client.post("/users/addresses", json={**ADDRESS, "label": "Work"}, headers=headers)

    assert first["isDefault"] is True
    assert first["location"] == {"lat": 12.97, "lng": 77.64}
    assert second.get_json()["data"]["address"]["isDefault"] is False


def test_switch_and_delete_default_address(client, customer) -> None:
    headers = auth_headers(customer)
    first = client.post("/users/addresses", json=ADDRESS, headers=headers).get_json()["data"]["address"]
    second = client.post("/users/addresses", json={**ADDRESS, "label": "Work"}, headers=headers)
    second_id = second.get_json()["data"]["address"]["id"]

    client.patch(f"/users/addresses/{second_id}/default", headers=headers)
    client.delete(f"/users/addresses/{second_id}", headers=headers)
    addresses = client.get("/users/addresses", headers=headers).get_json()["data"]["addresses"]

    assert [(address["id"], address["isDefault"]) for address in addresses] == [(first["id"], True)]


def test_address_validation(client, customer) -> None:
    response = client.post("/users/addresses", json={"city": "Bangalore", "label": "Castle"},
                           headers=auth_headers(customer))
    fields = {error["field"] for error in response.get_json()["errors"]}

    assert fields == {"street", "label"}


def test_cities_with_salon_counts(client, catalog) -> None:
    response = client.get("/cities")
    cities = response.get_json()["data"]["cities"]

    assert [(city["name"], city["salonCount"]) for city in cities] == [("Bangalore", 4)]


def test_city_count_includes_salons_linked_through_an_area(client, catalog, owner) -> None:
    city_id = catalog["city"].city_id
    db.session.add(Salon(owner_id=owner.user_id, name="Lane Salon", slug="lane-salon",
                         area_id=catalog["areas"]["mg_road"].area_id, latitude=12.97, longitude=77.60))
    db.session.commit()

    cities = client.get("/cities").get_json()["data"]["cities"]
    listing = client.get(f"/salons?cityId={city_id}").get_json()["data"]

    assert cities[0]["salonCount"] == 5
    assert listing["pagination"]["total"] == cities[0]["salonCount"]


def test_areas_by_city(client, catalog) -> None:
    city_id = catalog["city"].city_id

    response = client.get(f"/areas?city={city_id}&search=kora")
    areas = response.get_json()["data"]["areas"]

    assert [(area["name"], area["salonCount"]) for area in areas] == [("Koramangala", 1)]


def test_unknown_city(client, catalog) -> None:
    assert client.get("/cities/999").status_code == 404
