"""Booking creation, status transitions and slot availability."""
from __future__ import annotations

from datetime import date, timedelta

import pytest
from sqlalchemy import select

from stylio.bookings import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, can_transition, time_slots
from stylio.extensions import db
from stylio.models import Booking, Notification, PromoCode, Service, utc_now
from stylio.notifications import register_channel

from conftest import auth_headers, make_user, next_weekday


def _book(client, user, catalog, **overrides):
    payload = {
        "salonId": catalog["salons"]["glow"].salon_id,
        "providerId": catalog["stylist"].provider_id,
        "services": [{"serviceId": catalog["services"]["glow_cut"].service_id, "quantity": 1}],
        "bookingDate": next_weekday(1).isoformat(),
        "bookingTime": "11:00",
    }
    payload.update(overrides)
    return client.post("/bookings", json=payload, headers=auth_headers(user))


def _notification_types(user) -> list[str]:
    return list(db.session.scalars(
        select(Notification.type).where(Notification.user_id == user.user_id).order_by(Notification.notification_id)
    ))


@pytest.fixture
def booking(client, catalog, customer):
    response = _book(client, customer, catalog)
    assert response.status_code == 201
    return db.session.get(Booking, response.get_json()["data"]["booking"]["id"])


def test_transition_table() -> None:
    assert can_transition("pending", "confirmed")
    assert can_transition("confirmed", "in_progress")
    assert can_transition("in_progress", "completed")
    assert not can_transition("pending", "completed")
    assert not can_transition("confirmed", "completed")
    for status in TERMINAL_STATUSES:
        assert ALLOWED_TRANSITIONS[status] == frozenset()
    assert TERMINAL_STATUSES == {"completed", "cancelled", "no_show"}


def test_time_slots_exclude_closing_time() -> None:
    assert time_slots("09:00", "10:30") == ["09:00", "09:30", "10:00"]


def test_create_booking(client, catalog, customer) -> None:
    response = _book(client, customer, catalog)
    body = response.get_json()
    created = body["data"]["booking"]

    assert response.status_code == 201
    assert body["message"] == "Booking created successfully"
    assert created["status"] == "pending"
    assert created["bookingNumber"].startswith("BK")
    assert len(created["bookingNumber"]) == 10
    assert created["totalAmount"] == 500
    assert created["finalAmount"] == 500
    assert _notification_types(customer) == ["booking_created"]


def test_home_booking_uses_home_price(client, catalog, customer) -> None:
    response = _book(client, customer, catalog, bookingType="home", homeAddress={"street": "1 Lake Rd"})

    assert response.status_code == 201
    assert response.get_json()["data"]["booking"]["totalAmount"] == 650


def test_home_booking_requires_address(client, catalog, customer) -> None:
    response = _book(client, customer, catalog, bookingType="home")

    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "homeAddress"


def test_booking_in_the_past_is_rejected(client, catalog, customer) -> None:
    response = _book(client, customer, catalog, bookingDate=(date.today() - timedelta(days=1)).isoformat())

    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "bookingDate"


def test_services_must_belong_to_the_salon(client, catalog, customer) -> None:
    foreign = catalog["services"]["barber_cut"].service_id

    response = _book(client, customer, catalog, services=[foreign])

    assert response.status_code == 400
    assert response.get_json()["errors"] == [
        {"field": "services.0.serviceId", "message": "Service does not belong to this salon"}
    ]


def test_provider_cannot_be_double_booked(client, catalog, customer, booking) -> None:
    response = _book(client, customer, catalog)

    assert response.status_code == 400
    assert response.get_json()["message"] == "The provider is already booked for this time slot"


def test_booking_requires_login(client, catalog) -> None:
    response = client.post("/bookings", json={})

    assert response.status_code == 401
    assert response.get_json()["message"] == "Not authorized, no token"


def test_promo_code_discount(client, catalog, customer) -> None:
    db.session.add(PromoCode(code="WELCOME20", discount_type="percentage", discount_value=20, max_discount=250,
                             min_booking_amount=500, valid_until=utc_now() + timedelta(days=5)))
    db.session.commit()
    facial = catalog["services"]["glow_facial"].service_id

    response = _book(client, customer, catalog, services=[facial], promoCode="welcome20")
    created = response.get_json()["data"]["booking"]

    assert response.status_code == 201
    assert created["discountAmount"] == 250
    assert created["finalAmount"] == 1250
    assert created["promoCode"] == "WELCOME20"
    promo = db.session.scalar(select(PromoCode).where(PromoCode.code == "WELCOME20"))
    assert promo.current_uses == 1


def test_invalid_promo_code(client, catalog, customer) -> None:
    response = _book(client, customer, catalog, promoCode="NOPE")

    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "promoCode"


def test_full_lifecycle_notifies_every_step(client, catalog, customer, owner, booking) -> None:
    headers = auth_headers(owner)

    for status in ("confirmed", "in_progress", "completed"):
        response = client.patch(f"/bookings/{booking.booking_id}/status", json={"status": status},
                                headers=headers)
        assert response.status_code == 200
        assert response.get_json()["data"]["booking"]["status"] == status

    assert _notification_types(customer) == [
        "booking_created",
        "booking_confirmed",
        "booking_started",
        "booking_completed",
    ]
    service = db.session.get(Service, catalog["services"]["glow_cut"].service_id)
    assert service.booking_count == 1
    assert catalog["salons"]["glow"].popularity_score == pytest.approx(4.6 * 20 + 2)


def test_invalid_transition_leaves_status_unchanged(client, catalog, customer, owner, booking) -> None:
    client.post(f"/bookings/{booking.booking_id}/confirm", headers=auth_headers(owner))

    response = client.post(f"/bookings/{booking.booking_id}/complete", headers=auth_headers(owner))

    assert response.status_code == 400
    assert response.get_json()["message"] == "Cannot change booking status from 'confirmed' to 'completed'"
    db.session.refresh(booking)
    assert booking.status == "confirmed"
    assert _notification_types(customer) == ["booking_created", "booking_confirmed"]


def test_customer_can_cancel_with_reason(client, catalog, customer, booking) -> None:
    response = client.post(f"/bookings/{booking.booking_id}/cancel", json={"reason": "Running late"},
                           headers=auth_headers(customer))
    data = response.get_json()["data"]["booking"]

    assert response.status_code == 200
    assert data["status"] == "cancelled"
    assert data["cancelledBy"] == "customer"
    assert data["cancellationReason"] == "Running late"
    message = db.session.scalar(
        select(Notification.message).where(Notification.type == "booking_cancelled")
    )
    assert message.endswith("Reason: Running late")


def test_cancelled_booking_cannot_be_cancelled_again(client, catalog, customer, booking) -> None:
    client.post(f"/bookings/{booking.booking_id}/cancel", headers=auth_headers(customer))

    response = client.post(f"/bookings/{booking.booking_id}/cancel", headers=auth_headers(customer))

    assert response.status_code == 400


def test_customer_cannot_confirm(client, catalog, customer, booking) -> None:
    response = client.post(f"/bookings/{booking.booking_id}/confirm", headers=auth_headers(customer))

    assert response.status_code == 403
    db.session.refresh(booking)
    assert booking.status == "pending"


def test_owner_marks_no_show(client, catalog, customer, owner, booking) -> None:
    client.post(f"/bookings/{booking.booking_id}/confirm", headers=auth_headers(owner))

    response = client.post(f"/bookings/{booking.booking_id}/no-show", headers=auth_headers(owner))

    assert response.status_code == 200
    assert _notification_types(customer)[-1] == "booking_no_show"


def test_provider_cannot_change_status(client, catalog, owner, booking) -> None:
    client.post(f"/bookings/{booking.booking_id}/confirm", headers=auth_headers(owner))
    stylist_headers = auth_headers(catalog["stylist_user"])

    response = client.post(f"/bookings/{booking.booking_id}/no-show", headers=stylist_headers)

    assert response.status_code == 403
    db.session.refresh(booking)
    assert booking.status == "confirmed"
    assert client.get(f"/bookings/{booking.booking_id}", headers=stylist_headers).status_code == 200


def test_strangers_cannot_see_bookings(client, catalog, booking) -> None:
    stranger = make_user("sam")

    assert client.get(f"/bookings/{booking.booking_id}", headers=auth_headers(stranger)).status_code == 404
    response = client.post(f"/bookings/{booking.booking_id}/cancel", headers=auth_headers(stranger))
    assert response.status_code == 404


def test_list_bookings_filters_by_status(client, catalog, customer, booking) -> None:
    headers = auth_headers(customer)

    pending = client.get("/bookings?status=pending", headers=headers).get_json()["data"]
    completed = client.get("/bookings?status=completed", headers=headers).get_json()["data"]

    assert [item["id"] for item in pending["bookings"]] == [booking.booking_id]
    assert pending["pagination"]["total"] == 1
    assert completed["bookings"] == []


def test_upcoming_and_past(client, catalog, customer, booking) -> None:
    headers = auth_headers(customer)

    upcoming = client.get("/bookings/upcoming", headers=headers).get_json()["data"]["bookings"]
    past = client.get("/bookings/past", headers=headers).get_json()["data"]["bookings"]

    assert [item["id"] for item in upcoming] == [booking.booking_id]
    assert past == []


def test_available_slots_mark_held_times(client, catalog, booking) -> None:
    salon_id = catalog["salons"]["glow"].salon_id
    day = booking.booking_date.isoformat()

    response = client.get(f"/bookings/available-slots?salon={salon_id}&date={day}")
    slots = {slot["time"]: slot["available"] for slot in response.get_json()["data"]["slots"]}

    assert len(slots) == 24
    assert slots["11:00"] is False
    assert slots["11:30"] is True


def test_outbound_channels_receive_notifications(app, client, catalog, customer) -> None:
    delivered = []

    def broken(notification):
        raise RuntimeError("smtp down")

    register_channel(app, broken)
    register_channel(app, delivered.append)

    response = _book(client, customer, catalog)

    assert response.status_code == 201
    assert [notification.type for notification in delivered] == ["booking_created"]
