"""Booking creation, the status state machine and slot availability."""
from __future__ import annotations

import random
import string
from datetime import date

from flask import current_app
from sqlalchemy import func, select, update

from .errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationFailed
from .extensions import db
from .models import Booking, BookingItem, Notification, PromoCode, Provider, Salon, Service, User, utc_now
from .notifications import notify_booking
from .salons import recompute_popularity

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"in_progress", "cancelled", "no_show"}),
    "in_progress": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "no_show": frozenset(),
}
TERMINAL_STATUSES = frozenset(status for status, nxt in ALLOWED_TRANSITIONS.items() if not nxt)
# Statuses that hold a time slot.
HOLDING_STATUSES = ("pending", "confirmed")
SLOT_MINUTES = 30
HOME_MODES = ("toHome", "both")


def can_transition(current: str, requested: str) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def generate_booking_number() -> str:
    return "BK" + "".join(random.choices(string.digits, k=8))


def _unused_booking_number() -> str:
    for _ in range(10):
        number = generate_booking_number()
        if db.session.scalar(select(Booking.booking_id).where(Booking.booking_number == number)) is None:
            return number
    raise Conflict("Could not allocate a booking number, please retry")


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def _clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def time_slots(start: str, end: str, step: int = SLOT_MINUTES) -> list[str]:
    """Slot start times from ``start`` (inclusive) up to ``end`` (exclusive)."""
    return [_clock(minute) for minute in range(_minutes(start), _minutes(end), step)]


def day_of_week(on_date: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (on_date.weekday() + 1) % 7


def salon_slots(salon: Salon, on_date: date) -> list[dict[str, object]]:
    if day_of_week(on_date) == 0 and not salon.is_open_sunday:
        return []
    booked = set(db.session.scalars(
        select(Booking.booking_time).where(
            Booking.salon_id == salon.salon_id,
            Booking.booking_date == on_date,
            Booking.status.in_(HOLDING_STATUSES),
        )
    ))
    return [
        {"time": slot, "available": slot not in booked}
        for slot in time_slots(salon.opening_time, salon.closing_time)
    ]


def provider_slots(provider: Provider, on_date: date) -> list[str]:
    weekday = day_of_week(on_date)
    windows = [entry for entry in provider.availability if entry.day_of_week == weekday and entry.is_available]
    if not windows or not provider.is_available:
        return []
    booked = set(db.session.scalars(
        select(Booking.booking_time).where(
            Booking.provider_id == provider.provider_id,
            Booking.booking_date == on_date,
            Booking.status.in_(HOLDING_STATUSES + ("in_progress",)),
        )
    ))
    slots: set[str] = set()
    for window in windows:
        slots.update(time_slots(window.start_time, window.end_time))
    return sorted(slots - booked)


def apply_promo(code: str, customer: User, amount: float) -> tuple[PromoCode, float]:
    promo = db.session.scalar(select(PromoCode).where(PromoCode.code == code.upper()))
    if promo is None or not promo.is_valid():
        raise ValidationFailed.for_field("promoCode", "Invalid or expired promo code")
    if amount < (promo.min_booking_amount or 0):
        raise ValidationFailed.for_field(
            "promoCode", f"Minimum booking amount of {promo.min_booking_amount:g} required"
        )
    used = db.session.scalar(
        select(func.count(Booking.booking_id)).where(
            Booking.customer_id == customer.user_id,
            Booking.promo_code_id == promo.promo_id,
            Booking.status != "cancelled",
        )
    ) or 0
    if promo.max_uses_per_user is not None and used >= promo.max_uses_per_user:
        raise ValidationFailed.for_field("promoCode", "You have already used this promo code")
    return promo, promo.calculate_discount(amount)


def create_booking(customer: User, body) -> tuple[Booking, Notification]:
    salon = db.session.get(Salon, body.salon_id)
    if salon is None or not salon.is_active:
        raise NotFound("Salon not found")

    requested_ids = [item.service_id for item in body.services]
    services = {
        service.service_id: service
        for service in db.session.scalars(select(Service).where(Service.service_id.in_(requested_ids)))
    }

    errors: list[dict[str, str]] = []
    for index, item in enumerate(body.services):
        service = services.get(item.service_id)
        field = f"services.{index}.serviceId"
        if service is None or service.salon_id != salon.salon_id:
            errors.append({"field": field, "message": "Service does not belong to this salon"})
        elif not service.is_active:
            errors.append({"field": field, "message": "Service is not available"})
        elif body.booking_type == "home" and service.mode not in HOME_MODES:
            errors.append({"field": field, "message": "Service is not offered at home"})

    if body.booking_type == "home" and salon.mode not in HOME_MODES:
        errors.append({"field": "bookingType", "message": "This salon does not offer home services"})

    provider = None
    if body.provider_id is not None:
        provider = db.session.get(Provider, body.provider_id)
        if provider is None or provider.salon_id != salon.salon_id or not provider.is_active:
            errors.append({"field": "providerId", "message": "Provider does not work at this salon"})

    if errors:
        raise ValidationFailed(errors=errors)

    if provider is not None:
        clash = db.session.scalar(
            select(Booking.booking_id).where(
                Booking.provider_id == provider.provider_id,
                Booking.booking_date == body.booking_date,
                Booking.booking_time == body.booking_time,
                Booking.status.in_(HOLDING_STATUSES),
            )
        )
        if clash is not None:
            raise Conflict("The provider is already booked for this time slot")

    booking = Booking(
        booking_number=_unused_booking_number(),
        customer_id=customer.user_id,
        salon_id=salon.salon_id,
        provider_id=provider.provider_id if provider else None,
        booking_type=body.booking_type,
        booking_date=body.booking_date,
        booking_time=body.booking_time,
        home_address=body.home_address if body.booking_type == "home" else None,
        notes=body.notes,
        status="pending",
    )
    total = 0.0
    for item in body.services:
        service = services[item.service_id]
        price = service.final_price
        if body.booking_type == "home" and service.home_price:
            price = service.home_price
        booking.items.append(BookingItem(service_id=service.service_id, quantity=item.quantity, price=price))
        total += price * item.quantity

    discount = 0.0
    if body.promo_code:
        promo, discount = apply_promo(body.promo_code, customer, total)
        booking.promo_code = promo
        promo.current_uses = (promo.current_uses or 0) + 1

    booking.total_amount = round(total, 2)
    booking.discount_amount = discount
    booking.final_amount = round(total - discount, 2)
    booking.salon = salon

    db.session.add(booking)
    db.session.flush()
    notification = notify_booking(booking)
    db.session.commit()

    current_app.logger.info("Booking %s created for salon %s", booking.booking_number, salon.salon_id)
    return booking, notification


def _authorize(booking: Booking, requested: str, actor: User) -> str:
    """Return the role the actor plays for this change or raise Forbidden."""
    if actor.role == "admin":
        return "admin"
    if booking.salon and booking.salon.owner_id == actor.user_id:
        return "salon"
    if booking.customer_id == actor.user_id:
        if requested == "cancelled":
            return "customer"
        raise Forbidden("Customers can only cancel their bookings")
    if booking.provider and booking.provider.user_id == actor.user_id:
        raise Forbidden("Only the salon owner can change this booking")
    raise NotFound("Booking not found")


def transition_booking(booking: Booking, requested: str, actor: User,
                       reason: str | None = None) -> tuple[Booking, Notification]:
    """Move ``booking`` to ``requested`` and notify the customer.

    This is the only place a booking's status changes. The stored status is
    untouched when the transition is not allowed.
    """
    role = _authorize(booking, requested, actor)
    current = booking.status
    if not can_transition(current, requested):
        current_app.logger.warning(
            "Rejected booking %s transition %s -> %s", booking.booking_number, current, requested
        )
        raise InvalidTransition(current, requested)

    now = utc_now()
    booking.status = requested
    if requested == "confirmed":
        booking.confirmed_at = now
    elif requested == "cancelled":
        booking.cancelled_at = now
        booking.cancelled_by = role
        booking.cancellation_reason = reason
    elif requested == "completed":
        booking.completed_at = now
        for item in booking.items:
            db.session.execute(
                update(Service)
                .where(Service.service_id == item.service_id)
                .values(booking_count=Service.booking_count + item.quantity)
            )

    notification = notify_booking(booking, reason=reason)
    if requested == "completed":
        db.session.flush()
        recompute_popularity(booking.salon)
    db.session.commit()

    current_app.logger.info(
        "Booking %s moved %s -> %s by %s", booking.booking_number, current, requested, role
    )
    return booking, notification
