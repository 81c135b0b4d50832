"""In-app notifications and the hand-off to outbound channels.

Outbound channels (email, SMS, push) are callables registered on
``app.extensions["notification_channels"]``. Each receives the stored
notification after it is created. A failing channel is logged and skipped;
it never affects the request that triggered it.
"""
from __future__ import annotations

from flask import current_app

from .extensions import db
from .models import Booking, Notification

BOOKING_TEMPLATES = {
    "pending": (
        "booking_created",
        "Booking Received",
        "Your booking {number} at {salon} on {date} at {time} has been received.",
    ),
    "confirmed": (
        "booking_confirmed",
        "Booking Confirmed",
        "Your booking {number} at {salon} on {date} at {time} is confirmed.",
    ),
    "in_progress": (
        "booking_started",
        "Service Started",
        "Your service for booking {number} at {salon} has started.",
    ),
    "completed": (
        "booking_completed",
        "Booking Completed",
        "Thanks for visiting {salon}! Booking {number} is complete. Leave a review?",
    ),
    "cancelled": (
        "booking_cancelled",
        "Booking Cancelled",
        "Booking {number} at {salon} has been cancelled.{reason}",
    ),
    "no_show": (
        "booking_no_show",
        "Missed Appointment",
        "You missed booking {number} at {salon} on {date} at {time}.",
    ),
}


def register_channel(app, channel) -> None:
    app.extensions.setdefault("notification_channels", []).append(channel)


def create_notification(user_id: int, type_: str, title: str, message: str,
                        booking_id: int | None = None, data: dict | None = None) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        booking_id=booking_id,
        data=data,
    )
    db.session.add(notification)
    return notification


def notify_booking(booking: Booking, reason: str | None = None) -> Notification:
    """Queue the customer notification that matches the booking's current status."""
    type_, title, template = BOOKING_TEMPLATES[booking.status]
    message = template.format(
        number=booking.booking_number,
        salon=booking.salon.name if booking.salon else "the salon",
        date=booking.booking_date.isoformat(),
        time=booking.booking_time,
        reason=f" Reason: {reason}" if reason else "",
    )
    return create_notification(
        booking.customer_id,
        type_,
        title,
        message,
        booking_id=booking.booking_id,
        data={"bookingNumber": booking.booking_number, "status": booking.status},
    )


def dispatch(notification: Notification) -> None:
    """Fire-and-forget delivery to every registered outbound channel."""
    for channel in current_app.extensions.get("notification_channels", []):
        try:
            channel(notification)
        except Exception as exc:  # channel failures never reach the caller
            current_app.logger.exception(
                "Notification channel %r failed for notification %s",
                getattr(channel, "__name__", channel),
                notification.notification_id,
                exc_info=exc,
            )
        else:
            current_app.logger.info(
                "Dispatched %s notification %s", notification.type, notification.notification_id
            )
