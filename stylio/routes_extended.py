"""Account routes: bookings, reviews, favorites, notifications, promo codes and shorts."""
from __future__ import annotations

from datetime import date, timedelta

from flask import Blueprint, current_app, g
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from .auth import login_required, optional_auth
from .bookings import (HOLDING_STATUSES, TERMINAL_STATUSES, create_booking, salon_slots,
                       transition_booking)
from .errors import Conflict, Forbidden, NotFound, ValidationFailed
from .extensions import db
from .models import (Booking, CreatorFollow, Favorite, Notification, PromoCode, Provider,
                     ProviderReview, Salon, SalonReview, Short, ShortBookmark, ShortComment,
                     ShortLike, User, utc_now)
from .notifications import create_notification, dispatch
from .responses import current_api_version, ok
from .salons import recompute_popularity, recompute_provider_rating, recompute_salon_rating
from .schemas import (AvailableSlotsQuery, BookingCreateBody, BookingListQuery, CancelBody,
                      FavoriteBody, NotificationListQuery, PageParams, PromoValidateBody,
                      ProviderReviewBody, SalonReviewBody, ShortCommentBody, ShortListQuery,
                      StatusUpdateBody)
from .search.formatters import format_booking, format_count, format_favorite, format_short
from .search.pagination import build_pagination, calculate_offset, clamp_limit
from .validation import parse_body, parse_query

bp_ext = Blueprint("api_ext", __name__)

DEFAULT_PAGE_SIZE = 10


def _page_size(limit: int | None, default: int = DEFAULT_PAGE_SIZE) -> int:
    return clamp_limit(limit, default, current_app.config["SEARCH"].max_limit)


def _paginate(stmt, page: int, limit: int):
    total = db.session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    items = db.session.scalars(stmt.offset(calculate_offset(page, limit)).limit(limit)).all()
    return items, build_pagination(page, limit, total, current_api_version())


# --- bookings --------------------------------------------------------------------


def _booking_list(stmt, params):
    limit = _page_size(params.limit)
    bookings, pagination = _paginate(stmt, params.page, limit)
    return ok({"bookings": [format_booking(booking) for booking in bookings], "pagination": pagination})


@bp_ext.get("/bookings")
@login_required
def list_bookings() -> tuple[dict[str, object], int]:
    """List the caller's bookings, newest first.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: status
        in: query
        type: string
        enum: [pending, confirmed, in_progress, completed, cancelled, no_show]
    """
    params = parse_query(BookingListQuery)
    stmt = select(Booking).where(Booking.customer_id == g.current_user.user_id)
    if params.status:
        stmt = stmt.where(Booking.status == params.status)
    stmt = stmt.order_by(Booking.booking_date.desc(), Booking.booking_time.desc(), Booking.booking_id.desc())
    return _booking_list(stmt, params)


@bp_ext.get("/bookings/upcoming")
@login_required
def upcoming_bookings() -> tuple[dict[str, object], int]:
    params = parse_query(PageParams)
    stmt = (
        select(Booking)
        .where(
            Booking.customer_id == g.current_user.user_id,
            Booking.booking_date >= date.today(),
            Booking.status.in_(HOLDING_STATUSES),
        )
        .order_by(Booking.booking_date.asc(), Booking.booking_time.asc(), Booking.booking_id.asc())
    )
    return _booking_list(stmt, params)


@bp_ext.get("/bookings/past")
@login_required
def past_bookings() -> tuple[dict[str, object], int]:
    params = parse_query(PageParams)
    stmt = (
        select(Booking)
        .where(
            Booking.customer_id == g.current_user.user_id,
            or_(Booking.booking_date < date.today(), Booking.status.in_(TERMINAL_STATUSES)),
        )
        .order_by(Booking.booking_date.desc(), Booking.booking_time.desc(), Booking.booking_id.desc())
    )
    return _booking_list(stmt, params)


@bp_ext.get("/bookings/available-slots")
def available_slots() -> tuple[dict[str, object], int]:
    """Half-hour slots between a salon's opening and closing time.
    ---
    tags:
      - Bookings
    parameters:
      - name: salon
        in: query
        type: integer
        required: true
      - name: date
        in: query
        type: string
        format: date
        required: true
    """
    params = parse_query(AvailableSlotsQuery)
    salon = db.session.get(Salon, params.salon_id)
    if salon is None or not salon.is_active:
        raise NotFound("Salon not found")
    return ok({"date": params.on_date.isoformat(), "slots": salon_slots(salon, params.on_date)})


def _visible_booking(booking_id: int) -> Booking:
    """A booking the caller may see: as its customer, salon owner, provider or an admin."""
    booking = db.session.get(Booking, booking_id)
    user = g.current_user
    if booking is None:
        raise NotFound("Booking not found")
    if user.role == "admin" or booking.customer_id == user.user_id:
        return booking
    if booking.salon and booking.salon.owner_id == user.user_id:
        return booking
    if booking.provider and booking.provider.user_id == user.user_id:
        return booking
    raise NotFound("Booking not found")


@bp_ext.get("/bookings/<int:booking_id>")
@login_required
def get_booking(booking_id: int) -> tuple[dict[str, object], int]:
    return ok({"booking": format_booking(_visible_booking(booking_id))})


@bp_ext.post("/bookings")
@login_required
def create_booking_route() -> tuple[dict[str, object], int]:
    """Book one or more services of a salon.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            salonId:
              type: integer
            providerId:
              type: integer
            services:
              type: array
              items:
                type: object
                properties:
                  serviceId:
                    type: integer
                  quantity:
                    type: integer
            bookingType:
              type: string
              enum: [salon, home]
            bookingDate:
              type: string
              format: date
            bookingTime:
              type: string
              example: "14:30"
            homeAddress:
              type: object
            promoCode:
              type: string
    responses:
      201:
        description: Booking created in pending status
      400:
        description: Invalid payload or services outside the salon
      404:
        description: Salon not found
    """
    body = parse_body(BookingCreateBody)
    booking, notification = create_booking(g.current_user, body)
    dispatch(notification)
    return ok({"booking": format_booking(booking)}, message="Booking created successfully", status=201)


def _change_status(booking_id: int, status: str, reason: str | None = None):
    booking = _visible_booking(booking_id)
    booking, notification = transition_booking(booking, status, g.current_user, reason=reason)
    dispatch(notification)
    return ok({"booking": format_booking(booking)}, message=f"Booking {status.replace('_', ' ')}")


@bp_ext.post("/bookings/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int) -> tuple[dict[str, object], int]:
    body = parse_body(CancelBody)
    return _change_status(booking_id, "cancelled", body.reason)


@bp_ext.patch("/bookings/<int:booking_id>/status")
@login_required
def update_booking_status(booking_id: int) -> tuple[dict[str, object], int]:
    """Move a booking along its status graph.
    ---
    tags:
      - Bookings
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [confirmed, in_progress, completed, cancelled, no_show]
            reason:
              type: string
    responses:
      200:
        description: Status updated, customer notified
      400:
        description: Transition not allowed from the current status
    """
    body = parse_body(StatusUpdateBody)
    return _change_status(booking_id, body.status, body.reason)


@bp_ext.post("/bookings/<int:booking_id>/confirm")
@login_required
def confirm_booking(booking_id: int) -> tuple[dict[str, object], int]:
    return _change_status(booking_id, "confirmed")


@bp_ext.post("/bookings/<int:booking_id>/complete")
@login_required
def complete_booking(booking_id: int) -> tuple[dict[str, object], int]:
    return _change_status(booking_id, "completed")


@bp_ext.post("/bookings/<int:booking_id>/no-show")
@login_required
def mark_no_show(booking_id: int) -> tuple[dict[str, object], int]:
    return _change_status(booking_id, "no_show")


# --- reviews ---------------------------------------------------------------------


def _review_booking(booking_id: int | None, customer: User, **target) -> Booking | None:
    if booking_id is None:
        return None
    booking = db.session.get(Booking, booking_id)
    if booking is None or booking.customer_id != customer.user_id:
        raise ValidationFailed.for_field("bookingId", "Booking not found for this customer")
    for attr, value in target.items():
        if getattr(booking, attr) != value:
            raise ValidationFailed.for_field("bookingId", "Booking does not match the reviewed target")
    return booking


def _reviews_for(model, column, target_id: int | None, params):
    stmt = select(model)
    if target_id is not None:
        stmt = stmt.where(column == target_id)
    else:
        stmt = stmt.where(model.customer_id == g.current_user.user_id)
    stmt = stmt.order_by(model.created_at.desc(), model.review_id.desc())
    reviews, pagination = _paginate(stmt, params.page, _page_size(params.limit))
    return ok({"reviews": [review.to_dict() for review in reviews], "pagination": pagination})


@bp_ext.get("/reviews/salon")
@login_required
def my_salon_reviews() -> tuple[dict[str, object], int]:
    return _reviews_for(SalonReview, SalonReview.salon_id, None, parse_query(PageParams))


@bp_ext.get("/reviews/provider")
@login_required
def my_provider_reviews() -> tuple[dict[str, object], int]:
    return _reviews_for(ProviderReview, ProviderReview.provider_id, None, parse_query(PageParams))


@bp_ext.post("/reviews/salon")
@login_required
def create_salon_review() -> tuple[dict[str, object], int]:
    """Review a salon. Reviews tied to one of the caller's bookings are marked verified."""
    body = parse_body(SalonReviewBody)
    user = g.current_user

    salon = db.session.get(Salon, body.salon_id)
    if salon is None or not salon.is_active:
        raise NotFound("Salon not found")
    booking = _review_booking(body.booking_id, user, salon_id=salon.salon_id)

    existing = db.session.scalar(
        select(SalonReview.review_id).where(
            SalonReview.salon_id == salon.salon_id,
            SalonReview.customer_id == user.user_id,
            SalonReview.booking_id.is_(None) if booking is None else SalonReview.booking_id == booking.booking_id,
        )
    )
    if existing is not None:
        raise Conflict("You have already reviewed this salon")

    review = SalonReview(
        salon_id=salon.salon_id,
        customer_id=user.user_id,
        booking_id=booking.booking_id if booking else None,
        rating=body.rating,
        title=body.title,
        comment=body.comment,
        cleanliness_rating=body.cleanliness,
        service_rating=body.service,
        value_rating=body.value,
        is_verified=booking is not None,
    )
    db.session.add(review)
    db.session.flush()
    recompute_salon_rating(salon)
    db.session.commit()
    return ok({"review": review.to_dict()}, message="Review submitted", status=201)


@bp_ext.post("/reviews/provider")
@login_required
def create_provider_review() -> tuple[dict[str, object], int]:
    body = parse_body(ProviderReviewBody)
    user = g.current_user

    provider = db.session.get(Provider, body.provider_id)
    if provider is None or not provider.is_active:
        raise NotFound("Provider not found")
    booking = _review_booking(body.booking_id, user, provider_id=provider.provider_id)

    existing = db.session.scalar(
        select(ProviderReview.review_id).where(
            ProviderReview.provider_id == provider.provider_id,
            ProviderReview.customer_id == user.user_id,
            ProviderReview.booking_id.is_(None) if booking is None
            else ProviderReview.booking_id == booking.booking_id,
        )
    )
    if existing is not None:
        raise Conflict("You have already reviewed this provider")

    review = ProviderReview(
        provider_id=provider.provider_id,
        customer_id=user.user_id,
        booking_id=booking.booking_id if booking else None,
        rating=body.rating,
        comment=body.comment,
        is_verified=booking is not None,
    )
    db.session.add(review)
    db.session.flush()
    recompute_provider_rating(provider)
    db.session.commit()
    return ok({"review": review.to_dict()}, message="Review submitted", status=201)


@bp_ext.delete("/reviews/<string:kind>/<int:review_id>")
@login_required
def delete_review(kind: str, review_id: int) -> tuple[dict[str, object], int]:
    model = {"salon": SalonReview, "provider": ProviderReview}.get(kind)
    if model is None:
        raise NotFound("Review not found")
    review = db.session.get(model, review_id)
    if review is None:
        raise NotFound("Review not found")
    if review.customer_id != g.current_user.user_id and g.current_user.role != "admin":
        raise Forbidden("You can only delete your own reviews")

    target = review.salon if kind == "salon" else review.provider
    db.session.delete(review)
    db.session.flush()
    if kind == "salon":
        recompute_salon_rating(target)
    else:
        recompute_provider_rating(target)
    db.session.commit()
    return ok(message="Review deleted")


# --- favorites -------------------------------------------------------------------


def _favorite_salon(salon_id: int) -> Salon:
    salon = db.session.get(Salon, salon_id)
    if salon is None or not salon.is_active:
        raise NotFound("Salon not found")
    return salon


def _remove_favorite(favorite: Favorite) -> None:
    salon = favorite.salon
    db.session.delete(favorite)
    db.session.flush()
    recompute_popularity(salon)
    db.session.commit()


@bp_ext.get("/favorites")
@login_required
def list_favorites() -> tuple[dict[str, object], int]:
    params = parse_query(PageParams)
    stmt = (
        select(Favorite)
        .where(Favorite.user_id == g.current_user.user_id)
        .order_by(Favorite.created_at.desc(), Favorite.favorite_id.desc())
    )
    favorites, pagination = _paginate(stmt, params.page, _page_size(params.limit, 20))
    version = current_api_version()
    return ok({"favorites": [format_favorite(favorite, version) for favorite in favorites], "pagination": pagination})


@bp_ext.post("/favorites")
@login_required
def add_favorite() -> tuple[dict[str, object], int]:
    """Save a salon to the caller's favorites.
    ---
    tags:
      - Favorites
    responses:
      201:
        description: Favorite created
      400:
        description: Salon is already a favorite
      404:
        description: Salon not found
    """
    body = parse_body(FavoriteBody)
    salon = _favorite_salon(body.salon_id)

    favorite = Favorite(user_id=g.current_user.user_id, salon_id=salon.salon_id)
    db.session.add(favorite)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict("Salon is already in favorites") from exc

    recompute_popularity(salon)
    db.session.commit()
    return ok({"favorite": format_favorite(favorite, current_api_version())},
              message="Added to favorites", status=201)


@bp_ext.post("/favorites/toggle")
@login_required
def toggle_favorite() -> tuple[dict[str, object], int]:
    body = parse_body(FavoriteBody)
    salon = _favorite_salon(body.salon_id)
    favorite = db.session.scalar(
        select(Favorite).where(Favorite.user_id == g.current_user.user_id, Favorite.salon_id == salon.salon_id)
    )
    if favorite is not None:
        _remove_favorite(favorite)
        return ok({"isFavorite": False}, message="Removed from favorites")

    db.session.add(Favorite(user_id=g.current_user.user_id, salon_id=salon.salon_id))
    db.session.flush()
    recompute_popularity(salon)
    db.session.commit()
    return ok({"isFavorite": True}, message="Added to favorites")


@bp_ext.get("/favorites/check/<int:salon_id>")
@login_required
def check_favorite(salon_id: int) -> tuple[dict[str, object], int]:
    favorite_id = db.session.scalar(
        select(Favorite.favorite_id).where(Favorite.user_id == g.current_user.user_id, Favorite.salon_id == salon_id)
    )
    return ok({"isFavorite": favorite_id is not None, "favoriteId": favorite_id})


@bp_ext.delete("/favorites/<int:favorite_id>")
@login_required
def remove_favorite(favorite_id: int) -> tuple[dict[str, object], int]:
    """Remove a favorite by its own id, or by the salon id."""
    favorite = db.session.scalar(
        select(Favorite)
        .where(
            Favorite.user_id == g.current_user.user_id,
            or_(Favorite.favorite_id == favorite_id, Favorite.salon_id == favorite_id),
        )
        .order_by((Favorite.favorite_id == favorite_id).desc())
    )
    if favorite is None:
        raise NotFound("Favorite not found")
    _remove_favorite(favorite)
    return ok(message="Removed from favorites")


@bp_ext.delete("/favorites/salon/<int:salon_id>")
@login_required
def remove_favorite_by_salon(salon_id: int) -> tuple[dict[str, object], int]:
    favorite = db.session.scalar(
        select(Favorite).where(Favorite.user_id == g.current_user.user_id, Favorite.salon_id == salon_id)
    )
    if favorite is None:
        raise NotFound("Favorite not found")
    _remove_favorite(favorite)
    return ok(message="Removed from favorites")


# --- notifications ---------------------------------------------------------------


def _unread_count(user_id: int) -> int:
    return db.session.scalar(
        select(func.count(Notification.notification_id)).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
    ) or 0


def _notification_list(unread_only: bool):
    params = parse_query(NotificationListQuery)
    user_id = g.current_user.user_id
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only or params.unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.notification_id.desc())
    notifications, pagination = _paginate(stmt, params.page, _page_size(params.limit, 20))
    return ok({
        "notifications": [notification.to_dict() for notification in notifications],
        "unreadCount": _unread_count(user_id),
        "pagination": pagination,
    })


@bp_ext.get("/notifications")
@login_required
def list_notifications() -> tuple[dict[str, object], int]:
    return _notification_list(unread_only=False)


@bp_ext.get("/notifications/unread")
@login_required
def list_unread_notifications() -> tuple[dict[str, object], int]:
    return _notification_list(unread_only=True)


def _own_notification(notification_id: int) -> Notification:
    notification = db.session.get(Notification, notification_id)
    if notification is None or notification.user_id != g.current_user.user_id:
        raise NotFound("Notification not found")
    return notification


@bp_ext.post("/notifications/<int:notification_id>/read")
@login_required
def mark_notification_read(notification_id: int) -> tuple[dict[str, object], int]:
    notification = _own_notification(notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utc_now()
        db.session.commit()
    return ok({"notification": notification.to_dict()})


@bp_ext.post("/notifications/read-all")
@login_required
def mark_all_notifications_read() -> tuple[dict[str, object], int]:
    result = db.session.execute(
        update(Notification)
        .where(Notification.user_id == g.current_user.user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=utc_now())
    )
    db.session.commit()
    return ok({"updated": result.rowcount}, message="All notifications marked as read")


@bp_ext.delete("/notifications/<int:notification_id>")
@login_required
def delete_notification(notification_id: int) -> tuple[dict[str, object], int]:
    db.session.delete(_own_notification(notification_id))
    db.session.commit()
    return ok(message="Notification deleted")


# --- promo codes -----------------------------------------------------------------


def _live_promos():
    now = utc_now()
    return (
        select(PromoCode)
        .where(PromoCode.is_active.is_(True), PromoCode.valid_from <= now, PromoCode.valid_until >= now)
        .order_by(PromoCode.valid_until.asc())
    )


@bp_ext.get("/promo-codes")
def list_promo_codes() -> tuple[dict[str, object], int]:
    promos = [promo for promo in db.session.scalars(_live_promos()) if promo.is_valid()]
    return ok({"promoCodes": [promo.to_dict() for promo in promos]})


@bp_ext.get("/promo-codes/<string:code>")
def get_promo_code(code: str) -> tuple[dict[str, object], int]:
    promo = db.session.scalar(select(PromoCode).where(PromoCode.code == code.upper()))
    if promo is None or not promo.is_valid():
        raise NotFound("Promo code not found or expired")
    return ok({"promoCode": promo.to_dict()})


@bp_ext.post("/promo-codes/validate")
@optional_auth
def validate_promo_code() -> tuple[dict[str, object], int]:
    """Check a code against a booking amount and return the discount it gives."""
    body = parse_body(PromoValidateBody)
    promo = db.session.scalar(select(PromoCode).where(PromoCode.code == body.code))
    if promo is None or not promo.is_valid():
        raise ValidationFailed.for_field("code", "Invalid or expired promo code")
    if body.amount < (promo.min_booking_amount or 0):
        raise ValidationFailed.for_field(
            "amount", f"Minimum booking amount of {promo.min_booking_amount:g} required"
        )

    discount = promo.calculate_discount(body.amount)
    return ok({
        "promoCode": promo.to_dict(),
        "discount": discount,
        "finalAmount": round(body.amount - discount, 2),
    })


# --- shorts ----------------------------------------------------------------------

SHORT_ORDER = {
    "popular": (Short.view_count.desc(), Short.short_id.desc()),
    "newest": (Short.created_at.desc(), Short.short_id.desc()),
    "likes": (Short.like_count.desc(), Short.short_id.desc()),
}


def _viewer_flags(shorts, user) -> tuple[set[int], set[int]]:
    if user is None or not shorts:
        return set(), set()
    ids = [short.short_id for short in shorts]
    liked = set(db.session.scalars(
        select(ShortLike.short_id).where(ShortLike.user_id == user.user_id, ShortLike.short_id.in_(ids))
    ))
    bookmarked = set(db.session.scalars(
        select(ShortBookmark.short_id).where(ShortBookmark.user_id == user.user_id, ShortBookmark.short_id.in_(ids))
    ))
    return liked, bookmarked


def _format_shorts(shorts) -> list[dict[str, object]]:
    user = g.get("current_user")
    liked, bookmarked = _viewer_flags(shorts, user)
    version = current_api_version()
    return [
        format_short(
            short,
            version,
            liked=short.short_id in liked if user else None,
            bookmarked=short.short_id in bookmarked if user else None,
        )
        for short in shorts
    ]


def _active_short(short_id: int) -> Short:
    short = db.session.get(Short, short_id)
    if short is None or not short.is_active:
        raise NotFound("Short not found")
    return short


@bp_ext.get("/shorts")
@optional_auth
def list_shorts() -> tuple[dict[str, object], int]:
    """Short videos, most viewed first by default.
    ---
    tags:
      - Shorts
    parameters:
      - name: category
        in: query
        type: string
      - name: platform
        in: query
        type: string
        enum: [native, youtube, instagram, tiktok]
      - name: salon
        in: query
        type: integer
      - name: featured
        in: query
        type: boolean
      - name: sortBy
        in: query
        type: string
        enum: [popular, newest, likes]
    """
    params = parse_query(ShortListQuery)
    stmt = select(Short).where(Short.is_active.is_(True))
    if params.category:
        stmt = stmt.where(Short.category == params.category)
    if params.platform:
        stmt = stmt.where(Short.platform == params.platform)
    if params.salon_id is not None:
        stmt = stmt.where(Short.salon_id == params.salon_id)
    if params.featured:
        stmt = stmt.where(Short.is_featured.is_(True))
    stmt = stmt.order_by(*SHORT_ORDER[params.sort_by])

    shorts, pagination = _paginate(stmt, params.page, _page_size(params.limit))
    return ok({"shorts": _format_shorts(shorts), "pagination": pagination})


@bp_ext.get("/shorts/trending")
@optional_auth
def trending_shorts() -> tuple[dict[str, object], int]:
    params = parse_query(PageParams)
    since = utc_now() - timedelta(days=current_app.config["SEARCH"].trending_days)
    shorts = db.session.scalars(
        select(Short)
        .where(Short.is_active.is_(True), Short.created_at >= since)
        .order_by(Short.view_count.desc(), Short.like_count.desc(), Short.short_id.desc())
        .limit(_page_size(params.limit))
    ).all()
    return ok({"shorts": _format_shorts(shorts)})


@bp_ext.get("/shorts/bookmarks")
@login_required
def bookmarked_shorts() -> tuple[dict[str, object], int]:
    params = parse_query(PageParams)
    stmt = (
        select(Short)
        .join(ShortBookmark, ShortBookmark.short_id == Short.short_id)
        .where(ShortBookmark.user_id == g.current_user.user_id, Short.is_active.is_(True))
        .order_by(ShortBookmark.created_at.desc(), ShortBookmark.bookmark_id.desc())
    )
    shorts, pagination = _paginate(stmt, params.page, _page_size(params.limit))
    return ok({"shorts": _format_shorts(shorts), "pagination": pagination})


@bp_ext.get("/shorts/<int:short_id>")
@optional_auth
def get_short(short_id: int) -> tuple[dict[str, object], int]:
    short = _active_short(short_id)
    return ok({"short": _format_shorts([short])[0]})


def _bump(column, short_id: int, delta: int) -> None:
    db.session.execute(
        update(Short).where(Short.short_id == short_id).values({column: column + delta})
    )


@bp_ext.post("/shorts/<int:short_id>/view")
def record_view(short_id: int) -> tuple[dict[str, object], int]:
    short = _active_short(short_id)
    _bump(Short.view_count, short.short_id, 1)
    db.session.commit()
    db.session.refresh(short)
    return ok({"viewCount": short.view_count, "formattedViews": format_count(short.view_count)})


def _toggle(model, short: Short, counter) -> bool:
    """Flip the caller's like/bookmark on a short; returns the new state."""
    user_id = g.current_user.user_id
    removed = db.session.execute(
        delete(model).where(model.short_id == short.short_id, model.user_id == user_id)
    ).rowcount
    if removed:
        if counter is not None:
            _bump(counter, short.short_id, -1)
        db.session.commit()
        return False

    db.session.add(model(short_id=short.short_id, user_id=user_id))
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict("Request already processed") from exc
    if counter is not None:
        _bump(counter, short.short_id, 1)
    db.session.commit()
    return True


@bp_ext.post("/shorts/<int:short_id>/like")
@login_required
def toggle_like(short_id: int) -> tuple[dict[str, object], int]:
    short = _active_short(short_id)
    liked = _toggle(ShortLike, short, Short.like_count)
    db.session.refresh(short)
    return ok({"liked": liked, "likeCount": short.like_count, "formattedLikes": format_count(short.like_count)})


@bp_ext.post("/shorts/<int:short_id>/bookmark")
@login_required
def toggle_bookmark(short_id: int) -> tuple[dict[str, object], int]:
    short = _active_short(short_id)
    return ok({"bookmarked": _toggle(ShortBookmark, short, None)})


@bp_ext.get("/shorts/<int:short_id>/comments")
def list_short_comments(short_id: int) -> tuple[dict[str, object], int]:
    _active_short(short_id)
    params = parse_query(PageParams)
    stmt = (
        select(ShortComment)
        .where(ShortComment.short_id == short_id)
        .order_by(ShortComment.created_at.desc(), ShortComment.comment_id.desc())
    )
    comments, pagination = _paginate(stmt, params.page, _page_size(params.limit, 20))
    return ok({"comments": [comment.to_dict() for comment in comments], "pagination": pagination})


@bp_ext.post("/shorts/<int:short_id>/comments")
@login_required
def add_short_comment(short_id: int) -> tuple[dict[str, object], int]:
    short = _active_short(short_id)
    body = parse_body(ShortCommentBody)
    comment = ShortComment(short_id=short.short_id, user_id=g.current_user.user_id, text=body.text)
    db.session.add(comment)
    _bump(Short.comment_count, short.short_id, 1)
    db.session.commit()
    return ok({"comment": comment.to_dict()}, message="Comment added", status=201)


@bp_ext.post("/shorts/creators/<string:username>/follow")
@login_required
def toggle_follow(username: str) -> tuple[dict[str, object], int]:
    creator = db.session.scalar(select(User).where(User.username == username.lower()))
    if creator is None:
        raise NotFound("Creator not found")
    if creator.user_id == g.current_user.user_id:
        raise ValidationFailed.for_field("username", "You cannot follow yourself")

    removed = db.session.execute(
        delete(CreatorFollow).where(
            CreatorFollow.follower_id == g.current_user.user_id, CreatorFollow.creator_id == creator.user_id
        )
    ).rowcount
    if not removed:
        db.session.add(CreatorFollow(follower_id=g.current_user.user_id, creator_id=creator.user_id))
    db.session.commit()

    followers = db.session.scalar(
        select(func.count(CreatorFollow.follow_id)).where(CreatorFollow.creator_id == creator.user_id)
    ) or 0
    if not removed:
        create_notification(
            creator.user_id, "system", "New follower",
            f"{g.current_user.full_name} started following you.",
        )
        db.session.commit()
    return ok({"following": not removed, "followers": followers, "formattedFollowers": format_count(followers)})
