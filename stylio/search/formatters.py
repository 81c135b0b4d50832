"""Response shapes for discovery results and account data.

Stored rows carry only canonical fields. Legacy clients (``apiVersion=legacy``)
additionally receive the old alias names, added here and nowhere else.
"""
from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal

from ..models import isoformat
from ..responses import API_LEGACY, API_V1

# canonical name -> legacy alias
LEGACY_ALIASES = {
    "averageRating": "rating",
    "viewCount": "viewsCount",
    "likeCount": "likesCount",
    "commentCount": "commentsCount",
    "shareCount": "sharesCount",
}

# Fallbacks for documents that predate a field.
FIELD_FALLBACKS = {
    "thumbnailUrl": ("thumbnailUrl", "coverImage"),
}

DOCUMENT_DEFAULTS = {
    "averageRating": 0,
    "mode": "toSalon",
    "priceLevel": 2,
}

_COUNT_UNITS = ((1_000_000, "M"), (1_000, "K"))


def format_count(value) -> str:
    """Abbreviate a counter: 950 -> "950", 1500 -> "1.5K", 1000000 -> "1M"."""
    if not value:
        return "0"
    value = int(value)
    for threshold, suffix in _COUNT_UNITS:
        if value >= threshold:
            scaled = (Decimal(value) / Decimal(threshold)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            text = str(scaled)
            if text.endswith(".0"):
                text = text[:-2]
            return f"{text}{suffix}"
    return str(value)


def pick(doc, *names, default=None):
    """Return the first present, non-empty value among ``names``."""
    for name in names:
        value = doc.get(name) if isinstance(doc, Mapping) else getattr(doc, name, None)
        if value is not None and value != "":
            return value
    return default


def normalize_document(doc: Mapping) -> dict[str, object]:
    """Fold legacy field names of an imported document into canonical ones."""
    legacy_names = set(LEGACY_ALIASES.values())
    data = {key: value for key, value in doc.items() if key not in legacy_names}
    for canonical, legacy in LEGACY_ALIASES.items():
        value = pick(doc, canonical, legacy)
        if value is not None:
            data[canonical] = value
    for canonical, names in FIELD_FALLBACKS.items():
        value = pick(doc, *names)
        if value is not None:
            data[canonical] = value
    for key, default in DOCUMENT_DEFAULTS.items():
        if pick(data, key) is None:
            data[key] = default
    return data


def with_aliases(data: dict[str, object], api_version: str = API_V1) -> dict[str, object]:
    if api_version == API_LEGACY:
        for canonical, legacy in LEGACY_ALIASES.items():
            if canonical in data:
                data[legacy] = data[canonical]
    return data


def _location(lat, lng):
    if lat is None or lng is None:
        return None
    return {"lat": lat, "lng": lng}


def _add_distance(data: dict[str, object], distance: int | None) -> None:
    if distance is not None:
        data["distanceInMeters"] = distance
        data["distanceKm"] = round(distance / 1000, 2)


def format_salon(salon, api_version: str = API_V1, distance: int | None = None,
                 area_name: str | None = None, city_name: str | None = None) -> dict[str, object]:
    data = {
        "id": salon.salon_id,
        "name": salon.name,
        "slug": salon.slug,
        "description": salon.description,
        "address": salon.address,
        "location": _location(salon.latitude, salon.longitude),
        "area": {"id": salon.area_id, "name": area_name} if salon.area_id else None,
        "city": {"id": salon.city_id, "name": city_name} if salon.city_id or city_name else None,
        "mode": salon.mode or "toSalon",
        "audience": salon.audience,
        "averageRating": salon.average_rating or 0,
        "totalReviews": salon.total_reviews or 0,
        "priceLevel": salon.price_level or 2,
        "popularityScore": salon.popularity_score or 0,
        "thumbnailUrl": salon.thumbnail_url or salon.cover_image,
        "coverImage": salon.cover_image,
        "logo": salon.logo,
        "openingHours": {
            "open": salon.opening_time,
            "close": salon.closing_time,
            "openSunday": salon.is_open_sunday,
        },
        "features": {
            "parking": salon.has_parking,
            "wifi": salon.has_wifi,
            "ac": salon.has_ac,
            "cards": salon.accepts_cards,
            "homeService": salon.offers_home_service,
        },
        "tags": salon.tag_list,
        "isVerified": salon.is_verified,
    }
    _add_distance(data, distance)
    return with_aliases(data, api_version)


def format_service(service, api_version: str = API_V1, distance: int | None = None,
                   area_name: str | None = None, city_name: str | None = None) -> dict[str, object]:
    salon = service.salon
    data = {
        "id": service.service_id,
        "name": service.name,
        "description": service.description,
        "typeId": service.type_id,
        "mode": service.mode or "toSalon",
        "audience": service.audience,
        "price": service.price,
        "basePrice": service.base_price,
        "discountedPrice": service.discounted_price,
        "finalPrice": service.final_price,
        "homePrice": service.home_price,
        "duration": service.duration_minutes,
        "tags": service.tag_list,
        "imageUrl": service.image_url,
        "bookingCount": service.booking_count or 0,
        "isPopular": service.is_popular,
        "salon": salon.to_summary() if salon else None,
    }
    if salon is not None and (area_name or city_name):
        data["salon"]["areaName"] = area_name
        data["salon"]["cityName"] = city_name
    _add_distance(data, distance)
    return with_aliases(data, api_version)


def format_provider(provider, api_version: str = API_V1, distance: int | None = None,
                    area_name: str | None = None, city_name: str | None = None) -> dict[str, object]:
    user = provider.user
    data = {
        "id": provider.provider_id,
        "name": user.full_name if user else None,
        "avatar": provider.avatar or (user.avatar if user else None),
        "phone": provider.phone,
        "bio": provider.bio,
        "specializations": provider.specializations,
        "experienceYears": provider.experience_years,
        "homeService": {
            "available": provider.offers_home_service,
            "fee": provider.home_service_fee,
        },
        "averageRating": provider.average_rating or 0,
        "totalReviews": provider.total_reviews or 0,
        "isAvailable": provider.is_available,
        "isVerified": provider.is_verified,
        "salon": provider.salon.to_summary() if provider.salon else None,
    }
    _add_distance(data, distance)
    return with_aliases(data, api_version)


FORMATTERS = {
    "salon": format_salon,
    "service": format_service,
    "provider": format_provider,
}


def format_hits(kind: str, hits, api_version: str = API_V1) -> list[dict[str, object]]:
    formatter = FORMATTERS[kind]
    return [
        formatter(hit.item, api_version, distance=hit.distance, area_name=hit.area_name, city_name=hit.city_name)
        for hit in hits
    ]


def format_short(short, api_version: str = API_V1, liked: bool | None = None,
                 bookmarked: bool | None = None) -> dict[str, object]:
    data = {
        "id": short.short_id,
        "title": short.title,
        "description": short.description,
        "videoUrl": short.video_url,
        "thumbnailUrl": short.thumbnail_url,
        "platform": short.platform,
        "duration": short.duration_seconds,
        "category": short.category,
        "tags": short.tag_list,
        "creator": short.creator.to_dict_basic() if short.creator else None,
        "salon": short.salon.to_summary() if short.salon else None,
        "viewCount": short.view_count or 0,
        "likeCount": short.like_count or 0,
        "commentCount": short.comment_count or 0,
        "shareCount": short.share_count or 0,
        "formatted": {
            "views": format_count(short.view_count),
            "likes": format_count(short.like_count),
            "comments": format_count(short.comment_count),
            "shares": format_count(short.share_count),
        },
        "isFeatured": short.is_featured,
        "isVerified": short.is_verified,
        "createdAt": isoformat(short.created_at),
    }
    if liked is not None:
        data["isLiked"] = liked
    if bookmarked is not None:
        data["isBookmarked"] = bookmarked
    return with_aliases(data, api_version)


def format_booking(booking) -> dict[str, object]:
    provider = booking.provider
    return {
        "id": booking.booking_id,
        "bookingNumber": booking.booking_number,
        "status": booking.status,
        "bookingType": booking.booking_type,
        "date": booking.booking_date.isoformat() if booking.booking_date else None,
        "time": booking.booking_time,
        "salon": booking.salon.to_summary() if booking.salon else None,
        "provider": (
            {"id": provider.provider_id, "name": provider.user.full_name if provider.user else None}
            if provider else None
        ),
        "services": [
            {
                "serviceId": item.service_id,
                "name": item.service.name if item.service else None,
                "quantity": item.quantity,
                "price": item.price,
            }
            for item in booking.items
        ],
        "totalAmount": booking.total_amount,
        "discountAmount": booking.discount_amount,
        "finalAmount": booking.final_amount,
        "promoCode": booking.promo_code.code if booking.promo_code else None,
        "homeAddress": booking.home_address,
        "notes": booking.notes,
        "cancellationReason": booking.cancellation_reason,
        "cancelledBy": booking.cancelled_by,
        "cancelledAt": isoformat(booking.cancelled_at),
        "createdAt": isoformat(booking.created_at),
    }


def format_favorite(favorite, api_version: str = API_V1) -> dict[str, object]:
    return {
        "id": favorite.favorite_id,
        "salonId": favorite.salon_id,
        "salon": format_salon(favorite.salon, api_version) if favorite.salon else None,
        "createdAt": isoformat(favorite.created_at),
    }
