"""Derived salon and provider figures: slugs, ratings and popularity."""
from __future__ import annotations

import re

from sqlalchemy import func, select

from .extensions import db
from .models import Booking, Favorite, Provider, ProviderReview, Salon, SalonReview


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "salon"


def unique_salon_slug(name: str) -> str:
    base = slugify(name)
    slug, suffix = base, 1
    while db.session.scalar(select(Salon.salon_id).where(Salon.slug == slug)) is not None:
        suffix += 1
        slug = f"{base}-{suffix}"
    return slug


def compute_popularity(average_rating: float, completed_bookings: int, reviews: int, favorites: int) -> float:
    return round((average_rating or 0) * 20 + completed_bookings * 2 + reviews * 3 + favorites, 2)


def recompute_popularity(salon: Salon) -> float:
    completed = db.session.scalar(
        select(func.count(Booking.booking_id)).where(
            Booking.salon_id == salon.salon_id, Booking.status == "completed"
        )
    ) or 0
    favorites = db.session.scalar(
        select(func.count(Favorite.favorite_id)).where(Favorite.salon_id == salon.salon_id)
    ) or 0
    salon.popularity_score = compute_popularity(salon.average_rating, completed, salon.total_reviews, favorites)
    return salon.popularity_score


def recompute_salon_rating(salon: Salon) -> None:
    average, count = db.session.execute(
        select(func.avg(SalonReview.rating), func.count(SalonReview.review_id)).where(
            SalonReview.salon_id == salon.salon_id
        )
    ).one()
    salon.average_rating = round(float(average), 2) if average is not None else 0
    salon.total_reviews = count
    recompute_popularity(salon)


def recompute_provider_rating(provider: Provider) -> None:
    average, count = db.session.execute(
        select(func.avg(ProviderReview.rating), func.count(ProviderReview.review_id)).where(
            ProviderReview.provider_id == provider.provider_id
        )
    ).one()
    provider.average_rating = round(float(average), 2) if average is not None else 0
    provider.total_reviews = count
