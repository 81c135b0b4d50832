"""Translate validated query parameters into SQLAlchemy filter clauses.

The builders read parameters with ``getattr`` so the same function serves
every schema that carries a subset of the fields (list, search, nearby).
"""
from __future__ import annotations

from sqlalchemy import and_, or_, select

from ..models import (Area, Provider, Salon, SalonAudience, Service, ServiceAudience,
                      ServiceCategory, ServiceType, User)

LIKE_ESCAPE = "\\"
UNIVERSAL_AUDIENCE = "unisex"
ALL_MODES = ("toSalon", "toHome", "both")


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def text_filter(term: str, *columns):
    pattern = f"%{escape_like(term.strip())}%"
    return or_(*(column.ilike(pattern, escape=LIKE_ESCAPE) for column in columns))


def mode_values(mode: str) -> list[str]:
    if mode == "both":
        return list(ALL_MODES)
    return [mode, "both"]


def audience_values(audience: str) -> list[str]:
    if audience == UNIVERSAL_AUDIENCE:
        return [UNIVERSAL_AUDIENCE]
    return [audience, UNIVERSAL_AUDIENCE]


def range_clauses(column, low=None, high=None) -> list:
    clauses = []
    if low is not None:
        clauses.append(column >= low)
    if high is not None:
        clauses.append(column <= high)
    return clauses


def _id_or_slug(id_column, slug_column, value):
    value = str(value).strip()
    if value.isdigit():
        return id_column == int(value)
    return slug_column == value.lower()


def resolve_service_types(session, category: str | None = None, service_type: str | None = None):
    """Look up the service type ids behind a category and/or type reference.

    Either reference may be a numeric id or a slug. Returns ``None`` when no
    reference was given and an empty list when nothing matched.
    """
    if not category and not service_type:
        return None

    stmt = select(ServiceType.type_id).where(ServiceType.is_active.is_(True))
    if category:
        stmt = stmt.join(ServiceCategory, ServiceType.category_id == ServiceCategory.category_id)
        stmt = stmt.where(_id_or_slug(ServiceCategory.category_id, ServiceCategory.slug, category))
    if service_type:
        stmt = stmt.where(_id_or_slug(ServiceType.type_id, ServiceType.slug, service_type))
    return list(session.scalars(stmt))


def city_clause(city_id: int):
    """Match salons tagged with the city directly or through one of its areas."""
    area_ids = select(Area.area_id).where(Area.city_id == city_id)
    return or_(Salon.city_id == city_id, Salon.area_id.in_(area_ids))


def _param(params, name: str):
    return getattr(params, name, None)


def build_salon_filter(params, session) -> list:
    clauses = [Salon.is_active.is_(True)]

    q = _param(params, "q")
    if q:
        clauses.append(text_filter(q, Salon.name, Salon.description, Salon.address, Salon.tags))

    if _param(params, "city_id") is not None:
        clauses.append(city_clause(params.city_id))
    if _param(params, "area_id") is not None:
        clauses.append(Salon.area_id == params.area_id)

    if _param(params, "mode"):
        clauses.append(Salon.mode.in_(mode_values(params.mode)))
    if _param(params, "audience"):
        clauses.append(Salon.audiences.any(SalonAudience.audience.in_(audience_values(params.audience))))

    clauses += range_clauses(Salon.average_rating, _param(params, "min_rating"), _param(params, "max_rating"))
    clauses += range_clauses(
        Salon.price_level, _param(params, "min_price_level"), _param(params, "max_price_level")
    )

    price_bounds = range_clauses(Service.price, _param(params, "min_price"), _param(params, "max_price"))
    if price_bounds:
        clauses.append(Salon.services.any(and_(Service.is_active.is_(True), *price_bounds)))

    for name, column in (
        ("has_parking", Salon.has_parking),
        ("has_wifi", Salon.has_wifi),
        ("has_ac", Salon.has_ac),
        ("verified", Salon.is_verified),
    ):
        if _param(params, name):
            clauses.append(column.is_(True))

    type_ids = resolve_service_types(session, _param(params, "category"), _param(params, "service_type"))
    if type_ids is not None:
        clauses.append(Salon.services.any(and_(Service.is_active.is_(True), Service.type_id.in_(type_ids))))

    return clauses


def build_service_filter(params, session) -> list:
    """Clauses for service queries; the caller joins each service to its salon."""
    clauses = [Service.is_active.is_(True), Salon.is_active.is_(True)]

    q = _param(params, "q")
    if q:
        clauses.append(text_filter(q, Service.name, Service.description, Service.tags))

    if _param(params, "salon_id") is not None:
        clauses.append(Service.salon_id == params.salon_id)
    if _param(params, "city_id") is not None:
        clauses.append(city_clause(params.city_id))
    if _param(params, "area_id") is not None:
        clauses.append(Salon.area_id == params.area_id)
    if _param(params, "type_id") is not None:
        clauses.append(Service.type_id == params.type_id)

    type_ids = resolve_service_types(session, _param(params, "category"), _param(params, "service_type"))
    if type_ids is not None:
        clauses.append(Service.type_id.in_(type_ids))

    if _param(params, "mode"):
        clauses.append(Service.mode.in_(mode_values(params.mode)))
    if _param(params, "audience"):
        clauses.append(Service.audiences.any(ServiceAudience.audience.in_(audience_values(params.audience))))

    clauses += range_clauses(Service.price, _param(params, "min_price"), _param(params, "max_price"))
    clauses += range_clauses(Salon.average_rating, _param(params, "min_rating"), _param(params, "max_rating"))

    if _param(params, "popular"):
        clauses.append(Service.is_popular.is_(True))

    return clauses


def build_provider_filter(params) -> list:
    clauses = [Provider.is_active.is_(True)]

    q = _param(params, "q")
    if q:
        clauses.append(or_(
            Provider.user.has(text_filter(q, User.first_name, User.last_name, User.username)),
            text_filter(q, Provider.specialization, Provider.bio),
        ))

    if _param(params, "salon_id") is not None:
        clauses.append(Provider.salon_id == params.salon_id)
    if _param(params, "specialization"):
        clauses.append(text_filter(params.specialization, Provider.specialization))
    if _param(params, "home_service"):
        clauses.append(Provider.offers_home_service.is_(True))
    if _param(params, "area_id") is not None:
        clauses.append(or_(
            Provider.home_areas.any(Area.area_id == params.area_id),
            Provider.salon.has(Salon.area_id == params.area_id),
        ))
    if _param(params, "min_rating") is not None:
        clauses.append(Provider.average_rating >= params.min_rating)

    return clauses
