"""Discovery routes: salons, services, providers and unified search."""
from __future__ import annotations

from flask import Blueprint, current_app, g
from sqlalchemy import func, select

from .auth import optional_auth
from .bookings import provider_slots
from .config import SearchSettings
from .errors import NotFound
from .extensions import db
from .models import (Favorite, Provider, ProviderReview, Salon, SalonReview, Service,
                     ServiceCategory, ServiceType)
from .responses import current_api_version, ok
from .schemas import (NearbySalonQuery, ProviderAvailabilityQuery, ProviderListQuery,
                      ReviewListQuery, SalonListQuery, SalonServicesQuery, SearchQuery,
                      ServiceListQuery, ServiceSearchQuery, SuggestionQuery)
from .search.filters import (build_provider_filter, build_salon_filter, build_service_filter,
                             escape_like)
from .search.formatters import format_hits, format_provider, format_salon, format_service
from .search.pagination import build_pagination, calculate_offset, clamp_limit
from .search.pipeline import PROVIDERS, SALONS, SERVICES, SearchTarget, assemble
from .search.sorting import resolve_sort
from .validation import parse_query

bp_discovery = Blueprint("api_discovery", __name__)


def _settings() -> SearchSettings:
    return current_app.config["SEARCH"]


def _listing(target: SearchTarget, params, clauses, default_limit: int, max_limit: int) -> dict[str, object]:
    """Run a paginated, optionally geo-bounded listing and shape the response."""
    settings = _settings()
    geo = params.geo_query(settings)
    sort = resolve_sort(target.kind, params.sort_by, params.sort_order, geo_active=geo is not None)
    limit = clamp_limit(params.limit, default_limit, max_limit)

    result = assemble(target, clauses, sort, params.page, limit, geo=geo, settings=settings).run(db.session)

    version = current_api_version()
    payload: dict[str, object] = {
        "items": format_hits(target.kind, result.hits, version),
        "pagination": build_pagination(params.page, limit, result.total, version),
        "sort": {"sortBy": sort.key, "sortOrder": "desc" if sort.descending else "asc"},
    }
    if geo is not None:
        payload["geo"] = {"lat": geo.lat, "lng": geo.lng, "radius": geo.radius}
    return payload


def _active_salon(salon_id: int) -> Salon:
    salon = db.session.get(Salon, salon_id)
    if salon is None or not salon.is_active:
        raise NotFound("Salon not found")
    return salon


def _active_provider(provider_id: int) -> Provider:
    provider = db.session.get(Provider, provider_id)
    if provider is None or not provider.is_active:
        raise NotFound("Provider not found")
    return provider


REVIEW_ORDER = {
    "newest": lambda model: (model.created_at.desc(), model.review_id.desc()),
    "highest": lambda model: (model.rating.desc(), model.created_at.desc()),
    "lowest": lambda model: (model.rating.asc(), model.created_at.desc()),
}


def _review_page(model, column, target_id: int) -> dict[str, object]:
    params = parse_query(ReviewListQuery)
    limit = clamp_limit(params.limit, 10, _settings().max_limit)

    total = db.session.scalar(select(func.count(model.review_id)).where(column == target_id)) or 0
    reviews = db.session.scalars(
        select(model)
        .where(column == target_id)
        .order_by(*REVIEW_ORDER[params.sort](model))
        .offset(calculate_offset(params.page, limit))
        .limit(limit)
    )
    distribution = {str(star): 0 for star in range(1, 6)}
    for rating, count in db.session.execute(
        select(model.rating, func.count(model.review_id)).where(column == target_id).group_by(model.rating)
    ):
        distribution[str(rating)] = count

    return {
        "reviews": [review.to_dict() for review in reviews],
        "ratingDistribution": distribution,
        "pagination": build_pagination(params.page, limit, total, current_api_version()),
    }


# --- salons ----------------------------------------------------------------------


@bp_discovery.get("/salons")
def list_salons() -> tuple[dict[str, object], int]:
    """Search salons by text, location, category, price, rating, audience and mode.
    ---
    tags:
      - Salons
    parameters:
      - name: q
        in: query
        type: string
        description: Text match on name, description, address and tags
      - name: lat
        in: query
        type: number
        description: Latitude, required together with lng
      - name: lng
        in: query
        type: number
      - name: radius
        in: query
        type: number
        default: 5000
        description: Search radius in meters (100 - 20000)
      - name: cityId
        in: query
        type: integer
      - name: areaId
        in: query
        type: integer
      - name: category
        in: query
        type: string
        description: Category id or slug
      - name: serviceType
        in: query
        type: string
        description: Service type id or slug
      - name: mode
        in: query
        type: string
        enum: [toSalon, toHome, both]
      - name: audience
        in: query
        type: string
        enum: [men, women, kids, unisex]
      - name: minRating
        in: query
        type: number
      - name: maxRating
        in: query
        type: number
      - name: minPriceLevel
        in: query
        type: integer
      - name: maxPriceLevel
        in: query
        type: integer
      - name: sortBy
        in: query
        type: string
        enum: [popular, rating, price, name, newest, distance]
        default: popular
      - name: sortOrder
        in: query
        type: string
        enum: [asc, desc]
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 20
        maximum: 50
    responses:
      200:
        description: Salons with pagination metadata
      400:
        description: Invalid parameters, every offending field listed
    """
    params = parse_query(SalonListQuery)
    settings = _settings()
    listing = _listing(
        SALONS, params, build_salon_filter(params, db.session), settings.default_limit, settings.max_limit
    )
    listing["salons"] = listing.pop("items")
    return ok(listing)


@bp_discovery.get("/salons/nearby")
def nearby_salons() -> tuple[dict[str, object], int]:
    """Salons around a point, nearest first.
    ---
    tags:
      - Salons
    parameters:
      - name: lat
        in: query
        type: number
        required: true
      - name: lng
        in: query
        type: number
        required: true
      - name: radius
        in: query
        type: number
        default: 5000
    """
    params = parse_query(NearbySalonQuery)
    settings = _settings()
    geo = params.geo_query(settings)
    limit = clamp_limit(params.limit, settings.default_limit, settings.max_limit)
    sort = resolve_sort("salon", "distance", "asc", geo_active=True)

    result = assemble(
        SALONS, build_salon_filter(params, db.session), sort, 1, limit, geo=geo, settings=settings
    ).run(db.session)
    return ok({
        "salons": format_hits("salon", result.hits, current_api_version()),
        "total": result.total,
        "geo": {"lat": geo.lat, "lng": geo.lng, "radius": geo.radius},
    })


@bp_discovery.get("/salons/<int:salon_id>")
@optional_auth
def get_salon(salon_id: int) -> tuple[dict[str, object], int]:
    """Salon details with service, provider and price summaries."""
    salon = _active_salon(salon_id)

    services = list(db.session.scalars(
        select(Service).where(Service.salon_id == salon_id, Service.is_active.is_(True))
    ))
    provider_count = db.session.scalar(
        select(func.count(Provider.provider_id)).where(
            Provider.salon_id == salon_id, Provider.is_active.is_(True)
        )
    ) or 0

    data = format_salon(
        salon,
        current_api_version(),
        area_name=salon.area.name if salon.area else None,
        city_name=salon.city.name if salon.city else None,
    )
    prices = [service.final_price for service in services]
    data.update({
        "phone": salon.phone,
        "email": salon.email,
        "website": salon.website,
        "images": [image.to_dict() for image in salon.images],
        "serviceCount": len(services),
        "providerCount": provider_count,
        "serviceModes": sorted({service.mode for service in services}),
        "serviceAudiences": sorted({tag for service in services for tag in service.audience}),
        "priceRange": {"min": min(prices), "max": max(prices)} if prices else None,
    })

    user = g.get("current_user")
    if user is not None:
        data["isFavorite"] = db.session.scalar(
            select(Favorite.favorite_id).where(Favorite.user_id == user.user_id, Favorite.salon_id == salon_id)
        ) is not None

    return ok({"salon": data})


@bp_discovery.get("/salons/<int:salon_id>/services")
def get_salon_services(salon_id: int) -> tuple[dict[str, object], int]:
    """Active services of one salon, grouped by where they are offered."""
    _active_salon(salon_id)
    params = parse_query(SalonServicesQuery)

    clauses = build_service_filter(params, db.session) + [Service.salon_id == salon_id]
    services = db.session.scalars(
        select(Service)
        .join(Salon, Service.salon_id == Salon.salon_id)
        .where(*clauses)
        .order_by(Service.price.asc(), Service.service_id.asc())
    ).all()

    version = current_api_version()
    formatted = [format_service(service, version) for service in services]
    grouped = {
        "toSalon": [item for item in formatted if item["mode"] in ("toSalon", "both")],
        "toHome": [item for item in formatted if item["mode"] in ("toHome", "both")],
    }
    return ok({"services": formatted, "grouped": grouped, "total": len(formatted)})


@bp_discovery.get("/salons/<int:salon_id>/providers")
def get_salon_providers(salon_id: int) -> tuple[dict[str, object], int]:
    _active_salon(salon_id)
    providers = db.session.scalars(
        select(Provider)
        .where(Provider.salon_id == salon_id, Provider.is_active.is_(True))
        .order_by(Provider.average_rating.desc(), Provider.provider_id.asc())
    ).all()
    version = current_api_version()
    return ok({"providers": [format_provider(provider, version) for provider in providers]})


@bp_discovery.get("/salons/<int:salon_id>/reviews")
def get_salon_reviews(salon_id: int) -> tuple[dict[str, object], int]:
    _active_salon(salon_id)
    return ok(_review_page(SalonReview, SalonReview.salon_id, salon_id))


@bp_discovery.get("/salons/<int:salon_id>/gallery")
def get_salon_gallery(salon_id: int) -> tuple[dict[str, object], int]:
    salon = _active_salon(salon_id)
    return ok({
        "coverImage": salon.cover_image,
        "logo": salon.logo,
        "images": [image.to_dict() for image in salon.images],
    })


# --- services --------------------------------------------------------------------


@bp_discovery.get("/services/categories")
def list_categories() -> tuple[dict[str, object], int]:
    categories = db.session.scalars(
        select(ServiceCategory)
        .where(ServiceCategory.is_active.is_(True))
        .order_by(ServiceCategory.display_order, ServiceCategory.name)
    )
    return ok({"categories": [category.to_dict(include_types=True) for category in categories]})


@bp_discovery.get("/services/types")
def list_service_types() -> tuple[dict[str, object], int]:
    """Service types, optionally narrowed by a category slug or id."""
    params = parse_query(SalonServicesQuery)
    stmt = select(ServiceType).where(ServiceType.is_active.is_(True)).order_by(ServiceType.name)
    if params.category:
        category = params.category.strip()
        stmt = stmt.join(ServiceCategory, ServiceType.category_id == ServiceCategory.category_id)
        if category.isdigit():
            stmt = stmt.where(ServiceCategory.category_id == int(category))
        else:
            stmt = stmt.where(ServiceCategory.slug == category.lower())
    return ok({"types": [service_type.to_dict() for service_type in db.session.scalars(stmt)]})


def _service_listing(params):
    settings = _settings()
    listing = _listing(
        SERVICES,
        params,
        build_service_filter(params, db.session),
        settings.service_default_limit,
        settings.service_max_limit,
    )
    listing["services"] = listing.pop("items")
    return listing


@bp_discovery.get("/services")
def list_services() -> tuple[dict[str, object], int]:
    """Search services across salons.
    ---
    tags:
      - Services
    parameters:
      - name: q
        in: query
        type: string
      - name: salonId
        in: query
        type: integer
      - name: category
        in: query
        type: string
      - name: serviceType
        in: query
        type: string
      - name: minPrice
        in: query
        type: number
      - name: maxPrice
        in: query
        type: number
      - name: popular
        in: query
        type: boolean
      - name: sortBy
        in: query
        type: string
        enum: [price, popular, rating, name, newest, distance]
        default: price
      - name: limit
        in: query
        type: integer
        default: 50
        maximum: 100
    """
    return ok(_service_listing(parse_query(ServiceListQuery)))


@bp_discovery.get("/services/search")
def search_services() -> tuple[dict[str, object], int]:
    return ok(_service_listing(parse_query(ServiceSearchQuery)))


@bp_discovery.get("/services/popular")
def popular_services() -> tuple[dict[str, object], int]:
    params = parse_query(ServiceListQuery)
    settings = _settings()
    limit = clamp_limit(params.limit, settings.search_section_limit, settings.service_max_limit)
    sort = resolve_sort("service", "popular", "desc")
    result = assemble(
        SERVICES, build_service_filter(params, db.session), sort, 1, limit, settings=settings
    ).run(db.session)
    return ok({"services": format_hits("service", result.hits, current_api_version())})


@bp_discovery.get("/services/<int:service_id>")
def get_service(service_id: int) -> tuple[dict[str, object], int]:
    service = db.session.get(Service, service_id)
    if service is None or not service.is_active or not service.salon.is_active:
        raise NotFound("Service not found")

    version = current_api_version()
    data = format_service(service, version)
    if service.service_type is not None:
        data["type"] = service.service_type.to_dict()
        data["category"] = service.service_type.category.to_dict() if service.service_type.category else None

    related = []
    if service.type_id is not None:
        related = db.session.scalars(
            select(Service)
            .join(Salon, Service.salon_id == Salon.salon_id)
            .where(
                Service.type_id == service.type_id,
                Service.service_id != service.service_id,
                Service.is_active.is_(True),
                Salon.is_active.is_(True),
            )
            .order_by(Service.booking_count.desc(), Service.service_id.asc())
            .limit(6)
        ).all()

    return ok({"service": data, "related": [format_service(item, version) for item in related]})


# --- providers -------------------------------------------------------------------


@bp_discovery.get("/providers")
def list_providers() -> tuple[dict[str, object], int]:
    """Providers filtered by salon, specialization, home service, area and rating.
    ---
    tags:
      - Providers
    parameters:
      - name: sortBy
        in: query
        type: string
        enum: [rating, experience, name, distance]
        default: rating
    """
    params = parse_query(ProviderListQuery)
    settings = _settings()
    listing = _listing(PROVIDERS, params, build_provider_filter(params), settings.default_limit, settings.max_limit)
    listing["providers"] = listing.pop("items")
    return ok(listing)


@bp_discovery.get("/providers/<int:provider_id>")
def get_provider(provider_id: int) -> tuple[dict[str, object], int]:
    provider = _active_provider(provider_id)
    data = format_provider(provider, current_api_version())
    data["availability"] = [entry.to_dict() for entry in provider.availability]
    data["homeAreas"] = [{"id": area.area_id, "name": area.name} for area in provider.home_areas]
    recent = db.session.scalars(
        select(ProviderReview)
        .where(ProviderReview.provider_id == provider_id)
        .order_by(ProviderReview.created_at.desc(), ProviderReview.review_id.desc())
        .limit(5)
    )
    data["recentReviews"] = [review.to_dict() for review in recent]
    return ok({"provider": data})


@bp_discovery.get("/providers/<int:provider_id>/reviews")
def get_provider_reviews(provider_id: int) -> tuple[dict[str, object], int]:
    _active_provider(provider_id)
    return ok(_review_page(ProviderReview, ProviderReview.provider_id, provider_id))


@bp_discovery.get("/providers/<int:provider_id>/availability")
def get_provider_availability(provider_id: int) -> tuple[dict[str, object], int]:
    """Free 30-minute slots of a provider on one date."""
    provider = _active_provider(provider_id)
    params = parse_query(ProviderAvailabilityQuery)
    return ok({"date": params.on_date.isoformat(), "slots": provider_slots(provider, params.on_date)})


# --- unified search --------------------------------------------------------------


SEARCH_SECTIONS = (
    ("salons", SALONS, lambda params: build_salon_filter(params, db.session)),
    ("services", SERVICES, lambda params: build_service_filter(params, db.session)),
    ("providers", PROVIDERS, build_provider_filter),
)


@bp_discovery.get("/search")
def unified_search() -> tuple[dict[str, object], int]:
    """Search salons, services and providers at once.
    ---
    tags:
      - Search
    parameters:
      - name: q
        in: query
        type: string
        required: true
      - name: type
        in: query
        type: string
        enum: [salons, services, providers, all]
        default: all
      - name: limit
        in: query
        type: integer
        default: 10
        maximum: 20
        description: Limit per section
    """
    params = parse_query(SearchQuery)
    settings = _settings()
    geo = params.geo_query(settings)
    limit = clamp_limit(params.limit, settings.search_section_limit, settings.max_section_limit)
    version = current_api_version()

    data: dict[str, object] = {"query": params.q}
    totals: dict[str, int] = {}
    for section, target, build_filter in SEARCH_SECTIONS:
        if params.type not in ("all", section):
            continue
        sort = resolve_sort(target.kind, None, None, geo_active=geo is not None)
        result = assemble(target, build_filter(params), sort, 1, limit, geo=geo, settings=settings).run(db.session)
        data[section] = format_hits(target.kind, result.hits, version)
        totals[section] = result.total

    data["totals"] = totals
    return ok(data)


@bp_discovery.get("/search/suggestions")
def search_suggestions() -> tuple[dict[str, object], int]:
    """Prefix suggestions across salon, service and category names."""
    params = parse_query(SuggestionQuery)
    if len(params.q) < 2:
        return ok({"suggestions": []})

    limit = _settings().suggestion_limit
    pattern = f"{escape_like(params.q)}%"
    suggestions = []

    for salon_id, name in db.session.execute(
        select(Salon.salon_id, Salon.name)
        .where(Salon.is_active.is_(True), Salon.name.ilike(pattern, escape="\\"))
        .order_by(Salon.popularity_score.desc(), Salon.salon_id)
        .limit(limit)
    ):
        suggestions.append({"type": "salon", "id": salon_id, "text": name})

    for name in db.session.scalars(
        select(Service.name)
        .where(Service.is_active.is_(True), Service.name.ilike(pattern, escape="\\"))
        .group_by(Service.name)
        .order_by(func.sum(Service.booking_count).desc(), Service.name)
        .limit(limit)
    ):
        suggestions.append({"type": "service", "text": name})

    for category_id, name, slug in db.session.execute(
        select(ServiceCategory.category_id, ServiceCategory.name, ServiceCategory.slug)
        .where(ServiceCategory.is_active.is_(True), ServiceCategory.name.ilike(pattern, escape="\\"))
        .order_by(ServiceCategory.display_order)
        .limit(limit)
    ):
        suggestions.append({"type": "category", "id": category_id, "text": name, "slug": slug})

    return ok({"suggestions": suggestions})


@bp_discovery.get("/search/trending")
def trending_searches() -> tuple[dict[str, object], int]:
    limit = _settings().suggestion_limit
    version = current_api_version()

    salons = db.session.scalars(
        select(Salon)
        .where(Salon.is_active.is_(True))
        .order_by(Salon.popularity_score.desc(), Salon.salon_id)
        .limit(limit)
    )
    services = db.session.scalars(
        select(Service)
        .join(Salon, Service.salon_id == Salon.salon_id)
        .where(Service.is_active.is_(True), Salon.is_active.is_(True))
        .order_by(Service.booking_count.desc(), Service.service_id)
        .limit(limit)
    )
    categories = db.session.scalars(
        select(ServiceCategory)
        .where(ServiceCategory.is_active.is_(True))
        .order_by(ServiceCategory.display_order, ServiceCategory.name)
        .limit(limit)
    )
    return ok({
        "salons": [format_salon(salon, version) for salon in salons],
        "services": [format_service(service, version) for service in services],
        "categories": [category.to_dict() for category in categories],
    })
