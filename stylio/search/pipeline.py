"""Ordered query stages for listing and geo search.

A pipeline is a list of stages, each of which receives the SQLAlchemy
``Select`` built so far and returns a new one. Geo pipelines must open with
the proximity stage: later stages (sorting in particular) read the distance
expression it registers on the shared state.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import aliased, selectinload

from ..config import SearchSettings
from ..models import Area, City, Provider, Salon, Service, User
from .geo import GeoQuery, bounding_box, distance_squared
from .pagination import calculate_offset
from .sorting import SortSpec


class PipelineError(RuntimeError):
    """Raised when stages are assembled in an order that cannot execute."""


@dataclass(frozen=True)
class SearchTarget:
    kind: str
    entity: Any
    primary_key: Any
    latitude: Any
    longitude: Any
    area_key: Any
    sort_columns: dict[str, Any]
    # (target, onclause, outer) joins every query for this entity needs
    joins: tuple = ()
    eager: tuple = ()


SALONS = SearchTarget(
    kind="salon",
    entity=Salon,
    primary_key=Salon.salon_id,
    latitude=Salon.latitude,
    longitude=Salon.longitude,
    area_key=Salon.area_id,
    sort_columns={
        "popularity_score": Salon.popularity_score,
        "average_rating": Salon.average_rating,
        "price_level": Salon.price_level,
        "name": Salon.name,
        "created_at": Salon.created_at,
    },
)

SERVICES = SearchTarget(
    kind="service",
    entity=Service,
    primary_key=Service.service_id,
    latitude=Salon.latitude,
    longitude=Salon.longitude,
    area_key=Salon.area_id,
    sort_columns={
        "price": Service.price,
        "booking_count": Service.booking_count,
        "salon_rating": Salon.average_rating,
        "name": Service.name,
        "created_at": Service.created_at,
    },
    joins=((Salon, Service.salon_id == Salon.salon_id, False),),
    eager=(Service.salon,),
)

PROVIDERS = SearchTarget(
    kind="provider",
    entity=Provider,
    primary_key=Provider.provider_id,
    latitude=Salon.latitude,
    longitude=Salon.longitude,
    area_key=Salon.area_id,
    sort_columns={
        "average_rating": Provider.average_rating,
        "experience_years": Provider.experience_years,
        "name": User.first_name,
    },
    joins=(
        (Salon, Provider.salon_id == Salon.salon_id, True),
        (User, Provider.user_id == User.user_id, False),
    ),
    eager=(Provider.salon,),
)


@dataclass
class PipelineState:
    target: SearchTarget
    distance: Any = None


@dataclass
class SearchHit:
    item: Any
    distance: int | None = None
    area_name: str | None = None
    city_name: str | None = None


@dataclass
class SearchPage:
    hits: list[SearchHit] = field(default_factory=list)
    total: int = 0

    @property
    def items(self) -> list:
        return [hit.item for hit in self.hits]


class Stage:
    name = "stage"

    def apply(self, stmt, state: PipelineState):
        return stmt


class ProximityStage(Stage):
    """Keep rows inside the radius and expose their squared distance."""

    name = "proximity"

    def __init__(self, geo: GeoQuery) -> None:
        self.geo = geo

    def apply(self, stmt, state: PipelineState):
        target = state.target
        state.distance = distance_squared(self.geo, target.latitude, target.longitude)
        return stmt.add_columns(state.distance.label("distance_sq")).where(
            target.latitude.is_not(None),
            target.longitude.is_not(None),
            bounding_box(self.geo, target.latitude, target.longitude),
            state.distance <= self.geo.radius ** 2,
        )


class MatchStage(Stage):
    name = "match"

    def __init__(self, clauses) -> None:
        self.clauses = list(clauses)

    def apply(self, stmt, state: PipelineState):
        if not self.clauses:
            return stmt
        return stmt.where(*self.clauses)


class LookupStage(Stage):
    """Resolve area, then city through area, as inline name columns."""

    name = "lookup"

    def apply(self, stmt, state: PipelineState):
        area = aliased(Area, name="lookup_area")
        city = aliased(City, name="lookup_city")
        return (
            stmt.outerjoin(area, state.target.area_key == area.area_id)
            .outerjoin(city, area.city_id == city.city_id)
            .add_columns(area.name.label("area_name"), city.name.label("city_name"))
        )


class ProjectStage(Stage):
    name = "project"

    def apply(self, stmt, state: PipelineState):
        options = [selectinload(relationship) for relationship in state.target.eager]
        return stmt.options(*options) if options else stmt

    @staticmethod
    def project(row) -> SearchHit:
        mapping = row._mapping
        distance_sq = mapping.get("distance_sq")
        return SearchHit(
            item=row[0],
            distance=round(math.sqrt(distance_sq)) if distance_sq is not None else None,
            area_name=mapping.get("area_name"),
            city_name=mapping.get("city_name"),
        )


class SortStage(Stage):
    name = "sort"

    def __init__(self, sort: SortSpec) -> None:
        self.sort = sort

    def apply(self, stmt, state: PipelineState):
        if self.sort.is_distance:
            if state.distance is None:
                raise PipelineError("distance ordering needs a proximity stage")
            column = state.distance
        else:
            column = state.target.sort_columns[self.sort.field]
        ordering = column.desc() if self.sort.descending else column.asc()
        # Primary key keeps page boundaries stable across equal sort values.
        return stmt.order_by(ordering, state.target.primary_key.asc())


class FacetStage(Stage):
    """Split the filtered statement into a page slice and a total count."""

    name = "facet"

    def __init__(self, page: int, limit: int) -> None:
        self.page = page
        self.limit = limit

    def run(self, session, stmt) -> tuple[list, int]:
        total = session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
        rows = session.execute(stmt.offset(calculate_offset(self.page, self.limit)).limit(self.limit)).all()
        return rows, total or 0


class QueryPipeline:
    def __init__(self, target: SearchTarget, stages) -> None:
        self.target = target
        self.stages = list(stages)
        self.validate()

    def validate(self) -> None:
        if not self.stages or not isinstance(self.stages[-1], FacetStage):
            raise PipelineError("the facet stage must come last")

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    def statement(self):
        state = PipelineState(target=self.target)
        stmt = select(self.target.entity)
        for join_target, onclause, outer in self.target.joins:
            stmt = stmt.join(join_target, onclause, isouter=outer)
        for stage in self.stages:
            stmt = stage.apply(stmt, state)
        return stmt

    def run(self, session) -> SearchPage:
        rows, total = self.stages[-1].run(session, self.statement())
        return SearchPage(hits=[ProjectStage.project(row) for row in rows], total=total)


class GeoPipeline(QueryPipeline):
    def validate(self) -> None:
        super().validate()
        if not isinstance(self.stages[0], ProximityStage):
            raise PipelineError("the proximity stage must run first")


def assemble(target: SearchTarget, clauses, sort: SortSpec, page: int, limit: int,
             geo: GeoQuery | None = None, settings: SearchSettings | None = None) -> QueryPipeline:
    """Build the stage list for a listing, with proximity first under geo search."""
    stages = [
        MatchStage(clauses),
        LookupStage(),
        ProjectStage(),
        SortStage(sort),
        FacetStage(page, limit),
    ]
    if geo is None:
        return QueryPipeline(target, stages)

    settings = settings or SearchSettings()
    bounded = GeoQuery(lat=geo.lat, lng=geo.lng, radius=min(geo.radius, settings.max_radius))
    return GeoPipeline(target, [ProximityStage(bounded), *stages])
