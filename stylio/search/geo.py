"""Distance expressions evaluated by the database.

Distances use an equirectangular projection around the query point: the
longitude delta is scaled by ``cos(lat)`` of the origin, which is computed in
Python so the SQL only needs arithmetic. Within the 20 km search radius the
error against a great-circle distance is well below a meter per kilometer.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from sqlalchemy import and_

EARTH_RADIUS_METERS = 6371008.8
METERS_PER_DEGREE = EARTH_RADIUS_METERS * math.pi / 180


@dataclass(frozen=True)
class GeoQuery:
    lat: float
    lng: float
    radius: float

    @property
    def meters_per_degree_lng(self) -> float:
        # Never let the scale reach zero at the poles.
        return max(METERS_PER_DEGREE * math.cos(math.radians(self.lat)), 1.0)


def distance_squared(geo: GeoQuery, lat_column, lng_column):
    """Squared planar distance in square meters from ``geo`` to the row's point."""
    dy = (lat_column - geo.lat) * METERS_PER_DEGREE
    dx = (lng_column - geo.lng) * geo.meters_per_degree_lng
    return dx * dx + dy * dy


def bounding_box(geo: GeoQuery, lat_column, lng_column):
    """Cheap index-friendly prefilter around the query point."""
    lat_delta = geo.radius / METERS_PER_DEGREE
    lng_delta = geo.radius / geo.meters_per_degree_lng
    return and_(
        lat_column.between(geo.lat - lat_delta, geo.lat + lat_delta),
        lng_column.between(geo.lng - lng_delta, geo.lng + lng_delta),
    )


def distance_meters(geo: GeoQuery, lat: float, lng: float) -> float:
    """Python twin of :func:`distance_squared` for rows already in memory."""
    dy = (lat - geo.lat) * METERS_PER_DEGREE
    dx = (lng - geo.lng) * geo.meters_per_degree_lng
    return math.hypot(dx, dy)
