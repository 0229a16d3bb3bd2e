from __future__ import annotations

from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt

from ..core.constants import EARTH_RADIUS_METERS


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float


def haversine_meters(a: Location, b: Location) -> float:
    """Great-circle distance between two points, in meters."""
    dlat = radians(b.lat - a.lat)
    dlng = radians(b.lng - a.lng)
    h = sin(dlat / 2) ** 2 + cos(radians(a.lat)) * cos(radians(b.lat)) * sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * asin(sqrt(h))


def within_radius(point: Location, center: Location, radius_meters: float) -> bool:
    return haversine_meters(point, center) <= radius_meters
