"""Geospatial helpers — centroid and great-circle distance."""

import math
from collections.abc import Sequence

from meetpoint.exceptions import InvalidInputError
from meetpoint.services.recommendation.types import Coordinate

EARTH_RADIUS_KM = 6371.0


def centroid(locations: Sequence[Coordinate]) -> Coordinate:
    """
    Arithmetic mean of latitudes and of longitudes.

    This is a flat-plane approximation. It is fine for the bounded search
    radii used here (5-10 km) but is not the spherical centroid for groups
    spread across a continent, and it does not handle the antimeridian.
    """
    if not locations:
        raise InvalidInputError("At least one location is required")

    total_lat = 0.0
    total_lng = 0.0
    for loc in locations:
        if not isinstance(loc, Coordinate):
            raise InvalidInputError(f"Invalid location data: {loc!r}")
        if not (math.isfinite(loc.latitude) and math.isfinite(loc.longitude)):
            raise InvalidInputError("Location components must be finite")
        total_lat += loc.latitude
        total_lng += loc.longitude

    count = len(locations)
    return Coordinate(total_lat / count, total_lng / count)


def great_circle_distance_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in kilometres."""
    d_lat = math.radians(b.latitude - a.latitude)
    d_lng = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.latitude)) * math.cos(math.radians(b.latitude)) * math.sin(d_lng / 2) ** 2
    )
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def meters_to_km(meters: float) -> float:
    return round(meters / 1000.0, 2)


def seconds_to_minutes(seconds: float) -> float:
    return round(seconds / 60.0, 1)
