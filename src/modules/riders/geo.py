"""Great-circle helpers backing the rider directory's proximity queries.

Coordinates follow the GeoJSON convention used across the core:
``(longitude, latitude)`` in decimal degrees.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple

from modules.riders.constants import (
    EARTH_RADIUS_M,
    MAX_LATITUDE,
    MAX_LONGITUDE,
    MIN_LATITUDE,
    MIN_LONGITUDE,
)
from modules.riders.exceptions import InvalidCoordinates

LonLat = Tuple[float, float]


def validate_coordinates(longitude: float, latitude: float) -> LonLat:
    """Return ``(longitude, latitude)`` as floats or raise ``InvalidCoordinates``."""
    try:
        lon, lat = float(longitude), float(latitude)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinates(
            f"Coordinates must be numeric, got ({longitude!r}, {latitude!r})."
        ) from exc
    if math.isnan(lon) or math.isnan(lat):
        raise InvalidCoordinates("Coordinates must not be NaN.")
    if not MIN_LONGITUDE <= lon <= MAX_LONGITUDE:
        raise InvalidCoordinates(f"Longitude {lon} outside [-180, 180].")
    if not MIN_LATITUDE <= lat <= MAX_LATITUDE:
        raise InvalidCoordinates(f"Latitude {lat} outside [-90, 90].")
    return lon, lat


def haversine_m(origin: LonLat, target: LonLat) -> float:
    """Geodesic distance in meters between two ``(lon, lat)`` points."""
    lon1, lat1 = origin
    lon2, lat2 = target
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


@dataclass(frozen=True)
class BoundingBox:
    """Index-friendly rectangle enclosing a search circle.

    ``longitude_ranges`` holds one range, or two when the circle crosses
    the antimeridian.
    """

    min_latitude: float
    max_latitude: float
    longitude_ranges: Tuple[Tuple[float, float], ...]


def bounding_box(origin: LonLat, radius_m: float) -> BoundingBox:
    """Smallest lat/lon rectangle containing every point within ``radius_m``."""
    lon, lat = origin
    angular = radius_m / EARTH_RADIUS_M
    delta_lat = math.degrees(angular)
    min_lat = lat - delta_lat
    max_lat = lat + delta_lat

    # Circle touches a pole: every longitude qualifies.
    if min_lat <= MIN_LATITUDE or max_lat >= MAX_LATITUDE or angular >= math.pi / 2:
        return BoundingBox(
            min_latitude=max(min_lat, MIN_LATITUDE),
            max_latitude=min(max_lat, MAX_LATITUDE),
            longitude_ranges=((MIN_LONGITUDE, MAX_LONGITUDE),),
        )

    delta_lon = math.degrees(
        math.asin(min(1.0, math.sin(angular) / math.cos(math.radians(lat))))
    )
    west, east = lon - delta_lon, lon + delta_lon
    ranges: List[Tuple[float, float]] = []
    if west < MIN_LONGITUDE:
        ranges.append((west + 360.0, MAX_LONGITUDE))
        ranges.append((MIN_LONGITUDE, east))
    elif east > MAX_LONGITUDE:
        ranges.append((west, MAX_LONGITUDE))
        ranges.append((MIN_LONGITUDE, east - 360.0))
    else:
        ranges.append((west, east))
    return BoundingBox(
        min_latitude=min_lat,
        max_latitude=max_lat,
        longitude_ranges=tuple(ranges),
    )
