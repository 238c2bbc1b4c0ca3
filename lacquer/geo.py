"""Great-circle distance and coordinate matching."""

from __future__ import annotations

import math
from typing import Optional, Tuple

EARTH_RADIUS_M = 6_371_000
PROXIMITY_RADIUS_M = 100
# ~11 m at the equator
COORD_TOLERANCE_DEG = 0.0001
# absorbs float error at the box edge (0.0001 is not exact in binary)
COORD_EPSILON = 1e-12

Coordinate = Tuple[float, float]


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in meters between two lat/lng pairs on a spherical earth."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def tolerance_box(lat: float, lng: float, tolerance: float = COORD_TOLERANCE_DEG) -> Tuple[float, float, float, float]:
    """Inclusive (lat_min, lat_max, lng_min, lng_max) around a point."""
    tol = tolerance + COORD_EPSILON
    return lat - tol, lat + tol, lng - tol, lng + tol


def distance_from(origin: Optional[Coordinate], lat: Optional[float], lng: Optional[float]) -> Optional[float]:
    if origin is None or lat is None or lng is None:
        return None
    return haversine_m(origin[0], origin[1], lat, lng)


def is_nearby(origin: Optional[Coordinate], lat: Optional[float], lng: Optional[float],
              radius_m: float = PROXIMITY_RADIUS_M) -> bool:
    d = distance_from(origin, lat, lng)
    return d is not None and d <= radius_m


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


def validate_coordinates(lat: float, lng: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0
