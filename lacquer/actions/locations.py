from __future__ import annotations

import logging
from typing import Any, List, NamedTuple, Optional, Tuple

from sqlalchemy.engine import Connection

from ..cache import HOME, LOCATIONS, PROJECTS
from ..errors import GeocodingError, ValidationError
from ..geo import Coordinate, format_coordinates, validate_coordinates
from ..geocoding import markers
from ..repos import LocationRepository, TaskRepository
from . import Services, server_action

logger = logging.getLogger(__name__)

ANYWHERE_ID = "anywhere"


class LocationData(NamedTuple):
    address: str
    lat: float
    lng: float


def check_coordinates(lat: float, lng: float) -> None:
    if not validate_coordinates(lat, lng):
        raise ValidationError("Coordinates are out of range")


def find_or_create_location(conn: Connection, user_id: str, data: LocationData) -> Tuple[dict[str, Any], bool]:
    """Reuse a stored location inside the tolerance window, else insert one."""
    repo = LocationRepository(conn, user_id)
    existing = repo.find_near(data.lat, data.lng)
    if existing:
        return existing, True
    address = (data.address or "").strip() or format_coordinates(data.lat, data.lng)
    return repo.create(address, data.lat, data.lng), False


@server_action("fetch locations")
def list_locations(svc: Services, user_id: str) -> List[dict[str, Any]]:
    def compute():
        with svc.engine.connect() as conn:
            return LocationRepository(conn, user_id).list(with_coordinates=True)

    return svc.cache.get_or_compute(user_id, LOCATIONS, compute, "coords")


@server_action("fetch locations with tasks")
def list_locations_with_tasks(svc: Services, user_id: str) -> List[dict[str, Any]]:
    def compute():
        with svc.engine.connect() as conn:
            locs = LocationRepository(conn, user_id).list()
            all_tasks = TaskRepository(conn, user_id).list()
        by_location: dict[Optional[str], list] = {}
        for t in all_tasks:
            by_location.setdefault(t["location_id"], []).append(t)
        anywhere = {
            "location_id": ANYWHERE_ID,
            "location_name": "Anywhere",
            "latitude": None,
            "longitude": None,
            "radius": 0,
            "tasks": by_location.get(None, []),
        }
        return [anywhere] + [{**loc, "tasks": by_location.get(loc["location_id"], [])} for loc in locs]

    return svc.cache.get_or_compute(user_id, LOCATIONS, compute, "with-tasks")


@server_action("create location")
def create_location(svc: Services, user_id: str, address: Optional[str], lat: float, lng: float) -> dict[str, Any]:
    check_coordinates(lat, lng)
    name = (address or "").strip()
    with svc.engine.connect() as conn:
        existing = LocationRepository(conn, user_id).find_near(lat, lng)
    if existing:
        return {"location": existing, "reused": True}
    if not name and svc.geocoder is not None:
        name = svc.geocoder.reverse(lat, lng)
    with svc.engine.begin() as conn:
        loc, reused = find_or_create_location(conn, user_id, LocationData(name, lat, lng))
    if not reused:
        logger.info("Created location %s for user %s", loc["location_id"], user_id)
        svc.cache.revalidate(user_id, HOME, PROJECTS, LOCATIONS)
    return {"location": loc, "reused": reused}


@server_action("resolve map point")
def resolve_pin(svc: Services, user_id: str, lat: float, lng: float) -> dict[str, Any]:
    """A clicked map point -> address plus the stored location it would reuse, if any."""
    check_coordinates(lat, lng)
    with svc.engine.connect() as conn:
        existing = LocationRepository(conn, user_id).find_near(lat, lng)
    if existing:
        address = existing["location_name"]
    elif svc.geocoder is not None:
        address = svc.geocoder.reverse(lat, lng)
    else:
        address = format_coordinates(lat, lng)
    return {"address": address, "lat": lat, "lng": lng, "existing_location": existing}


def geocode_address(svc: Services, query: str) -> List[dict[str, Any]]:
    if svc.geocoder is None:
        raise GeocodingError("Address search is not configured")
    return svc.geocoder.forward(query)


def map_markers(svc: Services, user_id: str, pending: Optional[Coordinate] = None) -> List[dict[str, Any]]:
    return markers(list_locations(svc, user_id), pending)
