from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import and_, insert, select
from sqlalchemy.engine import Connection

from ..db import DEFAULT_RADIUS_M, gen_id, locations, now_ts
from ..geo import COORD_TOLERANCE_DEG, tolerance_box


def to_location_out(r) -> dict[str, Any]:
    return {
        "location_id": r["location_id"],
        "location_name": r["location_name"],
        "latitude": float(r["latitude"]) if r["latitude"] is not None else None,
        "longitude": float(r["longitude"]) if r["longitude"] is not None else None,
        "radius": int(r["radius"]) if r["radius"] is not None else DEFAULT_RADIUS_M,
    }


class LocationRepository:
    def __init__(self, conn: Connection, user_id: str) -> None:
        self.conn = conn
        self.user_id = user_id

    def _owned(self):
        return locations.c.user_id == self.user_id

    def list(self, with_coordinates: bool = False) -> List[dict[str, Any]]:
        stmt = select(locations).where(self._owned())
        if with_coordinates:
            stmt = stmt.where(and_(locations.c.latitude.is_not(None), locations.c.longitude.is_not(None)))
        stmt = stmt.order_by(locations.c.location_name.asc(), locations.c.created_at.asc())
        return [to_location_out(r) for r in self.conn.execute(stmt).mappings().all()]

    def get(self, location_id: str) -> Optional[dict[str, Any]]:
        r = self.conn.execute(
            select(locations).where(and_(locations.c.location_id == location_id, self._owned()))
        ).mappings().first()
        return to_location_out(r) if r else None

    def find_near(self, lat: float, lng: float, tolerance: float = COORD_TOLERANCE_DEG) -> Optional[dict[str, Any]]:
        """First stored location inside the +/- tolerance box around (lat, lng)."""
        lat_min, lat_max, lng_min, lng_max = tolerance_box(lat, lng, tolerance)
        stmt = (
            select(locations)
            .where(
                and_(
                    self._owned(),
                    locations.c.latitude.between(lat_min, lat_max),
                    locations.c.longitude.between(lng_min, lng_max),
                )
            )
            .order_by(locations.c.created_at.asc())
            .limit(1)
        )
        r = self.conn.execute(stmt).mappings().first()
        return to_location_out(r) if r else None

    def create(self, address: str, lat: float, lng: float, radius: int = DEFAULT_RADIUS_M) -> dict[str, Any]:
        lid = gen_id()
        self.conn.execute(
            insert(locations).values(
                location_id=lid,
                user_id=self.user_id,
                location_name=address,
                latitude=lat,
                longitude=lng,
                radius=radius,
                created_at=now_ts(),
            )
        )
        return self.get(lid)
