"""Adapter over the Google Geocoding HTTP API."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

import httpx

from .config import DEFAULT_GEOCODE_URL
from .errors import GeocodingError
from .geo import Coordinate, format_coordinates

logger = logging.getLogger(__name__)


def _candidate(result: dict) -> Optional[dict[str, Any]]:
    try:
        loc = result["geometry"]["location"]
        return {
            "address": result.get("formatted_address") or format_coordinates(loc["lat"], loc["lng"]),
            "lat": float(loc["lat"]),
            "lng": float(loc["lng"]),
        }
    except (KeyError, TypeError, ValueError):
        return None


class GeocodingClient:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_GEOCODE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def _get(self, params: dict[str, str]) -> dict:
        resp = self._client.get(self.base_url, params={**params, "key": self.api_key or ""})
        resp.raise_for_status()
        return resp.json()

    def forward(self, address: str, limit: int = 5) -> List[dict[str, Any]]:
        """Address text -> candidate places (for autocomplete)."""
        q = (address or "").strip()
        if not q:
            return []
        if not self.api_key:
            raise GeocodingError("Address search is not configured")
        try:
            data = self._get({"address": q})
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Forward geocode failed for %r: %s", q, exc)
            raise GeocodingError("Address lookup failed, please try again") from exc

        status = data.get("status")
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            logger.warning("Forward geocode returned status %s for %r", status, q)
            raise GeocodingError("Address lookup failed, please try again")

        out = []
        for r in data.get("results") or []:
            c = _candidate(r)
            if c:
                out.append(c)
            if len(out) >= limit:
                break
        return out

    def reverse(self, lat: float, lng: float) -> str:
        """Point -> formatted address, or the raw coordinates when lookup fails."""
        fallback = format_coordinates(lat, lng)
        if not self.api_key:
            return fallback
        try:
            data = self._get({"latlng": f"{lat},{lng}"})
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Reverse geocode failed for %s: %s", fallback, exc)
            return fallback
        results = data.get("results") or []
        if data.get("status") != "OK" or not results:
            return fallback
        return results[0].get("formatted_address") or fallback


def markers(locations: Iterable[dict[str, Any]], pending: Optional[Coordinate] = None) -> List[dict[str, Any]]:
    """Map markers for stored locations plus the in-progress selection, if any."""
    out = [
        {
            "location_id": loc["location_id"],
            "title": loc["location_name"],
            "lat": loc["latitude"],
            "lng": loc["longitude"],
            "pending": False,
        }
        for loc in locations
        if loc.get("latitude") is not None and loc.get("longitude") is not None
    ]
    if pending is not None:
        out.append({
            "location_id": None,
            "title": format_coordinates(*pending),
            "lat": pending[0],
            "lng": pending[1],
            "pending": True,
        })
    return out
