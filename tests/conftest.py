# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from lacquer.actions import Services
from lacquer.app import create_app
from lacquer.auth import create_token, resolve_user_id
from lacquer.config import Settings
from lacquer.geocoding import GeocodingClient


def fake_google(request: httpx.Request) -> httpx.Response:
    """Just enough of the Google Geocoding JSON API for the adapter."""
    params = request.url.params
    if "address" in params:
        q = params["address"]
        if q == "nowhere":
            return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})
        if q == "boom":
            return httpx.Response(500, json={})
        return httpx.Response(200, json={
            "status": "OK",
            "results": [
                {
                    "formatted_address": f"{q}, San Francisco, CA, USA",
                    "geometry": {"location": {"lat": 37.7749, "lng": -122.4194}},
                },
                {
                    "formatted_address": f"{q}, Oakland, CA, USA",
                    "geometry": {"location": {"lat": 37.8044, "lng": -122.2712}},
                },
            ],
        })
    if "latlng" in params:
        if params["latlng"].startswith("1.0,"):
            return httpx.Response(503, json={})
        if params["latlng"].startswith("2.0,"):
            return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})
        return httpx.Response(200, json={
            "status": "OK",
            "results": [{"formatted_address": "1 Market St, San Francisco, CA 94105, USA"}],
        })
    return httpx.Response(400, json={"status": "INVALID_REQUEST"})


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'lacquer.db'}",
        jwt_secret="test-secret",
        google_maps_api_key="test-key",
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture()
def geocoder() -> GeocodingClient:
    return GeocodingClient("test-key", transport=httpx.MockTransport(fake_google))


@pytest.fixture()
def app(settings: Settings, geocoder: GeocodingClient):
    return create_app(settings, geocoder=geocoder)


@pytest.fixture()
def client(app):
    # https so the Secure session cookie round-trips
    with TestClient(app, base_url="https://testserver") as c:
        yield c


@pytest.fixture()
def svc(app) -> Services:
    return app.state.services


@pytest.fixture()
def user_a(svc: Services) -> str:
    return resolve_user_id(svc.engine, {"sub": "user-a", "email": "alice@example.com"})


@pytest.fixture()
def user_b(svc: Services) -> str:
    return resolve_user_id(svc.engine, {"sub": "user-b", "email": "bob@example.com"})


@pytest.fixture()
def auth(settings: Settings):
    """Authorization headers for a provider-issued token."""

    def headers(user_id: str = "user-a", email: str = "alice@example.com") -> dict[str, str]:
        return {"Authorization": f"Bearer {create_token(settings, user_id, email)}"}

    return headers
