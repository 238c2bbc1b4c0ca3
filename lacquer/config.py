"""Settings loaded from environment variables.

Read once by the process entry point and passed into ``create_app``; tests build
their own ``Settings`` directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

DEFAULT_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


def normalize_database_url(url: str) -> str:
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://") and "+psycopg2" not in url:
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./lacquer.db"
    jwt_secret: str = "dev-secret"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = None
    auth_cookie: str = "lacquer_session"
    session_ttl_seconds: int = 2592000  # 30d
    sign_in_url: str = "/auth"
    google_maps_api_key: Optional[str] = None
    geocode_url: str = DEFAULT_GEOCODE_URL
    geocode_timeout: float = 10.0
    log_dir: str = ".local/lacquer"
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("*",)
    view_cache_size: int = 2048


def get_settings() -> Settings:
    db_url = _env("DATABASE_URL")
    return Settings(
        database_url=normalize_database_url(db_url) if db_url else "sqlite:///./lacquer.db",
        jwt_secret=_env("LACQUER_JWT_SECRET", "dev-secret"),
        jwt_audience=_env("LACQUER_JWT_AUDIENCE") or None,
        auth_cookie=_env("LACQUER_AUTH_COOKIE", "lacquer_session"),
        session_ttl_seconds=_env_int("LACQUER_SESSION_TTL_SECONDS", 2592000),
        sign_in_url=_env("LACQUER_SIGN_IN_URL", "/auth"),
        google_maps_api_key=_env("GOOGLE_MAPS_API_KEY") or None,
        geocode_url=_env("LACQUER_GEOCODE_URL", DEFAULT_GEOCODE_URL),
        geocode_timeout=_env_float("LACQUER_GEOCODE_TIMEOUT", 10.0),
        log_dir=_env("LACQUER_LOG_DIR", ".local/lacquer"),
        log_level=_env("LACQUER_LOG_LEVEL", "INFO").upper(),
        cors_origins=tuple(_env_list("LACQUER_CORS_ORIGINS", ["*"])),
        view_cache_size=_env_int("LACQUER_VIEW_CACHE_SIZE", 2048),
    )
