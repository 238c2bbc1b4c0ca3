from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from .actions import Services
from .api import router
from .cache import ViewCache
from .config import Settings, get_settings
from .db import init_db, make_engine
from .errors import AuthenticationError, LacquerError
from .geocoding import GeocodingClient

logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


def create_app(settings: Optional[Settings] = None, geocoder: Optional[GeocodingClient] = None) -> FastAPI:
    """Build the app with its own engine, view cache and geocoder.

    Nothing is created at import time; ``lacquer.main`` and the tests each call this.
    """
    settings = settings or get_settings()
    engine = make_engine(settings.database_url)
    init_db(engine)
    if geocoder is None:
        geocoder = GeocodingClient(settings.google_maps_api_key, settings.geocode_url, settings.geocode_timeout)
    services = Services(engine=engine, cache=ViewCache(max_entries=settings.view_cache_size), geocoder=geocoder)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        services.geocoder.close()
        engine.dispose()

    app = FastAPI(title="Lacquer", lifespan=lifespan)
    app.state.settings = settings
    app.state.services = services
    app.add_middleware(
        CORSMiddleware, allow_origins=list(settings.cors_origins), allow_credentials=False,
        allow_methods=["*"], allow_headers=["*"],
    )

    @app.exception_handler(LacquerError)
    async def handle_lacquer_error(request: Request, exc: LacquerError):
        if isinstance(exc, AuthenticationError) and _wants_html(request):
            return RedirectResponse(settings.sign_in_url, status_code=303)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(SQLAlchemyError)
    async def handle_db_error(request: Request, exc: SQLAlchemyError):
        logger.error("Unhandled database error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Something went wrong. Please try again."})

    app.include_router(router)
    logger.info("Lacquer app ready (db=%s)", engine.url.render_as_string(hide_password=True))
    return app
