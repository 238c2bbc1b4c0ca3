"""Entry points behind the HTTP routes.

Every action receives the service handles and an already-resolved user id,
checks ownership, applies its rule, persists, invalidates the cached views
that depend on the change, and returns a plain dict (or raises a
``LacquerError`` with a user-facing message).
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..cache import ViewCache
from ..errors import LacquerError, PersistenceError
from ..geocoding import GeocodingClient

logger = logging.getLogger(__name__)

SUCCESS = {"success": True}


@dataclass
class Services:
    engine: Engine
    cache: ViewCache
    geocoder: Optional[GeocodingClient] = None


def server_action(what: str):
    """Log and translate failures; database errors become a generic retry message."""

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except LacquerError as exc:
                logger.info("%s rejected: %s", what, exc.message)
                raise
            except SQLAlchemyError as exc:
                logger.exception("Error trying to %s", what)
                raise PersistenceError(f"Failed to {what}. Please try again.") from exc

        return wrapper

    return decorator
