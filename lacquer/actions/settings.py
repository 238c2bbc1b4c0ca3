from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..cache import HOME, SETTINGS
from ..errors import NotFoundError
from ..repos import UserRepository
from . import SUCCESS, Services, server_action

logger = logging.getLogger(__name__)


def get_auto_location_filter(svc: Services, user_id: str) -> bool:
    """Defaults to on when the user row is missing or cannot be read."""

    def compute():
        with svc.engine.connect() as conn:
            user = UserRepository(conn).get(user_id)
        return True if user is None else bool(user["auto_location_filter"])

    try:
        return svc.cache.get_or_compute(user_id, SETTINGS, compute, "auto_location_filter")
    except SQLAlchemyError:
        logger.exception("Error fetching auto_location_filter for user %s", user_id)
        return True


@server_action("update settings")
def update_auto_location_filter(svc: Services, user_id: str, enabled: bool) -> dict:
    with svc.engine.begin() as conn:
        if not UserRepository(conn).set_auto_location_filter(user_id, enabled):
            raise NotFoundError("User not found")
    svc.cache.revalidate(user_id, SETTINGS, HOME)
    return dict(SUCCESS)
