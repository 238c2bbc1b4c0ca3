"""Error taxonomy shared by actions and the HTTP layer."""

from __future__ import annotations


class LacquerError(Exception):
    """Base class; ``message`` is safe to show to the user."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(LacquerError):
    status_code = 401


class NotFoundError(LacquerError):
    """Missing row, or a row owned by someone else. Both look the same."""

    status_code = 404


class ValidationError(LacquerError):
    status_code = 400


class PersistenceError(LacquerError):
    status_code = 500


class GeocodingError(LacquerError):
    status_code = 502
