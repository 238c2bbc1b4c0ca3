"""Session token -> local user id.

Sign-in itself happens at the external auth provider; it hands the browser an
HS256 JWT whose ``sub`` is the stable user id. We verify that token and make
sure a matching ``users`` row exists.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .config import Settings
from .db import now_ts
from .errors import AuthenticationError, PersistenceError
from .repos import UserRepository

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def create_token(settings: Settings, user_id: str, email: Optional[str] = None, ttl_seconds: Optional[int] = None) -> str:
    """Mint a token the way the provider does (used by tests and local tooling)."""
    claims: dict[str, Any] = {"sub": user_id, "exp": now_ts() + (ttl_seconds or settings.session_ttl_seconds)}
    if email:
        claims["email"] = email
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except JWTError:
        raise AuthenticationError("Invalid session")
    if not payload.get("sub"):
        raise AuthenticationError("Invalid session")
    return payload


def extract_token(request: Request, settings: Settings, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if creds and creds.credentials:
        return creds.credentials
    # Some proxies strip Authorization; accept a custom header as a fallback.
    if request.headers.get("x-auth-token"):
        return request.headers.get("x-auth-token")
    return request.cookies.get(settings.auth_cookie) or None


def resolve_user_id(engine: Engine, claims: dict[str, Any]) -> str:
    """Return the local user id for verified claims, provisioning the row on first sight.

    Two first requests can race on the insert; the loser gets a unique-constraint
    error and re-fetches by id, then by email.
    """
    uid = str(claims["sub"])
    email = (claims.get("email") or "").strip().lower() or None

    with engine.connect() as conn:
        user = UserRepository(conn).get(uid)
    if user:
        return user["user_id"]

    username = email.split("@")[0] if email else "user"
    try:
        with engine.begin() as conn:
            UserRepository(conn).create(uid, username, email)
        logger.info("Provisioned user %s", uid)
        return uid
    except IntegrityError:
        with engine.connect() as conn:
            repo = UserRepository(conn)
            user = repo.get(uid)
            if not user and email:
                user = repo.get_by_email(email)
        if not user:
            logger.error("User %s could not be created or found", uid)
            raise AuthenticationError("Authentication required")
        return user["user_id"]


def require_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> str:
    settings: Settings = request.app.state.settings
    token = extract_token(request, settings, creds)
    if not token:
        raise AuthenticationError("Authentication required")
    claims = decode_token(settings, token)
    try:
        return resolve_user_id(request.app.state.services.engine, claims)
    except SQLAlchemyError as exc:
        logger.exception("Error resolving user %s", claims.get("sub"))
        raise PersistenceError("Failed to load your account. Please try again.") from exc


def set_session_cookie(resp: Response, settings: Settings, token: str) -> None:
    resp.set_cookie(
        key=settings.auth_cookie,
        value=token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=True,
        path="/",
    )


def clear_session_cookie(resp: Response, settings: Settings) -> None:
    resp.delete_cookie(key=settings.auth_cookie, path="/")
