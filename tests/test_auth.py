# tests/test_auth.py

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import func, select

from lacquer.auth import create_token, resolve_user_id
from lacquer.db import users
from lacquer.repos import UserRepository


def count_users(engine) -> int:
    with engine.connect() as conn:
        return int(conn.execute(select(func.count()).select_from(users)).scalar_one())


def test_missing_token_is_rejected(client) -> None:
    resp = client.get("/api/tasks")
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Authentication required"}


def test_browser_requests_redirect_to_sign_in(client) -> None:
    resp = client.get("/api/tasks", headers={"accept": "text/html"}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/auth"


def test_bad_and_expired_tokens_are_rejected(client, settings) -> None:
    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401

    expired = create_token(settings, "user-a", "alice@example.com", ttl_seconds=-60)
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401

    forged = create_token(replace(settings, jwt_secret="other"), "user-a")
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {forged}"})
    assert resp.status_code == 401


def test_first_request_provisions_user(client, auth, svc) -> None:
    assert count_users(svc.engine) == 0
    resp = client.get("/api/auth/me", headers=auth("user-a", "Alice@Example.com"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["user_id"] == "user-a"
    assert body["username"] == "alice"
    assert body["email"] == "alice@example.com"
    assert body["auto_location_filter"] is True

    client.get("/api/auth/me", headers=auth("user-a", "alice@example.com"))
    assert count_users(svc.engine) == 1


def test_token_accepted_from_custom_header(client, settings) -> None:
    token = create_token(settings, "user-x")
    resp = client.get("/api/auth/me", headers={"x-auth-token": token})
    assert resp.status_code == 200
    assert resp.json()["username"] == "user"


def test_session_cookie_round_trip(client, settings) -> None:
    token = create_token(settings, "user-c", "carol@example.com")
    resp = client.post("/api/auth/session", json={"access_token": token})
    assert resp.status_code == 200
    assert resp.json()["user_id"] == "user-c"
    assert f"{settings.auth_cookie}=" in resp.headers["set-cookie"]

    client.cookies.clear()
    client.cookies.set(settings.auth_cookie, token)
    assert client.get("/api/auth/me").json()["user_id"] == "user-c"

    resp = client.post("/api/auth/logout")
    assert resp.json() == {"ok": True}
    assert "max-age=0" in resp.headers["set-cookie"].lower()


def test_session_rejects_invalid_token(client) -> None:
    resp = client.post("/api/auth/session", json={"access_token": "garbage"})
    assert resp.status_code == 401


def test_provisioning_race_refetches(svc, monkeypatch) -> None:
    resolve_user_id(svc.engine, {"sub": "user-a", "email": "alice@example.com"})

    original_get = UserRepository.get
    calls = {"n": 0}

    def stale_get(self, user_id):
        # first lookup misses, as if another request inserted right after it
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return original_get(self, user_id)

    monkeypatch.setattr(UserRepository, "get", stale_get)
    assert resolve_user_id(svc.engine, {"sub": "user-a", "email": "alice@example.com"}) == "user-a"
    assert count_users(svc.engine) == 1


def test_email_conflict_falls_back_to_existing_row(svc) -> None:
    resolve_user_id(svc.engine, {"sub": "old-id", "email": "dana@example.com"})
    assert resolve_user_id(svc.engine, {"sub": "new-id", "email": "dana@example.com"}) == "old-id"
    assert count_users(svc.engine) == 1
