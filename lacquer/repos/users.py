from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from ..db import now_ts, users


class UserRepository:
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    def get(self, user_id: str) -> Optional[dict[str, Any]]:
        r = self.conn.execute(select(users).where(users.c.user_id == user_id)).mappings().first()
        return dict(r) if r else None

    def get_by_email(self, email: str) -> Optional[dict[str, Any]]:
        r = self.conn.execute(select(users).where(users.c.email == email)).mappings().first()
        return dict(r) if r else None

    def create(self, user_id: str, username: str, email: Optional[str]) -> dict[str, Any]:
        self.conn.execute(
            insert(users).values(
                user_id=user_id,
                username=username,
                email=email,
                auto_location_filter=True,
                created_at=now_ts(),
            )
        )
        return self.get(user_id)

    def set_auto_location_filter(self, user_id: str, enabled: bool) -> int:
        res = self.conn.execute(
            update(users).where(users.c.user_id == user_id).values(auto_location_filter=bool(enabled))
        )
        return int(res.rowcount)
