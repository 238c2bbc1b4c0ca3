from __future__ import annotations

import logging
from typing import Any, List, Optional

from sqlalchemy import and_, delete, insert, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from ..db import MISCELLANEOUS, MISCELLANEOUS_DESCRIPTION, gen_id, now_ts, projects, tasks

logger = logging.getLogger(__name__)


class ProjectRepository:
    def __init__(self, conn: Connection, user_id: str) -> None:
        self.conn = conn
        self.user_id = user_id

    def _owned(self):
        return projects.c.user_id == self.user_id

    def list(self) -> List[dict[str, Any]]:
        stmt = select(projects).where(self._owned()).order_by(projects.c.project_name.asc())
        return [dict(r) for r in self.conn.execute(stmt).mappings().all()]

    def get(self, project_id: str) -> Optional[dict[str, Any]]:
        r = self.conn.execute(
            select(projects).where(and_(projects.c.project_id == project_id, self._owned()))
        ).mappings().first()
        return dict(r) if r else None

    def find_by_name(self, name: str) -> Optional[dict[str, Any]]:
        r = self.conn.execute(
            select(projects).where(and_(projects.c.project_name == name, self._owned()))
        ).mappings().first()
        return dict(r) if r else None

    def create(self, name: str, description: Optional[str] = None) -> dict[str, Any]:
        """Insert a project; a duplicate name raises IntegrityError."""
        pid = gen_id()
        self.conn.execute(
            insert(projects).values(
                project_id=pid,
                user_id=self.user_id,
                project_name=name,
                project_description=description,
                created_at=now_ts(),
            )
        )
        return self.get(pid)

    def delete_with_tasks(self, project_id: str) -> List[str]:
        """Delete the project and its tasks; returns the note ids those tasks referenced."""
        note_ids = [
            nid for nid in self.conn.execute(
                select(tasks.c.task_note_id).where(tasks.c.project_id == project_id)
            ).scalars().all() if nid
        ]
        self.conn.execute(delete(tasks).where(tasks.c.project_id == project_id))
        self.conn.execute(
            delete(projects).where(and_(projects.c.project_id == project_id, self._owned()))
        )
        return note_ids


def ensure_miscellaneous(engine: Engine, user_id: str) -> dict[str, Any]:
    """Return the user's Miscellaneous project, creating it exactly once.

    Two concurrent callers may both miss the first lookup; the loser of the
    insert hits the (user_id, project_name) unique constraint and re-fetches.
    """
    with engine.connect() as conn:
        row = ProjectRepository(conn, user_id).find_by_name(MISCELLANEOUS)
    if row:
        return row
    try:
        with engine.begin() as conn:
            row = ProjectRepository(conn, user_id).create(MISCELLANEOUS, MISCELLANEOUS_DESCRIPTION)
            logger.info("Created Miscellaneous project for user %s", user_id)
            return row
    except IntegrityError:
        with engine.connect() as conn:
            row = ProjectRepository(conn, user_id).find_by_name(MISCELLANEOUS)
        if row:
            return row
        raise
