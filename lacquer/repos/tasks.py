from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.engine import Connection

from ..db import gen_id, locations, now_ts, projects, task_notes, tasks

_COLUMNS = [
    tasks,
    projects.c.project_name,
    locations.c.location_name,
    locations.c.latitude,
    locations.c.longitude,
    task_notes.c.task_note_content,
]


def to_task_out(r) -> dict[str, Any]:
    """Flat joined row -> task projection with nested project/location/note."""
    return {
        "task_id": r["task_id"],
        "task_description": r["task_description"],
        "project_id": r["project_id"],
        "location_id": r["location_id"],
        "due_date": r["due_date"],
        "priority_level": r["priority_level"],
        "is_completed": bool(r["is_completed"]),
        "task_note_id": r["task_note_id"],
        "created_at": int(r["created_at"]),
        "project": {"project_id": r["project_id"], "project_name": r["project_name"]},
        "location": {
            "location_id": r["location_id"],
            "location_name": r["location_name"],
            "latitude": float(r["latitude"]) if r["latitude"] is not None else None,
            "longitude": float(r["longitude"]) if r["longitude"] is not None else None,
        } if r["location_id"] else None,
        "note": {
            "task_note_id": r["task_note_id"],
            "task_note_content": r["task_note_content"],
        } if r["task_note_id"] else None,
    }


class TaskRepository:
    """Tasks have no owner column; ownership goes through the project."""

    def __init__(self, conn: Connection, user_id: str) -> None:
        self.conn = conn
        self.user_id = user_id

    def _owned_project_ids(self):
        return select(projects.c.project_id).where(projects.c.user_id == self.user_id)

    def _joined(self):
        return (
            select(*_COLUMNS)
            .select_from(
                tasks.join(projects, tasks.c.project_id == projects.c.project_id)
                .outerjoin(locations, tasks.c.location_id == locations.c.location_id)
                .outerjoin(task_notes, tasks.c.task_note_id == task_notes.c.task_note_id)
            )
            .where(projects.c.user_id == self.user_id)
        )

    def list(self, project_id: Optional[str] = None, location_id: Optional[str] = None,
             without_location: bool = False) -> List[dict[str, Any]]:
        stmt = self._joined()
        if project_id is not None:
            stmt = stmt.where(tasks.c.project_id == project_id)
        if location_id is not None:
            stmt = stmt.where(tasks.c.location_id == location_id)
        if without_location:
            stmt = stmt.where(tasks.c.location_id.is_(None))
        stmt = stmt.order_by(tasks.c.created_at.desc(), tasks.c.task_id.asc())
        return [to_task_out(r) for r in self.conn.execute(stmt).mappings().all()]

    def get(self, task_id: str) -> Optional[dict[str, Any]]:
        r = self.conn.execute(self._joined().where(tasks.c.task_id == task_id)).mappings().first()
        return to_task_out(r) if r else None

    def create(self, description: str, project_id: str, location_id: Optional[str] = None,
               due_date=None, priority_level: Optional[str] = None) -> str:
        tid = gen_id()
        self.conn.execute(
            insert(tasks).values(
                task_id=tid,
                task_description=description,
                project_id=project_id,
                location_id=location_id,
                due_date=due_date,
                priority_level=priority_level,
                is_completed=False,
                task_note_id=None,
                created_at=now_ts(),
            )
        )
        return tid

    def update(self, task_id: str, **values) -> int:
        stmt = (
            update(tasks)
            .where(and_(tasks.c.task_id == task_id, tasks.c.project_id.in_(self._owned_project_ids())))
            .values(**values)
        )
        return int(self.conn.execute(stmt).rowcount)

    def link_note(self, task_id: str, note_id: str, replacing: Optional[str] = None) -> int:
        """Point the task at ``note_id`` only if it still points at ``replacing``."""
        current = tasks.c.task_note_id.is_(None) if replacing is None else tasks.c.task_note_id == replacing
        stmt = (
            update(tasks)
            .where(and_(tasks.c.task_id == task_id, current, tasks.c.project_id.in_(self._owned_project_ids())))
            .values(task_note_id=note_id)
        )
        return int(self.conn.execute(stmt).rowcount)

    def delete(self, task_id: str) -> int:
        stmt = delete(tasks).where(
            and_(tasks.c.task_id == task_id, tasks.c.project_id.in_(self._owned_project_ids()))
        )
        return int(self.conn.execute(stmt).rowcount)

