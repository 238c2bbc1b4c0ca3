from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Connection

from ..db import gen_id, task_notes, tasks


class NoteRepository:
    """Notes belong to a task; callers check task ownership first."""

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    def get(self, note_id: str) -> Optional[dict[str, Any]]:
        r = self.conn.execute(select(task_notes).where(task_notes.c.task_note_id == note_id)).mappings().first()
        return dict(r) if r else None

    def create(self, content: str, now: int) -> str:
        nid = gen_id()
        self.conn.execute(
            insert(task_notes).values(task_note_id=nid, task_note_content=content, updated_at=now)
        )
        return nid

    def update(self, note_id: str, content: str, now: int) -> int:
        res = self.conn.execute(
            update(task_notes)
            .where(task_notes.c.task_note_id == note_id)
            .values(task_note_content=content, updated_at=now)
        )
        return int(res.rowcount)

    def delete(self, note_id: str) -> int:
        return int(self.conn.execute(delete(task_notes).where(task_notes.c.task_note_id == note_id)).rowcount)

    def delete_orphans(self, note_ids: Iterable[str]) -> int:
        """Delete the given notes unless some task still points at them."""
        ids = [n for n in note_ids if n]
        if not ids:
            return 0
        referenced = set(
            self.conn.execute(select(tasks.c.task_note_id).where(tasks.c.task_note_id.in_(ids))).scalars().all()
        )
        deletable = [n for n in ids if n not in referenced]
        if not deletable:
            return 0
        res = self.conn.execute(delete(task_notes).where(task_notes.c.task_note_id.in_(deletable)))
        return int(res.rowcount)
