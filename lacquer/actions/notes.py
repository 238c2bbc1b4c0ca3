from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..cache import HOME, LOCATIONS, PROJECTS
from ..db import now_ts
from ..errors import NotFoundError
from ..repos import NoteRepository, TaskRepository
from . import SUCCESS, Services, server_action

logger = logging.getLogger(__name__)


def cleanup_orphaned_notes(engine: Engine, note_ids: Iterable[str]) -> int:
    """Best effort: failures are logged and never reach the caller."""
    ids = [n for n in note_ids if n]
    if not ids:
        return 0
    try:
        with engine.begin() as conn:
            deleted = NoteRepository(conn).delete_orphans(ids)
    except SQLAlchemyError:
        logger.warning("Orphaned note cleanup failed for %d note(s)", len(ids), exc_info=True)
        return 0
    if deleted:
        logger.debug("Deleted %d orphaned note(s)", deleted)
    return deleted


@server_action("save task note")
def upsert_task_note(svc: Services, user_id: str, task_id: str, content: str, now: Optional[int] = None) -> dict:
    ts = now if now is not None else now_ts()
    with svc.engine.begin() as conn:
        task_repo = TaskRepository(conn, user_id)
        task = task_repo.get(task_id)
        if not task:
            raise NotFoundError("Task not found")
        notes = NoteRepository(conn)
        existing = task["task_note_id"]
        if not existing or not notes.update(existing, content, ts):
            nid = notes.create(content, ts)
            if not task_repo.link_note(task_id, nid, replacing=existing):
                # a concurrent save linked its note first; write into that one
                notes.delete(nid)
                winner = task_repo.get(task_id)
                if not winner or not winner["task_note_id"]:
                    raise NotFoundError("Task not found")
                notes.update(winner["task_note_id"], content, ts)
    svc.cache.revalidate(user_id, HOME, PROJECTS, LOCATIONS)
    return dict(SUCCESS)
