from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, List, Optional, Union

from ..cache import HOME, LOCATIONS, PROJECTS
from ..db import PRIORITY_LEVELS
from ..errors import NotFoundError, ValidationError
from ..repos import ProjectRepository, TaskRepository, ensure_miscellaneous
from . import SUCCESS, Services, server_action
from .locations import LocationData, check_coordinates, find_or_create_location
from .notes import cleanup_orphaned_notes

logger = logging.getLogger(__name__)

DueDate = Union[date, datetime, str, None]


def parse_due_date(value: DueDate) -> Optional[date]:
    """Due dates are calendar dates; a YYYY-MM-DD string is taken as-is, no timezone shift."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")


def normalize_priority(level: Optional[str]) -> Optional[str]:
    """Unknown levels are stored as no priority."""
    if not level:
        return None
    v = str(level).strip().upper()
    return v if v in PRIORITY_LEVELS else None


@server_action("fetch tasks")
def list_tasks(svc: Services, user_id: str) -> List[dict[str, Any]]:
    def compute():
        with svc.engine.connect() as conn:
            return TaskRepository(conn, user_id).list()

    return svc.cache.get_or_compute(user_id, HOME, compute, "tasks")


@server_action("create task")
def create_task(
    svc: Services,
    user_id: str,
    description: str,
    project_id: Optional[str] = None,
    location: Optional[LocationData] = None,
    due_date: DueDate = None,
    priority_level: Optional[str] = None,
) -> dict[str, Any]:
    desc = (description or "").strip()
    if not desc:
        raise ValidationError("Task description is empty")
    due = parse_due_date(due_date)
    level = normalize_priority(priority_level)
    if location is not None:
        check_coordinates(location.lat, location.lng)

    if not project_id:
        project_id = ensure_miscellaneous(svc.engine, user_id)["project_id"]
        explicit = False
    else:
        explicit = True

    with svc.engine.begin() as conn:
        if explicit and not ProjectRepository(conn, user_id).get(project_id):
            raise NotFoundError("Project not found")
        location_id = None
        if location is not None:
            loc, reused = find_or_create_location(conn, user_id, location)
            location_id = loc["location_id"]
            if reused:
                logger.debug("Reusing location %s for new task", location_id)
        repo = TaskRepository(conn, user_id)
        tid = repo.create(desc, project_id, location_id=location_id, due_date=due, priority_level=level)
        task = repo.get(tid)

    svc.cache.revalidate(user_id, HOME, PROJECTS, LOCATIONS)
    logger.info("Created task %s in project %s", tid, project_id)
    return task


@server_action("update task due date")
def update_task_due_date(svc: Services, user_id: str, task_id: str, due_date: DueDate) -> dict:
    parsed = parse_due_date(due_date)
    with svc.engine.begin() as conn:
        repo = TaskRepository(conn, user_id)
        if not repo.get(task_id):
            raise NotFoundError("Task not found")
        repo.update(task_id, due_date=parsed)
    svc.cache.revalidate(user_id, HOME, PROJECTS, LOCATIONS)
    return dict(SUCCESS)


@server_action("update task completion")
def update_task_completion(svc: Services, user_id: str, task_id: str, is_completed: bool) -> dict:
    with svc.engine.begin() as conn:
        repo = TaskRepository(conn, user_id)
        if not repo.get(task_id):
            raise NotFoundError("Task not found")
        repo.update(task_id, is_completed=bool(is_completed))
    svc.cache.revalidate(user_id, HOME, PROJECTS, LOCATIONS)
    return dict(SUCCESS)


@server_action("delete task")
def delete_task(svc: Services, user_id: str, task_id: str) -> dict:
    with svc.engine.begin() as conn:
        repo = TaskRepository(conn, user_id)
        task = repo.get(task_id)
        if not task:
            raise NotFoundError("Task not found")
        repo.delete(task_id)
    cleanup_orphaned_notes(svc.engine, [task["task_note_id"]])
    svc.cache.revalidate(user_id, HOME, PROJECTS, LOCATIONS)
    return dict(SUCCESS)
