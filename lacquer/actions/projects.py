from __future__ import annotations

import logging
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError

from ..cache import HOME, LOCATIONS, PROJECTS
from ..db import MISCELLANEOUS
from ..errors import NotFoundError, ValidationError
from ..repos import ProjectRepository, TaskRepository
from . import SUCCESS, Services, server_action
from .notes import cleanup_orphaned_notes

logger = logging.getLogger(__name__)

DUPLICATE_NAME = "A project with this name already exists"


def _project_out(p: dict[str, Any]) -> dict[str, Any]:
    return {"project_id": p["project_id"], "project_name": p["project_name"]}


@server_action("fetch projects")
def list_projects(svc: Services, user_id: str) -> List[dict[str, Any]]:
    def compute():
        with svc.engine.connect() as conn:
            return [_project_out(p) for p in ProjectRepository(conn, user_id).list()]

    return svc.cache.get_or_compute(user_id, PROJECTS, compute, "names")


@server_action("fetch projects with tasks")
def list_projects_with_tasks(svc: Services, user_id: str) -> List[dict[str, Any]]:
    def compute():
        with svc.engine.connect() as conn:
            projects = ProjectRepository(conn, user_id).list()
            all_tasks = TaskRepository(conn, user_id).list()
        by_project: dict[str, list] = {}
        for t in all_tasks:
            by_project.setdefault(t["project_id"], []).append(t)
        return [
            {
                "project_id": p["project_id"],
                "project_name": p["project_name"],
                "project_description": p["project_description"],
                "tasks": by_project.get(p["project_id"], []),
            }
            for p in projects
        ]

    return svc.cache.get_or_compute(user_id, PROJECTS, compute, "with-tasks")


@server_action("create project")
def create_project(svc: Services, user_id: str, name: str, description: Optional[str] = None) -> dict[str, Any]:
    project_name = (name or "").strip()
    if not project_name:
        raise ValidationError("Project name is empty")
    desc = (description or "").strip() or None

    with svc.engine.connect() as conn:
        if ProjectRepository(conn, user_id).find_by_name(project_name):
            raise ValidationError(DUPLICATE_NAME)
    try:
        with svc.engine.begin() as conn:
            project = ProjectRepository(conn, user_id).create(project_name, desc)
    except IntegrityError:
        # lost a race with an identical create
        raise ValidationError(DUPLICATE_NAME)

    svc.cache.revalidate(user_id, HOME, PROJECTS)
    logger.info("Created project %s for user %s", project["project_id"], user_id)
    return _project_out(project)


@server_action("delete project")
def delete_project(svc: Services, user_id: str, project_id: str) -> dict:
    with svc.engine.begin() as conn:
        repo = ProjectRepository(conn, user_id)
        project = repo.get(project_id)
        if not project:
            raise NotFoundError("Project not found")
        if project["project_name"] == MISCELLANEOUS:
            raise ValidationError("The Miscellaneous project cannot be deleted")
        note_ids = repo.delete_with_tasks(project_id)

    cleanup_orphaned_notes(svc.engine, note_ids)
    svc.cache.revalidate(user_id, HOME, PROJECTS, LOCATIONS)
    logger.info("Deleted project %s (%d note(s) to clean)", project_id, len(note_ids))
    return dict(SUCCESS)
