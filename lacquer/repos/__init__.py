"""One repository per entity, each bound to a connection (and an owner where rows have one)."""

from .locations import LocationRepository
from .notes import NoteRepository
from .projects import ProjectRepository, ensure_miscellaneous
from .tasks import TaskRepository, to_task_out
from .users import UserRepository

__all__ = [
    "LocationRepository",
    "NoteRepository",
    "ProjectRepository",
    "TaskRepository",
    "UserRepository",
    "ensure_miscellaneous",
    "to_task_out",
]
