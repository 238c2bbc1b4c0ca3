"""Filtering and sorting of an already-fetched task list.

Everything here is pure: it takes task projections (as returned by
``TaskRepository.list``) and a ``ListState`` and returns new lists.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Literal, Optional

from .geo import Coordinate, distance_from, is_nearby

FilterKind = Literal["project", "location", "proximity"]
SortKey = Literal["a-z", "priority", "due-date", "proximity"]

PRIORITY_RANK = {"HIGH": 3, "MEDIUM": 2, "LOW": 1}

Task = Dict[str, Any]


@dataclass(frozen=True)
class ListState:
    filter_kind: Optional[FilterKind] = None
    filter_value: Optional[str] = None
    show_completed: bool = False
    sort: SortKey = "a-z"
    user_coord: Optional[Coordinate] = None

    @property
    def filter_active(self) -> bool:
        if self.filter_kind == "proximity":
            return True
        return self.filter_kind is not None and bool(self.filter_value)


def toggle_filter(state: ListState, kind: FilterKind, value: Optional[str] = None) -> ListState:
    """Select a filter; selecting the one already active clears it."""
    if state.filter_kind == kind and state.filter_value == value:
        return replace(state, filter_kind=None, filter_value=None)
    return replace(state, filter_kind=kind, filter_value=value)


def _text_key(task: Task):
    s = task.get("task_description") or ""
    return (s.casefold(), s)


def _as_date(v) -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    return date.fromisoformat(str(v)[:10])


def _task_coords(task: Task):
    loc = task.get("location") or {}
    return loc.get("latitude"), loc.get("longitude")


def task_distance(task: Task, origin: Optional[Coordinate]) -> Optional[float]:
    lat, lng = _task_coords(task)
    return distance_from(origin, lat, lng)


def visible(tasks: Iterable[Task], show_completed: bool) -> List[Task]:
    return [t for t in tasks if show_completed or not t.get("is_completed")]


def filter_tasks(tasks: Iterable[Task], state: ListState) -> List[Task]:
    base = visible(tasks, state.show_completed)
    if not state.filter_active:
        return base
    if state.filter_kind == "project":
        return [t for t in base if t.get("project_id") == state.filter_value]
    if state.filter_kind == "location":
        return [t for t in base if t.get("location_id") == state.filter_value]
    # proximity: without a user position nothing is "near"
    return [t for t in base if is_nearby(state.user_coord, *_task_coords(t))]


def sort_tasks(tasks: Iterable[Task], sort: SortKey = "a-z", user_coord: Optional[Coordinate] = None) -> List[Task]:
    items = list(tasks)
    if sort == "priority":
        return sorted(items, key=lambda t: (-PRIORITY_RANK.get(t.get("priority_level") or "", 0), _text_key(t)))
    if sort == "due-date":
        def due_key(t):
            d = _as_date(t.get("due_date"))
            return (d is None, d or date.min, _text_key(t))
        return sorted(items, key=due_key)
    if sort == "proximity":
        def near_key(t):
            d = task_distance(t, user_coord)
            return (d is None, d if d is not None else 0.0, _text_key(t))
        return sorted(items, key=near_key)
    return sorted(items, key=_text_key)


def apply(tasks: Iterable[Task], state: ListState) -> List[Task]:
    return sort_tasks(filter_tasks(tasks, state), state.sort, state.user_coord)


def summarize(tasks: Iterable[Task], state: ListState) -> Dict[str, int]:
    """Uncompleted counts before and after the active filter ("Showing X of Y")."""
    items = list(tasks)
    base = visible(items, state.show_completed)
    filtered = filter_tasks(items, state)
    return {
        "uncompleted": sum(1 for t in base if not t.get("is_completed")),
        "shown_uncompleted": sum(1 for t in filtered if not t.get("is_completed")),
    }
