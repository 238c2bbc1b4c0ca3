from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from . import listing
from .actions import Services
from .actions import locations as location_actions
from .actions import notes as note_actions
from .actions import projects as project_actions
from .actions import settings as settings_actions
from .actions import tasks as task_actions
from .auth import clear_session_cookie, decode_token, require_user, resolve_user_id, set_session_cookie
from .errors import AuthenticationError, NotFoundError
from .repos import UserRepository
from .schemas import (
    CompletionUpdate, DueDateUpdate, GeocodeCandidate, LocationCreateOut, LocationIn, LocationOut,
    LocationWithTasksOut, MarkerOut, NoteUpsert, PinOut, ProjectCreate, ProjectRef, ProjectWithTasksOut,
    SessionIn, SettingOut, SettingUpdate, SuccessOut, TaskCreate, TaskListOut, TaskOut, UserOut,
)

router = APIRouter(prefix="/api")


def get_services(request: Request) -> Services:
    return request.app.state.services


def to_user_out(r) -> UserOut:
    return UserOut(
        user_id=r["user_id"], username=r["username"], email=r["email"],
        auto_location_filter=bool(r["auto_location_filter"]),
    )


def _load_user(svc: Services, user_id: str) -> UserOut:
    with svc.engine.connect() as conn:
        u = UserRepository(conn).get(user_id)
    if not u:
        raise NotFoundError("User not found")
    return to_user_out(u)


# --- Auth API ---

@router.post("/auth/session", response_model=UserOut)
def open_session(payload: SessionIn, request: Request, response: Response, svc: Services = Depends(get_services)):
    """Store a provider-issued token in the session cookie."""
    settings = request.app.state.settings
    claims = decode_token(settings, payload.access_token)
    uid = resolve_user_id(svc.engine, claims)
    set_session_cookie(response, settings, payload.access_token)
    return _load_user(svc, uid)

@router.post("/auth/logout")
def auth_logout(request: Request, response: Response, svc: Services = Depends(get_services)):
    settings = request.app.state.settings
    token = request.cookies.get(settings.auth_cookie)
    if token:
        try:
            claims = decode_token(settings, token)
        except AuthenticationError:
            claims = None  # expired or forged: still clear the cookie
        if claims:
            svc.cache.forget(str(claims["sub"]))
    clear_session_cookie(response, settings)
    return {"ok": True}

@router.get("/auth/me", response_model=UserOut)
def me(user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return _load_user(svc, user_id)

@router.get("/health")
def health(): return {"ok": True, "today": date.today().isoformat()}


# --- Tasks ---

@router.get("/tasks", response_model=TaskListOut)
def get_tasks(filter: Optional[listing.FilterKind] = None, value: Optional[str] = None, show_completed: bool = False,
              sort: listing.SortKey = "a-z", lat: Optional[float] = Query(default=None, ge=-90, le=90),
              lng: Optional[float] = Query(default=None, ge=-180, le=180),
              user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    coord = (lat, lng) if lat is not None and lng is not None else None
    state = listing.ListState(filter_kind=filter, filter_value=value, show_completed=show_completed,
                              sort=sort, user_coord=coord)
    all_tasks = task_actions.list_tasks(svc, user_id)
    counts = listing.summarize(all_tasks, state)
    return {"tasks": listing.apply(all_tasks, state), **counts}

@router.post("/tasks", response_model=TaskOut)
def create_task(payload: TaskCreate, user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    loc = None
    if payload.location is not None:
        loc = location_actions.LocationData(payload.location.address, payload.location.lat, payload.location.lng)
    return task_actions.create_task(
        svc, user_id, payload.task_description,
        project_id=payload.project_id, location=loc,
        due_date=payload.due_date, priority_level=payload.priority_level,
    )

@router.patch("/tasks/{task_id}/due-date", response_model=SuccessOut)
def update_due_date(task_id: str, payload: DueDateUpdate, user_id: str = Depends(require_user),
                    svc: Services = Depends(get_services)):
    return task_actions.update_task_due_date(svc, user_id, task_id, payload.due_date)

@router.patch("/tasks/{task_id}/completion", response_model=SuccessOut)
def update_completion(task_id: str, payload: CompletionUpdate, user_id: str = Depends(require_user),
                      svc: Services = Depends(get_services)):
    return task_actions.update_task_completion(svc, user_id, task_id, payload.is_completed)

@router.put("/tasks/{task_id}/note", response_model=SuccessOut)
def upsert_note(task_id: str, payload: NoteUpsert, user_id: str = Depends(require_user),
                svc: Services = Depends(get_services)):
    return note_actions.upsert_task_note(svc, user_id, task_id, payload.content)

@router.delete("/tasks/{task_id}", response_model=SuccessOut)
def delete_task(task_id: str, user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return task_actions.delete_task(svc, user_id, task_id)


# --- Projects ---

@router.get("/projects", response_model=List[ProjectRef])
def get_projects(user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return project_actions.list_projects(svc, user_id)

@router.get("/projects/with-tasks", response_model=List[ProjectWithTasksOut])
def get_projects_with_tasks(user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return project_actions.list_projects_with_tasks(svc, user_id)

@router.post("/projects", response_model=ProjectRef)
def create_project(payload: ProjectCreate, user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return project_actions.create_project(svc, user_id, payload.project_name, payload.project_description)

@router.delete("/projects/{project_id}", response_model=SuccessOut)
def delete_project(project_id: str, user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return project_actions.delete_project(svc, user_id, project_id)


# --- Locations / map ---

@router.get("/locations", response_model=List[LocationOut])
def get_locations(user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return location_actions.list_locations(svc, user_id)

@router.get("/locations/with-tasks", response_model=List[LocationWithTasksOut])
def get_locations_with_tasks(user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return location_actions.list_locations_with_tasks(svc, user_id)

@router.post("/locations", response_model=LocationCreateOut)
def create_location(payload: LocationIn, user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return location_actions.create_location(svc, user_id, payload.address, payload.lat, payload.lng)

@router.get("/geocode", response_model=List[GeocodeCandidate])
def geocode(q: str = Query(default="", max_length=300), user_id: str = Depends(require_user),
            svc: Services = Depends(get_services)):
    return location_actions.geocode_address(svc, q)

@router.get("/geocode/reverse", response_model=PinOut)
def reverse_geocode(lat: float = Query(ge=-90, le=90), lng: float = Query(ge=-180, le=180),
                    user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return location_actions.resolve_pin(svc, user_id, lat, lng)

@router.get("/map/markers", response_model=List[MarkerOut])
def get_markers(lat: Optional[float] = Query(default=None, ge=-90, le=90),
                lng: Optional[float] = Query(default=None, ge=-180, le=180),
                user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    pending = (lat, lng) if lat is not None and lng is not None else None
    return location_actions.map_markers(svc, user_id, pending)


# --- Settings ---

@router.get("/settings/auto-location-filter", response_model=SettingOut)
def get_auto_location_filter(user_id: str = Depends(require_user), svc: Services = Depends(get_services)):
    return {"enabled": settings_actions.get_auto_location_filter(svc, user_id)}

@router.put("/settings/auto-location-filter", response_model=SuccessOut)
def put_auto_location_filter(payload: SettingUpdate, user_id: str = Depends(require_user),
                             svc: Services = Depends(get_services)):
    return settings_actions.update_auto_location_filter(svc, user_id, payload.enabled)
