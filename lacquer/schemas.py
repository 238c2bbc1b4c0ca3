from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class SuccessOut(BaseModel):
    success: bool = True


# --- users / session ---

class SessionIn(BaseModel):
    access_token: str = Field(min_length=1)

class UserOut(BaseModel):
    user_id: str
    username: str
    email: Optional[str] = None
    auto_location_filter: bool = True


# --- locations ---

class LocationIn(BaseModel):
    address: str = Field(default="", max_length=500)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

class LocationRef(BaseModel):
    location_id: str
    location_name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

class LocationOut(LocationRef):
    radius: int = 100

class LocationCreateOut(BaseModel):
    location: LocationOut
    reused: bool


# --- tasks ---

class ProjectRef(BaseModel):
    project_id: str
    project_name: str

class NoteRef(BaseModel):
    task_note_id: str
    task_note_content: str

class TaskOut(BaseModel):
    task_id: str
    task_description: str
    project_id: str
    location_id: Optional[str] = None
    due_date: Optional[date] = None
    priority_level: Optional[str] = None
    is_completed: bool = False
    task_note_id: Optional[str] = None
    created_at: int
    project: ProjectRef
    location: Optional[LocationRef] = None
    note: Optional[NoteRef] = None

class TaskListOut(BaseModel):
    tasks: List[TaskOut]
    uncompleted: int
    shown_uncompleted: int

class TaskCreate(BaseModel):
    task_description: str = Field(min_length=1, max_length=500)
    project_id: Optional[str] = None
    location: Optional[LocationIn] = None
    due_date: Optional[str] = None
    priority_level: Optional[str] = None

class DueDateUpdate(BaseModel):
    due_date: Optional[str] = None

class CompletionUpdate(BaseModel):
    is_completed: bool

class NoteUpsert(BaseModel):
    content: str = Field(default="", max_length=20000)


# --- projects ---

class ProjectCreate(BaseModel):
    project_name: str = Field(min_length=1, max_length=100)
    project_description: Optional[str] = Field(default=None, max_length=1000)

class ProjectWithTasksOut(ProjectRef):
    project_description: Optional[str] = None
    tasks: List[TaskOut] = Field(default_factory=list)

class LocationWithTasksOut(BaseModel):
    location_id: str
    location_name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: int = 0
    tasks: List[TaskOut] = Field(default_factory=list)


# --- settings / map ---

class SettingOut(BaseModel):
    enabled: bool

class SettingUpdate(BaseModel):
    enabled: bool

class GeocodeCandidate(BaseModel):
    address: str
    lat: float
    lng: float

class PinOut(BaseModel):
    address: str
    lat: float
    lng: float
    existing_location: Optional[LocationOut] = None

class MarkerOut(BaseModel):
    location_id: Optional[str] = None
    title: str
    lat: float
    lng: float
    pending: bool = False
