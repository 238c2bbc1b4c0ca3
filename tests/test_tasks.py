# tests/test_tasks.py

from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import func, select

from lacquer.actions import tasks as task_actions
from lacquer.actions.locations import LocationData
from lacquer.actions.notes import upsert_task_note
from lacquer.db import MISCELLANEOUS, locations, projects, task_notes
from lacquer.errors import NotFoundError, ValidationError
from lacquer.repos import NoteRepository, ProjectRepository, ensure_miscellaneous


def count(engine, table, *where) -> int:
    stmt = select(func.count()).select_from(table)
    if where:
        stmt = stmt.where(*where)
    with engine.connect() as conn:
        return int(conn.execute(stmt).scalar_one())


def test_parse_due_date_variants() -> None:
    assert task_actions.parse_due_date("2024-03-05") == date(2024, 3, 5)
    assert task_actions.parse_due_date(date(2024, 3, 5)) == date(2024, 3, 5)
    # late evening must not roll over to the next day
    assert task_actions.parse_due_date(datetime(2024, 3, 5, 23, 59)) == date(2024, 3, 5)
    assert task_actions.parse_due_date("") is None
    assert task_actions.parse_due_date(None) is None
    with pytest.raises(ValidationError):
        task_actions.parse_due_date("03/05/2024")


def test_normalize_priority() -> None:
    assert task_actions.normalize_priority("high") == "HIGH"
    assert task_actions.normalize_priority(" Medium ") == "MEDIUM"
    assert task_actions.normalize_priority("urgent") is None
    assert task_actions.normalize_priority(None) is None


def test_create_task_without_project_uses_single_miscellaneous(client, auth, svc) -> None:
    first = client.post("/api/tasks", json={"task_description": "buy milk"}, headers=auth())
    second = client.post("/api/tasks", json={"task_description": "call mom"}, headers=auth())
    assert first.status_code == 200 and second.status_code == 200
    assert first.json()["project_id"] == second.json()["project_id"]
    assert first.json()["project"]["project_name"] == MISCELLANEOUS
    assert count(svc.engine, projects, projects.c.project_name == MISCELLANEOUS) == 1


def test_ensure_miscellaneous_survives_concurrent_create(svc, user_a, monkeypatch) -> None:
    existing = ensure_miscellaneous(svc.engine, user_a)

    original = ProjectRepository.find_by_name
    calls = {"n": 0}

    def stale_lookup(self, name):
        # the first lookup runs before the other request's insert lands
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return original(self, name)

    monkeypatch.setattr(ProjectRepository, "find_by_name", stale_lookup)
    again = ensure_miscellaneous(svc.engine, user_a)
    assert again["project_id"] == existing["project_id"]
    assert count(svc.engine, projects, projects.c.project_name == MISCELLANEOUS) == 1


def test_create_task_projection(client, auth) -> None:
    resp = client.post(
        "/api/tasks",
        json={
            "task_description": "  water plants ",
            "due_date": "2024-03-05",
            "priority_level": "high",
            "location": {"address": "Dolores Park", "lat": 37.7596, "lng": -122.4269},
        },
        headers=auth(),
    )
    assert resp.status_code == 200
    task = resp.json()
    assert task["task_description"] == "water plants"
    assert task["due_date"] == "2024-03-05"
    assert task["priority_level"] == "HIGH"
    assert task["is_completed"] is False
    assert task["note"] is None
    assert task["location"]["location_name"] == "Dolores Park"
    assert task["location"]["latitude"] == pytest.approx(37.7596)


def test_unknown_priority_is_stored_as_none(client, auth) -> None:
    task = client.post("/api/tasks", json={"task_description": "x", "priority_level": "urgent"}, headers=auth()).json()
    assert task["priority_level"] is None


def test_blank_description_rejected(client, auth) -> None:
    resp = client.post("/api/tasks", json={"task_description": "   "}, headers=auth())
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Task description is empty"
    assert client.post("/api/tasks", json={}, headers=auth()).status_code == 422


def test_invalid_due_date_rejected(client, auth) -> None:
    resp = client.post("/api/tasks", json={"task_description": "x", "due_date": "tomorrow"}, headers=auth())
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid date format. Use YYYY-MM-DD."


def test_nearby_coordinates_reuse_location(client, auth, svc) -> None:
    a = client.post("/api/tasks", json={
        "task_description": "first",
        "location": {"address": "Market St", "lat": 37.77490, "lng": -122.41940},
    }, headers=auth()).json()
    b = client.post("/api/tasks", json={
        "task_description": "second",
        "location": {"address": "Somewhere else", "lat": 37.77491, "lng": -122.41941},
    }, headers=auth()).json()
    assert a["location_id"] == b["location_id"]
    assert b["location"]["location_name"] == "Market St"
    assert count(svc.engine, locations) == 1

    far = client.post("/api/tasks", json={
        "task_description": "third",
        "location": {"address": "Down the block", "lat": 37.77520, "lng": -122.41940},
    }, headers=auth()).json()
    assert far["location_id"] != a["location_id"]
    assert count(svc.engine, locations) == 2


def test_location_dedup_is_per_user(svc, user_a, user_b) -> None:
    here = LocationData("Market St", 37.77490, -122.41940)
    a = task_actions.create_task(svc, user_a, "a", location=here)
    b = task_actions.create_task(svc, user_b, "b", location=here)
    assert a["location_id"] != b["location_id"]


def test_update_due_date(client, auth) -> None:
    tid = client.post("/api/tasks", json={"task_description": "x"}, headers=auth()).json()["task_id"]

    resp = client.patch(f"/api/tasks/{tid}/due-date", json={"due_date": "2024-12-31"}, headers=auth())
    assert resp.json() == {"success": True}
    task = client.get("/api/tasks", headers=auth()).json()["tasks"][0]
    assert task["due_date"] == "2024-12-31"

    client.patch(f"/api/tasks/{tid}/due-date", json={"due_date": None}, headers=auth())
    assert client.get("/api/tasks", headers=auth()).json()["tasks"][0]["due_date"] is None

    bad = client.patch(f"/api/tasks/{tid}/due-date", json={"due_date": "12/31/2024"}, headers=auth())
    assert bad.status_code == 400


def test_update_completion_hides_task_by_default(client, auth) -> None:
    tid = client.post("/api/tasks", json={"task_description": "x"}, headers=auth()).json()["task_id"]
    resp = client.patch(f"/api/tasks/{tid}/completion", json={"is_completed": True}, headers=auth())
    assert resp.json() == {"success": True}

    body = client.get("/api/tasks", headers=auth()).json()
    assert body["tasks"] == [] and body["uncompleted"] == 0
    shown = client.get("/api/tasks", params={"show_completed": True}, headers=auth()).json()["tasks"]
    assert shown[0]["is_completed"] is True


def test_note_upsert_keeps_one_row(svc, user_a) -> None:
    task = task_actions.create_task(svc, user_a, "x")
    upsert_task_note(svc, user_a, task["task_id"], "first draft", now=100)
    upsert_task_note(svc, user_a, task["task_id"], "final text", now=200)

    assert count(svc.engine, task_notes) == 1
    stored = task_actions.list_tasks(svc, user_a)[0]
    assert stored["note"]["task_note_content"] == "final text"
    with svc.engine.connect() as conn:
        note = NoteRepository(conn).get(stored["task_note_id"])
    assert note["updated_at"] == 200


def test_concurrent_first_notes_leave_one_row(svc, user_a, monkeypatch) -> None:
    task = task_actions.create_task(svc, user_a, "x")
    original_create = NoteRepository.create
    calls = {"n": 0}

    def create_after_rival_save(self, content, now):
        # the rival request saw the same note-less task and commits first
        calls["n"] += 1
        if calls["n"] == 1:
            upsert_task_note(svc, user_a, task["task_id"], "rival text", now=100)
        return original_create(self, content, now)

    monkeypatch.setattr(NoteRepository, "create", create_after_rival_save)
    upsert_task_note(svc, user_a, task["task_id"], "my text", now=200)

    assert count(svc.engine, task_notes) == 1
    stored = task_actions.list_tasks(svc, user_a)[0]
    assert stored["note"]["task_note_content"] == "my text"


def test_note_upsert_over_http(client, auth, svc) -> None:
    tid = client.post("/api/tasks", json={"task_description": "x"}, headers=auth()).json()["task_id"]
    assert client.put(f"/api/tasks/{tid}/note", json={"content": "a"}, headers=auth()).json() == {"success": True}
    client.put(f"/api/tasks/{tid}/note", json={"content": "b"}, headers=auth())
    task = client.get("/api/tasks", headers=auth()).json()["tasks"][0]
    assert task["note"]["task_note_content"] == "b"
    assert count(svc.engine, task_notes) == 1


def test_delete_task_removes_its_note(client, auth, svc) -> None:
    tid = client.post("/api/tasks", json={"task_description": "x"}, headers=auth()).json()["task_id"]
    client.put(f"/api/tasks/{tid}/note", json={"content": "bye"}, headers=auth())

    assert client.delete(f"/api/tasks/{tid}", headers=auth()).json() == {"success": True}
    assert client.get("/api/tasks", headers=auth()).json()["tasks"] == []
    assert count(svc.engine, task_notes) == 0
    assert client.delete(f"/api/tasks/{tid}", headers=auth()).status_code == 404


def test_other_users_tasks_look_missing(client, auth) -> None:
    tid = client.post("/api/tasks", json={"task_description": "mine"}, headers=auth("user-a")).json()["task_id"]
    other = auth("user-b", "bob@example.com")

    for resp in (
        client.patch(f"/api/tasks/{tid}/due-date", json={"due_date": "2024-01-01"}, headers=other),
        client.patch(f"/api/tasks/{tid}/completion", json={"is_completed": True}, headers=other),
        client.put(f"/api/tasks/{tid}/note", json={"content": "hi"}, headers=other),
        client.delete(f"/api/tasks/{tid}", headers=other),
    ):
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Task not found"

    assert client.get("/api/tasks", headers=other).json()["tasks"] == []
    assert len(client.get("/api/tasks", headers=auth("user-a")).json()["tasks"]) == 1


def test_actions_raise_not_found_for_foreign_rows(svc, user_a, user_b) -> None:
    task = task_actions.create_task(svc, user_a, "mine")
    with pytest.raises(NotFoundError):
        task_actions.update_task_completion(svc, user_b, task["task_id"], True)
    with pytest.raises(NotFoundError):
        task_actions.create_task(svc, user_b, "theirs", project_id=task["project_id"])


def test_list_sorting_and_proximity_over_http(client, auth) -> None:
    h = auth()
    client.post("/api/tasks", json={"task_description": "near", "priority_level": "LOW",
                                    "location": {"address": "A", "lat": 0.0, "lng": 0.0008}}, headers=h)
    client.post("/api/tasks", json={"task_description": "far", "priority_level": "HIGH",
                                    "location": {"address": "B", "lat": 0.0, "lng": 0.0012}}, headers=h)
    client.post("/api/tasks", json={"task_description": "anywhere"}, headers=h)

    body = client.get("/api/tasks", params={"filter": "proximity", "lat": 0, "lng": 0}, headers=h).json()
    assert [t["task_description"] for t in body["tasks"]] == ["near"]
    assert body["uncompleted"] == 3 and body["shown_uncompleted"] == 1

    by_priority = client.get("/api/tasks", params={"sort": "priority"}, headers=h).json()["tasks"]
    assert [t["task_description"] for t in by_priority] == ["far", "near", "anywhere"]

    by_distance = client.get("/api/tasks", params={"sort": "proximity", "lat": 0, "lng": 0}, headers=h).json()["tasks"]
    assert [t["task_description"] for t in by_distance] == ["near", "far", "anywhere"]

    assert client.get("/api/tasks", params={"sort": "sideways"}, headers=h).status_code == 422
