"""Schema, engine construction and lightweight migrations."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger, Boolean, Column, Date, Float, ForeignKey, Integer, MetaData,
    String, Table, Text, UniqueConstraint, create_engine, event, false, inspect,
    select, insert, text, true,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

PRIORITY_LEVELS = ("LOW", "MEDIUM", "HIGH")
MISCELLANEOUS = "Miscellaneous"
MISCELLANEOUS_DESCRIPTION = "Default project for one-offs or tasks that don't require a specific project"
DEFAULT_RADIUS_M = 100

metadata = MetaData()

users = Table(
    "users", metadata,
    Column("user_id", String, primary_key=True),
    Column("username", String, nullable=False),
    Column("email", String, nullable=True, unique=True),
    Column("auto_location_filter", Boolean, nullable=False, server_default=true()),
    Column("created_at", BigInteger, nullable=False),
)

priorities = Table(
    "priorities", metadata,
    Column("priority_level", String, primary_key=True),
)

projects = Table(
    "projects", metadata,
    Column("project_id", String, primary_key=True),
    Column("user_id", String, ForeignKey("users.user_id"), nullable=False),
    Column("project_name", String, nullable=False),
    Column("project_description", Text, nullable=True),
    Column("created_at", BigInteger, nullable=False),
    UniqueConstraint("user_id", "project_name", name="uq_projects_user_name"),
)

locations = Table(
    "locations", metadata,
    Column("location_id", String, primary_key=True),
    Column("user_id", String, ForeignKey("users.user_id"), nullable=False),
    Column("location_name", String, nullable=False),
    Column("latitude", Float, nullable=True),
    Column("longitude", Float, nullable=True),
    # display only; proximity filtering uses a fixed radius
    Column("radius", Integer, nullable=False, server_default=str(DEFAULT_RADIUS_M)),
    Column("created_at", BigInteger, nullable=False),
)

task_notes = Table(
    "task_notes", metadata,
    Column("task_note_id", String, primary_key=True),
    Column("task_note_content", Text, nullable=False, server_default=""),
    Column("updated_at", BigInteger, nullable=False),
)

tasks = Table(
    "tasks", metadata,
    Column("task_id", String, primary_key=True),
    Column("task_description", String, nullable=False),
    Column("project_id", String, ForeignKey("projects.project_id"), nullable=False),
    Column("location_id", String, ForeignKey("locations.location_id"), nullable=True),
    Column("due_date", Date, nullable=True),
    Column("priority_level", String, ForeignKey("priorities.priority_level"), nullable=True),
    Column("is_completed", Boolean, nullable=False, server_default=false()),
    Column("task_note_id", String, ForeignKey("task_notes.task_note_id"), nullable=True, unique=True),
    Column("created_at", BigInteger, nullable=False),
)


def now_ts() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp())


def gen_id() -> str:
    return str(uuid.uuid4())


def _enable_sqlite_fks(dbapi_conn, _record) -> None:
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def make_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url, future=True, connect_args={"check_same_thread": False}
        )
        event.listen(engine, "connect", _enable_sqlite_fks)
        return engine
    return create_engine(database_url, future=True, pool_pre_ping=True)


def ensure_columns(engine: Engine, table_name: str, required: dict[str, str]) -> None:
    insp = inspect(engine)
    cols = {c["name"] for c in insp.get_columns(table_name)} if insp.has_table(table_name) else set()
    with engine.begin() as conn:
        for col, ddl in required.items():
            if col not in cols:
                logger.info("Adding column %s.%s", table_name, col)
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {ddl}"))


def seed_priorities(engine: Engine) -> None:
    with engine.begin() as conn:
        existing = set(conn.execute(select(priorities.c.priority_level)).scalars().all())
        for level in PRIORITY_LEVELS:
            if level not in existing:
                conn.execute(insert(priorities).values(priority_level=level))


def init_db(engine: Engine) -> None:
    """
    Create tables if missing and upgrade older schemas in place.

    metadata.create_all() never adds columns to an existing table, so columns
    introduced after the first release are added with ALTER TABLE here.
    """
    metadata.create_all(engine)

    ensure_columns(engine, "users", {
        "auto_location_filter": "auto_location_filter BOOLEAN NOT NULL DEFAULT TRUE",
    })
    ensure_columns(engine, "locations", {
        "radius": f"radius INTEGER NOT NULL DEFAULT {DEFAULT_RADIUS_M}",
    })
    ensure_columns(engine, "tasks", {
        "priority_level": "priority_level TEXT",
        "task_note_id": "task_note_id TEXT",
        "is_completed": "is_completed BOOLEAN NOT NULL DEFAULT FALSE",
    })

    seed_priorities(engine)
