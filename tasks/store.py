"""
tasks/store.py -- SQLAlchemy-backed persistence layer for tasks.

Uses SQLAlchemy Core (not ORM) so the dataclasses in tasks/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. TaskStore is the repository; _row_to_task
is the mapper. Route handlers never touch SQL directly.

Lifecycle enforced here:
  absent -> created -> updated* -> deleted (terminal)
  - create requires a non-blank description and always starts completed=False
  - update and delete raise NotFound when the id does not resolve
  - delete is NOT idempotent: a second delete of the same id is NotFound

The store knows nothing about caching. Invalidation after a successful write
is the caller's job (api/routes/tasks.py).

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TaskStore("sqlite:///todolist.db")
    store.ping()
    task = store.create_task("buy milk")
    store.update_task(task.id, TaskPatch(completed=True))
    store.delete_task(task.id)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, text
from sqlalchemy.engine import Engine

from core.db import make_engine
from core.errors import NotFound, ValidationError
from tasks.models import Task, TaskPatch

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("description", Text, nullable=False),
    Column("completed", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clean_description(description: Optional[str]) -> str:
    """Return the stripped description or raise ValidationError if blank."""
    if description is None or not description.strip():
        raise ValidationError("Description is required.")
    return description.strip()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    def ping(self) -> None:
        """Round-trip a trivial query. Raises the driver error if unreachable.

        Called synchronously at startup; a failure here must stop the process
        before it starts serving.
        """
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_tasks(self) -> list[Task]:
        """Return every task ordered by id (creation order)."""
        with self.engine.connect() as conn:
            rows = conn.execute(_tasks.select().order_by(_tasks.c.id)).fetchall()
        return [_row_to_task(r) for r in rows]

    def get_task(self, task_id: int) -> Optional[Task]:
        """Look up a task by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.id == task_id)).fetchone()
        return _row_to_task(row) if row is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_task(self, description: Optional[str]) -> Task:
        """Insert a new task (completed=False) and return the stored record."""
        cleaned = _clean_description(description)
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.insert().values(
                    description=cleaned,
                    completed=False,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            task_id = result.inserted_primary_key[0]
        return Task(id=task_id, description=cleaned, completed=False, created_at=now, updated_at=now)

    def update_task(self, task_id: int, patch: TaskPatch) -> Task:
        """Apply a partial update and return the fresh record.

        Only fields set on the patch are written. An empty patch still checks
        existence and returns the current record unchanged.

        Raises NotFound if task_id does not resolve, ValidationError if the
        patch carries a blank description.
        """
        values: dict = {}
        if patch.description is not None:
            values["description"] = _clean_description(patch.description)
        if patch.completed is not None:
            values["completed"] = patch.completed

        if not values:
            task = self.get_task(task_id)
            if task is None:
                raise NotFound("Task not found.")
            return task

        values["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.update().where(_tasks.c.id == task_id).values(**values))
            conn.commit()
        if result.rowcount == 0:
            raise NotFound("Task not found.")

        updated = self.get_task(task_id)
        if updated is None:
            # Deleted by a concurrent request between our commit and re-read.
            raise NotFound("Task not found.")
        return updated

    def delete_task(self, task_id: int) -> None:
        """Permanently delete a task.

        Zero rows affected is NotFound. The store does not distinguish "never
        existed" from "already deleted by a concurrent request".
        """
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.id == task_id))
            conn.commit()
        if result.rowcount == 0:
            raise NotFound("Task not found.")

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        description=row.description,
        completed=bool(row.completed),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
