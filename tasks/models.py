"""
tasks/models.py -- Domain dataclasses for the task collection.

Pure data containers with zero logic. Validation and lifecycle rules live in
tasks/store.py; HTTP shapes live in api/models.py.
"""

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class Task:
    """A single to-do item.

    id is None before the record is written to the database. Timestamps are
    ISO 8601 UTC strings set by the store on insert and on every update.
    """

    description: str
    completed: bool = False
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TaskPatch:
    """Partial update for a Task. None means "leave unchanged"."""

    description: Optional[str] = None
    completed: Optional[bool] = None
