from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field

Priority = Literal["low", "medium", "high", "critical"]

DEFAULT_PRIORITY: Priority = "medium"


class Task(BaseModel):
    """A stored todo row. Field names follow the store's column names."""

    id: str
    created_at: datetime
    title: str = Field(..., min_length=1)
    completed: bool = False
    user_id: Optional[str] = None
    priority: Priority = DEFAULT_PRIORITY
    due_date: Optional[date] = None
    description: Optional[str] = None

    @computed_field
    @property
    def is_overdue(self) -> bool:
        if self.due_date is None or self.completed:
            return False
        return self.due_date < date.today()


class TaskCreate(BaseModel):
    # title is validated by TaskRepository.create so an empty title comes back
    # as an error result instead of a pydantic exception
    title: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    description: Optional[str] = None


class TaskUpdate(BaseModel):
    # same as TaskCreate: a blank or null title is rejected by the repository
    title: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    description: Optional[str] = None

    def changes(self) -> dict:
        """Only the fields the caller actually set."""
        return self.model_dump(mode="json", exclude_unset=True)


class TaskStats(BaseModel):
    total: int = 0
    completed: int = 0
    critical_open: int = 0
    completion_ratio: float = 0.0

    @classmethod
    def from_tasks(cls, tasks: list[Task]) -> "TaskStats":
        total = len(tasks)
        completed = sum(1 for t in tasks if t.completed)
        critical_open = sum(
            1 for t in tasks if t.priority == "critical" and not t.completed
        )
        ratio = (completed / total) * 100 if total else 0.0
        return cls(
            total=total,
            completed=completed,
            critical_open=critical_open,
            completion_ratio=round(ratio, 1),
        )


class Session(BaseModel):
    access_token: str
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[datetime] = None
