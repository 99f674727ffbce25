"""Background task records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

_ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING, TaskStatus.FAILED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class TaskStateError(ValueError):
    """Raised on a transition the task lifecycle does not allow."""


class BackgroundTask(BaseModel):
    """A long-running piece of work whose completion is inferred from its output file."""

    id: str = Field(..., description="Unique task identifier.")
    task: str = Field(..., description="What the work is, as given at launch.")
    output_file: str = Field(..., description="Absolute path whose existence marks completion.")
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    start_time: datetime
    deadline: datetime = Field(..., description="After this instant a running task is failed.")
    end_time: datetime | None = None
    pane_id: str | None = None
    error: str | None = None

    @field_validator("task")
    @classmethod
    def _normalize_task(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Task description must not be empty")
        return normalized

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(
        self,
        status: TaskStatus,
        *,
        at: datetime,
        error: str | None = None,
    ) -> None:
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise TaskStateError(
                f"Task '{self.id}' cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        if status in TERMINAL_STATUSES:
            self.end_time = at
        if error is not None:
            self.error = error

    def duration_seconds(self, now: datetime) -> float:
        end = self.end_time or now
        return max(0.0, (end - self.start_time).total_seconds())

    def summary(self, now: datetime) -> dict[str, Any]:
        payload = self.model_dump(mode="json")
        payload["duration_seconds"] = round(self.duration_seconds(now), 3)
        return payload


__all__ = [
    "BackgroundTask",
    "TERMINAL_STATUSES",
    "TaskStateError",
    "TaskStatus",
]
