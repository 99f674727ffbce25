"""Background task models, persistence, and lifecycle tracking."""

from .models import BackgroundTask, TERMINAL_STATUSES, TaskStateError, TaskStatus
from .store import TaskStore, TaskStoreError
from .tracker import BackgroundTaskTracker, INSTRUCTIONS_FILE, TIMEOUT_ERROR

__all__ = [
    "BackgroundTask",
    "BackgroundTaskTracker",
    "INSTRUCTIONS_FILE",
    "TERMINAL_STATUSES",
    "TIMEOUT_ERROR",
    "TaskStateError",
    "TaskStatus",
    "TaskStore",
    "TaskStoreError",
]
