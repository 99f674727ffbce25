"""JSON task list guarded by an advisory file lock."""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from filelock import FileLock
from pydantic import ValidationError

from .models import BackgroundTask


class TaskStoreError(RuntimeError):
    """Raised when the task list on disk cannot be decoded."""


class TaskStore:
    """The task list is a single JSON array, rewritten wholesale on every save.

    Every read-modify-write happens inside :meth:`transaction`, which holds
    ``<file>.lock`` for its whole duration so concurrent processes serialize
    instead of overwriting each other.
    """

    def __init__(self, path: Path, *, lock_timeout: float = 10.0) -> None:
        self._path = Path(path)
        self._lock = FileLock(str(self.lock_path), timeout=lock_timeout)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._path.with_name(self._path.name + ".lock")

    def load(self) -> list[BackgroundTask]:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            return self._read()

    def save(self, tasks: list[BackgroundTask]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            self._write(tasks)

    @contextmanager
    def transaction(self) -> Iterator[list[BackgroundTask]]:
        """Yield the current task list and save it back when the block exits cleanly."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            tasks = self._read()
            yield tasks
            self._write(tasks)

    def _read(self) -> list[BackgroundTask]:
        if not self._path.exists():
            return []
        raw = self._path.read_text(encoding="utf-8")
        if not raw.strip():
            return []
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise TaskStoreError(f"Task list {self._path} is not valid JSON: {exc}") from exc
        if not isinstance(document, list):
            raise TaskStoreError(f"Task list {self._path} must be a JSON array")
        try:
            return [BackgroundTask.model_validate(item) for item in document]
        except ValidationError as exc:
            raise TaskStoreError(f"Task list {self._path} has an invalid record: {exc}") from exc

    def _write(self, tasks: list[BackgroundTask]) -> None:
        payload = [task.model_dump(mode="json") for task in tasks]
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)


__all__ = ["TaskStore", "TaskStoreError"]
