"""Background task lifecycle: launch into a pane, infer completion from the output file."""

from __future__ import annotations

import asyncio
import logging
import re
import shlex
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable
from uuid import uuid4

from ..panes import PaneRegistry
from ..tmux import TmuxError, TmuxRunner
from .models import BackgroundTask, TaskStatus
from .store import TaskStore

logger = logging.getLogger(__name__)

INSTRUCTIONS_FILE = "INSTRUCTIONS.md"
TIMEOUT_ERROR = "timed out"
_WHITESPACE = re.compile(r"\s+")


def reconcile_task(task: BackgroundTask, now: datetime) -> None:
    """Apply the output-file and deadline checks to one non-terminal task."""

    if task.is_terminal:
        return

    if task.status is TaskStatus.RUNNING:
        output = Path(task.output_file)
        if output.exists():
            written = datetime.fromtimestamp(output.stat().st_mtime, tz=timezone.utc)
            if written <= task.deadline:
                task.transition(TaskStatus.COMPLETED, at=max(task.start_time, written))
                logger.info("Background task completed", extra={"task_id": task.id})
                return

    if now >= task.deadline:
        task.transition(TaskStatus.FAILED, at=task.deadline, error=TIMEOUT_ERROR)
        logger.warning("Background task timed out", extra={"task_id": task.id})


def refresh_task_list(
    store: TaskStore, clock: Callable[[], datetime] | None = None
) -> list[BackgroundTask]:
    """Reload the task list, reconcile every task, and write the whole list back."""

    clock = clock or (lambda: datetime.now(timezone.utc))
    with store.transaction() as tasks:
        now = clock()
        for task in tasks:
            reconcile_task(task, now)
        return list(tasks)


class BackgroundTaskTracker:
    """Persist background task records and recompute their status on demand.

    A task is ``completed`` once its output file exists, provided the file was
    written no later than the task's deadline. A task still running after its
    deadline is ``failed``. Both checks happen lazily in
    :meth:`refresh_and_list_status`; the deadline is stored with the task so a
    restart of this process does not lose it.
    """

    def __init__(
        self,
        registry: PaneRegistry,
        runner: TmuxRunner,
        store: TaskStore,
        *,
        project_dir: Path,
        default_timeout: float = 3600.0,
        pane_prefix: str = "claude",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry
        self._runner = runner
        self._store = store
        self._project_dir = Path(project_dir)
        self._default_timeout = default_timeout
        self._pane_prefix = pane_prefix
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def store(self) -> TaskStore:
        return self._store

    @property
    def instructions_path(self) -> Path:
        return self._store.path.parent / INSTRUCTIONS_FILE

    def now(self) -> datetime:
        return self._clock()

    async def launch(
        self,
        task: str,
        output_file: str,
        timeout: float | None = None,
        *,
        directory: Path | str | None = None,
    ) -> BackgroundTask:
        timeout = self._default_timeout if timeout is None else timeout
        if timeout <= 0:
            raise ValueError("timeout must be > 0 seconds")
        if not task.strip():
            raise ValueError("Task description must not be empty")
        if not output_file.strip():
            raise ValueError("output_file must not be empty")

        work_dir = Path(directory).expanduser() if directory else self._project_dir
        output_path = Path(output_file).expanduser()
        if not output_path.is_absolute():
            output_path = work_dir / output_path

        task_id = uuid4().hex
        pane = await self._registry.resolve(
            work_dir,
            f"{self._pane_prefix}-task-{task_id[:8]}",
            scope=f"task-{task_id}",
        )

        started = self._clock()
        record = BackgroundTask(
            id=task_id,
            task=task,
            output_file=str(output_path.resolve()),
            start_time=started,
            deadline=started + timedelta(seconds=timeout),
            pane_id=pane.pane_id or pane.address,
        )
        # The store lock may block for up to lock_timeout.
        await asyncio.to_thread(self._append, record)

        try:
            await self._runner.send_keys(record.pane_id, self._pane_notice(record))
        except TmuxError as exc:
            await asyncio.to_thread(
                self._update, task_id, TaskStatus.FAILED, error=f"Failed to brief pane: {exc}"
            )
            raise

        record = await asyncio.to_thread(self._update, task_id, TaskStatus.RUNNING)
        logger.info(
            "Launched background task",
            extra={"task_id": task_id, "pane": pane.address, "output_file": record.output_file},
        )
        return record

    def refresh_and_list_status(self) -> list[BackgroundTask]:
        return refresh_task_list(self._store, self._clock)

    def _append(self, record: BackgroundTask) -> None:
        with self._store.transaction() as tasks:
            tasks.append(record)
            self._write_instructions(tasks)

    def _update(
        self, task_id: str, status: TaskStatus, *, error: str | None = None
    ) -> BackgroundTask:
        with self._store.transaction() as tasks:
            for task in tasks:
                if task.id == task_id:
                    task.transition(status, at=self._clock(), error=error)
                    return task
        raise KeyError(task_id)

    @staticmethod
    def _pane_notice(record: BackgroundTask) -> str:
        """A no-op ``:`` command whose single quoted argument describes the task.

        ``#`` comments are not safe here: zsh only honours them with
        INTERACTIVE_COMMENTS set.
        """

        description = _WHITESPACE.sub(" ", record.task)
        notice = (
            f"t-pane task {record.id[:8]}: {description} "
            f"-> write results to {record.output_file}"
        )
        return f": {shlex.quote(notice)}"

    def _write_instructions(self, tasks: list[BackgroundTask]) -> None:
        lines = [
            "# Background tasks",
            "",
            "Each task runs in its own tmux pane. Start the work in that pane and",
            "write the result to the listed output file; the task is marked",
            "completed as soon as the file exists, and failed once its deadline passes.",
            "",
        ]
        for task in tasks:
            lines.extend(
                [
                    f"## {task.id[:8]} ({task.status.value})",
                    "",
                    f"- Task: {task.task}",
                    f"- Output file: `{task.output_file}`",
                    f"- Pane: {task.pane_id or 'unknown'}",
                    f"- Deadline: {task.deadline.isoformat()}",
                    "",
                ]
            )
        path = self.instructions_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines), encoding="utf-8")


__all__ = [
    "BackgroundTaskTracker",
    "INSTRUCTIONS_FILE",
    "TIMEOUT_ERROR",
    "reconcile_task",
    "refresh_task_list",
]
