"""Append-only JSON-lines audit log of executed commands."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from ..panes.naming import directory_hash

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n...truncated...\n"
TRUNCATE_ABOVE = 2000
KEEP_CHARS = 1000


def truncate_output(output: str) -> str:
    """Keep the head and tail of long output around a truncation marker."""

    if len(output) <= TRUNCATE_ABOVE:
        return output
    return output[:KEEP_CHARS] + TRUNCATION_MARKER + output[-KEEP_CHARS:]


class LogEntry(BaseModel):
    """One audit record. Serialized with the camelCase keys of the log format."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str
    command: str
    output: str
    exit_code: int = Field(..., alias="exitCode")
    duration: int = Field(..., description="Wall-clock milliseconds.")
    requires_interaction: bool | None = Field(default=None, alias="requiresInteraction")
    interaction_type: str | None = Field(default=None, alias="interactionType")
    directory: str = ""

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class CommandLogger:
    """Write one JSON line per command to ``commands-YYYY-MM-DD.jsonl``.

    The project-local log directory is preferred. When it cannot be created
    or written, logs go to ``~/.t-pane/logs/<hash of project dir>``. Write
    failures are reported through ``logging`` and never raised.
    """

    def __init__(
        self,
        project_dir: Path,
        *,
        enabled: bool = True,
        state_dir_name: str = ".t-pane",
        home: Path | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._project_dir = Path(project_dir)
        self._enabled = enabled
        self._state_dir_name = state_dir_name
        self._home = home
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._resolved_dir: Path | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def local_dir(self) -> Path:
        return self._project_dir / self._state_dir_name / "logs"

    @property
    def fallback_dir(self) -> Path:
        home = self._home or Path.home()
        return home / self._state_dir_name / "logs" / directory_hash(self._project_dir)

    def ensure_log_dir(self) -> Path | None:
        """Return a writable log directory, or ``None`` when logging is off or impossible."""

        if not self._enabled:
            return None
        if self._resolved_dir is not None:
            return self._resolved_dir

        local = self.local_dir
        try:
            local.mkdir(parents=True, exist_ok=True)
            probe = local / ".test"
            probe.write_text("test", encoding="utf-8")
            probe.unlink()
            self._resolved_dir = local
            return local
        except OSError as exc:
            logger.debug(
                "Local log directory not writable; using fallback",
                extra={"path": str(local), "error": str(exc)},
            )

        fallback = self.fallback_dir
        try:
            fallback.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Failed to create log directory: %s", exc)
            return None
        self._resolved_dir = fallback
        return fallback

    def log_file_for(self, when: datetime) -> Path | None:
        log_dir = self.ensure_log_dir()
        if log_dir is None:
            return None
        return log_dir / f"commands-{when.date().isoformat()}.jsonl"

    def log(
        self,
        *,
        command: str,
        output: str,
        exit_code: int,
        duration_ms: int,
        requires_interaction: bool | None = None,
        interaction_type: str | None = None,
        directory: Path | str | None = None,
    ) -> LogEntry | None:
        """Append one record; returns it, or ``None`` when nothing was written."""

        if not self._enabled:
            return None

        now = self._clock()
        entry = LogEntry(
            timestamp=now.isoformat(),
            command=command,
            output=truncate_output(output),
            exit_code=exit_code,
            duration=max(0, int(duration_ms)),
            requires_interaction=requires_interaction,
            interaction_type=interaction_type,
            directory=str(directory if directory is not None else self._project_dir),
        )

        try:
            log_file = self.log_file_for(now)
            if log_file is None:
                return None
            with log_file.open("a", encoding="utf-8") as handle:
                handle.write(entry.to_json() + "\n")
        except (OSError, ValueError) as exc:
            logger.error("Failed to log command: %s", exc)
            return None
        return entry


__all__ = ["CommandLogger", "LogEntry", "TRUNCATION_MARKER", "truncate_output"]
