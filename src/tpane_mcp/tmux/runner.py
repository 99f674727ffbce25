"""Async runner for the tmux CLI."""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path

from .models import PaneInfo, PaneRef
from .utils import NEW_PANE_FORMAT, build_pane_format, parse_new_pane, parse_pane_row


class TmuxError(RuntimeError):
    """Base class for tmux runner errors."""


class TmuxNotFoundError(TmuxError):
    """Raised when the tmux executable cannot be located."""


class TmuxCommandError(TmuxError):
    """Raised when a tmux invocation exits non-zero."""

    def __init__(self, args: tuple[str, ...], returncode: int, stderr: str) -> None:
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or f"exit code {returncode}"
        super().__init__(f"tmux {' '.join(args[1:])} failed: {detail}")


@dataclass(slots=True)
class TmuxExecutionResult:
    """Holds the outcome of a tmux invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self) -> "TmuxExecutionResult":
        if not self.ok:
            raise TmuxCommandError(self.args, self.returncode, self.stderr)
        return self


class TmuxRunner:
    """Execute tmux commands asynchronously.

    Every call is a separate child process that is awaited to completion, so
    commands issued through one runner reach the tmux server in call order.
    """

    def __init__(self, executable: Path | None = None) -> None:
        self._executable_path = self._resolve_executable(executable)

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise TmuxNotFoundError(f"tmux executable not found at {candidate}")

        binary = shutil.which("tmux")
        if binary is None:
            raise TmuxNotFoundError("tmux is not installed or not in PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    async def version(self) -> TmuxExecutionResult:
        return await self._invoke("-V")

    async def list_panes(self, *, marker_option: str | None = None) -> list[PaneInfo]:
        result = await self._checked(
            "list-panes", "-a", "-F", build_pane_format(marker_option)
        )
        panes: list[PaneInfo] = []
        for line in result.stdout.splitlines():
            info = parse_pane_row(line)
            if info is not None:
                panes.append(info)
        return panes

    async def capture_pane(self, target: str, *, start: str = "-") -> str:
        """Return the pane buffer from ``start`` (``-`` means all history)."""

        result = await self._checked("capture-pane", "-p", "-J", "-t", target, "-S", start)
        return result.stdout

    async def send_keys(self, target: str, text: str, *, enter: bool = True) -> None:
        await self._checked("send-keys", "-t", target, "-l", text)
        if enter:
            await self._checked("send-keys", "-t", target, "Enter")

    async def split_window(
        self,
        directory: Path,
        *,
        direction: str = "horizontal",
        percent: int = 40,
    ) -> PaneRef:
        flag = "-h" if direction == "horizontal" else "-v"
        result = await self._checked(
            "split-window",
            flag,
            "-d",
            "-p",
            str(percent),
            "-c",
            str(directory),
            "-P",
            "-F",
            NEW_PANE_FORMAT,
        )
        return parse_new_pane(result.stdout)

    async def new_window(self, directory: Path, *, name: str) -> PaneRef:
        result = await self._checked(
            "new-window",
            "-d",
            "-c",
            str(directory),
            "-n",
            name,
            "-P",
            "-F",
            NEW_PANE_FORMAT,
        )
        return parse_new_pane(result.stdout)

    async def set_pane_option(self, target: str, option: str, value: str) -> None:
        await self._checked("set-option", "-p", "-t", target, option, value)

    async def select_pane(self, target: str, *, title: str | None = None) -> None:
        args = ["select-pane", "-t", target]
        if title is not None:
            args.extend(["-T", title])
        await self._checked(*args)

    async def _checked(self, *args: str) -> TmuxExecutionResult:
        result = await self._invoke(*args)
        return result.check()

    async def _invoke(self, *args: str) -> TmuxExecutionResult:
        cmd = [str(self._executable_path), *args]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout_bytes, stderr_bytes = await process.communicate()
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return TmuxExecutionResult(
            args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr
        )


__all__ = [
    "TmuxCommandError",
    "TmuxError",
    "TmuxExecutionResult",
    "TmuxNotFoundError",
    "TmuxRunner",
]
