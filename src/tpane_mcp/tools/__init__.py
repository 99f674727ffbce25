"""Tool registration for t-pane."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from fastmcp import Context, FastMCP

from ..capture import CommandExecutor
from ..config import SPLIT_MODES, TPaneSettings
from ..panes import PaneRegistry
from ..tasks import BackgroundTaskTracker
from ..tmux import TmuxRunner


@dataclass(slots=True)
class ToolHandles:
    execute_command: Any
    create_pane: Any
    capture_output: Any
    list_panes: Any
    launch_background_task: Any
    background_task_status: Any


def _interaction_notice(message: str | None, command: str) -> str:
    return (
        "User interaction required in tmux pane\n\n"
        f"{message or 'The command is waiting for input'}\n\n"
        "The command is waiting for user input. You can:\n"
        f"1. Click this command to paste it: {command}\n"
        "2. Switch to the tmux pane to provide input"
    )


def register_tools(
    server: FastMCP,
    *,
    settings: TPaneSettings,
    runner: TmuxRunner,
    registry: PaneRegistry,
    executor: CommandExecutor,
    tracker: BackgroundTaskTracker,
) -> ToolHandles:
    """Register t-pane's MCP tools on the server."""

    def _directory(directory: str | None) -> Path:
        return Path(directory).expanduser() if directory else settings.project_dir

    async def _execute_command(
        command: str,
        pane: str | None = None,
        capture_output: bool = True,
        directory: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Execute a command in the directory's tmux pane and return what it printed."""

        if not command.strip():
            raise ValueError("command must not be empty")

        work_dir = _directory(directory)
        pane_ref = await registry.resolve(work_dir, pane)
        execution = await executor.run(
            pane_ref, command, capture_output, directory=str(work_dir)
        )

        payload = execution.as_dict()
        if execution.requires_interaction:
            payload["notice"] = _interaction_notice(execution.interaction_message, command)
            _emit_log(
                context,
                "warning",
                "Command waiting for user input",
                extra={"pane": pane_ref.address, "interaction_type": execution.interaction_type},
            )
        else:
            _emit_log(
                context,
                "info",
                "Executed command",
                extra={
                    "pane": pane_ref.address,
                    "command_id": execution.command_id,
                    "capture_method": execution.capture_method,
                    "exit_code": execution.exit_code,
                },
            )
        return payload

    async def _create_pane(
        name: str | None = None,
        split: Literal["horizontal", "vertical", "window"] = "horizontal",
        directory: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Find the directory's pane or create one with the requested split."""

        if split not in SPLIT_MODES:
            raise ValueError(f"Unsupported split '{split}'. Use one of {sorted(SPLIT_MODES)}")

        pane_ref, origin = await registry.resolve_with_origin(
            _directory(directory), name, split=split
        )
        _emit_log(
            context,
            "info",
            "Resolved pane",
            extra={"pane": pane_ref.address, "origin": origin},
        )
        return {
            "pane": pane_ref.address,
            "pane_id": pane_ref.pane_id,
            "created_or_found": "created" if origin == "created" else "found",
            "origin": origin,
        }

    async def _capture_output(
        pane: str | None = None,
        lines: int = 100,
        directory: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Return the last lines of a pane's scrollback."""

        if lines < 1:
            raise ValueError("lines must be >= 1")

        pane_ref = await registry.resolve(_directory(directory), pane)
        content = await runner.capture_pane(pane_ref.address, start=f"-{lines}")
        _emit_log(
            context,
            "debug",
            "Captured pane output",
            extra={"pane": pane_ref.address, "lines": lines},
        )
        return {"pane": pane_ref.address, "lines": lines, "output": content}

    async def _list_panes(context: Context | None = None) -> list[dict[str, Any]]:
        """List every tmux pane across all sessions."""

        panes = await runner.list_panes()
        _emit_log(context, "debug", "Listing tmux panes", extra={"count": len(panes)})
        return [info.as_dict() for info in panes]

    async def _launch_background_task(
        task: str,
        output_file: str,
        timeout_seconds: float | None = None,
        directory: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Hand long-running work to a dedicated pane and track it by its output file."""

        record = await tracker.launch(
            task,
            output_file,
            timeout_seconds,
            directory=_directory(directory),
        )
        _emit_log(
            context,
            "info",
            "Launched background task",
            extra={"task_id": record.id, "pane": record.pane_id},
        )
        summary = record.summary(tracker.now())
        summary["instructions_file"] = str(tracker.instructions_path)
        return summary

    async def _background_task_status(context: Context | None = None) -> dict[str, Any]:
        """Refresh every background task's status and list them."""

        tasks = await asyncio.to_thread(tracker.refresh_and_list_status)
        now = tracker.now()
        status_counts: dict[str, int] = {}
        for task in tasks:
            status_counts[task.status.value] = status_counts.get(task.status.value, 0) + 1

        _emit_log(
            context,
            "debug",
            "Background task status",
            extra={"count": len(tasks), "status_counts": status_counts},
        )
        return {
            "tasks": [task.summary(now) for task in tasks],
            "status_counts": status_counts,
        }

    tool_execute = server.tool(
        name="execute_command",
        description=(
            "Execute a command in a tmux pane (creates a directory-specific pane if needed). "
            "Returns captured output, a best-effort exit code, and whether the command is "
            "waiting for interactive input."
        ),
        annotations={
            "safety": {
                "level": "caution",
                "notes": "Commands that fall back to marker capture are typed into the shell twice",
            }
        },
    )(_execute_command)

    tool_create = server.tool(
        name="create_pane",
        description="Create (or find) the tmux pane for a directory.",
    )(_create_pane)

    tool_capture = server.tool(
        name="capture_output",
        description="Capture the last N lines of output from a tmux pane.",
    )(_capture_output)

    tool_list = server.tool(
        name="list_panes",
        description="List all tmux panes.",
    )(_list_panes)

    tool_launch = server.tool(
        name="launch_background_task",
        description=(
            "Launch a long-running task in its own tmux pane. The task completes when "
            "output_file exists and fails when its timeout passes first."
        ),
    )(_launch_background_task)

    tool_status = server.tool(
        name="background_task_status",
        description="Refresh and list background task status with durations.",
    )(_background_task_status)

    return ToolHandles(
        execute_command=tool_execute,
        create_pane=tool_create,
        capture_output=tool_capture,
        list_panes=tool_list,
        launch_background_task=tool_launch,
        background_task_status=tool_status,
    )


__all__ = ["register_tools", "ToolHandles"]

logger = logging.getLogger(__name__)


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log through the module logger, tagged with the MCP request id when there is one."""

    payload = dict(extra or {})
    if context is not None:
        request_id = getattr(context, "request_id", None)
        if request_id is not None:
            payload.setdefault("request_id", request_id)

    log_method = getattr(logger, level, logger.info)
    log_method(message, extra=payload)
