"""FastMCP server bootstrap for t-pane."""

import asyncio
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastmcp import Context, FastMCP

from . import __version__
from .audit import CommandLogger
from .capture import CommandExecutor, PatternLoader, PatternLoadError, PromptDetector
from .config import TPaneSettings, get_settings
from .panes import PaneRegistry
from .tasks import BackgroundTaskTracker, TaskStore, TaskStoreError
from .tmux import TmuxNotFoundError, TmuxRunner
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the t-pane server.

    Logs go to stderr; stdout carries the MCP stdio transport.
    """

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _run_sync(coro):
    """Execute an async coroutine on a dedicated event loop."""

    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def build_detector(settings: TPaneSettings) -> tuple[PromptDetector, str | None]:
    """Default prompt table plus any patterns found on the configured paths."""

    try:
        extra = PatternLoader(settings.prompt_pattern_paths).load_all()
    except PatternLoadError as exc:
        logging.getLogger(__name__).error("Ignoring custom prompt patterns: %s", exc)
        return PromptDetector(), str(exc)
    return PromptDetector.with_extra(extra), None


def create_server(
    settings: Optional[TPaneSettings] = None,
    tmux_runner: TmuxRunner | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server and wire the pane, capture and task components."""

    settings = settings or get_settings()

    runner = tmux_runner or TmuxRunner(Path(settings.tmux_path) if settings.tmux_path else None)
    tmux_metadata: dict[str, object] = {"path": str(runner.executable), "version": None, "error": None}
    try:
        version_result = _run_sync(runner.version())
        if version_result.ok:
            tmux_metadata["version"] = version_result.stdout.strip()
        else:
            tmux_metadata["error"] = version_result.stderr.strip() or "tmux -V failed"
    except OSError as exc:
        tmux_metadata["error"] = str(exc)

    command_logger = CommandLogger(
        settings.project_dir,
        enabled=not settings.logging_disabled,
        state_dir_name=settings.state_dir_name,
    )
    detector, pattern_error = build_detector(settings)

    registry = PaneRegistry(
        runner,
        prefix=settings.pane_prefix,
        split_direction=settings.split_direction,
        split_percent=settings.split_percent,
    )
    executor = CommandExecutor(
        runner,
        detector=detector,
        command_logger=command_logger,
        prompt_glyphs=settings.prompt_glyphs,
        settle_delay=settings.settle_delay,
        poll_interval=settings.poll_interval,
        capture_timeout=settings.capture_timeout,
        no_capture_delay=settings.no_capture_delay,
    )
    store = TaskStore(settings.task_dir / "tasks.json", lock_timeout=settings.lock_timeout)
    tracker = BackgroundTaskTracker(
        registry,
        runner,
        store,
        project_dir=settings.project_dir,
        default_timeout=settings.task_timeout,
        pane_prefix=settings.pane_prefix,
    )

    server = FastMCP(
        name="t-pane",
        version=__version__,
        instructions=(
            "t-pane runs shell commands in a tmux pane the user can watch. Use "
            "execute_command for short commands and launch_background_task for work "
            "that outlives a single call. When a result reports requires_interaction, "
            "ask the user to answer the prompt in the pane."
        ),
    )

    handles = register_tools(
        server,
        settings=settings,
        runner=runner,
        registry=registry,
        executor=executor,
        tracker=tracker,
    )

    @server.resource(
        "resource://t-pane/status",
        name="tpane_status",
        title="t-pane Status",
        description="Provides the current runtime status for the t-pane MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        status_counts: dict[str, int] = {}
        task_error: str | None = None
        try:
            for task in store.load():
                status_counts[task.status.value] = status_counts.get(task.status.value, 0) + 1
        except TaskStoreError as exc:
            task_error = str(exc)

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "project_dir": str(settings.project_dir),
            "tmux": tmux_metadata,
            "inside_tmux": bool(os.environ.get("TMUX")),
            "logging": {
                "enabled": command_logger.enabled,
                "directory": str(command_logger.local_dir),
            },
            "prompt_patterns": {
                "count": len(detector.patterns),
                "error": pattern_error,
            },
            "panes": {key: ref.address for key, ref in registry.cached.items()},
            "tasks": {
                "store": str(store.path),
                "status_counts": status_counts,
                "error": task_error,
            },
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "tmux_runner", runner)
    setattr(server, "tmux_metadata", tmux_metadata)
    setattr(server, "pane_registry", registry)
    setattr(server, "command_executor", executor)
    setattr(server, "task_tracker", tracker)
    setattr(server, "command_logger", command_logger)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the t-pane MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)
    log = logging.getLogger(__name__)

    try:
        server = create_server(settings)
    except TmuxNotFoundError as exc:
        log.error("Error: %s", exc)
        raise SystemExit(1)

    if getattr(server, "tmux_metadata", {}).get("error"):
        log.error("Error: tmux is not runnable: %s", server.tmux_metadata["error"])
        raise SystemExit(1)

    if not os.environ.get("TMUX"):
        log.warning(
            "Not running inside a tmux session. Some features may not work correctly."
        )

    log.info(
        "Launching t-pane MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "tmux_version": server.tmux_metadata.get("version"),
            "project_dir": str(settings.project_dir),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
