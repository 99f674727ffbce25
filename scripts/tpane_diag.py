"""t-pane diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from datetime import date, datetime, timezone

from tpane_mcp.audit import CommandLogger
from tpane_mcp.config import TPaneSettings
from tpane_mcp.tasks import BackgroundTask, TaskStore, TaskStoreError
from tpane_mcp.tasks.tracker import refresh_task_list


def load_store(settings: TPaneSettings) -> TaskStore:
    return TaskStore(settings.task_dir / "tasks.json", lock_timeout=settings.lock_timeout)


def load_logger(settings: TPaneSettings) -> CommandLogger:
    return CommandLogger(
        settings.project_dir,
        enabled=True,
        state_dir_name=settings.state_dir_name,
    )


def _refresh(store: TaskStore) -> list[BackgroundTask]:
    return refresh_task_list(store)


def cmd_tasks(args: argparse.Namespace) -> None:
    settings = TPaneSettings()
    store = load_store(settings)
    try:
        tasks = _refresh(store) if args.refresh else store.load()
    except TaskStoreError as exc:
        print(f"Task store unreadable: {exc}")
        raise SystemExit(1)

    now = datetime.now(timezone.utc)
    if args.json:
        print(json.dumps([task.summary(now) for task in tasks], indent=2))
    else:
        for task in tasks:
            print(
                f"{task.id[:8]} [{task.status.value}] {task.duration_seconds(now):.0f}s "
                f"-> {task.output_file}"
            )


def cmd_logs(args: argparse.Namespace) -> None:
    settings = TPaneSettings()
    command_logger = load_logger(settings)
    day = date.fromisoformat(args.date) if args.date else datetime.now(timezone.utc).date()

    candidates = [
        directory / f"commands-{day.isoformat()}.jsonl"
        for directory in (command_logger.local_dir, command_logger.fallback_dir)
    ]
    log_file = next((path for path in candidates if path.exists()), None)
    if log_file is None:
        print(json.dumps([], indent=2))
        return

    entries = []
    for line in log_file.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError:
            continue

    if args.limit is not None and args.limit > 0:
        entries = entries[-args.limit :]
    print(json.dumps(entries, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="t-pane diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_tasks = sub.add_parser("tasks", help="List background tasks")
    p_tasks.add_argument("--json", action="store_true", help="Output JSON")
    p_tasks.add_argument(
        "--refresh",
        action="store_true",
        help="Recompute status (output file / deadline) before listing",
    )
    p_tasks.set_defaults(func=cmd_tasks)

    p_logs = sub.add_parser("logs", help="Show command audit log entries")
    p_logs.add_argument("--date", help="Day to show (YYYY-MM-DD); defaults to today (UTC)")
    p_logs.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, show only the latest N entries",
    )
    p_logs.set_defaults(func=cmd_logs)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
