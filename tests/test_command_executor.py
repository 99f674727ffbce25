from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from tpane_mcp.audit import CommandLogger
from tpane_mcp.capture import NOT_CAPTURED_OUTPUT, CommandExecutor, new_command_id
from tpane_mcp.tmux import PaneRef, TmuxCommandError

PANE = "main:0.0"


def _executor(tmux, clock, **kwargs) -> CommandExecutor:
    kwargs.setdefault("capture_timeout", 5.0)
    return CommandExecutor(tmux, sleep=clock.sleep, clock=clock, **kwargs)


def _log_lines(command_logger: CommandLogger) -> list[dict]:
    files = sorted(command_logger.local_dir.glob("commands-*.jsonl"))
    assert len(files) == 1
    return [json.loads(line) for line in files[0].read_text(encoding="utf-8").splitlines()]


def test_prompt_capture_returns_text_between_prompts(fake_tmux, fake_clock) -> None:
    executor = _executor(fake_tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "echo hello"))

    assert result.output == "hello"
    assert result.exit_code == 0
    assert result.capture_method == "prompt"
    assert result.lines_captured == 1
    assert result.requires_interaction is False
    assert fake_tmux.sent_to(PANE) == ["echo hello"]


def test_prompt_capture_keeps_multiline_output(make_tmux, fake_clock) -> None:
    tmux = make_tmux(responses={"ls": ("README.md\nsrc\ntests", 0)})
    executor = _executor(tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "ls"))

    assert result.output == "README.md\nsrc\ntests"
    assert result.lines_captured == 3


def test_prompt_capture_of_silent_command_is_empty(fake_tmux, fake_clock) -> None:
    executor = _executor(fake_tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "true"))

    assert result.output == ""
    assert result.lines_captured == 0
    assert result.capture_method == "prompt"
    assert fake_tmux.sent_to(PANE) == ["true"]


def test_prompt_capture_with_autosuggested_prompts(make_tmux, fake_clock) -> None:
    tmux = make_tmux(autosuggest=True)
    executor = _executor(tmux, fake_clock)

    first = asyncio.run(executor.run(PANE, "echo hello"))
    second = asyncio.run(executor.run(PANE, "echo hello"))

    for result in (first, second):
        assert result.output == "hello"
        assert result.exit_code == 0
        assert result.capture_method == "prompt"
    assert tmux.sent_to(PANE) == ["echo hello", "echo hello"]
    assert fake_clock.now < 1000.0 + 5.0


def test_stale_pane_ref_is_targeted_by_id(fake_tmux, fake_clock) -> None:
    ref = fake_tmux.panes[PANE].ref
    moved = fake_tmux.renumber(PANE, 2, 0)
    executor = _executor(fake_tmux, fake_clock)

    result = asyncio.run(executor.run(ref, "echo hello"))

    assert isinstance(ref, PaneRef)
    assert result.output == "hello"
    assert result.pane == PANE
    assert fake_tmux.sent == [(ref.pane_id, "echo hello")]
    assert fake_tmux.sent_to(moved.address) == ["echo hello"]


def test_marker_capture_reports_real_exit_status(make_tmux, fake_clock) -> None:
    tmux = make_tmux(
        prompt="dev@host:~/project$ ",
        path_line=None,
        responses={"ls missing": ("ls: cannot access 'missing': No such file or directory", 2)},
    )
    executor = _executor(tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "ls missing"))

    assert result.capture_method == "marker"
    assert result.output == "ls: cannot access 'missing': No such file or directory"
    assert result.exit_code == 2
    sent = tmux.sent_to(PANE)
    assert sent[0] == "ls missing"
    assert sent[1] == (
        f"echo START_{result.command_id}; ls missing; echo END_{result.command_id}:$?"
    )


def test_marker_capture_excludes_echoed_command_line(make_tmux, fake_clock) -> None:
    tmux = make_tmux(prompt="$ ", path_line=None, responses={"date": ("Mon Oct 19", 0)})
    executor = _executor(tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "date"))

    assert result.output == "Mon Oct 19"
    assert "START_" not in result.output
    assert "END_" not in result.output
    assert result.exit_code == 0


def test_interactive_prompt_is_reported_without_resending(make_tmux, fake_clock) -> None:
    tmux = make_tmux(waiting={"sudo apt update": "Password:"})
    executor = _executor(tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "sudo apt update"))

    assert result.requires_interaction is True
    assert result.interaction_type == "password"
    assert result.interaction_message == "Password required"
    assert result.capture_method == "interactive"
    assert result.output == "Password:"
    assert tmux.sent_to(PANE) == ["sudo apt update"]


def test_interactive_prompt_in_marker_shell_is_not_resent(make_tmux, fake_clock) -> None:
    tmux = make_tmux(
        prompt="$ ",
        path_line=None,
        waiting={"apt remove vim": "Do you want to continue? [Y/n]"},
    )
    executor = _executor(tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "apt remove vim"))

    assert result.requires_interaction is True
    assert result.interaction_type == "yes-no"
    assert tmux.sent_to(PANE) == ["apt remove vim"]


def test_capture_timeout_returns_partial_output(make_tmux, fake_clock) -> None:
    tmux = make_tmux(waiting={"make build": "compiling module 1/40"})
    executor = _executor(tmux, fake_clock, capture_timeout=2.0, poll_interval=0.5)

    result = asyncio.run(executor.run(PANE, "make build"))

    assert result.exit_code == -1
    assert result.capture_method == "prompt"
    assert result.output == "compiling module 1/40"
    assert result.requires_interaction is False
    assert tmux.sent_to(PANE) == ["make build"]
    assert fake_clock.now >= 1000.0 + 2.0


def test_no_capture_mode_sends_once_and_probes_tail(fake_tmux, fake_clock) -> None:
    executor = _executor(fake_tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "npm run dev", capture_output=False))

    assert result.output == NOT_CAPTURED_OUTPUT
    assert result.capture_method == "none"
    assert result.lines_captured == 0
    assert result.exit_code == 0
    assert fake_tmux.sent_to(PANE) == ["npm run dev"]
    assert fake_tmux.captures == [(PANE, "-10")]


def test_no_capture_mode_still_detects_prompts(make_tmux, fake_clock) -> None:
    tmux = make_tmux(waiting={"git push": "Username for 'https://github.com':"})
    executor = _executor(tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "git push", capture_output=False))

    assert result.requires_interaction is True
    assert result.interaction_type == "git-username"


def test_send_failure_becomes_error_result(fake_tmux, fake_clock) -> None:
    fake_tmux.fail_send = True
    executor = _executor(fake_tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "echo hi"))

    assert result.exit_code == -1
    assert result.capture_method == "error"
    assert result.output.startswith("Error sending command:")


def test_capture_failure_becomes_error_result(fake_tmux, fake_clock, monkeypatch) -> None:
    async def broken_capture(target: str, *, start: str = "-") -> str:
        raise TmuxCommandError(("tmux", "capture-pane"), 1, "pane vanished")

    monkeypatch.setattr(fake_tmux, "capture_pane", broken_capture)
    executor = _executor(fake_tmux, fake_clock)

    result = asyncio.run(executor.run(PANE, "echo hi"))

    assert result.exit_code == -1
    assert result.capture_method == "error"
    assert "pane vanished" in result.output


def test_empty_command_is_rejected(fake_tmux, fake_clock) -> None:
    executor = _executor(fake_tmux, fake_clock)

    with pytest.raises(ValueError):
        asyncio.run(executor.run(PANE, "   "))

    assert fake_tmux.sent == []


def test_each_run_writes_one_log_entry(fake_tmux, fake_clock, tmp_path: Path) -> None:
    command_logger = CommandLogger(tmp_path, home=tmp_path / "home")
    executor = _executor(fake_tmux, fake_clock, command_logger=command_logger)

    asyncio.run(executor.run(PANE, "echo hello", directory=str(tmp_path)))
    asyncio.run(executor.run(PANE, "npm start", capture_output=False))

    entries = _log_lines(command_logger)
    assert [entry["command"] for entry in entries] == ["echo hello", "npm start"]
    assert entries[0]["output"] == "hello"
    assert entries[0]["exitCode"] == 0
    assert entries[0]["directory"] == str(tmp_path)
    assert entries[1]["output"] == "[output not captured]"


def test_failed_send_is_logged(fake_tmux, fake_clock, tmp_path: Path) -> None:
    command_logger = CommandLogger(tmp_path, home=tmp_path / "home")
    fake_tmux.fail_send = True
    executor = _executor(fake_tmux, fake_clock, command_logger=command_logger)

    asyncio.run(executor.run(PANE, "echo hi"))

    (entry,) = _log_lines(command_logger)
    assert entry["exitCode"] == -1
    assert entry["output"].startswith("Error sending command:")


def test_command_ids_are_unique() -> None:
    ids = {new_command_id() for _ in range(50)}
    assert len(ids) == 50
