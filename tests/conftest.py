from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import pytest

from tpane_mcp.tmux import PaneInfo, PaneRef, TmuxCommandError, TmuxExecutionResult


@dataclass
class FakePane:
    ref: PaneRef
    title: str = ""
    current_path: str = ""
    buffer: list[str] = field(default_factory=list)
    busy: bool = False


class FakeTmux:
    """In-memory stand-in for ``TmuxRunner``.

    Each pane holds a scrollback of lines and a tiny shell. Sent text is split
    on ``"; "``; ``echo`` segments print their argument with ``$?`` expanded,
    any other segment is looked up in ``responses`` (output, status). Text
    listed in ``waiting`` prints its prompt and leaves the pane busy, without
    a new shell prompt. With ``autosuggest`` every fresh prompt shows the
    previous command, the way zsh-autosuggestions renders its hint.

    Targets may be ``session:window.pane`` addresses or ``%N`` pane ids.
    """

    def __init__(
        self,
        *,
        prompt: str = "❯ ",
        path_line: str | None = "~/project",
        responses: dict[str, tuple[str, int]] | None = None,
        waiting: dict[str, str] | None = None,
        session: str = "main",
        autosuggest: bool = False,
    ) -> None:
        self.prompt = prompt
        self.path_line = path_line
        self.responses = dict(responses or {})
        self.waiting = dict(waiting or {})
        self.session = session
        self.autosuggest = autosuggest
        self.last_command = ""
        self.executable = Path("/usr/bin/tmux")
        self.panes: dict[str, FakePane] = {}
        self.options: dict[tuple[str, str], str] = {}
        self.sent: list[tuple[str, str]] = []
        self.created: list[PaneRef] = []
        self.captures: list[tuple[str, str]] = []
        self.fail_send = False
        self.fail_split = False
        self.fail_list = False
        self._next_id = 0
        self.add_pane(0, 0)

    # helpers used by tests

    def add_pane(self, window: int, index: int, *, path: str = "") -> PaneRef:
        ref = PaneRef(self.session, window, index, pane_id=f"%{self._next_id}")
        self._next_id += 1
        self.panes[ref.address] = FakePane(ref=ref, current_path=path, buffer=self._prompt_lines())
        return ref

    def kill_pane(self, address: str) -> None:
        pane = self.panes.pop(address)
        for key in [key for key in self.options if key[0] == pane.ref.pane_id]:
            del self.options[key]

    def renumber(self, address: str, window: int, index: int) -> PaneRef:
        pane = self.panes.pop(address)
        pane.ref = PaneRef(self.session, window, index, pane_id=pane.ref.pane_id)
        self.panes[pane.ref.address] = pane
        return pane.ref

    def buffer_of(self, address: str) -> str:
        return "\n".join(self.panes[address].buffer) + "\n"

    def sent_to(self, target: str) -> list[str]:
        pane = self._pane(target)
        return [text for sent, text in self.sent if self._pane(sent) is pane]

    # runner surface

    async def version(self) -> TmuxExecutionResult:
        return TmuxExecutionResult(args=("tmux", "-V"), returncode=0, stdout="tmux 3.4\n", stderr="")

    async def list_panes(self, *, marker_option: str | None = None) -> list[PaneInfo]:
        if self.fail_list:
            raise TmuxCommandError(("tmux", "list-panes"), 1, "no server running")
        return [
            PaneInfo(
                ref=pane.ref,
                title=pane.title,
                active=index == 0,
                current_path=pane.current_path,
                marker=self.options.get((pane.ref.pane_id, marker_option), "") if marker_option else "",
            )
            for index, pane in enumerate(self.panes.values())
        ]

    async def capture_pane(self, target: str, *, start: str = "-") -> str:
        self.captures.append((target, start))
        pane = self._pane(target)
        lines = pane.buffer
        if start != "-":
            lines = lines[int(start) :]
        return "\n".join(lines) + "\n"

    async def send_keys(self, target: str, text: str, *, enter: bool = True) -> None:
        if self.fail_send:
            raise TmuxCommandError(("tmux", "send-keys"), 1, f"can't find pane: {target}")
        pane = self._pane(target)
        self.sent.append((target, text))
        if pane.busy:
            pane.buffer[-1] = pane.buffer[-1] + text
            return
        pane.buffer[-1] = (self.prompt if self.autosuggest else pane.buffer[-1]) + text
        self.last_command = text
        if text in self.waiting:
            pane.buffer.append(self.waiting[text])
            pane.busy = True
            return
        if text.startswith(": "):
            pane.buffer.extend(self._prompt_lines())
            return
        pane.buffer.extend(self._evaluate(text))
        pane.buffer.extend(self._prompt_lines())

    async def split_window(self, directory: Path, *, direction: str = "horizontal", percent: int = 40) -> PaneRef:
        if self.fail_split:
            raise TmuxCommandError(("tmux", "split-window"), 1, "no space for new pane")
        window = 0
        index = 1 + max((p.ref.pane for p in self.panes.values() if p.ref.window == window), default=-1)
        ref = self.add_pane(window, index, path=str(directory))
        self.created.append(ref)
        return ref

    async def new_window(self, directory: Path, *, name: str) -> PaneRef:
        if self.fail_split:
            raise TmuxCommandError(("tmux", "new-window"), 1, "no space for new window")
        window = 1 + max(p.ref.window for p in self.panes.values())
        ref = self.add_pane(window, 0, path=str(directory))
        self.panes[ref.address].title = name
        self.created.append(ref)
        return ref

    async def set_pane_option(self, target: str, option: str, value: str) -> None:
        pane = self._pane(target)
        self.options[(pane.ref.pane_id, option)] = value

    async def select_pane(self, target: str, *, title: str | None = None) -> None:
        pane = self._pane(target)
        if title is not None:
            pane.title = title

    def _pane(self, target: str) -> FakePane:
        pane = self.panes.get(target)
        if pane is None and target.startswith("%"):
            pane = next((p for p in self.panes.values() if p.ref.pane_id == target), None)
        if pane is None:
            raise TmuxCommandError(("tmux", "-t", target), 1, f"can't find pane: {target}")
        return pane

    def _prompt_lines(self) -> list[str]:
        lines = [self.path_line] if self.path_line is not None else []
        lines.append(self.prompt + (self.last_command if self.autosuggest else ""))
        return lines

    def _evaluate(self, text: str) -> list[str]:
        output: list[str] = []
        status = 0
        for segment in text.split("; "):
            if segment.startswith("echo "):
                output.append(segment[len("echo ") :].replace("$?", str(status)))
                status = 0
                continue
            printed, status = self.responses.get(segment, ("", 0))
            if printed:
                output.extend(printed.split("\n"))
        return output


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is awaited."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_tmux() -> FakeTmux:
    return FakeTmux()


@pytest.fixture
def make_tmux() -> Callable[..., FakeTmux]:
    return FakeTmux


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
