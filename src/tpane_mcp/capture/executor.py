"""Send commands into a pane and recover their output from the scrollback."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, Iterable
from uuid import uuid4

from ..audit import CommandLogger
from ..tmux import PaneRef, TmuxError, TmuxRunner
from .detector import InteractionCheck, PromptDetector

logger = logging.getLogger(__name__)

NOT_CAPTURED_OUTPUT = "Command sent (output not captured)"
NOT_CAPTURED_LOG = "[output not captured]"
PROBE_LINES = 10
INTERACTIVE_TAIL_LINES = 5


@dataclass(slots=True)
class CommandExecution:
    """Outcome of one command sent into a pane.

    ``exit_code`` is only the command's real status when ``capture_method`` is
    ``marker``. Prompt-delimited capture cannot see it and reports 0. Failures
    to capture report -1.
    """

    command_id: str
    command: str
    output: str
    exit_code: int
    lines_captured: int
    requires_interaction: bool = False
    interaction_type: str | None = None
    interaction_message: str | None = None
    capture_method: str = "prompt"
    pane: str = ""

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def new_command_id() -> str:
    return f"{int(time.time() * 1000)}{uuid4().hex[:6]}"


def _count_lines(output: str) -> int:
    return len(output.split("\n")) if output else 0


class CommandExecutor:
    """Run a command in a pane using prompt-delimited capture with a marker fallback.

    Tier 1 reads the text between the prompt line the command was typed into
    and the next prompt line (lines that start with one of ``prompt_glyphs``).
    When the prompt convention cannot be found, tier 2 re-sends the command
    wrapped in ``START_<id>`` and ``END_<id>:<status>`` echo markers and
    slices strictly between them. A command that falls through to tier 2 is
    therefore typed into the shell twice.

    Waiting is a poll loop: after ``settle_delay`` the buffer is sampled every
    ``poll_interval`` until two consecutive samples match and the tier's
    completion check passes, or ``capture_timeout`` elapses.
    """

    def __init__(
        self,
        runner: TmuxRunner,
        *,
        detector: PromptDetector | None = None,
        command_logger: CommandLogger | None = None,
        prompt_glyphs: Iterable[str] = ("❯",),
        settle_delay: float = 0.5,
        poll_interval: float = 0.5,
        capture_timeout: float = 30.0,
        no_capture_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[object]] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._runner = runner
        self._detector = detector or PromptDetector()
        self._command_logger = command_logger
        self._glyphs = tuple(prompt_glyphs)
        self._settle_delay = settle_delay
        self._poll_interval = poll_interval
        self._capture_timeout = capture_timeout
        self._no_capture_delay = no_capture_delay
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

    @property
    def detector(self) -> PromptDetector:
        return self._detector

    async def run(
        self,
        pane: PaneRef | str,
        command: str,
        capture_output: bool = True,
        *,
        directory: str | None = None,
    ) -> CommandExecution:
        if not command.strip():
            raise ValueError("Command must not be empty")
        # The %N id survives renumbering; the address is what callers see.
        target = (pane.pane_id or pane.address) if isinstance(pane, PaneRef) else pane
        display = str(pane)
        command_id = new_command_id()
        started = self._clock()
        baseline = await self._prompt_baseline(target) if capture_output else None

        try:
            await self._runner.send_keys(target, command)
        except Exception as exc:
            execution = self._error_result(
                command_id, command, display, f"Error sending command: {exc}"
            )
            self._log(execution, started, directory)
            return execution

        try:
            if capture_output:
                execution = await self._capture(target, command, command_id, baseline)
            else:
                execution = await self._probe(target, command, command_id)
        except Exception as exc:
            logger.warning(
                "Output capture failed",
                extra={"pane": target, "command_id": command_id, "error": str(exc)},
            )
            execution = self._error_result(
                command_id, command, target, f"Error capturing output: {exc}"
            )
        execution.pane = display

        self._log(
            execution,
            started,
            directory,
            logged_output=NOT_CAPTURED_LOG if execution.capture_method == "none" else None,
        )
        return execution

    async def _probe(self, target: str, command: str, command_id: str) -> CommandExecution:
        await self._sleep(self._no_capture_delay)
        tail = await self._runner.capture_pane(target, start=f"-{PROBE_LINES}")
        check = self._detector.classify(tail)
        return self._result(
            command_id,
            command,
            target,
            NOT_CAPTURED_OUTPUT,
            exit_code=0,
            check=check,
            method="none",
            lines_captured=0,
        )

    async def _prompt_baseline(self, target: str) -> int | None:
        """Count the prompt lines on screen before the command is typed."""

        try:
            snapshot = await self._runner.capture_pane(target)
        except TmuxError as exc:
            logger.debug(
                "Baseline capture failed", extra={"pane": target, "error": str(exc)}
            )
            return None
        return len(self._prompt_indexes(snapshot.split("\n")))

    async def _capture(
        self, target: str, command: str, command_id: str, baseline: int | None = None
    ) -> CommandExecution:
        snapshot, timed_out = await self._wait_for_quiet(
            target, lambda text: self._prompt_capture_ready(text, command, baseline)
        )
        check = self._detector.classify(snapshot)
        lines = snapshot.split("\n")

        if timed_out and not self._prompt_capture_ready(snapshot, command, baseline):
            # Re-sending would type into the still running command.
            output = self._interactive_output(lines, command, baseline)
            return self._result(
                command_id, command, target, output, exit_code=-1, check=check, method="prompt"
            )

        if check.requires_interaction:
            output = self._interactive_output(lines, command, baseline)
            return self._result(
                command_id, command, target, output, exit_code=0, check=check, method="interactive"
            )

        output = self._slice_between_prompts(lines, command, baseline)
        if output is not None:
            return self._result(
                command_id, command, target, output, exit_code=0, check=check, method="prompt"
            )

        logger.debug("Prompt capture unavailable; using markers", extra={"pane": target})
        return await self._capture_with_markers(target, command, command_id)

    async def _capture_with_markers(
        self, target: str, command: str, command_id: str
    ) -> CommandExecution:
        start_marker = f"START_{command_id}"
        end_pattern = re.compile(rf"^END_{re.escape(command_id)}:(\d+)$")
        wrapped = f"echo {start_marker}; {command}; echo END_{command_id}:$?"
        await self._runner.send_keys(target, wrapped)

        def ready(text: str) -> bool:
            if self._detector.classify(text).requires_interaction:
                return True
            return any(end_pattern.match(line.strip()) for line in text.split("\n"))

        snapshot, timed_out = await self._wait_for_quiet(target, ready)
        output, exit_code = self._slice_between_markers(
            snapshot.split("\n"), start_marker, end_pattern
        )
        if timed_out and exit_code == -1:
            logger.info(
                "Marker capture timed out; returning partial output",
                extra={"pane": target, "command_id": command_id},
            )
        check = self._detector.classify(snapshot)
        return self._result(
            command_id, command, target, output, exit_code=exit_code, check=check, method="marker"
        )

    async def _wait_for_quiet(
        self, target: str, ready: Callable[[str], bool]
    ) -> tuple[str, bool]:
        """Poll the full buffer until it stops changing and ``ready`` holds.

        Returns the last snapshot and whether the timeout was hit.
        """

        await self._sleep(self._settle_delay)
        deadline = self._clock() + self._capture_timeout
        previous = await self._runner.capture_pane(target)
        while True:
            if self._clock() >= deadline:
                return previous, True
            await self._sleep(self._poll_interval)
            current = await self._runner.capture_pane(target)
            if current == previous and ready(current):
                return current, False
            previous = current

    def _prompt_indexes(self, lines: list[str]) -> list[int]:
        return [index for index, line in enumerate(lines) if line.startswith(self._glyphs)]

    @staticmethod
    def _echoes(line: str, command: str) -> bool:
        return command.strip() in line

    def _echo_position(
        self, lines: list[str], prompts: list[int], command: str, baseline: int | None
    ) -> int | None:
        """Position in ``prompts`` of the prompt line the command was typed into.

        The command lands on the prompt that was newest before sending, so the
        search starts there. Later prompts may repeat the command text (history
        autosuggestions, right prompts) and are never taken as the echo line
        when an earlier one matches.
        """

        if not prompts:
            return None
        if baseline is None:
            first = max(len(prompts) - 2, 0)
        else:
            first = max(0, min(baseline - 1, len(prompts) - 1))
        for position in range(first, len(prompts)):
            if self._echoes(lines[prompts[position]], command):
                return position
        return None

    def _prompt_capture_ready(
        self, snapshot: str, command: str, baseline: int | None = None
    ) -> bool:
        if self._detector.classify(snapshot).requires_interaction:
            return True
        lines = snapshot.split("\n")
        prompts = self._prompt_indexes(lines)
        echo = self._echo_position(lines, prompts, command, baseline)
        if echo is None:
            return True
        # Done once any prompt follows the one holding the command.
        return len(prompts) > echo + 1

    def _slice_between_prompts(
        self, lines: list[str], command: str, baseline: int | None = None
    ) -> str | None:
        prompts = self._prompt_indexes(lines)
        echo = self._echo_position(lines, prompts, command, baseline)
        if echo is None or len(prompts) <= echo + 1:
            return None
        # The line just above the next prompt is the prompt's own path/status line.
        start, end = prompts[echo] + 1, prompts[echo + 1] - 1
        if start > end:
            return None
        return "\n".join(lines[start:end]).strip()

    def _interactive_output(
        self, lines: list[str], command: str, baseline: int | None = None
    ) -> str:
        prompts = self._prompt_indexes(lines)
        echo = self._echo_position(lines, prompts, command, baseline)
        if echo is not None:
            return "\n".join(lines[prompts[echo] + 1 :]).strip()
        return "\n".join("\n".join(lines).rstrip().split("\n")[-INTERACTIVE_TAIL_LINES:]).strip()

    @staticmethod
    def _slice_between_markers(
        lines: list[str], start_marker: str, end_pattern: re.Pattern[str]
    ) -> tuple[str, int]:
        start = None
        for index in range(len(lines) - 1, -1, -1):
            if lines[index].strip() == start_marker:
                start = index
                break
        if start is None:
            return "", -1

        for index in range(start + 1, len(lines)):
            match = end_pattern.match(lines[index].strip())
            if match:
                return "\n".join(lines[start + 1 : index]), int(match.group(1))

        return "\n".join(lines[start + 1 :]).rstrip(), -1

    def _result(
        self,
        command_id: str,
        command: str,
        target: str,
        output: str,
        *,
        exit_code: int,
        check: InteractionCheck,
        method: str,
        lines_captured: int | None = None,
    ) -> CommandExecution:
        return CommandExecution(
            command_id=command_id,
            command=command,
            output=output,
            exit_code=exit_code,
            lines_captured=_count_lines(output) if lines_captured is None else lines_captured,
            requires_interaction=check.requires_interaction,
            interaction_type=check.type,
            interaction_message=check.message,
            capture_method=method,
            pane=target,
        )

    @staticmethod
    def _error_result(command_id: str, command: str, target: str, message: str) -> CommandExecution:
        return CommandExecution(
            command_id=command_id,
            command=command,
            output=message,
            exit_code=-1,
            lines_captured=0,
            capture_method="error",
            pane=target,
        )

    def _log(
        self,
        execution: CommandExecution,
        started: float,
        directory: str | None,
        *,
        logged_output: str | None = None,
    ) -> None:
        if self._command_logger is None:
            return
        self._command_logger.log(
            command=execution.command,
            output=execution.output if logged_output is None else logged_output,
            exit_code=execution.exit_code,
            duration_ms=int((self._clock() - started) * 1000),
            requires_interaction=execution.requires_interaction,
            interaction_type=execution.interaction_type,
            directory=directory,
        )


__all__ = ["CommandExecution", "CommandExecutor", "NOT_CAPTURED_OUTPUT", "new_command_id"]
