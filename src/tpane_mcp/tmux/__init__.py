"""Async tmux orchestration utilities."""

from .models import PaneInfo, PaneRef
from .runner import (
    TmuxCommandError,
    TmuxError,
    TmuxExecutionResult,
    TmuxNotFoundError,
    TmuxRunner,
)

__all__ = [
    "PaneInfo",
    "PaneRef",
    "TmuxCommandError",
    "TmuxError",
    "TmuxExecutionResult",
    "TmuxNotFoundError",
    "TmuxRunner",
]
