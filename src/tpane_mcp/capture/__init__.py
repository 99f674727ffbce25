"""Output capture protocol and interactive prompt detection."""

from .detector import InteractionCheck, PromptDetector
from .executor import CommandExecution, CommandExecutor, NOT_CAPTURED_OUTPUT, new_command_id
from .patterns import DEFAULT_PATTERNS, PatternLoadError, PatternLoader, PromptPattern

__all__ = [
    "CommandExecution",
    "CommandExecutor",
    "DEFAULT_PATTERNS",
    "InteractionCheck",
    "NOT_CAPTURED_OUTPUT",
    "PatternLoadError",
    "PatternLoader",
    "PromptDetector",
    "PromptPattern",
    "new_command_id",
]
