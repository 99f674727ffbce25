"""Classify trailing pane text as blocked on interactive input."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from .patterns import DEFAULT_PATTERNS, PromptPattern

TAIL_LINES = 5


@dataclass(slots=True)
class InteractionCheck:
    requires_interaction: bool
    type: str | None = None
    message: str | None = None


class PromptDetector:
    """Ordered regex table; the first pattern matching the tail wins."""

    def __init__(self, patterns: Iterable[PromptPattern] | None = None) -> None:
        table = list(DEFAULT_PATTERNS if patterns is None else patterns)
        self._table: list[tuple[re.Pattern[str], PromptPattern]] = [
            (pattern.compile(), pattern) for pattern in table
        ]

    @classmethod
    def with_extra(cls, extra: Iterable[PromptPattern]) -> "PromptDetector":
        return cls([*DEFAULT_PATTERNS, *extra])

    @property
    def patterns(self) -> list[PromptPattern]:
        return [pattern for _, pattern in self._table]

    def classify(self, text: str) -> InteractionCheck:
        tail = "\n".join(text.rstrip().split("\n")[-TAIL_LINES:])
        for compiled, pattern in self._table:
            if compiled.search(tail):
                return InteractionCheck(True, pattern.type, pattern.message)
        return InteractionCheck(False)


__all__ = ["InteractionCheck", "PromptDetector", "TAIL_LINES"]
