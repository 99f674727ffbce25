"""Pane address and listing models."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_ADDRESS_RE = re.compile(r"^(?P<session>.+):(?P<window>\d+)\.(?P<pane>\d+)$")


@dataclass(frozen=True, slots=True)
class PaneRef:
    """Address of a tmux pane in ``session:window.pane`` form.

    ``pane_id`` is tmux's stable ``%N`` identifier when known. Window and pane
    indexes can be renumbered after panes close, so the id is used to confirm
    that an address still points at the same pane. It does not take part in
    equality.
    """

    session: str
    window: int
    pane: int
    pane_id: str | None = field(default=None, compare=False)

    @property
    def address(self) -> str:
        return f"{self.session}:{self.window}.{self.pane}"

    def __str__(self) -> str:
        return self.address

    @classmethod
    def parse(cls, value: str, *, pane_id: str | None = None) -> "PaneRef":
        match = _ADDRESS_RE.match(value.strip())
        if match is None:
            raise ValueError(f"Invalid pane address '{value}' (expected session:window.pane)")
        return cls(
            session=match.group("session"),
            window=int(match.group("window")),
            pane=int(match.group("pane")),
            pane_id=pane_id,
        )

    @staticmethod
    def looks_like_address(value: str) -> bool:
        return _ADDRESS_RE.match(value.strip()) is not None


@dataclass(slots=True)
class PaneInfo:
    """One row of ``tmux list-panes -a``."""

    ref: PaneRef
    title: str
    active: bool
    current_path: str = ""
    marker: str = ""

    def as_dict(self) -> dict[str, object]:
        return {
            "session": self.ref.session,
            "window": str(self.ref.window),
            "pane": str(self.ref.pane),
            "title": self.title,
            "active": self.active,
        }


__all__ = ["PaneInfo", "PaneRef"]
