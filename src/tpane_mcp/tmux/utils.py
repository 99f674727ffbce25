"""Format strings and row parsing for tmux listings."""

from __future__ import annotations

from .models import PaneInfo, PaneRef

ADDRESS_FORMAT = "#{session_name}:#{window_index}.#{pane_index}"
_FIELD_SEPARATOR = "\t"


def build_pane_format(marker_option: str | None = None) -> str:
    """Return the ``-F`` format used for pane listings.

    The title goes last because it is the only free-text field.
    """

    marker = f"#{{{marker_option}}}" if marker_option else ""
    fields = [
        ADDRESS_FORMAT,
        "#{pane_id}",
        "#{pane_active}",
        "#{pane_current_path}",
        marker,
        "#{pane_title}",
    ]
    return _FIELD_SEPARATOR.join(fields)


def parse_pane_row(line: str) -> PaneInfo | None:
    """Parse one listing row; malformed rows yield ``None``."""

    parts = line.rstrip("\n").split(_FIELD_SEPARATOR, 5)
    if len(parts) < 6:
        return None
    address, pane_id, active, current_path, marker, title = parts
    try:
        ref = PaneRef.parse(address, pane_id=pane_id or None)
    except ValueError:
        return None
    return PaneInfo(
        ref=ref,
        title=title,
        active=active.strip() == "1",
        current_path=current_path,
        marker=marker.strip(),
    )


def parse_new_pane(output: str) -> PaneRef:
    """Parse the ``-P -F`` output of split-window/new-window."""

    line = output.strip().splitlines()[-1] if output.strip() else ""
    address, _, pane_id = line.partition(_FIELD_SEPARATOR)
    return PaneRef.parse(address, pane_id=pane_id.strip() or None)


NEW_PANE_FORMAT = ADDRESS_FORMAT + _FIELD_SEPARATOR + "#{pane_id}"


__all__ = [
    "ADDRESS_FORMAT",
    "NEW_PANE_FORMAT",
    "build_pane_format",
    "parse_new_pane",
    "parse_pane_row",
]
