"""Pane naming and directory registry."""

from .naming import directory_hash, marker_option, pane_name, pane_name_hint
from .registry import PaneCreationError, PaneRegistry

__all__ = [
    "PaneCreationError",
    "PaneRegistry",
    "directory_hash",
    "marker_option",
    "pane_name",
    "pane_name_hint",
]
