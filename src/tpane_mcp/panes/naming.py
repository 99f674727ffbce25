"""Directory-derived pane names and marker option names."""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path

_UNSAFE_CHARS = re.compile(r"[^a-z0-9-]")
_MAX_HINT_LENGTH = 20


def directory_hash(directory: Path | str) -> str:
    """Return the short sha256 digest used to key a directory."""

    return hashlib.sha256(str(directory).encode("utf-8")).hexdigest()[:8]


def pane_name_hint(directory: Path | str) -> str:
    """Readable hint from the last two path components, or the hash when unusable."""

    parts = [part for part in Path(directory).parts if part not in ("", os.sep)]
    hint = _UNSAFE_CHARS.sub("", "-".join(parts[-2:]).lower())
    if not hint or len(hint) > _MAX_HINT_LENGTH:
        return directory_hash(directory)
    return hint


def pane_name(directory: Path | str, *, prefix: str = "claude", suffix: str | None = None) -> str:
    """Display name for a directory's pane.

    The suffix defaults to the process id so that two server instances working
    in the same directory label their panes differently.
    """

    tag = suffix if suffix is not None else str(os.getpid())
    name = f"{prefix}-{pane_name_hint(directory)}"
    return f"{name}-{tag}" if tag else name


def marker_option(directory: Path | str, *, prefix: str = "claude") -> str:
    """Pane-scoped user option that tags a pane as belonging to ``directory``."""

    return f"@{prefix}_dir_{directory_hash(directory)}"


__all__ = ["directory_hash", "marker_option", "pane_name", "pane_name_hint"]
