"""Directory to pane registry."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from ..tmux import PaneInfo, PaneRef, TmuxError, TmuxRunner
from .naming import marker_option, pane_name

logger = logging.getLogger(__name__)

Origin = Literal["cache", "marker", "address", "created"]


class PaneCreationError(RuntimeError):
    """Raised when tmux refuses to create or tag a new pane."""


class PaneRegistry:
    """Map a work context (directory, optionally scoped) to a live tmux pane.

    Lookup is two-level. The in-process cache is consulted first and is
    verified against the live pane list. The pane marker option, which
    survives restarts of this process, is consulted second and re-seeds the
    cache when it finds a pane. Only when both miss is a new pane created.
    """

    def __init__(
        self,
        runner: TmuxRunner,
        *,
        prefix: str = "claude",
        split_direction: str = "horizontal",
        split_percent: int = 40,
        name_suffix: str | None = None,
    ) -> None:
        self._runner = runner
        self._prefix = prefix
        self._split_direction = split_direction
        self._split_percent = split_percent
        self._name_suffix = name_suffix
        self._panes: dict[str, PaneRef] = {}

    @property
    def cached(self) -> dict[str, PaneRef]:
        return dict(self._panes)

    @staticmethod
    def context_key(directory: Path | str, scope: str | None = None) -> str:
        resolved = str(Path(directory).expanduser().resolve())
        return f"{resolved}#{scope}" if scope else resolved

    def forget(self, directory: Path | str, scope: str | None = None) -> None:
        self._panes.pop(self.context_key(directory, scope), None)

    async def resolve(
        self,
        directory: Path | str,
        requested_name: str | None = None,
        *,
        split: str | None = None,
        scope: str | None = None,
    ) -> PaneRef:
        ref, _ = await self.resolve_with_origin(
            directory, requested_name, split=split, scope=scope
        )
        return ref

    async def resolve_with_origin(
        self,
        directory: Path | str,
        requested_name: str | None = None,
        *,
        split: str | None = None,
        scope: str | None = None,
    ) -> tuple[PaneRef, Origin]:
        """Return the pane for ``directory`` and where it came from."""

        directory = Path(directory).expanduser().resolve()
        key = self.context_key(directory, scope)
        marker = marker_option(key, prefix=self._prefix)
        panes = await self._live_panes(marker)

        if requested_name and PaneRef.looks_like_address(requested_name):
            target = PaneRef.parse(requested_name)
            live = self._find_address(target, panes or [])
            if live is None:
                raise ValueError(f"Pane '{requested_name}' is not a live tmux pane")
            return live, "address"

        cached = self._lookup_cached(key, panes)
        if cached is not None:
            return cached, "cache"

        discovered = self._discover(key, panes)
        if discovered is not None:
            return discovered, "marker"

        name = requested_name or pane_name(
            directory, prefix=self._prefix, suffix=self._name_suffix
        )
        created = await self._create(key, directory, name, marker, split or self._split_direction)
        return created, "created"

    async def _live_panes(self, marker: str) -> list[PaneInfo] | None:
        try:
            return await self._runner.list_panes(marker_option=marker)
        except TmuxError as exc:
            logger.debug("Pane listing failed; treating as no live panes", extra={"error": str(exc)})
            return None

    @staticmethod
    def _find_address(target: PaneRef, panes: list[PaneInfo]) -> PaneRef | None:
        for info in panes:
            if info.ref == target:
                return info.ref
        return None

    def _lookup_cached(self, key: str, panes: list[PaneInfo] | None) -> PaneRef | None:
        cached = self._panes.get(key)
        if cached is None:
            return None
        if not panes:
            self._panes.pop(key, None)
            return None

        if cached.pane_id:
            for info in panes:
                if info.ref.pane_id == cached.pane_id:
                    if info.ref != cached:
                        logger.debug(
                            "Cached pane was renumbered",
                            extra={"old": cached.address, "new": info.ref.address},
                        )
                    self._panes[key] = info.ref
                    return info.ref
        else:
            live = self._find_address(cached, panes)
            if live is not None:
                self._panes[key] = live
                return live

        logger.info("Cached pane is gone", extra={"context": key, "pane": cached.address})
        self._panes.pop(key, None)
        return None

    def _discover(self, key: str, panes: list[PaneInfo] | None) -> PaneRef | None:
        for info in panes or []:
            if info.marker == "1":
                self._panes[key] = info.ref
                logger.info(
                    "Adopted marked pane",
                    extra={"context": key, "pane": info.ref.address},
                )
                return info.ref
        return None

    async def _create(
        self,
        key: str,
        directory: Path,
        name: str,
        marker: str,
        split: str,
    ) -> PaneRef:
        try:
            if split == "window":
                ref = await self._runner.new_window(directory, name=name)
            else:
                ref = await self._runner.split_window(
                    directory, direction=split, percent=self._split_percent
                )
            await self._runner.set_pane_option(ref.address, marker, "1")
            await self._runner.select_pane(ref.address, title=name)
        except (TmuxError, ValueError) as exc:
            raise PaneCreationError(f"Failed to create pane: {exc}") from exc

        self._panes[key] = ref
        logger.info(
            "Created pane",
            extra={"context": key, "pane": ref.address, "pane_name": name, "split": split},
        )
        return ref


__all__ = ["Origin", "PaneCreationError", "PaneRegistry"]
