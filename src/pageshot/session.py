# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""CaptureSession — per-capture state, and the per-page session registry.

A session is created on trigger, filled by the driver, consumed by the
compositor, then dropped. The registry enforces at most one active session
per target page; a second trigger is rejected, never queued.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import StrEnum

from . import PageGeometry, Tile
from .errors import SessionBusyError
from .pipeline_timer import PipelineTimer

logger = logging.getLogger(__name__)


class CaptureState(StrEnum):
    MEASURING = "measuring"
    SCROLLING = "scrolling"
    SETTLING = "settling"
    CAPTURING = "capturing"
    COMPOSITING = "compositing"
    DELIVERING = "delivering"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({CaptureState.DONE, CaptureState.FAILED, CaptureState.CANCELLED})

# Timer stage recorded when entering each working state
_STAGE_FOR_STATE = {
    CaptureState.MEASURING: "survey",
    CaptureState.SCROLLING: "scroll",
    CaptureState.SETTLING: "settle",
    CaptureState.CAPTURING: "capture",
    CaptureState.COMPOSITING: "composite",
    CaptureState.DELIVERING: "deliver",
}


@dataclass(slots=True)
class CaptureSession:
    """Mutable state for one user-triggered capture of one target page."""

    target: str
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    geometry: PageGeometry | None = None
    tiles: list[Tile] = field(default_factory=list)
    state: CaptureState = CaptureState.MEASURING
    tile_index: int = -1  # index of the tile being worked on, -1 outside the tile loop
    timer: PipelineTimer = field(default_factory=PipelineTimer)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    def __post_init__(self) -> None:
        self.timer.stage(_STAGE_FOR_STATE[self.state])

    def transition(self, state: CaptureState, *, tile_index: int | None = None) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Session {self.session_id} already {self.state}; cannot move to {state}")
        self.state = state
        if tile_index is not None:
            self.tile_index = tile_index
        if state in TERMINAL_STATES:
            self.timer.finalize()
        else:
            self.timer.stage(_STAGE_FOR_STATE[state])
        logger.debug("session %s -> %s (tile=%d)", self.session_id, state, self.tile_index)

    def add_tile(self, tile: Tile) -> None:
        if self.tiles and tile.placement_y <= self.tiles[-1].placement_y:
            raise ValueError(
                f"Tile placements must strictly increase: {tile.placement_y} after {self.tiles[-1].placement_y}"
            )
        self.tiles.append(tile)

    def discard_tiles(self) -> None:
        self.tiles.clear()

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class SessionRegistry:
    """Tracks the active CaptureSession of each target page."""

    def __init__(self) -> None:
        self._active: dict[str, CaptureSession] = {}
        self._lock = asyncio.Lock()

    async def open(self, target: str) -> CaptureSession:
        """Create and register a session for *target*.

        Raises SessionBusyError if *target* already has an active session.
        """
        async with self._lock:
            existing = self._active.get(target)
            if existing is not None:
                raise SessionBusyError(
                    f"A capture is already running on '{target}' (session {existing.session_id}, {existing.state})",
                    target=target,
                )
            session = CaptureSession(target=target)
            self._active[target] = session
        logger.info("Capture session opened: %s on %s", session.session_id, target)
        return session

    async def close(self, session: CaptureSession) -> None:
        async with self._lock:
            if self._active.get(session.target) is session:
                del self._active[session.target]
        session.discard_tiles()
        logger.info("Capture session closed: %s (%s)", session.session_id, session.state)

    @asynccontextmanager
    async def session(self, target: str) -> AsyncIterator[CaptureSession]:
        """Open a session for *target*, closing it on exit."""
        session = await self.open(target)
        try:
            yield session
        finally:
            await self.close(session)

    def get(self, target: str) -> CaptureSession | None:
        return self._active.get(target)

    def cancel(self, target: str) -> bool:
        """Request cancellation of the active session on *target*. Returns False if none."""
        session = self._active.get(target)
        if session is None:
            return False
        session.cancel()
        logger.info("Cancellation requested for session %s on %s", session.session_id, target)
        return True

    @property
    def active_sessions(self) -> int:
        return len(self._active)
