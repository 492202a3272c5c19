# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tile Capture Driver — scroll, settle, capture, once per offset.

Offsets advance by ``floor(viewport_height * overlap_factor)`` and the last
one is clamped to ``total_height - viewport_height``, so the final tile's
bottom edge lands exactly on the page bottom. Each tile runs

    scroll -> settle -> capture

strictly in that order with every step awaited before the next; the tab's
render buffer is shared, and overlapping commands would capture the wrong
scroll position.

Any scroll or capture failure aborts the session: a skipped tile would
leave a hole in the composite. The original scroll offset is restored when
the loop ends, whatever the outcome; a failed restore is logged, never raised.
"""

from __future__ import annotations

import asyncio
import logging
import math

from . import PageGeometry, Tile
from .channel import PageChannel
from .config import CaptureConfig
from .errors import CaptureCancelledError
from .session import CaptureSession, CaptureState

logger = logging.getLogger(__name__)

_RESTORE_TIMEOUT = 5.0


def step_size(viewport_height: int, overlap_factor: float) -> int:
    """Pixels advanced between consecutive tiles (never less than 1)."""
    if not 0.0 < overlap_factor <= 1.0:
        raise ValueError(f"overlap_factor must be in (0, 1], got {overlap_factor}")
    return max(1, math.floor(viewport_height * overlap_factor))


def scroll_offsets(total_height: int, viewport_height: int, overlap_factor: float) -> list[int]:
    """Scroll targets covering ``[0, total_height)`` in strictly increasing order.

    >>> scroll_offsets(2500, 1000, 0.9)
    [0, 900, 1500]
    >>> scroll_offsets(800, 1000, 0.9)
    [0]
    """
    last = max(0, total_height - viewport_height)
    if last == 0:
        return [0]
    step = step_size(viewport_height, overlap_factor)
    offsets = list(range(0, last, step))
    offsets.append(last)
    return offsets


def offsets_for(geometry: PageGeometry, overlap_factor: float) -> list[int]:
    return scroll_offsets(geometry.total_height, geometry.viewport_height, overlap_factor)


class TileCaptureDriver:
    """Runs the per-tile scroll/settle/capture loop for one session."""

    def __init__(self, channel: PageChannel, config: CaptureConfig | None = None) -> None:
        self._channel = channel
        self._config = config or CaptureConfig()

    async def capture(self, session: CaptureSession) -> list[Tile]:
        """Capture every tile for ``session.geometry`` into ``session.tiles``.

        Raises:
            ScrollFailedError / CaptureFailedError: a tile step failed; tiles discarded.
            CaptureCancelledError: ``session.cancel()`` was called between tiles.
        """
        geometry = session.geometry
        if geometry is None:
            raise RuntimeError("Session has no geometry; survey the page first")
        offsets = offsets_for(geometry, self._config.overlap_factor)
        logger.info(
            "Capturing %d tile(s) (step=%d, overlap_factor=%.2f, settle=%dms)",
            len(offsets),
            step_size(geometry.viewport_height, self._config.overlap_factor),
            self._config.overlap_factor,
            self._config.settle_ms,
        )

        try:
            for index, offset in enumerate(offsets):
                if session.cancelled:
                    raise CaptureCancelledError(f"Capture cancelled before tile {index + 1}/{len(offsets)}")
                await self._capture_tile(session, index, offset)
        except BaseException as exc:
            session.discard_tiles()
            if self._config.restore_scroll:
                await self._restore_best_effort(geometry.original_scroll_y, reason=type(exc).__name__)
            raise

        if self._config.restore_scroll:
            await self._restore_best_effort(geometry.original_scroll_y, reason="completion")
        return list(session.tiles)

    async def _capture_tile(self, session: CaptureSession, index: int, offset: int) -> None:
        session.transition(CaptureState.SCROLLING, tile_index=index)
        actual = await self._channel.scroll_to(offset, tile_index=index)
        if actual is not None and actual != offset:
            logger.warning("Scroll drift on tile %d: requested y=%d, page reports y=%d", index, offset, actual)

        session.transition(CaptureState.SETTLING)
        if self._config.settle_ms:
            await asyncio.sleep(self._config.settle_ms / 1000)

        session.transition(CaptureState.CAPTURING)
        response = await self._channel.capture(
            timeout=self._config.capture_timeout,
            offset=offset,
            tile_index=index,
        )
        session.add_tile(Tile(image=response.image_bytes(), placement_y=offset))
        logger.debug("Tile %d captured at y=%d", index, offset)

    async def _restore_best_effort(self, y: int, *, reason: str) -> None:
        """Restore scroll position without masking the error that ended the session."""
        try:
            async with asyncio.timeout(_RESTORE_TIMEOUT):
                await asyncio.shield(self._channel.scroll_to(y))
        except Exception:
            logger.warning("Scroll restore to y=%d failed after %s", y, reason, exc_info=True)
        else:
            logger.info("Scroll restored to y=%d after %s", y, reason)

