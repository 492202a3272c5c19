# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""CaptureController — runs one full-page capture end to end.

    trigger -> survey -> drive (tiles) -> composite -> deliver

The controller owns the CaptureSession for the duration of the run and is
the only place sessions are opened, so the one-session-per-page rule holds
for every caller. Terminal failures propagate as PageShotError subclasses;
``problem_details.from_exception`` turns them into user-facing reports.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from . import PageGeometry
from .channel import PageChannel
from .compositor import Composite, composite
from .config import CaptureConfig
from .delivery import suggested_filename
from .driver import TileCaptureDriver
from .errors import CaptureCancelledError
from .host import CaptureHost
from .logging_config import bound_session
from .messages import DownloadRequest, encode_data_url
from .session import CaptureSession, CaptureState, SessionRegistry
from .surveyor import measure

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CaptureOutcome:
    """Result of a successful capture."""

    path: Path
    filename: str
    session_id: str
    geometry: PageGeometry
    tile_count: int
    composite: Composite = field(repr=False)
    timings: dict[str, float] = field(default_factory=dict)  # ms per stage

    @property
    def warnings(self) -> list[str]:
        return self.composite.warnings


class CaptureController:
    """Entry point for triggering captures against a CaptureHost."""

    def __init__(
        self,
        host: CaptureHost,
        config: CaptureConfig | None = None,
        *,
        registry: SessionRegistry | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._host = host
        self._config = config or CaptureConfig()
        self._registry = registry or SessionRegistry()
        self._clock = clock

    @property
    def config(self) -> CaptureConfig:
        return self._config

    @property
    def active_sessions(self) -> int:
        return self._registry.active_sessions

    def session_for(self, target: str) -> CaptureSession | None:
        return self._registry.get(target)

    def cancel(self, target: str) -> bool:
        """Cancel the running capture on *target* before its next tile."""
        return self._registry.cancel(target)

    async def capture_page(self, target: str) -> CaptureOutcome:
        """Capture *target* as one stitched PNG and deliver it.

        Raises:
            SessionBusyError: a capture is already running on *target*.
            PageInaccessibleError, ScrollFailedError, CaptureFailedError:
                the session aborted; nothing was saved.
            CaptureCancelledError: cancelled between tiles; nothing was saved.
            DownloadFailedError: the image was produced but could not be saved.
        """
        async with self._registry.session(target) as session:
            with bound_session(target=target, session_id=session.session_id):
                try:
                    outcome = await self._run(session)
                except (CaptureCancelledError, asyncio.CancelledError):
                    session.transition(CaptureState.CANCELLED)
                    logger.info("Capture cancelled during %s", session.timer.current_stage or "startup")
                    raise
                except Exception as exc:
                    report = session.timer.failure_report()
                    session.transition(CaptureState.FAILED)
                    logger.warning(
                        "Capture failed at %s after %.1fms: %s (%s); stage totals %s; hint: %s",
                        report["failed_at"],
                        report["total_ms"],
                        exc,
                        type(exc).__name__,
                        report["stage_totals"],
                        report["hint"],
                    )
                    raise
                session.transition(CaptureState.DONE)
                logger.info("Capture complete: %s (%d tiles)", outcome.path, outcome.tile_count)
                return outcome

    async def _run(self, session: CaptureSession) -> CaptureOutcome:
        channel = PageChannel(self._host, session.target)

        session.geometry = geometry = await measure(channel)

        tiles = await TileCaptureDriver(channel, self._config).capture(session)

        session.transition(CaptureState.COMPOSITING, tile_index=-1)
        result = await asyncio.to_thread(
            composite,
            tiles,
            geometry.total_width,
            geometry.total_height,
            scale=geometry.device_scale_factor,
        )
        session.discard_tiles()
        for warning in result.warnings:
            logger.warning("Composite degraded: %s", warning)

        session.transition(CaptureState.DELIVERING)
        filename = suggested_filename(self._clock())
        request = DownloadRequest(
            data_url=encode_data_url(result.image),
            filename=filename,
            save_as=self._config.prompt_save_location,
        )
        path = await channel.deliver(request)

        return CaptureOutcome(
            path=path,
            filename=filename,
            session_id=session.session_id,
            geometry=geometry,
            tile_count=len(tiles),
            composite=result,
            timings=session.timer.elapsed_per_stage(),
        )
