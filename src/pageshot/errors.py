# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""pageshot exception hierarchy.

All pageshot errors inherit from PageShotError. Survey, scroll and capture
failures are terminal for a session; tile decode failures are recovered by
the compositor; download failures happen after a valid artifact exists.
"""

from __future__ import annotations


class PageShotError(Exception):
    """Base exception for all pageshot errors."""


class BrowserError(PageShotError):
    """Browser launch or navigation failure."""


class PageInaccessibleError(PageShotError):
    """The page refused the measurement routine (restricted scheme, closed tab)."""


class ScrollFailedError(PageShotError):
    """Scrolling the page to a tile offset failed."""

    def __init__(self, message: str, *, offset: int = 0, tile_index: int = -1) -> None:
        super().__init__(message)
        self.offset = offset
        self.tile_index = tile_index


class CaptureFailedError(PageShotError):
    """Capturing the visible viewport failed or timed out."""

    def __init__(self, message: str, *, offset: int = 0, tile_index: int = -1) -> None:
        super().__init__(message)
        self.offset = offset
        self.tile_index = tile_index


class TileDecodeError(PageShotError):
    """A captured tile could not be decoded (recoverable, tile is skipped)."""

    def __init__(self, message: str, *, placement_y: int = 0) -> None:
        super().__init__(message)
        self.placement_y = placement_y


class DownloadFailedError(PageShotError):
    """The composite was produced but could not be delivered."""

    def __init__(self, message: str, *, filename: str = "") -> None:
        super().__init__(message)
        self.filename = filename


class SessionBusyError(PageShotError):
    """A capture session is already active on the target page."""

    def __init__(self, message: str, *, target: str = "") -> None:
        super().__init__(message)
        self.target = target


class CaptureCancelledError(PageShotError):
    """The session was cancelled between tiles; no artifact is produced."""
