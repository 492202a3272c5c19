# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""pageshot: full-page screenshots stitched from scrolled viewport tiles.

A capture session runs three stages in order:
- survey: measure the document and viewport extent (PageGeometry)
- drive: scroll, settle and capture one viewport per offset (Tile)
- composite: paste the tiles onto one canvas and encode it as PNG
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class PageGeometry:
    """Extent of the page and its viewport, measured once per session."""

    total_width: int
    total_height: int
    viewport_width: int
    viewport_height: int
    original_scroll_y: int = 0  # restored after capture
    device_scale_factor: float = 1.0  # device pixels per CSS pixel in captured tiles

    def __post_init__(self) -> None:
        for name in ("total_width", "total_height", "viewport_width", "viewport_height", "original_scroll_y"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{name} must be an int, got {type(value).__name__}")
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")
        if not self.device_scale_factor > 0:
            raise ValueError(f"device_scale_factor must be positive, got {self.device_scale_factor}")
        if self.total_height < self.viewport_height:
            raise ValueError(f"total_height ({self.total_height}) < viewport_height ({self.viewport_height})")

    @property
    def max_scroll_y(self) -> int:
        """Largest scroll offset that keeps the viewport inside the document."""
        return self.total_height - self.viewport_height


@dataclass(frozen=True, slots=True)
class Tile:
    """One captured viewport snapshot and where it belongs on the page."""

    image: bytes = field(repr=False)  # encoded raster (PNG)
    placement_y: int = 0


__all__ = ["PageGeometry", "Tile"]
