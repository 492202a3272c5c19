# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Compositor — paste captured tiles onto one full-page canvas.

Page geometry is in CSS pixels while tiles arrive in device pixels, so the
canvas is ``total_width x total_height`` multiplied by the page's device
scale factor and starts opaque white; any strip no tile reaches is a known
colour. Tiles are pasted unscaled in production order at
``(0, placement_y * scale)``; where tiles overlap the later (lower) tile wins.

A tile that fails to decode is skipped with a warning; one bad tile must
not throw away an otherwise complete page.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from PIL import Image, UnidentifiedImageError

from . import Tile
from .errors import TileDecodeError

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255)


@dataclass(frozen=True, slots=True)
class Composite:
    """Encoded full-page image plus what happened while building it."""

    image: bytes = field(repr=False)  # PNG
    width: int
    height: int
    tiles_drawn: int
    warnings: list[str] = field(default_factory=list)  # one per skipped tile

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


def _decode_tile(tile: Tile) -> Image.Image:
    try:
        with Image.open(io.BytesIO(tile.image)) as img:
            img.load()
            return img.convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise TileDecodeError(
            f"Tile at y={tile.placement_y} could not be decoded: {e}",
            placement_y=tile.placement_y,
        ) from e


def composite(
    tiles: Sequence[Tile],
    total_width: int,
    total_height: int,
    *,
    background: tuple[int, int, int] = WHITE,
    scale: float = 1.0,
) -> Composite:
    """Draw *tiles* onto the page canvas and encode it as PNG.

    *total_width*, *total_height* and each ``placement_y`` are CSS pixels;
    *scale* is the device scale factor the tiles were captured at.
    """
    if total_width <= 0 or total_height <= 0:
        raise ValueError(f"Canvas must be non-empty, got {total_width}x{total_height}")
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")

    width, height = round(total_width * scale), round(total_height * scale)
    canvas = Image.new("RGB", (width, height), background)
    warnings: list[str] = []
    drawn = 0
    try:
        for tile in tiles:
            try:
                img = _decode_tile(tile)
            except TileDecodeError as e:
                logger.warning("Skipping tile: %s", e)
                warnings.append(str(e))
                continue
            try:
                canvas.paste(img, (0, round(tile.placement_y * scale)))
            finally:
                img.close()
            drawn += 1

        with io.BytesIO() as output:
            canvas.save(output, format="PNG")
            encoded = output.getvalue()
    finally:
        canvas.close()

    logger.info(
        "Composited %d/%d tile(s) into %dx%d at scale %g (%d bytes)",
        drawn,
        len(tiles),
        width,
        height,
        scale,
        len(encoded),
    )
    return Composite(image=encoded, width=width, height=height, tiles_drawn=drawn, warnings=warnings)
