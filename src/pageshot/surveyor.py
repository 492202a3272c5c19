# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page Surveyor — measure document and viewport extent.

The page-side routine only reads layout; it never scrolls.
"""

from __future__ import annotations

import logging

from . import PageGeometry
from .channel import PageChannel
from .errors import PageInaccessibleError

logger = logging.getLogger(__name__)

# Page-context routine for the "measure" operation (static, no interpolation).
# documentElement.clientHeight is included so a short document never
# reports less than the window it is shown in.
MEASURE_PAGE_JS = """() => {
  const body = document.body || document.documentElement;
  const root = document.documentElement;
  return {
    type: 'dimensions',
    dimensions: {
      heights: [body.scrollHeight, body.offsetHeight, root.clientHeight, root.scrollHeight, root.offsetHeight],
      widths: [body.scrollWidth, body.offsetWidth, root.clientWidth, root.scrollWidth, root.offsetWidth],
      viewportWidth: window.innerWidth,
      viewportHeight: window.innerHeight,
      scrollY: Math.max(0, Math.round(window.scrollY)),
      devicePixelRatio: window.devicePixelRatio || 1
    }
  };
}"""


async def measure(channel: PageChannel) -> PageGeometry:
    """Measure the page behind *channel*.

    Raises PageInaccessibleError when the page refuses the routine, answers
    with something that is not a valid dimensions message, or has no
    viewport to capture.
    """
    message = await channel.request_dimensions()
    try:
        geometry = message.to_geometry()
    except ValueError as e:
        raise PageInaccessibleError(f"Inconsistent page dimensions: {e}") from e
    if geometry.viewport_height == 0 or geometry.viewport_width == 0:
        raise PageInaccessibleError(
            f"Page '{channel.target}' has an empty viewport "
            f"({geometry.viewport_width}x{geometry.viewport_height}); nothing to capture"
        )
    logger.info(
        "Surveyed %s: page=%dx%d viewport=%dx%d scrollY=%d dpr=%g",
        channel.target,
        geometry.total_width,
        geometry.total_height,
        geometry.viewport_width,
        geometry.viewport_height,
        geometry.original_scroll_y,
        geometry.device_scale_factor,
    )
    return geometry
