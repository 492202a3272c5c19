# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""PageChannel — request/response boundary between the controller and one page.

Every crossing is a named operation with serialisable arguments; results
come back as validated wire messages (messages.py). Host exceptions are
translated into the pageshot taxonomy here so stage code only ever sees
PageShotError subclasses.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from .errors import CaptureFailedError, DownloadFailedError, PageInaccessibleError, ScrollFailedError
from .host import OP_MEASURE, CaptureHost
from .messages import (
    CaptureRequest,
    CaptureResponse,
    DimensionsMessage,
    DownloadRequest,
    encode_data_url,
    parse_message,
)

logger = logging.getLogger(__name__)


class PageChannel:
    """Typed access to a single target page through a CaptureHost."""

    def __init__(self, host: CaptureHost, target: str) -> None:
        self._host = host
        self.target = target

    async def request_dimensions(self) -> DimensionsMessage:
        """Run the ``measure`` routine in the page and return its dimensions message."""
        try:
            payload = await self._host.run_in_page(self.target, OP_MEASURE, [])
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise PageInaccessibleError(f"Cannot run measurement in page '{self.target}': {e}") from e
        try:
            message = parse_message(payload)
        except ValueError as e:
            raise PageInaccessibleError(f"Page '{self.target}' returned unusable dimensions: {e}") from e
        if not isinstance(message, DimensionsMessage):
            raise PageInaccessibleError(f"Expected a dimensions message, got {message.type!r}")
        return message

    async def scroll_to(self, y: int, *, tile_index: int = -1) -> int | None:
        try:
            return await self._host.scroll_to(self.target, y)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ScrollFailedError(f"Scroll to y={y} failed: {e}", offset=y, tile_index=tile_index) from e

    async def capture(
        self,
        request: CaptureRequest | None = None,
        *,
        timeout: float,
        offset: int = 0,
        tile_index: int = -1,
    ) -> CaptureResponse:
        """Send a capture request and wait (at most *timeout* s) for the response."""
        request = request or CaptureRequest()
        try:
            async with asyncio.timeout(timeout):
                data = await self._host.capture_visible(self.target)
        except TimeoutError as e:
            raise CaptureFailedError(
                f"Viewport capture timed out after {timeout:g}s", offset=offset, tile_index=tile_index
            ) from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise CaptureFailedError(f"Viewport capture failed: {e}", offset=offset, tile_index=tile_index) from e
        if not data:
            raise CaptureFailedError("Host returned an empty capture", offset=offset, tile_index=tile_index)
        logger.debug("captureRequest(%s) answered with %d bytes", request.format, len(data))
        return CaptureResponse(data_url=encode_data_url(data))

    async def deliver(self, request: DownloadRequest) -> Path:
        """Hand the artifact in *request* to the host's download sink."""
        try:
            artifact = request.artifact_bytes()
            return await self._host.download(artifact, request.filename, prompt_save_location=request.save_as)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise DownloadFailedError(f"Saving {request.filename} failed: {e}", filename=request.filename) from e
