# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""PlaywrightHost — CaptureHost backed by Playwright pages.

Targets are short ids handed out by :meth:`PlaywrightHost.register`. Page
operations are looked up by name in ``_PAGE_OPERATION_JS``; callers never
ship code into the page. All evaluate calls are parameterized (no string
interpolation).
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Any

from playwright.async_api import Page

from .delivery import FileDownloadSink
from .host import OP_MEASURE
from .surveyor import MEASURE_PAGE_JS

logger = logging.getLogger(__name__)

_SCROLL_TO_JS = """([y]) => {
  window.scrollTo(0, y);
  return Math.round(window.scrollY);
}"""

_PAGE_OPERATION_JS: dict[str, str] = {
    OP_MEASURE: MEASURE_PAGE_JS,
}


class UnknownTargetError(KeyError):
    """No page is registered under the given target id."""


class PlaywrightHost:
    """Drives registered Playwright pages on behalf of the capture pipeline."""

    def __init__(self, sink: FileDownloadSink) -> None:
        self._pages: dict[str, Page] = {}
        self._sink = sink

    def register(self, page: Page, target: str | None = None) -> str:
        """Make *page* addressable; returns its target id."""
        target = target or f"page-{uuid.uuid4().hex[:8]}"
        self._pages[target] = page
        return target

    def unregister(self, target: str) -> None:
        self._pages.pop(target, None)

    def _page(self, target: str) -> Page:
        page = self._pages.get(target)
        if page is None:
            raise UnknownTargetError(target)
        if page.is_closed():
            raise RuntimeError(f"Page '{target}' has been closed")
        return page

    async def scroll_to(self, target: str, y: int) -> int | None:
        result = await self._page(target).evaluate(_SCROLL_TO_JS, [int(y)])
        return int(result) if result is not None else None

    async def capture_visible(self, target: str) -> bytes:
        return await self._page(target).screenshot(type="png", full_page=False)

    async def run_in_page(self, target: str, operation: str, args: list[Any] | None = None) -> Any:
        js = _PAGE_OPERATION_JS.get(operation)
        if js is None:
            raise ValueError(f"Unknown page operation: {operation!r}")
        page = self._page(target)
        if args:
            return await page.evaluate(js, args)
        return await page.evaluate(js)

    async def download(self, artifact: bytes, suggested_filename: str, *, prompt_save_location: bool = False) -> Path:
        # File I/O (and a possible input() prompt) off the event loop
        return await asyncio.to_thread(
            self._sink.save,
            artifact,
            suggested_filename,
            prompt_save_location=prompt_save_location,
        )
