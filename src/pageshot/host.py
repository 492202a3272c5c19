# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""CaptureHost — the capabilities the capture pipeline needs from a browser.

Implementations: ``PlaywrightHost`` (playwright_host.py) for real Chromium
pages, and in-memory fakes in the test suite. The pipeline never touches a
browser API directly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

# Named page-context operations a host must understand in run_in_page().
OP_MEASURE = "measure"
PAGE_OPERATIONS = frozenset({OP_MEASURE})


@runtime_checkable
class CaptureHost(Protocol):
    """Browser capabilities, addressed by an opaque *target* (tab/page id)."""

    async def scroll_to(self, target: str, y: int) -> int | None:
        """Scroll *target* to vertical offset *y*; return the offset actually reached if known."""
        ...

    async def capture_visible(self, target: str) -> bytes:
        """Return the currently visible viewport of *target* as PNG bytes."""
        ...

    async def run_in_page(self, target: str, operation: str, args: list[Any] | None = None) -> Any:
        """Run the named page-context *operation* and return its JSON-compatible result."""
        ...

    async def download(self, artifact: bytes, suggested_filename: str, *, prompt_save_location: bool = False) -> Path:
        """Persist *artifact*; return where it was written."""
        ...
