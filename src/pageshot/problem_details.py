# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""RFC 9457-style problem details for capture failures.

Maps pageshot exceptions to a structured, user-facing report so the
triggering UI can tell the failure kinds apart (page inaccessible, capture
aborted, delivery failed, …) without parsing messages.

Key public API:

- ``ProblemType``   — StrEnum error taxonomy.
- ``ProblemDetail`` — frozen dataclass (→ JSON / CLI text).
- ``sanitize_detail()`` — scrub secrets & paths from error messages.
- ``from_exception()`` — build a ``ProblemDetail`` from any exception.

Type URI namespace: ``https://www.retio.ai/pageshot/errors/{slug}``
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# ── Constants ────────────────────────────────────────────────────────

_ERROR_BASE = "https://www.retio.ai/pageshot/errors"

MAX_DETAIL_LENGTH = 200

# ── ProblemType taxonomy ─────────────────────────────────────────────


class ProblemType(StrEnum):
    """Error taxonomy for pageshot."""

    # Session aborted before any artifact exists
    PAGE_INACCESSIBLE = "page-inaccessible"
    SCROLL_FAILED = "scroll-failed"
    CAPTURE_FAILED = "capture-failed"
    CAPTURE_CANCELLED = "capture-cancelled"
    SESSION_BUSY = "session-busy"
    BROWSER_UNAVAILABLE = "browser-unavailable"

    # Artifact exists (or partially degraded)
    TILE_DECODE_FAILED = "tile-decode-failed"
    DOWNLOAD_FAILED = "download-failed"

    @property
    def uri(self) -> str:
        """Full type URI for the ``type`` field."""
        return f"{_ERROR_BASE}/{self.value}"


# ── Per-type metadata: (status, title, retryable) ────────────────────

_TYPE_METADATA: dict[ProblemType, tuple[int, str, bool]] = {
    ProblemType.PAGE_INACCESSIBLE: (403, "Page Inaccessible", False),
    ProblemType.SCROLL_FAILED: (502, "Scroll Failed", True),
    ProblemType.CAPTURE_FAILED: (502, "Capture Failed", True),
    ProblemType.CAPTURE_CANCELLED: (499, "Capture Cancelled", True),
    ProblemType.SESSION_BUSY: (409, "Capture Already Running", True),
    ProblemType.BROWSER_UNAVAILABLE: (503, "Browser Unavailable", True),
    ProblemType.TILE_DECODE_FAILED: (422, "Tile Decode Failed", True),
    ProblemType.DOWNLOAD_FAILED: (507, "Download Failed", False),
}

# ── CLI-specific recovery hints ──────────────────────────────────────

_CLI_HINTS: dict[str, str] = {
    ProblemType.PAGE_INACCESSIBLE.uri: "Restricted pages (chrome://, file://, data:) cannot be captured.",
    ProblemType.SCROLL_FAILED.uri: "The page stopped responding to scroll commands. Reload it and try again.",
    ProblemType.CAPTURE_FAILED.uri: "Try again with a longer --settle-ms, or check that the page is still open.",
    ProblemType.CAPTURE_CANCELLED.uri: "No image was saved. Start a new capture when ready.",
    ProblemType.SESSION_BUSY.uri: "Wait for the running capture on this page to finish.",
    ProblemType.BROWSER_UNAVAILABLE.uri: "Ensure Chromium is installed: playwright install chromium",
    ProblemType.DOWNLOAD_FAILED.uri: (
        "The screenshot was captured but could not be saved; re-running will not help. "
        "Check that the output directory is writable and has free space."
    ),
}

# ── Secret sanitization patterns ─────────────────────────────────────

_SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"Bearer\s+\S+"), "Bearer <redacted>"),
    (
        re.compile(
            r"(?:API_KEY|SECRET|TOKEN|PASSWORD|CREDENTIAL)\s*[=:]\s*\S+",
            re.IGNORECASE,
        ),
        "<redacted>",
    ),
    (re.compile(r"://[^@\s/]+@"), "://<redacted>@"),
    (re.compile(r"([?&](?:token|key|sig|signature|auth)=)[^&\s]+", re.IGNORECASE), r"\1<redacted>"),
]

_PATH_PATTERN = re.compile(
    r"(/(?:Users|home|tmp|var|etc|opt|root|srv|proc|sys|usr|Library"
    r"|Applications|private|snap|mnt|media|nix)/[\w./-]+"
    r"|[A-Z]:\\[\w.\\-]+)"
)


def sanitize_detail(text: str) -> str:
    """Scrub secrets and filesystem paths from *text*.

    Applies ``_SECRET_PATTERNS`` and ``_PATH_PATTERN``, then truncates
    to ``MAX_DETAIL_LENGTH`` characters.
    """
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    text = _PATH_PATTERN.sub("<path>", text)
    if len(text) > MAX_DETAIL_LENGTH:
        text = text[:MAX_DETAIL_LENGTH] + "..."
    return text


def _sanitize_extensions(extensions: dict[str, Any]) -> dict[str, Any]:
    """Sanitize string values in extensions dict."""
    result: dict[str, Any] = {}
    for key, value in extensions.items():
        if isinstance(value, str):
            result[key] = sanitize_detail(value)
        else:
            result[key] = value
    return result


# ── ProblemDetail dataclass ──────────────────────────────────────────

# Standard fields that extensions must never shadow.
_STANDARD_FIELDS = frozenset({"type", "title", "status", "detail", "instance"})


@dataclass(frozen=True, slots=True)
class ProblemDetail:
    """Structured, immutable error report."""

    type: str = "about:blank"
    title: str = ""
    status: int = 500
    detail: str = ""
    instance: str = ""
    extensions: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """JSON dict.  Empty optional fields omitted, extensions merged at top level."""
        d: dict[str, Any] = {"type": self.type, "status": self.status}
        if self.title:
            d["title"] = self.title
        if self.detail:
            d["detail"] = self.detail
        if self.instance:
            d["instance"] = self.instance
        for k, v in self.extensions.items():
            if k not in _STANDARD_FIELDS:
                d[k] = v
        return d

    def to_json(self) -> str:
        """JSON string (``ensure_ascii=False``)."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def to_cli_text(self) -> str:
        """Human-friendly CLI error message.

        Format::

            Error: <detail>
            Hint: <hint>
        """
        hint = _CLI_HINTS.get(self.type, "")
        lines = [f"Error: {self.detail}"]
        if hint:
            lines.append(f"Hint: {hint}")
        return "\n".join(lines)


# ── Exception → ProblemType mapping ──────────────────────────────────


def _exception_type_map() -> dict[type, ProblemType]:
    from .errors import (
        BrowserError,
        CaptureCancelledError,
        CaptureFailedError,
        DownloadFailedError,
        PageInaccessibleError,
        ScrollFailedError,
        SessionBusyError,
        TileDecodeError,
    )

    return {
        PageInaccessibleError: ProblemType.PAGE_INACCESSIBLE,
        ScrollFailedError: ProblemType.SCROLL_FAILED,
        CaptureFailedError: ProblemType.CAPTURE_FAILED,
        CaptureCancelledError: ProblemType.CAPTURE_CANCELLED,
        SessionBusyError: ProblemType.SESSION_BUSY,
        BrowserError: ProblemType.BROWSER_UNAVAILABLE,
        TileDecodeError: ProblemType.TILE_DECODE_FAILED,
        DownloadFailedError: ProblemType.DOWNLOAD_FAILED,
    }


def _extensions_for(exc: Exception) -> dict[str, Any]:
    from .errors import CaptureFailedError, DownloadFailedError, ScrollFailedError, SessionBusyError

    ext: dict[str, Any] = {}
    if isinstance(exc, (ScrollFailedError, CaptureFailedError)):
        ext["offset"] = exc.offset
        if exc.tile_index >= 0:
            ext["tile_index"] = exc.tile_index
    elif isinstance(exc, DownloadFailedError) and exc.filename:
        ext["filename"] = exc.filename
    elif isinstance(exc, SessionBusyError) and exc.target:
        ext["target"] = exc.target
    return ext


def from_exception(
    exc: Exception,
    *,
    instance: str = "",
    extensions: dict[str, Any] | None = None,
) -> ProblemDetail:
    """Build a ProblemDetail from an exception.

    Known pageshot exceptions map to their ProblemType (walking the MRO so
    subclasses inherit their parent's type). Anything else produces a
    generic ``about:blank`` detail.
    """
    ext = _extensions_for(exc)
    if extensions:
        ext.update(extensions)

    type_map = _exception_type_map()
    problem_type = next((type_map[cls] for cls in type(exc).__mro__ if cls in type_map), None)
    if problem_type is not None:
        status, title, retryable = _TYPE_METADATA[problem_type]
        ext.setdefault("retryable", retryable)
        return ProblemDetail(
            type=problem_type.uri,
            title=title,
            status=status,
            detail=sanitize_detail(str(exc)),
            instance=instance,
            extensions=_sanitize_extensions(ext),
        )

    return ProblemDetail(
        type="about:blank",
        title="",
        status=500,
        detail=sanitize_detail(str(exc) or type(exc).__name__),
        instance=instance,
        extensions=_sanitize_extensions(ext),
    )
