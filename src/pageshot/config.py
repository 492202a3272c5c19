# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Capture tuning knobs.

Defaults can be overridden through ``PAGESHOT_*`` environment variables
(see :meth:`CaptureConfig.from_env`) and then by CLI flags.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

DEFAULT_OVERLAP_FACTOR = 0.9
DEFAULT_SETTLE_MS = 250
DEFAULT_CAPTURE_TIMEOUT = 15.0  # seconds per viewport capture
DEFAULT_DOWNLOAD_DIR = Path("screenshots")


@dataclass(frozen=True)
class CaptureConfig:
    """Tunables for one capture session.

    overlap_factor: fraction of the viewport height advanced per tile.
        1.0 assumes the host scrolls to exact pixels; lower values add
        overlap between consecutive tiles.
    settle_ms: pause after each scroll before capturing.
    capture_timeout: upper bound (seconds) on a single viewport capture.
    """

    overlap_factor: float = DEFAULT_OVERLAP_FACTOR
    settle_ms: int = DEFAULT_SETTLE_MS
    capture_timeout: float = DEFAULT_CAPTURE_TIMEOUT
    restore_scroll: bool = True
    prompt_save_location: bool = False
    download_dir: Path = field(default_factory=lambda: DEFAULT_DOWNLOAD_DIR)

    def __post_init__(self) -> None:
        if not 0.0 < self.overlap_factor <= 1.0:
            raise ValueError(f"overlap_factor must be in (0, 1], got {self.overlap_factor}")
        if self.settle_ms < 0:
            raise ValueError(f"settle_ms must be >= 0, got {self.settle_ms}")
        if self.capture_timeout <= 0:
            raise ValueError(f"capture_timeout must be > 0, got {self.capture_timeout}")

    @classmethod
    def from_env(cls, **overrides) -> CaptureConfig:
        """Build a config from ``PAGESHOT_*`` variables, then apply *overrides*.

        Overrides whose value is None are ignored so CLI flags left unset
        fall through to the environment or the defaults.
        """
        cfg = cls(
            overlap_factor=float(os.environ.get("PAGESHOT_OVERLAP_FACTOR", str(DEFAULT_OVERLAP_FACTOR))),
            settle_ms=int(os.environ.get("PAGESHOT_SETTLE_MS", str(DEFAULT_SETTLE_MS))),
            capture_timeout=float(os.environ.get("PAGESHOT_CAPTURE_TIMEOUT", str(DEFAULT_CAPTURE_TIMEOUT))),
            download_dir=Path(os.environ.get("PAGESHOT_DOWNLOAD_DIR", str(DEFAULT_DOWNLOAD_DIR))),
        )
        given = {k: v for k, v in overrides.items() if v is not None}
        return replace(cfg, **given) if given else cfg
