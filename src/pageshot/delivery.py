# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Artifact naming and the local-filesystem download sink."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from tempfile import NamedTemporaryFile

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "full-page-screenshot-"


def iso_timestamp(now: datetime | None = None) -> str:
    """UTC timestamp with millisecond precision and a trailing ``Z``.

    >>> iso_timestamp(datetime(2026, 10, 17, 5, 50, 0, 123456, tzinfo=UTC))
    '2026-10-17T05:50:00.123Z'
    """
    now = (now or datetime.now(UTC)).astimezone(UTC)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def suggested_filename(now: datetime | None = None) -> str:
    """``full-page-screenshot-<timestamp>.png`` with ':' made filesystem-safe."""
    return f"{FILENAME_PREFIX}{iso_timestamp(now).replace(':', '-')}.png"


def _prompt_for_path(default: Path) -> Path:
    answer = input(f"Save screenshot as [{default}]: ").strip()
    return Path(answer).expanduser() if answer else default


class FileDownloadSink:
    """Writes artifacts into *directory*, optionally asking for the path first.

    The prompt is only shown when stdin is a TTY; otherwise the suggested
    path is used as-is.
    """

    def __init__(
        self,
        directory: Path,
        *,
        prompt: Callable[[Path], Path] = _prompt_for_path,
        interactive: Callable[[], bool] = lambda: sys.stdin.isatty(),
    ) -> None:
        self.directory = Path(directory)
        self._prompt = prompt
        self._interactive = interactive

    def save(self, artifact: bytes, suggested: str, *, prompt_save_location: bool = False) -> Path:
        path = self.directory / Path(suggested).name
        if prompt_save_location:
            if self._interactive():
                path = self._prompt(path)
            else:
                logger.info("Save-as prompt skipped (not interactive); using %s", path)
        if path.is_dir():
            path = path / Path(suggested).name
        path.parent.mkdir(parents=True, exist_ok=True)
        # Temp file beside the target; renamed into place only once fully written
        tmp = NamedTemporaryFile("wb", dir=path.parent, prefix=f".{path.name}.", suffix=".part", delete=False)
        tmp_path = Path(tmp.name)
        try:
            with tmp:
                tmp.write(artifact)
            tmp_path.replace(path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.info("Saved %d bytes to %s", len(artifact), path)
        return path
