# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Capture stage timer for latency tracking and failure diagnostics.

Scroll/settle/capture repeat once per tile, so repeated stage names
accumulate instead of overwriting each other.
"""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass(slots=True)
class StageRecord:
    name: str
    start_ns: int
    end_ns: int = 0


class PipelineTimer:
    """Track capture stage transitions for latency reporting."""

    __slots__ = ("_stages", "_current", "_start_ns")

    def __init__(self) -> None:
        self._stages: list[StageRecord] = []
        self._current: StageRecord | None = None
        self._start_ns: int = time.monotonic_ns()

    def stage(self, name: str) -> None:
        """End previous stage + start new stage."""
        now = time.monotonic_ns()
        if self._current is not None:
            self._current.end_ns = now
            self._stages.append(self._current)
        self._current = StageRecord(name=name, start_ns=now)

    def finalize(self) -> None:
        """End current stage. Call on success or error."""
        if self._current is not None:
            self._current.end_ns = time.monotonic_ns()
            self._stages.append(self._current)
            self._current = None

    @property
    def current_stage(self) -> str | None:
        return self._current.name if self._current else None

    def elapsed_per_stage(self) -> dict[str, float]:
        """Return {stage_name: total_elapsed_ms}, summing repeated stages (including current)."""
        now = time.monotonic_ns()
        totals: dict[str, int] = {}
        for s in self._stages:
            totals[s.name] = totals.get(s.name, 0) + (s.end_ns - s.start_ns)
        if self._current is not None:
            totals[self._current.name] = totals.get(self._current.name, 0) + (now - self._current.start_ns)
        return {name: round(ns / 1e6, 1) for name, ns in totals.items()}

    def stage_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for s in self._stages:
            counts[s.name] = counts.get(s.name, 0) + 1
        if self._current is not None:
            counts[self._current.name] = counts.get(self._current.name, 0) + 1
        return counts

    def failure_report(self) -> dict:
        """Structured diagnostic for an aborted session."""
        now = time.monotonic_ns()
        current = self.current_stage or "unknown"
        current_ms = round((now - self._current.start_ns) / 1e6, 1) if self._current else 0
        return {
            "failed_at": current,
            "failed_stage_ms": current_ms,
            "stage_totals": self.elapsed_per_stage(),
            "total_ms": round((now - self._start_ns) / 1e6, 1),
            "hint": self.hint_for_stage(current),
        }

    @staticmethod
    def hint_for_stage(stage: str) -> str:
        hints = {
            "survey": "The page did not allow measurement. Restricted pages (chrome://, file://) cannot be captured.",
            "scroll": "The page refused to scroll. It may have navigated away or been closed.",
            "settle": "The session was interrupted while waiting for the page to render.",
            "capture": "Viewport capture stalled. Try a longer --settle-ms or a smaller viewport.",
            "composite": "Encoding the stitched image failed. The page may be too large.",
            "deliver": "The image was produced but could not be saved. Check the output directory.",
        }
        return hints.get(stage, f"Failed during '{stage}' stage.")
