# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for TileCaptureDriver — sequencing, failure policy, restore, cancellation.

All tests run against the in-memory FakeHost with settle_ms=0.
"""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, patch

import pytest

from pageshot import PageGeometry
from pageshot.channel import PageChannel
from pageshot.config import CaptureConfig
from pageshot.driver import TileCaptureDriver
from pageshot.errors import CaptureCancelledError, CaptureFailedError, ScrollFailedError
from pageshot.session import CaptureSession, CaptureState
from tests._fake_host import FakeHost

_FAST = CaptureConfig(settle_ms=0)


def _session(host: FakeHost) -> CaptureSession:
    session = CaptureSession(target="tab-1")
    session.geometry = PageGeometry(
        total_width=host.total_width,
        total_height=host.total_height,
        viewport_width=host.viewport_width,
        viewport_height=host.viewport_height,
        original_scroll_y=host.scroll_y,
    )
    return session


def _driver(host: FakeHost, config: CaptureConfig = _FAST) -> TileCaptureDriver:
    return TileCaptureDriver(PageChannel(host, "tab-1"), config)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestCaptureSequence:
    async def test_three_tiles_for_2500_page(self, host):
        tiles = await _driver(host).capture(_session(host))
        assert [t.placement_y for t in tiles] == [0, 900, 1500]

    async def test_scroll_then_capture_per_tile_then_restore(self):
        host = FakeHost(scroll_y=321)
        await _driver(host).capture(_session(host))
        ops = [op for op, _ in host.calls]
        assert ops == [
            "scroll_to",
            "capture_visible",
            "scroll_to",
            "capture_visible",
            "scroll_to",
            "capture_visible",
            "scroll_to",  # restore
        ]
        assert host.scroll_targets == [0, 900, 1500, 321]
        assert host.scroll_y == 321

    async def test_capture_happens_at_scrolled_offset(self, host):
        await _driver(host).capture(_session(host))
        captured_at = [arg for op, arg in host.calls if op == "capture_visible"]
        assert captured_at == [0, 900, 1500]

    async def test_single_viewport_page_one_tile(self):
        host = FakeHost(total_height=1000, viewport_height=1000)
        tiles = await _driver(host).capture(_session(host))
        assert len(tiles) == 1
        assert tiles[0].placement_y == 0

    async def test_tiles_stored_on_session(self, host):
        session = _session(host)
        tiles = await _driver(host).capture(session)
        assert session.tiles == tiles

    async def test_overlap_factor_one(self, host):
        tiles = await _driver(host, CaptureConfig(settle_ms=0, overlap_factor=1.0)).capture(_session(host))
        assert [t.placement_y for t in tiles] == [0, 1000, 1500]

    async def test_restore_can_be_disabled(self):
        host = FakeHost(scroll_y=40)
        await _driver(host, CaptureConfig(settle_ms=0, restore_scroll=False)).capture(_session(host))
        assert host.scroll_targets == [0, 900, 1500]

    async def test_deterministic_across_runs(self):
        first, second = FakeHost(), FakeHost()
        a = await _driver(first).capture(_session(first))
        b = await _driver(second).capture(_session(second))
        assert [t.placement_y for t in a] == [t.placement_y for t in b]
        assert first.scroll_targets == second.scroll_targets

    async def test_missing_geometry_is_programming_error(self, host):
        with pytest.raises(RuntimeError, match="geometry"):
            await _driver(host).capture(CaptureSession(target="tab-1"))


class TestSettleDelay:
    async def test_settle_sleep_between_scroll_and_capture(self, host):
        events: list[str] = []
        real_scroll, real_capture = host.scroll_to, host.capture_visible

        async def scroll(target, y):
            events.append("scroll")
            return await real_scroll(target, y)

        async def capture(target):
            events.append("capture")
            return await real_capture(target)

        async def fake_sleep(seconds):
            events.append(f"sleep:{seconds}")

        host.scroll_to, host.capture_visible = scroll, capture
        with patch("pageshot.driver.asyncio.sleep", side_effect=fake_sleep):
            await _driver(host, CaptureConfig(settle_ms=250)).capture(_session(host))

        assert events[:3] == ["scroll", "sleep:0.25", "capture"]
        assert events.count("sleep:0.25") == 3

    async def test_zero_settle_skips_sleep(self, host):
        with patch("pageshot.driver.asyncio.sleep", new=AsyncMock()) as sleep:
            await _driver(host).capture(_session(host))
        sleep.assert_not_called()


class TestStateTransitions:
    async def test_session_walks_through_tile_states(self, host):
        session = _session(host)
        seen: list[tuple[str, int]] = []
        original = CaptureSession.transition

        def record(self_, state, *, tile_index=None):
            original(self_, state, tile_index=tile_index)
            seen.append((self_.state, self_.tile_index))

        with patch.object(CaptureSession, "transition", record):
            await _driver(host).capture(session)

        assert seen[:3] == [
            (CaptureState.SCROLLING, 0),
            (CaptureState.SETTLING, 0),
            (CaptureState.CAPTURING, 0),
        ]
        assert seen[-1] == (CaptureState.CAPTURING, 2)
        assert len(seen) == 9

    async def test_timer_counts_each_stage_per_tile(self, host):
        session = _session(host)
        await _driver(host).capture(session)
        counts = session.timer.stage_counts()
        assert counts["scroll"] == 3
        assert counts["settle"] == 3
        assert counts["capture"] == 3


# ---------------------------------------------------------------------------
# Failure policy
# ---------------------------------------------------------------------------


class TestFailurePolicy:
    async def test_capture_failure_on_tile_two_aborts(self):
        host = FakeHost(scroll_y=77, fail_capture_on=2)
        session = _session(host)
        with pytest.raises(CaptureFailedError) as exc_info:
            await _driver(host).capture(session)
        assert exc_info.value.tile_index == 1
        assert exc_info.value.offset == 900
        assert session.tiles == []
        # No third tile attempted; restore attempted afterwards
        assert host.scroll_targets == [0, 900, 77]
        assert host.scroll_y == 77

    async def test_scroll_failure_aborts(self):
        host = FakeHost(fail_scroll_on=3)
        session = _session(host)
        with pytest.raises(ScrollFailedError) as exc_info:
            await _driver(host).capture(session)
        assert exc_info.value.offset == 1500
        assert session.tiles == []

    async def test_restore_failure_does_not_mask_original_error(self, caplog):
        # Capture 2 fails, then the restore scroll (#3) fails too
        host = FakeHost(fail_capture_on=2, fail_scroll_on=3)
        with caplog.at_level(logging.WARNING, logger="pageshot.driver"), pytest.raises(CaptureFailedError):
            await _driver(host).capture(_session(host))
        assert "Scroll restore" in caplog.text

    async def test_capture_timeout_is_capture_failure(self, host):
        async def hang(target):
            await asyncio.sleep(10)

        host.capture_visible = hang
        config = CaptureConfig(settle_ms=0, capture_timeout=0.01)
        with pytest.raises(CaptureFailedError, match="timed out"):
            await _driver(host, config).capture(_session(host))

    async def test_empty_capture_is_capture_failure(self, host):
        host.capture_visible = AsyncMock(return_value=b"")
        with pytest.raises(CaptureFailedError, match="empty"):
            await _driver(host).capture(_session(host))

    async def test_unexpected_error_still_restores_and_discards(self):
        host = FakeHost(scroll_y=40)
        session = _session(host)
        real_capture = host.capture_visible
        captures = 0

        async def text_on_second(target):
            nonlocal captures
            captures += 1
            data = await real_capture(target)
            return "not bytes" if captures == 2 else data

        host.capture_visible = text_on_second
        with pytest.raises(TypeError):
            await _driver(host).capture(session)
        assert session.tiles == []
        assert host.scroll_targets == [0, 900, 40]

    async def test_scroll_drift_is_logged_not_fatal(self, caplog):
        host = FakeHost(drift=3)
        with caplog.at_level(logging.WARNING, logger="pageshot.driver"):
            tiles = await _driver(host).capture(_session(host))
        assert [t.placement_y for t in tiles] == [0, 900, 1500]
        assert "Scroll drift" in caplog.text


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancellation:
    async def test_cancel_between_tiles(self):
        host = FakeHost(scroll_y=12)
        session = _session(host)
        real_capture = host.capture_visible
        captures = 0

        async def capture_then_cancel(target):
            nonlocal captures
            captures += 1
            if captures == 1:
                session.cancel()
            return await real_capture(target)

        host.capture_visible = capture_then_cancel
        with pytest.raises(CaptureCancelledError):
            await _driver(host).capture(session)
        assert captures == 1
        assert session.tiles == []
        assert host.scroll_targets == [0, 12]

    async def test_cancel_before_start(self, host):
        session = _session(host)
        session.cancel()
        with pytest.raises(CaptureCancelledError):
            await _driver(host).capture(session)
        assert host.scroll_targets == [0]  # restore only

    async def test_task_cancellation_restores_and_discards(self):
        host = FakeHost(scroll_y=5)
        session = _session(host)
        started = asyncio.Event()

        async def slow_capture(target):
            started.set()
            await asyncio.sleep(10)

        host.capture_visible = slow_capture
        task = asyncio.create_task(_driver(host).capture(session))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert session.tiles == []
        assert host.scroll_targets[-1] == 5
