# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for CaptureConfig defaults, validation and environment overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from pageshot.config import CaptureConfig

_ENV_VARS = ("PAGESHOT_OVERLAP_FACTOR", "PAGESHOT_SETTLE_MS", "PAGESHOT_CAPTURE_TIMEOUT", "PAGESHOT_DOWNLOAD_DIR")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_defaults(self):
        cfg = CaptureConfig()
        assert cfg.overlap_factor == 0.9
        assert cfg.settle_ms == 250
        assert cfg.capture_timeout == 15.0
        assert cfg.restore_scroll is True
        assert cfg.prompt_save_location is False
        assert cfg.download_dir == Path("screenshots")

    def test_from_env_without_variables_matches_defaults(self):
        assert CaptureConfig.from_env() == CaptureConfig()


class TestValidation:
    @pytest.mark.parametrize("factor", [0.0, -0.5, 1.5])
    def test_overlap_factor_range(self, factor):
        with pytest.raises(ValueError, match="overlap_factor"):
            CaptureConfig(overlap_factor=factor)

    def test_overlap_factor_one_allowed(self):
        assert CaptureConfig(overlap_factor=1.0).overlap_factor == 1.0

    def test_negative_settle(self):
        with pytest.raises(ValueError, match="settle_ms"):
            CaptureConfig(settle_ms=-1)

    def test_zero_settle_allowed(self):
        assert CaptureConfig(settle_ms=0).settle_ms == 0

    @pytest.mark.parametrize("timeout", [0, -1.0])
    def test_capture_timeout_positive(self, timeout):
        with pytest.raises(ValueError, match="capture_timeout"):
            CaptureConfig(capture_timeout=timeout)


class TestFromEnv:
    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PAGESHOT_OVERLAP_FACTOR", "0.75")
        monkeypatch.setenv("PAGESHOT_SETTLE_MS", "500")
        monkeypatch.setenv("PAGESHOT_CAPTURE_TIMEOUT", "3.5")
        monkeypatch.setenv("PAGESHOT_DOWNLOAD_DIR", str(tmp_path))
        cfg = CaptureConfig.from_env()
        assert cfg.overlap_factor == 0.75
        assert cfg.settle_ms == 500
        assert cfg.capture_timeout == 3.5
        assert cfg.download_dir == tmp_path

    def test_overrides_beat_environment(self, monkeypatch):
        monkeypatch.setenv("PAGESHOT_SETTLE_MS", "500")
        assert CaptureConfig.from_env(settle_ms=100).settle_ms == 100

    def test_none_overrides_ignored(self, monkeypatch):
        monkeypatch.setenv("PAGESHOT_SETTLE_MS", "500")
        cfg = CaptureConfig.from_env(settle_ms=None, overlap_factor=None)
        assert cfg.settle_ms == 500
        assert cfg.overlap_factor == 0.9

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("PAGESHOT_OVERLAP_FACTOR", "2")
        with pytest.raises(ValueError, match="overlap_factor"):
            CaptureConfig.from_env()

    def test_non_numeric_environment_value(self, monkeypatch):
        monkeypatch.setenv("PAGESHOT_SETTLE_MS", "soon")
        with pytest.raises(ValueError):
            CaptureConfig.from_env()

    def test_invalid_override_rejected(self):
        with pytest.raises(ValueError, match="overlap_factor"):
            CaptureConfig.from_env(overlap_factor=0.0)
