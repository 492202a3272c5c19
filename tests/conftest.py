# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import pageshot  # noqa: F401
except ImportError:
    raise ImportError("pageshot is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from tests._fake_host import FakeHost


@pytest.fixture(autouse=True)
def _block_real_browser(request, monkeypatch):
    """Safety net: prevent real Chromium launches in unit tests.

    Tests that mock Playwright should patch
    ``pageshot.browser_session.async_playwright`` themselves; that patch
    takes priority over this fixture. Opt out with::

        @pytest.mark.allow_real_browser
    """
    if "allow_real_browser" in request.keywords:
        return

    def _no_real_playwright():
        raise RuntimeError(
            "Test tried to start a real Playwright instance. "
            "Patch 'pageshot.browser_session.async_playwright' in your test."
        )

    monkeypatch.setattr("pageshot.browser_session.async_playwright", _no_real_playwright)


@pytest.fixture
def host() -> FakeHost:
    """A 100x2500 page seen through a 100x1000 viewport."""
    return FakeHost(total_width=100, total_height=2500, viewport_width=100, viewport_height=1000)
