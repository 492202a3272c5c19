# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""pageshot CLI: capture a full-page screenshot of a URL.

Usage:
    pageshot capture --url URL [-o DIR] [--overlap F] [--settle-ms N] [--viewport WxH] [--save-as]
    python -m pageshot.cli capture --url URL
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

from .browser_session import BrowserConfig
from .config import CaptureConfig
from .controller import CaptureController, CaptureOutcome

_PROGRESS_POLL_SECONDS = 0.1


def _parse_viewport(value: str) -> tuple[int, int]:
    """Parse ``WIDTHxHEIGHT`` (e.g. ``1280x800``)."""
    width, sep, height = value.lower().partition("x")
    try:
        if not sep:
            raise ValueError(value)
        w, h = int(width), int(height)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {value!r}") from None
    if w <= 0 or h <= 0:
        raise argparse.ArgumentTypeError(f"viewport must be positive, got {value!r}")
    return w, h


def _parse_overlap(value: str) -> float:
    try:
        factor = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if not 0.0 < factor <= 1.0:
        raise argparse.ArgumentTypeError(f"overlap factor must be in (0, 1], got {factor}")
    return factor


async def _watch_progress(controller: CaptureController, target: str, set_status: Callable[[str], None]) -> None:
    """Mirror the session state into the spinner text until cancelled."""
    from ._progress import describe_state
    from .driver import offsets_for

    last = ""
    while True:
        session = controller.session_for(target)
        if session is not None:
            total = offsets_for(session.geometry, controller.config.overlap_factor) if session.geometry else None
            text = describe_state(session.state, session.tile_index, len(total) if total else None)
            if text != last:
                set_status(text)
                last = text
        await asyncio.sleep(_PROGRESS_POLL_SECONDS)


async def _capture_live(url: str, *, browser_config: BrowserConfig, capture_config: CaptureConfig) -> CaptureOutcome:
    """Open *url* in Chromium and capture it."""
    from ._progress import status_spinner
    from .browser_session import create_session
    from .delivery import FileDownloadSink
    from .playwright_host import PlaywrightHost

    host = PlaywrightHost(FileDownloadSink(capture_config.download_dir))
    controller = CaptureController(host, capture_config)

    with status_spinner(f"Capturing {url}...") as set_status:
        async with create_session(browser_config) as browser:
            set_status(f"Loading {url}...")
            await browser.navigate(url)
            target = host.register(browser.page)
            watcher = asyncio.create_task(_watch_progress(controller, target, set_status))
            try:
                return await controller.capture_page(target)
            finally:
                watcher.cancel()
                with suppress(asyncio.CancelledError):
                    await watcher
                host.unregister(target)


def cmd_capture(args: argparse.Namespace) -> None:
    """Capture a full-page screenshot of --url."""
    from ._progress import print_step

    browser_config = BrowserConfig(headless=not args.headed)
    if args.viewport:
        browser_config.viewport_width, browser_config.viewport_height = args.viewport

    capture_config = CaptureConfig.from_env(
        overlap_factor=args.overlap,
        settle_ms=args.settle_ms,
        download_dir=Path(args.output) if args.output else None,
        prompt_save_location=True if args.save_as else None,
    )

    outcome = asyncio.run(_capture_live(args.url, browser_config=browser_config, capture_config=capture_config))

    print(outcome.path)
    geom = outcome.geometry
    print_step(f"Page: {geom.total_width}x{geom.total_height}px, {outcome.tile_count} tile(s)")
    print_step("Timings: " + ", ".join(f"{k}={v:.0f}ms" for k, v in outcome.timings.items()))
    for warning in outcome.warnings:
        print(f"Warning: {warning}", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Full-page screenshots stitched from scrolled viewport captures",
        prog="pageshot",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    _capture_epilog = """\
examples:
  %(prog)s --url https://example.com                   Save into ./screenshots/
  %(prog)s --url https://example.com -o shots/         Save into shots/
  %(prog)s --url https://example.com --overlap 1.0     No overlap between tiles
  %(prog)s --url https://example.com --settle-ms 800   Wait longer for lazy content
"""
    p_capture = subparsers.add_parser(
        "capture",
        help="Capture a full-page screenshot of a URL",
        epilog=_capture_epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p_capture.add_argument("--url", type=str, metavar="URL", required=True, help="Page to capture")
    p_capture.add_argument("-o", "--output", type=str, metavar="DIR", help="Directory to save into")
    p_capture.add_argument(
        "--overlap",
        type=_parse_overlap,
        metavar="F",
        help="Fraction of the viewport advanced per tile, in (0, 1] (default: 0.9)",
    )
    p_capture.add_argument("--settle-ms", type=int, metavar="N", help="Wait after each scroll (default: 250)")
    p_capture.add_argument(
        "--viewport", type=_parse_viewport, metavar="WxH", help="Browser viewport (default: 1280x800)"
    )
    p_capture.add_argument("--save-as", action="store_true", help="Ask where to save the image")
    p_capture.add_argument("--headed", action="store_true", help="Show the browser window")

    commands = {"capture": cmd_capture}

    args = parser.parse_args(argv)

    from .logging_config import configure

    configure(json_output=args.json_logs, level="DEBUG" if args.verbose else "WARNING")

    try:
        commands[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except SystemExit:
        raise
    except Exception as e:
        from .problem_details import from_exception

        problem = from_exception(e)
        print(problem.to_cli_text(), file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
