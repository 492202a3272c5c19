# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Progress indicators for CLI output.

Uses ``rich`` for interactive terminals when available,
falls back to simple stderr prints when ``rich`` is not installed
or output is piped.
"""

from __future__ import annotations

import contextlib
import sys
from collections.abc import Callable, Generator

try:
    from rich.console import Console

    _HAS_RICH = True
except ImportError:
    _HAS_RICH = False


def _noop(msg: str) -> None:
    pass


@contextlib.contextmanager
def status_spinner(msg: str) -> Generator[Callable[[str], None], None, None]:
    """Show a spinner with *msg* while active; yields a function that replaces the text.

    Silent when stderr is not a TTY (piped output).
    Falls back to plain prints when ``rich`` is unavailable.
    """
    if not sys.stderr.isatty():
        yield _noop
        return

    if _HAS_RICH:
        console = Console(stderr=True)
        with console.status(msg) as status:
            yield lambda text: status.update(text)
    else:
        print(msg, file=sys.stderr)
        yield lambda text: print(text, file=sys.stderr)


def describe_state(state: str, tile_index: int, tile_total: int | None) -> str:
    """One-line status for a capture session state."""
    if tile_index >= 0 and state in ("scrolling", "settling", "capturing"):
        of = f"/{tile_total}" if tile_total else ""
        return f"Tile {tile_index + 1}{of}: {state}…"
    return f"{state.capitalize()}…"


def print_step(msg: str) -> None:
    """Print a step message to stderr (only when interactive)."""
    if sys.stderr.isatty():
        print(msg, file=sys.stderr)
