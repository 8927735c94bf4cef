# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Progress indicators for CLI output.

Spinners and step lines go to stderr, and only when stderr is a terminal, so
piped reports stay machine-readable.
"""

from __future__ import annotations

import contextlib
import sys
from collections.abc import Generator

from rich.console import Console


def _interactive() -> bool:
    return sys.stderr.isatty()


@contextlib.contextmanager
def status_spinner(msg: str) -> Generator[None, None, None]:
    """Show a spinner with *msg* while the block runs.  Silent when piped."""
    if not _interactive():
        yield
        return
    console = Console(stderr=True)
    with console.status(msg):
        yield


def print_step(msg: str) -> None:
    """Print a dimmed step line to stderr (interactive only)."""
    if _interactive():
        Console(stderr=True).print(f"[dim]{msg}[/dim]", highlight=False)
