# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge for the CLI.

Modules keep logging through ``logging.getLogger(__name__)``; this routes those
records through structlog renderers on stderr so stdout stays clean for reports.
Leaf module: no other linkaudit imports.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Chatty third-party loggers; raised to WARNING unless running at DEBUG
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def configure(*, json_output: bool = False, level: str = "INFO") -> None:
    """Install the structlog formatter on the root logger.

    Args:
        json_output: JSON lines (machine consumption) instead of the console renderer.
        level: Root logger level name.
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(root_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(root_level if root_level <= logging.DEBUG else logging.WARNING)


def bind_scan_context(**values: object) -> None:
    """Attach key/values (e.g. ``url=...``) to every log line until cleared."""
    structlog.contextvars.bind_contextvars(**values)


def clear_scan_context() -> None:
    structlog.contextvars.clear_contextvars()
