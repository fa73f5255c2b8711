# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Logging setup for scans: structlog rendering over stdlib loggers.

Every a11yprobe module logs via ``logging.getLogger(__name__)``. This module
installs a single stderr handler whose formatter runs those records through
structlog, so check warnings and run summaries come out either as console
lines or as JSON lines for scan workers.

The library never calls ``configure()`` itself; the embedding worker or CLI
calls it once at startup (re-exported as ``a11yprobe.configure_logging``).
``A11yProbe.run_all(scan_id=...)`` binds the id through ``scan_scope()`` so
every check log line carries it.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

# Libraries that log per-call chatter at DEBUG (PNG chunk parsing, CDP traffic)
_NOISY_LOGGERS = ("PIL", "asyncio")


def configure(*, json_output: bool = False, level: str = "INFO") -> None:
    """Route stdlib logging through structlog.

    Args:
        json_output: True for JSON lines (scan workers), False for console output.
        level: Root logger level; unknown names fall back to INFO.
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))


def bind_scan_id(scan_id: str) -> None:
    """Attach ``scan_id`` to every log record of the current context."""
    structlog.contextvars.bind_contextvars(scan_id=scan_id)


def clear_scan_id() -> None:
    structlog.contextvars.unbind_contextvars("scan_id")


@contextmanager
def scan_scope(scan_id: str | None) -> Iterator[None]:
    """Bind ``scan_id`` for the records logged inside the block.

    A previously bound id is restored on exit. ``None`` binds nothing.
    """
    if not scan_id:
        yield
        return
    with structlog.contextvars.bound_contextvars(scan_id=scan_id):
        yield
