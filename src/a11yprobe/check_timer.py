# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Per-check timer for run statistics.

Created before the check battery starts so partial timings survive an
external cancellation (caller-side asyncio.wait_for around run_all).
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from . import CheckTiming


@dataclass(slots=True)
class CheckRecord:
    name: str
    start_ns: int
    end_ns: int = 0
    issues: int = 0
    error: str | None = None


class CheckTimer:
    """Track check start/stop for per-check timing."""

    __slots__ = ("_records", "_current", "_start_ns")

    def __init__(self) -> None:
        self._records: list[CheckRecord] = []
        self._current: CheckRecord | None = None
        self._start_ns: int = time.monotonic_ns()

    def start(self, name: str) -> None:
        """End the previous check (if still open) and start a new one."""
        now = time.monotonic_ns()
        if self._current is not None:
            self._current.end_ns = now
            self._records.append(self._current)
        self._current = CheckRecord(name=name, start_ns=now)

    def finish(self, issues: int = 0, error: str | None = None) -> None:
        """Close the current check with its outcome. No-op when none is open."""
        if self._current is None:
            return
        self._current.end_ns = time.monotonic_ns()
        self._current.issues = issues
        self._current.error = error
        self._records.append(self._current)
        self._current = None

    @property
    def current_check(self) -> str | None:
        return self._current.name if self._current else None

    def total_ms(self) -> float:
        return round((time.monotonic_ns() - self._start_ns) / 1e6, 1)

    def timings(self) -> list[CheckTiming]:
        """CheckTiming per finished check, in execution order."""
        return [
            CheckTiming(
                check=r.name,
                duration_ms=round((r.end_ns - r.start_ns) / 1e6, 1),
                issues=r.issues,
                error=r.error,
            )
            for r in self._records
        ]
