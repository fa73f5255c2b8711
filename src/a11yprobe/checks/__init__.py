# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Check battery: shared run context, result type and page helpers.

Every check is ``async def check_x(ctx: RunContext) -> list[Issue]``.
Checks may raise; ``run_check()`` turns that into a CheckResult carrying
a CheckError so the orchestrator never relies on exception suppression.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .. import Candidate, Issue
from ..check_timer import CheckTimer
from ..errors import CheckError
from ..issues import build_issue
from ..locator import page_script
from ..options import ScanOptions, SuppressionRule
from ..page_handle import PageHandle

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Per-run state passed through the check pipeline."""

    page: PageHandle
    options: ScanOptions
    frameworks: list[str] = field(default_factory=list)
    suppressions: list[SuppressionRule] = field(default_factory=list)
    timer: CheckTimer = field(default_factory=CheckTimer)
    page_snapshots: list[dict] = field(default_factory=list)  # cross-page checks only

    def issue(self, **kwargs: Any) -> Issue:
        """build_issue() with the run's default impact."""
        kwargs.setdefault("default_impact", self.options.impact)
        return build_issue(**kwargs)

    async def query(self, body: str, arg: dict | None = None) -> Any:
        """Evaluate a check body (wrapped with locator helpers) in the page."""
        payload = {"maxHtml": self.options.max_html_length}
        if arg:
            payload.update(arg)
        return await self.page.evaluate(page_script(body), payload)

    async def candidates(self, body: str, arg: dict | None = None, limit: int | None = None) -> list[Candidate]:
        """Run a page-side discovery query returning a list of candidate dicts."""
        raw = await self.query(body, arg)
        if not isinstance(raw, list):
            return []
        found = [Candidate.from_raw(r) for r in raw if isinstance(r, dict) and r.get("selector")]
        return found[:limit] if limit is not None else found

    async def press(self, key: str, settle_ms: int | None = None) -> None:
        """Press a key, then let transitions settle before re-querying."""
        await self.page.press(key)
        await self.page.pause(self.options.settle_ms if settle_ms is None else settle_ms)


CheckFn = Callable[[RunContext], Awaitable[list[Issue]]]


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check: its issues, or the error that stopped it."""

    name: str
    issues: list[Issue] = field(default_factory=list)
    error: CheckError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_check(name: str, fn: CheckFn, ctx: RunContext) -> CheckResult:
    """Run one check, timing it and capturing any failure as a CheckResult."""
    ctx.timer.start(name)
    try:
        issues = await fn(ctx)
    except asyncio.CancelledError:
        ctx.timer.finish(error="cancelled")
        raise
    except Exception as e:
        err = CheckError.wrap(name, e)
        logger.warning("Check %s failed: %s", name, err, exc_info=logger.isEnabledFor(logging.DEBUG))
        ctx.timer.finish(issues=0, error=str(err))
        return CheckResult(name=name, error=err)
    issues = list(issues or [])
    ctx.timer.finish(issues=len(issues))
    logger.debug("Check %s: %d issues", name, len(issues))
    return CheckResult(name=name, issues=issues)
