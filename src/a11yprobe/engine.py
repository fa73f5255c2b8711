# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Orchestrator: run the check battery against one page and post-process.

Pipeline per run_all():
1. Detect UI frameworks, merge framework suppressions with configured ones
2. Run the ordered battery; each check yields a CheckResult (issues | error)
3. Dedup (first seen wins) -> normalize confidence -> suppress -> cap per rule
4. Record RunStats for last_run_stats()

Checks run strictly one after another on the same page: interactive checks
move focus and toggle widgets, so a concurrent check would see a corrupted
precondition. The page is dirty after a run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from . import Issue, RunStats
from .check_timer import CheckTimer
from .checks import CheckFn, RunContext, run_check
from .checks.ax_tree import check_accessibility_tree
from .checks.cross_page import (
    check_consistent_help,
    check_consistent_identification,
    check_consistent_navigation,
)
from .checks.experimental import (
    check_concurrent_input,
    check_motion_actuation,
    check_pointer_cancellation,
    check_pointer_gestures,
)
from .checks.focus import (
    check_focus_not_obscured,
    check_focus_not_obscured_enhanced,
    check_focus_visible,
    check_no_keyboard_trap,
)
from .checks.scenarios import (
    check_carousel_interaction_scenario,
    check_disclosure_interaction_scenario,
    check_drag_drop_keyboard_alternative_scenario,
    check_menu_interaction_scenario,
    check_modal_interaction_scenario,
    check_tabs_interaction_scenario,
)
from .checks.static import (
    check_audio_control,
    check_bypass_blocks,
    check_focus_order,
    check_keyboard_accessible,
    check_pause_stop_hide,
)
from .framework_detector import detect_frameworks
from .issues import cap_per_rule, dedupe_issues, normalize_issue
from .logging_config import scan_scope
from .options import ScanOptions
from .page_handle import PageHandle, as_page_handle
from .suppression import framework_suppressions, should_suppress

logger = logging.getLogger(__name__)

# Always-on battery, in execution order.
CORE_CHECKS: tuple[tuple[str, CheckFn], ...] = (
    ("keyboard_accessible", check_keyboard_accessible),
    ("no_keyboard_trap", check_no_keyboard_trap),
    ("pause_stop_hide", check_pause_stop_hide),
    ("dragging_movements", check_drag_drop_keyboard_alternative_scenario),
    ("bypass_blocks", check_bypass_blocks),
    ("focus_order", check_focus_order),
    ("focus_visible", check_focus_visible),
    ("focus_not_obscured", check_focus_not_obscured),
    ("focus_not_obscured_enhanced", check_focus_not_obscured_enhanced),
    ("modal_interaction_scenario", check_modal_interaction_scenario),
    ("menu_interaction_scenario", check_menu_interaction_scenario),
    ("tabs_interaction_scenario", check_tabs_interaction_scenario),
    ("disclosure_interaction_scenario", check_disclosure_interaction_scenario),
    ("carousel_interaction_scenario", check_carousel_interaction_scenario),
    ("audio_control", check_audio_control),
)

TREE_CHECKS: tuple[tuple[str, CheckFn], ...] = (("accessibility_tree", check_accessibility_tree),)

EXPERIMENTAL_CHECKS: tuple[tuple[str, CheckFn], ...] = (
    ("pointer_gestures", check_pointer_gestures),
    ("pointer_cancellation", check_pointer_cancellation),
    ("motion_actuation", check_motion_actuation),
    ("concurrent_input", check_concurrent_input),
)

CROSS_PAGE_CHECKS: tuple[tuple[str, CheckFn], ...] = (
    ("consistent_navigation", check_consistent_navigation),
    ("consistent_identification", check_consistent_identification),
    ("consistent_help", check_consistent_help),
)

ALL_CHECKS: dict[str, CheckFn] = dict(CORE_CHECKS + TREE_CHECKS + EXPERIMENTAL_CHECKS + CROSS_PAGE_CHECKS)


class A11yProbe:
    """Keyboard-driven WCAG checks against one live page.

    Args:
        page: A PageHandle, or a Playwright Page (wrapped automatically).
        options: ScanOptions, a camelCase/snake_case mapping, or None for defaults.

    Raises:
        OptionsError: options fail validation.
        TypeError: page is neither a PageHandle nor a Playwright Page.
    """

    def __init__(self, page: Any, options: ScanOptions | Mapping | None = None) -> None:
        self.page: PageHandle = as_page_handle(page)
        self.options = ScanOptions.from_mapping(options)
        self._last_run_stats: RunStats | None = None

    def battery(self) -> list[tuple[str, CheckFn]]:
        """Checks run_all() executes with the current options, in order."""
        checks = list(CORE_CHECKS)
        if self.options.include_accessibility_tree_checks:
            checks.extend(TREE_CHECKS)
        if self.options.include_experimental_checks:
            checks.extend(EXPERIMENTAL_CHECKS)
        if self.options.include_multi_page_checks:
            checks.extend(CROSS_PAGE_CHECKS)
        return checks

    async def new_context(self, page_snapshots: Sequence[Mapping] | None = None) -> RunContext:
        """Fresh per-run context: detected frameworks plus merged suppressions."""
        timer = CheckTimer()
        frameworks = await detect_frameworks(self.page)
        suppressions = [*self.options.suppressions, *framework_suppressions(frameworks)]
        return RunContext(
            page=self.page,
            options=self.options,
            frameworks=frameworks,
            suppressions=suppressions,
            timer=timer,
            page_snapshots=list(page_snapshots or []),
        )

    async def run_all(
        self, page_snapshots: Sequence[Mapping] | None = None, *, scan_id: str | None = None
    ) -> list[Issue]:
        """Run the whole battery and return final issues.

        Never raises for check failures; inspect last_run_stats().checks
        for per-check errors. Cancellation is propagated after recording
        partial stats. ``scan_id`` is bound to every log record of the run.
        """
        with scan_scope(scan_id):
            ctx = await self.new_context(page_snapshots)
            raw: list[Issue] = []
            try:
                for name, fn in self.battery():
                    result = await run_check(name, fn, ctx)
                    raw.extend(result.issues)
            except asyncio.CancelledError:
                logger.info("Run cancelled during %s", ctx.timer.current_check or "setup")
                self._finalize(ctx, raw)
                raise
            return self._finalize(ctx, raw)

    def _finalize(self, ctx: RunContext, raw: list[Issue]) -> list[Issue]:
        deduped = dedupe_issues(raw)
        normalized = [normalize_issue(i, self.options.min_confidence_for_auto_raise) for i in deduped]
        kept = [i for i in normalized if not should_suppress(i, ctx.suppressions)]
        final = cap_per_rule(kept, self.options.max_issues_per_rule)

        stats = RunStats(
            total_duration_ms=ctx.timer.total_ms(),
            raw_issue_count=len(raw),
            deduped_issue_count=len(deduped),
            final_issue_count=len(final),
            suppressed_issue_count=len(normalized) - len(kept),
            capped_issue_count=len(kept) - len(final),
            frameworks=list(ctx.frameworks),
            checks=ctx.timer.timings(),
        )
        self._last_run_stats = stats
        logger.info(
            "a11y run: %d raw -> %d deduped -> %d final issues (%d suppressed, %d capped), %d/%d checks failed, %.0fms",
            stats.raw_issue_count,
            stats.deduped_issue_count,
            stats.final_issue_count,
            stats.suppressed_issue_count,
            stats.capped_issue_count,
            len(stats.failed_checks),
            len(stats.checks),
            stats.total_duration_ms,
        )
        return final

    def last_run_stats(self) -> RunStats | None:
        """Stats of the most recent run_all(), or None before the first run."""
        return self._last_run_stats

    get_last_run_stats = last_run_stats

    # ── Individual checks ──────────────────────────────────────────────
    #
    # Each runs one check in a fresh context and returns normalized issues
    # (no suppression or capping). A failing check raises CheckError.

    async def run_one(self, name: str, page_snapshots: Sequence[Mapping] | None = None) -> list[Issue]:
        fn = ALL_CHECKS.get(name)
        if fn is None:
            raise KeyError(f"Unknown check: {name}")
        ctx = await self.new_context(page_snapshots)
        result = await run_check(name, fn, ctx)
        if result.error is not None:
            raise result.error
        return [normalize_issue(i, self.options.min_confidence_for_auto_raise) for i in dedupe_issues(result.issues)]

    async def check_keyboard_accessible(self) -> list[Issue]:
        return await self.run_one("keyboard_accessible")

    async def check_no_keyboard_trap(self) -> list[Issue]:
        return await self.run_one("no_keyboard_trap")

    async def check_pause_stop_hide(self) -> list[Issue]:
        return await self.run_one("pause_stop_hide")

    async def check_drag_drop_keyboard_alternative_scenario(self) -> list[Issue]:
        return await self.run_one("dragging_movements")

    async def check_bypass_blocks(self) -> list[Issue]:
        return await self.run_one("bypass_blocks")

    async def check_focus_order(self) -> list[Issue]:
        return await self.run_one("focus_order")

    async def check_focus_visible(self) -> list[Issue]:
        return await self.run_one("focus_visible")

    async def check_focus_not_obscured(self) -> list[Issue]:
        return await self.run_one("focus_not_obscured")

    async def check_focus_not_obscured_enhanced(self) -> list[Issue]:
        return await self.run_one("focus_not_obscured_enhanced")

    async def check_modal_interaction_scenario(self) -> list[Issue]:
        return await self.run_one("modal_interaction_scenario")

    async def check_menu_interaction_scenario(self) -> list[Issue]:
        return await self.run_one("menu_interaction_scenario")

    async def check_tabs_interaction_scenario(self) -> list[Issue]:
        return await self.run_one("tabs_interaction_scenario")

    async def check_disclosure_interaction_scenario(self) -> list[Issue]:
        return await self.run_one("disclosure_interaction_scenario")

    async def check_carousel_interaction_scenario(self) -> list[Issue]:
        return await self.run_one("carousel_interaction_scenario")

    async def check_audio_control(self) -> list[Issue]:
        return await self.run_one("audio_control")

    async def check_accessibility_tree(self) -> list[Issue]:
        return await self.run_one("accessibility_tree")

    async def check_pointer_gestures(self) -> list[Issue]:
        return await self.run_one("pointer_gestures")

    async def check_pointer_cancellation(self) -> list[Issue]:
        return await self.run_one("pointer_cancellation")

    async def check_motion_actuation(self) -> list[Issue]:
        return await self.run_one("motion_actuation")

    async def check_concurrent_input(self) -> list[Issue]:
        return await self.run_one("concurrent_input")

    async def check_consistent_navigation(self, page_snapshots: Sequence[Mapping] | None = None) -> list[Issue]:
        return await self.run_one("consistent_navigation", page_snapshots)

    async def check_consistent_identification(self, page_snapshots: Sequence[Mapping] | None = None) -> list[Issue]:
        return await self.run_one("consistent_identification", page_snapshots)

    async def check_consistent_help(self, page_snapshots: Sequence[Mapping] | None = None) -> list[Issue]:
        return await self.run_one("consistent_help", page_snapshots)
