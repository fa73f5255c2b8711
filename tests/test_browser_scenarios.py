# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""End-to-end scenario checks against real pages rendered in Chromium.

Skipped when Chromium cannot be launched (``playwright install chromium``).
Run with ``pytest -m browser``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import pytest

from a11yprobe import A11yProbe

pytestmark = pytest.mark.browser

_FAST = {"settleMs": 30, "includeAccessibilityTreeChecks": False}


@asynccontextmanager
async def loaded_probe(html: str, **options):
    """A11yProbe over a fresh Chromium page with ``html`` as its content."""
    from playwright.async_api import Error as PlaywrightError
    from playwright.async_api import async_playwright

    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(headless=True)
        except PlaywrightError as e:
            pytest.skip(f"Chromium unavailable: {e}")
        try:
            page = await browser.new_page()
            await page.set_content(html)
            yield A11yProbe(page, {**_FAST, **options})
        finally:
            await browser.close()


# =========================================================================
# Modal
# =========================================================================

_MODAL_NO_FOCUS = """
<button id="open" aria-haspopup="dialog" aria-controls="dlg"
  onclick="document.getElementById('dlg').hidden = false">Open</button>
<div id="dlg" role="dialog" hidden>
  <p>Hello</p><button>Close</button>
</div>
<script>
  document.addEventListener("keydown", (e) => {
    if (e.key === "Escape") document.getElementById("dlg").hidden = true;
  });
</script>
"""

_MODAL_GOOD = """
<button id="open" aria-haspopup="dialog" aria-controls="dlg">Open</button>
<div id="dlg" role="dialog" hidden>
  <button id="close">Close</button>
</div>
<script>
  const trigger = document.getElementById("open");
  const dlg = document.getElementById("dlg");
  trigger.addEventListener("click", () => { dlg.hidden = false; document.getElementById("close").focus(); });
  document.addEventListener("keydown", (e) => {
    if (e.key === "Escape" && !dlg.hidden) { dlg.hidden = true; trigger.focus(); }
  });
</script>
"""


class TestModalInBrowser:
    @pytest.mark.asyncio
    async def test_focus_not_moved_into_dialog(self):
        async with loaded_probe(_MODAL_NO_FOCUS) as probe:
            issues = await probe.check_modal_interaction_scenario()
        messages = [i.message for i in issues]
        assert "Dialog opened but focus did not move into it" in messages

    @pytest.mark.asyncio
    async def test_well_behaved_dialog(self):
        async with loaded_probe(_MODAL_GOOD) as probe:
            assert await probe.check_modal_interaction_scenario() == []


# =========================================================================
# Menu
# =========================================================================

_MENU_GOOD = """
<button id="mb" aria-haspopup="menu" aria-expanded="false" aria-controls="m">Actions</button>
<ul id="m" role="menu" hidden>
  <li role="menuitem" tabindex="-1">Edit</li>
  <li role="menuitem" tabindex="-1">Delete</li>
</ul>
<script>
  const btn = document.getElementById("mb");
  const menu = document.getElementById("m");
  const items = menu.querySelectorAll("[role=menuitem]");
  const close = () => { menu.hidden = true; btn.setAttribute("aria-expanded", "false"); btn.focus(); };
  btn.addEventListener("click", () => { menu.hidden = false; btn.setAttribute("aria-expanded", "true"); });
  document.addEventListener("keydown", (e) => {
    if (menu.hidden) return;
    if (e.key === "ArrowDown") { e.preventDefault(); items[0].focus(); }
    if (e.key === "Escape") close();
  });
</script>
"""


class TestMenuInBrowser:
    @pytest.mark.asyncio
    async def test_conforming_menu_passes(self):
        async with loaded_probe(_MENU_GOOD) as probe:
            assert await probe.check_menu_interaction_scenario() == []


# =========================================================================
# Carousel
# =========================================================================

_CAROUSEL_DEAD = """
<div class="carousel" aria-roledescription="carousel">
  <div class="slide active">One</div>
  <div class="slide">Two</div>
  <div class="slide">Three</div>
  <button aria-label="Next slide">&rsaquo;</button>
</div>
"""


class TestCarouselInBrowser:
    @pytest.mark.asyncio
    async def test_next_without_handler(self):
        async with loaded_probe(_CAROUSEL_DEAD) as probe:
            (issue,) = await probe.check_carousel_interaction_scenario()
        assert "next control" in issue.message
        assert issue.rule_id == "wcag-2.1.1"


# =========================================================================
# Drag and drop
# =========================================================================

_DRAG_ONLY = """
<ul>
  <li id="a" draggable="true">Alpha</li>
  <li id="b" draggable="true">Beta</li>
</ul>
"""

_DRAG_WITH_BUTTONS = """
<ul>
  <li id="a" draggable="true" tabindex="0">Alpha
    <button>Move up</button><button>Move down</button>
  </li>
  <li id="b" draggable="true" tabindex="0">Beta
    <button>Move up</button><button>Move down</button>
  </li>
</ul>
"""


class TestDragInBrowser:
    @pytest.mark.asyncio
    async def test_pointer_only_drag_flagged(self):
        async with loaded_probe(_DRAG_ONLY) as probe:
            issues = await probe.check_drag_drop_keyboard_alternative_scenario()
        assert len(issues) == 2
        assert all(i.impact == "serious" for i in issues)
        assert all("not keyboard focusable" in i.evidence for i in issues)

    @pytest.mark.asyncio
    async def test_move_buttons_count_as_alternative(self):
        async with loaded_probe(_DRAG_WITH_BUTTONS) as probe:
            assert await probe.check_drag_drop_keyboard_alternative_scenario() == []


# =========================================================================
# Keyboard trap
# =========================================================================

_TRAP = """
<a href="#">Before</a>
<input id="trap" aria-label="Trapped">
<a href="#">After</a>
<script>
  const trap = document.getElementById("trap");
  trap.addEventListener("keydown", (e) => {
    if (e.key === "Tab" || e.key === "Escape") { e.preventDefault(); trap.focus(); }
  });
  trap.focus();
</script>
"""

_NO_TRAP = """
<a href="#one">One</a>
<button>Two</button>
<input aria-label="Three">
"""


_LOOK_ALIKE_LINKS = """
<nav>
""" + "\n".join(f'  <a class="nav-link" href="#s{i}">Section {i}</a>' for i in range(10)) + """
</nav>
<footer>
""" + "\n".join(f'  <a href="#f{i}">Footer {i}</a>' for i in range(10)) + """
</footer>
"""


class TestKeyboardTrapInBrowser:
    @pytest.mark.asyncio
    async def test_trap_detected(self):
        async with loaded_probe(_TRAP) as probe:
            (issue,) = await probe.check_no_keyboard_trap()
        assert issue.impact == "serious"
        assert issue.rule_id == "wcag-2.1.2"

    @pytest.mark.asyncio
    async def test_normal_page_not_flagged(self):
        async with loaded_probe(_NO_TRAP) as probe:
            assert await probe.check_no_keyboard_trap() == []

    @pytest.mark.asyncio
    async def test_look_alike_links_not_flagged(self):
        async with loaded_probe(_LOOK_ALIKE_LINKS) as probe:
            assert await probe.check_no_keyboard_trap() == []


# =========================================================================
# Full run
# =========================================================================


class TestRunAllInBrowser:
    @pytest.mark.asyncio
    async def test_run_all_records_every_check(self):
        async with loaded_probe(_NO_TRAP, includeAccessibilityTreeChecks=True) as probe:
            await probe.run_all()
            stats = probe.last_run_stats()
        assert len(stats.checks) == len(probe.battery())
        assert stats.failed_checks == []
