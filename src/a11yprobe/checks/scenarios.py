# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Interactive scenario checks: drive keyboard sequences against widgets.

Each scenario discovers up to ``max_component_checks`` candidates with one
page-side query, then per candidate does a focus -> key -> re-query round
trip and compares the before/after state. A candidate that throws is
logged and skipped; its siblings are still processed.

Scenarios leave widgets in whatever state the page ends up in. Callers
must treat the page as dirty after a run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .. import Candidate, Issue
from . import RunContext

logger = logging.getLogger(__name__)

ScenarioStep = Callable[[RunContext, Candidate], Awaitable[list[Issue]]]


async def _for_each_candidate(
    ctx: RunContext,
    scenario: str,
    candidates: list[Candidate],
    step: ScenarioStep,
) -> list[Issue]:
    issues: list[Issue] = []
    for cand in candidates:
        try:
            issues.extend(await step(ctx, cand))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("%s: candidate %s skipped (%s: %s)", scenario, cand.selector, type(e).__name__, e)
    return issues


# ── Modal dialog ──────────────────────────────────────────────────────

_MODAL_CANDIDATES_JS = """\
  const DIALOG_ROLES = ["dialog", "alertdialog"];
  const isDialog = (t) => !!t && (t.localName === "dialog" || DIALOG_ROLES.includes(t.getAttribute("role")));
  const out = [];
  const seen = new Set();
  const triggers = document.querySelectorAll(
    "[aria-haspopup=dialog], [data-bs-toggle=modal], [data-toggle=modal], [aria-controls]"
  );
  for (const el of triggers) {
    if (seen.has(el) || !isVisible(el)) continue;
    let target = ctrlTarget(el);
    const dataTarget = el.dataset.bsTarget || el.dataset.target;
    if (!target && dataTarget) {
      try { target = document.querySelector(dataTarget); } catch (e) {}
    }
    const explicit = el.getAttribute("aria-haspopup") === "dialog" || el.matches("[data-bs-toggle=modal], [data-toggle=modal]");
    if (!explicit && !isDialog(target)) continue;
    seen.add(el);
    out.push({selector: selectorOf(el), html: snippet(el), controls: target && target.id ? target.id : ""});
    if (out.length >= arg.limit) break;
  }
  return out;
"""

_MODAL_STATE_JS = """\
  const dialogs = Array.from(
    document.querySelectorAll("[role=dialog], [role=alertdialog], dialog, [aria-modal=true]")
  ).filter(isVisible);
  const target = byId(arg.controls);
  const active = document.activeElement;
  const trigger = document.querySelector(arg.trigger);
  const open = dialogs.concat(target && isVisible(target) ? [target] : []);
  return {
    count: dialogs.length,
    targetVisible: !!target && isVisible(target),
    focusInDialog: !!active && open.some((d) => d === active || d.contains(active)),
    focusOnTrigger: !!trigger && active === trigger,
    active: selectorOf(active),
  };
"""


def _modal_opened(before: dict, after: dict) -> bool:
    if after.get("count", 0) > before.get("count", 0):
        return True
    return bool(after.get("targetVisible")) and not before.get("targetVisible")


async def _modal_step(ctx: RunContext, cand: Candidate) -> list[Issue]:
    arg = {"trigger": cand.selector, "controls": cand.attrs.get("controls", "")}
    before = await ctx.query(_MODAL_STATE_JS, arg)
    if before.get("targetVisible"):
        return []  # already open; nothing to observe

    await ctx.page.focus(cand.selector)
    await ctx.press("Enter")
    after = await ctx.query(_MODAL_STATE_JS, arg)
    opened_with = "Enter"
    if not _modal_opened(before, after):
        await ctx.page.focus(cand.selector)
        await ctx.press("Space")
        after = await ctx.query(_MODAL_STATE_JS, arg)
        opened_with = "Space"
    if not _modal_opened(before, after):
        return []

    issues: list[Issue] = []
    if not after.get("focusInDialog"):
        issues.append(
            ctx.issue(
                impact="serious",
                rule_id="wcag-2.4.3",
                message="Dialog opened but focus did not move into it",
                description="When a modal dialog opens, keyboard focus should move inside it.",
                selector=cand.selector,
                html=cand.html,
                evidence=[f"opened with {opened_with}", f"active element: {after.get('active')}"],
            )
        )

    await ctx.press("Escape")
    closed = await ctx.query(_MODAL_STATE_JS, arg)
    if arg["controls"] and after.get("targetVisible"):
        still_open = bool(closed.get("targetVisible"))
    else:
        still_open = closed.get("count", 0) >= after.get("count", 0)

    if still_open:
        issues.append(
            ctx.issue(
                impact="serious",
                rule_id="wcag-2.1.2",
                message="Dialog did not close with Escape",
                description="Users must be able to leave a modal dialog with the keyboard.",
                selector=cand.selector,
                html=cand.html,
                evidence=[f"open dialogs after Escape: {closed.get('count', 0)}"],
            )
        )
    elif not closed.get("focusOnTrigger"):
        issues.append(
            ctx.issue(
                impact="moderate",
                rule_id="wcag-2.4.3",
                message="Focus did not return to the trigger after the dialog closed",
                description="Closing a dialog should return focus to the control that opened it.",
                selector=cand.selector,
                html=cand.html,
                evidence=[f"active element after close: {closed.get('active')}"],
            )
        )
    return issues


async def check_modal_interaction_scenario(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_MODAL_CANDIDATES_JS, {"limit": ctx.options.max_component_checks})
    return await _for_each_candidate(ctx, "modal", found, _modal_step)


# ── Menu button ───────────────────────────────────────────────────────

_MENU_CANDIDATES_JS = """\
  const out = [];
  for (const el of document.querySelectorAll("[aria-haspopup], [aria-controls][aria-expanded]")) {
    if (!isVisible(el)) continue;
    const popup = el.getAttribute("aria-haspopup");
    const target = ctrlTarget(el);
    const isMenu = popup === "menu" || popup === "true" ||
      (!popup && !!target && target.getAttribute("role") === "menu");
    if (!isMenu || el.getAttribute("role") === "combobox") continue;
    out.push({
      selector: selectorOf(el), html: snippet(el),
      controls: target && target.id ? target.id : (el.getAttribute("aria-controls") || ""),
    });
    if (out.length >= arg.limit) break;
  }
  return out;
"""

_MENU_STATE_JS = """\
  const trigger = document.querySelector(arg.trigger);
  const target = byId(arg.controls);
  const active = document.activeElement;
  return {
    expanded: trigger ? trigger.getAttribute("aria-expanded") : null,
    hasTarget: !!target,
    targetRole: target ? target.getAttribute("role") : null,
    targetVisible: !!target && isVisible(target),
    focusOnTrigger: !!trigger && active === trigger,
    focusOnMenuItem: !!active && /^menuitem/.test(active.getAttribute("role") || ""),
    focusInTarget: !!target && !!active && target.contains(active),
    active: selectorOf(active),
  };
"""


def _menu_opened(before: dict, after: dict) -> bool:
    if after.get("expanded") == "true" and before.get("expanded") != "true":
        return True
    return bool(after.get("targetVisible")) and not before.get("targetVisible")


async def _menu_step(ctx: RunContext, cand: Candidate) -> list[Issue]:
    arg = {"trigger": cand.selector, "controls": cand.attrs.get("controls", "")}
    await ctx.page.focus(cand.selector)
    before = await ctx.query(_MENU_STATE_JS, arg)
    if before.get("expanded") == "true":
        return []

    await ctx.press("Enter")
    after = await ctx.query(_MENU_STATE_JS, arg)
    if not _menu_opened(before, after):
        await ctx.page.focus(cand.selector)
        await ctx.press("Space")
        after = await ctx.query(_MENU_STATE_JS, arg)

    def _issue(message: str, rule_id: str, description: str, evidence: list[str]) -> Issue:
        return ctx.issue(
            impact="moderate",
            rule_id=rule_id,
            message=message,
            description=description,
            selector=cand.selector,
            html=cand.html,
            evidence=evidence,
        )

    issues: list[Issue] = []
    if after.get("hasTarget") and after.get("targetRole") != "menu":
        issues.append(
            _issue(
                'Menu trigger controls an element without role="menu"',
                "wcag-4.1.2",
                "aria-haspopup menu buttons should control an element with role=menu.",
                [f"controlled role: {after.get('targetRole') or 'none'}"],
            )
        )
    if not _menu_opened(before, after):
        return issues

    await ctx.press("ArrowDown")
    nav = await ctx.query(_MENU_STATE_JS, arg)
    if not (nav.get("focusOnMenuItem") or nav.get("focusInTarget")):
        issues.append(
            _issue(
                "ArrowDown did not move focus into the open menu",
                "wcag-2.1.1",
                "Arrow keys should move focus to the menu items of an open menu.",
                [f"active element: {nav.get('active')}"],
            )
        )

    await ctx.press("Escape")
    closed = await ctx.query(_MENU_STATE_JS, arg)
    collapsed = not closed.get("targetVisible") if closed.get("hasTarget") else closed.get("expanded") != "true"
    if not collapsed:
        issues.append(
            _issue(
                "Menu did not collapse with Escape",
                "wcag-2.1.1",
                "Escape should close an open menu.",
                ["menu still visible after Escape"],
            )
        )
    if before.get("expanded") is not None and closed.get("expanded") != "false":
        issues.append(
            _issue(
                "aria-expanded was not reset to false after Escape",
                "wcag-2.1.1",
                "The trigger's aria-expanded state should reflect the closed menu.",
                [f"aria-expanded={closed.get('expanded')}"],
            )
        )
    if not closed.get("focusOnTrigger"):
        issues.append(
            _issue(
                "Focus was not restored to the menu trigger after Escape",
                "wcag-2.1.1",
                "Closing a menu with Escape should return focus to its trigger.",
                [f"active element: {closed.get('active')}"],
            )
        )
    return issues


async def check_menu_interaction_scenario(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_MENU_CANDIDATES_JS, {"limit": ctx.options.max_component_checks})
    return await _for_each_candidate(ctx, "menu", found, _menu_step)


# ── Tabs ──────────────────────────────────────────────────────────────

_TABS_CANDIDATES_JS = """\
  const out = [];
  for (const list of document.querySelectorAll("[role=tablist]")) {
    const tabs = Array.from(list.querySelectorAll("[role=tab]"))
      .filter((t) => t.closest("[role=tablist]") === list && isVisible(t));
    if (tabs.length < 2) continue;
    out.push({selector: selectorOf(list), html: snippet(list), firstTab: selectorOf(tabs[0]), tabCount: tabs.length});
    if (out.length >= arg.limit) break;
  }
  return out;
"""

_TABS_STATE_JS = """\
  const list = document.querySelector(arg.tablist);
  const tabs = list ? Array.from(list.querySelectorAll("[role=tab]"))
    .filter((t) => t.closest("[role=tablist]") === list) : [];
  const selected = tabs.filter((t) => t.getAttribute("aria-selected") === "true");
  const sel = selected[0] || null;
  const panel = sel ? ctrlTarget(sel) : null;
  const active = document.activeElement;
  return {
    activeIdx: tabs.indexOf(active),
    selectedIdx: sel ? tabs.indexOf(sel) : -1,
    selectedCount: selected.length,
    selectedControls: sel ? sel.getAttribute("aria-controls") : null,
    panelResolved: !!panel,
    panelVisible: !!panel && isVisible(panel),
    active: selectorOf(active),
  };
"""


async def _tabs_step(ctx: RunContext, cand: Candidate) -> list[Issue]:
    arg = {"tablist": cand.selector}
    await ctx.page.focus(cand.attrs["firstTab"])
    before = await ctx.query(_TABS_STATE_JS, arg)
    await ctx.press("ArrowRight")
    after = await ctx.query(_TABS_STATE_JS, arg)

    changed = after.get("activeIdx") != before.get("activeIdx") or after.get("selectedIdx") != before.get(
        "selectedIdx"
    )
    if not changed:
        return [
            ctx.issue(
                impact="moderate",
                rule_id="wcag-2.1.1",
                message="Tab list did not respond to ArrowRight",
                description="Arrow keys should move between tabs in a tablist.",
                selector=cand.selector,
                html=cand.html,
                evidence=[f"active element: {after.get('active')}", f"selected index: {after.get('selectedIdx')}"],
            )
        ]

    issues: list[Issue] = []
    if after.get("panelResolved") and not after.get("panelVisible"):
        issues.append(
            ctx.issue(
                impact="moderate",
                rule_id="wcag-4.1.2",
                message="Selected tab panel is not visible after keyboard navigation",
                description="The panel controlled by the selected tab should be displayed.",
                selector=cand.selector,
                html=cand.html,
                evidence=[f"aria-controls={after.get('selectedControls')}"],
            )
        )
    if after.get("selectedCount") != 1 or not after.get("panelResolved"):
        issues.append(
            ctx.issue(
                impact="moderate",
                rule_id="wcag-4.1.2",
                message="Tab list should have exactly one selected tab with a valid aria-controls",
                description="Exactly one tab should be aria-selected and point at an existing panel.",
                selector=cand.selector,
                html=cand.html,
                evidence=[
                    f"selected tabs: {after.get('selectedCount')}",
                    f"aria-controls={after.get('selectedControls')}",
                ],
            )
        )
    return issues


async def check_tabs_interaction_scenario(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_TABS_CANDIDATES_JS, {"limit": ctx.options.max_component_checks})
    return await _for_each_candidate(ctx, "tabs", found, _tabs_step)


# ── Disclosure ────────────────────────────────────────────────────────

_DISCLOSURE_CANDIDATES_JS = """\
  const out = [];
  for (const el of document.querySelectorAll("[aria-expanded][aria-controls]")) {
    if (el.hasAttribute("aria-haspopup")) continue;
    const role = el.getAttribute("role") || "";
    if (role === "tab" || role === "combobox" || role === "menuitem") continue;
    if (!isVisible(el) || !ctrlTarget(el)) continue;
    out.push({selector: selectorOf(el), html: snippet(el), controls: ctrlTarget(el).id});
    if (out.length >= arg.limit) break;
  }
  return out;
"""

_DISCLOSURE_STATE_JS = """\
  const el = document.querySelector(arg.trigger);
  const panel = byId(arg.controls);
  return {
    expanded: el ? el.getAttribute("aria-expanded") : null,
    panelVisible: !!panel && isVisible(panel),
  };
"""


def _toggled(before: dict, after: dict) -> bool:
    return before.get("expanded") != after.get("expanded") or before.get("panelVisible") != after.get("panelVisible")


async def _disclosure_step(ctx: RunContext, cand: Candidate) -> list[Issue]:
    arg = {"trigger": cand.selector, "controls": cand.attrs.get("controls", "")}
    before = await ctx.query(_DISCLOSURE_STATE_JS, arg)
    for key in ("Enter", "Space"):
        await ctx.page.focus(cand.selector)
        await ctx.press(key)
        after = await ctx.query(_DISCLOSURE_STATE_JS, arg)
        if _toggled(before, after):
            # put the widget back the way it was found
            await ctx.press(key)
            return []
    return [
        ctx.issue(
            impact="moderate",
            rule_id="wcag-2.1.1",
            message="Disclosure control did not toggle with Enter or Space",
            description="aria-expanded controls should toggle their panel from the keyboard.",
            selector=cand.selector,
            html=cand.html,
            evidence=[f"aria-expanded stayed {before.get('expanded')}", "panel visibility unchanged"],
        )
    ]


async def check_disclosure_interaction_scenario(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_DISCLOSURE_CANDIDATES_JS, {"limit": ctx.options.max_component_checks})
    return await _for_each_candidate(ctx, "disclosure", found, _disclosure_step)


# ── Carousel ──────────────────────────────────────────────────────────

_CAROUSEL_CANDIDATES_JS = """\
  const ROOTS = "[aria-roledescription=carousel], [data-carousel], .carousel, .slider, .swiper, " +
    "[class*='carousel'], [class*='slider']";
  const SLIDES = "[aria-roledescription=slide], .carousel-item, .swiper-slide, .slide, .slick-slide, [data-slide]";
  const NEXT_RE = /(^|[^a-z])(next|forward)([^a-z]|$)|[›»→]/i;
  const out = [];
  const picked = [];
  for (const root of document.querySelectorAll(ROOTS)) {
    if (picked.some((p) => p.contains(root))) continue;
    const slides = Array.from(root.querySelectorAll(SLIDES));
    if (slides.length < 2) continue;
    let next = null;
    for (const c of root.querySelectorAll("button, [role=button], a")) {
      const label = [c.getAttribute("aria-label"), c.getAttribute("title"), c.textContent, c.className]
        .filter(Boolean).join(" ");
      if (NEXT_RE.test(label) && isVisible(c)) { next = c; break; }
    }
    if (!next) continue;
    picked.push(root);
    out.push({selector: selectorOf(root), html: snippet(root), next: selectorOf(next), slideCount: slides.length});
    if (out.length >= arg.limit) break;
  }
  return out;
"""

_CAROUSEL_SIGNATURE_JS = """\
  const SLIDES = "[aria-roledescription=slide], .carousel-item, .swiper-slide, .slide, .slick-slide, [data-slide]";
  const root = document.querySelector(arg.root);
  if (!root) return null;
  const slides = Array.from(root.querySelectorAll(SLIDES));
  const sig = slides.map((s) => [
    s.getAttribute("aria-current") || "",
    /(^|\\s)(active|is-active|swiper-slide-active|slick-current|current)(\\s|$)/.test(s.className) ? 1 : 0,
    s.getAttribute("aria-hidden") || "",
  ].join(":")).join("|");
  const track = slides.length ? slides[0].parentElement : null;
  const transform = track ? window.getComputedStyle(track).transform : "";
  return sig + "#" + transform + "#" + (track ? track.scrollLeft : 0);
"""


async def _carousel_step(ctx: RunContext, cand: Candidate) -> list[Issue]:
    arg = {"root": cand.selector}
    next_selector = cand.attrs["next"]
    before = await ctx.query(_CAROUSEL_SIGNATURE_JS, arg)
    for key in ("Enter", "Space"):
        await ctx.page.focus(next_selector)
        await ctx.press(key)
        after = await ctx.query(_CAROUSEL_SIGNATURE_JS, arg)
        if after != before:
            return []
    return [
        ctx.issue(
            impact="moderate",
            rule_id="wcag-2.1.1",
            message="Carousel next control did not change the active slide via keyboard",
            description="Carousel controls must be operable with Enter or Space.",
            selector=next_selector,
            html=cand.html,
            target=[next_selector, cand.selector],
            evidence=[f"{cand.attrs.get('slideCount')} slides", "active slide signal unchanged after Enter and Space"],
        )
    ]


async def check_carousel_interaction_scenario(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_CAROUSEL_CANDIDATES_JS, {"limit": ctx.options.max_component_checks})
    return await _for_each_candidate(ctx, "carousel", found, _carousel_step)


# ── Drag and drop ─────────────────────────────────────────────────────

_DRAG_CANDIDATES_JS = """\
  const MOVE_RE = /\\b(move|reorder|sort|up|down|left|right|earlier|later)\\b|[↑↓←→]/i;
  const HINT_RE = /(keyboard|arrow key|press space|use (the )?arrow|space ?bar)/i;
  const labelOf = (c) => [c.getAttribute("aria-label"), c.getAttribute("title"), c.textContent].filter(Boolean).join(" ");
  const hasMoveControl = (scope, item) => {
    if (!scope) return false;
    for (const c of scope.querySelectorAll("button, [role=button], a[href], input[type=button]")) {
      if (c === item) continue;
      if (MOVE_RE.test(labelOf(c))) return true;
    }
    return false;
  };
  const hintText = (el) => {
    const ids = (el.getAttribute("aria-describedby") || "").split(/\\s+/).filter(Boolean);
    let text = ids.map((id) => (byId(id) || {}).textContent || "").join(" ");
    const box = el.parentElement;
    if (box) text += " " + (box.getAttribute("aria-label") || "") + " " + (box.getAttribute("aria-description") || "");
    return text;
  };
  const out = [];
  for (const el of document.querySelectorAll("[draggable=true]")) {
    if (!isVisible(el)) continue;
    const hasAlternative = hasMoveControl(el, el) || hasMoveControl(el.parentElement, el) ||
      (el.parentElement && el.parentElement.parentElement !== document.body &&
        hasMoveControl(el.parentElement.parentElement, el)) || HINT_RE.test(hintText(el));
    out.push({selector: selectorOf(el), html: snippet(el), focusable: isFocusable(el), hasAlternative});
    if (out.length >= arg.limit) break;
  }
  return out;
"""

_DRAG_STATE_JS = """\
  const el = document.querySelector(arg.item);
  const live = Array.from(document.querySelectorAll("[aria-live], [role=status], [role=alert], [role=log]"))
    .map((r) => (r.textContent || "").trim()).join("|");
  if (!el) return {index: -1, grabbed: null, live};
  const parent = el.parentElement;
  return {
    index: parent ? Array.from(parent.children).indexOf(el) : 0,
    grabbed: el.getAttribute("aria-grabbed"),
    live,
  };
"""

_DRAG_PROBE_KEYS = ("Space", "ArrowDown", "ArrowUp", "Space")

_HOLDS_FOCUS_JS = """\
  const item = document.querySelector(arg.item);
  return !!item && document.activeElement === item;
"""


async def _drag_probe(ctx: RunContext, cand: Candidate) -> bool:
    """Press Space, ArrowDown, ArrowUp, Space and report any observed change.

    No keys are sent unless the item itself took focus; otherwise the
    presses would land on whatever element the previous check left focused.
    """
    arg = {"item": cand.selector}
    before = await ctx.query(_DRAG_STATE_JS, arg)
    await ctx.page.focus(cand.selector)
    if not await ctx.query(_HOLDS_FOCUS_JS, arg):
        logger.debug("drag-drop: %s did not take focus; key probe skipped", cand.selector)
        return False
    settle = max(ctx.options.settle_ms // 2, 40)
    for key in _DRAG_PROBE_KEYS:
        await ctx.press(key, settle_ms=settle)
        state = await ctx.query(_DRAG_STATE_JS, arg)
        if state != before:
            return True
    return False


async def _drag_step(ctx: RunContext, cand: Candidate) -> list[Issue]:
    if cand.attrs.get("hasAlternative"):
        return []
    if await _drag_probe(ctx, cand):
        return []
    focusable = bool(cand.attrs.get("focusable"))
    evidence = ["no move controls or keyboard hint", "no response to Space/Arrow keys"]
    if focusable:
        return [
            ctx.issue(
                impact="moderate",
                rule_id="wcag-2.5.7",
                message="Focusable draggable element without obvious keyboard alternative",
                description="Dragging should have a single-pointer or keyboard alternative (e.g. move buttons).",
                selector=cand.selector,
                html=cand.html,
                evidence=evidence,
            )
        ]
    return [
        ctx.issue(
            impact="serious",
            rule_id="wcag-2.5.7",
            message="Draggable element without obvious keyboard alternative",
            description="The element can only be moved by dragging and is not reachable by keyboard.",
            selector=cand.selector,
            html=cand.html,
            evidence=evidence + ["not keyboard focusable"],
        )
    ]


async def check_drag_drop_keyboard_alternative_scenario(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_DRAG_CANDIDATES_JS, {"limit": ctx.options.max_component_checks})
    return await _for_each_candidate(ctx, "drag-drop", found, _drag_step)
