"""Focus integrity checks: keyboard trap, focus visible, focus not obscured.

The trap check drives real Tab / Shift+Tab presses and watches
``document.activeElement``. Focus-visible compares computed styles before
and after focus and falls back to a pixel diff of the element's padded
bounding box. Focus-obscured hit-tests five points on the focused element.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from .. import Candidate, Issue
from ..pixel_diff import byte_diff_ratio, padded_box
from . import RunContext

logger = logging.getLogger(__name__)

TAB_SETTLE_MS = 20
VISUAL_FAR_BELOW_FACTOR = 3  # ratio < threshold / 3 counts as "far below"

# ── Keyboard trap (2.1.2) ────────────────────────────────────────────

_RESET_FOCUS_JS = """\
  const a = document.activeElement;
  if (a && a !== document.body && typeof a.blur === "function") a.blur();
  if (document.body && typeof document.body.focus === "function") document.body.focus();
  return true;
"""

_ACTIVE_ELEMENT_JS = """\
  const el = document.activeElement;
  if (!el) return null;
  return {
    tag: el.tagName,
    id: el.id || "",
    cls: typeof el.className === "string" ? el.className : "",
    index: Array.prototype.indexOf.call(document.querySelectorAll("*"), el),
    isRoot: el === document.body || el === document.documentElement,
    selector: selectorOf(el),
    html: snippet(el),
  };
"""

_NON_ELEMENT_PREFIXES = ("BODY|", "HTML|", "none")


def element_signature(info: dict | None) -> str:
    """Identity of the focused element: tag, document-order index and selector.

    Look-alike elements (same tag and class, no id) get distinct signatures.
    The document root collapses to ``BODY|`` / ``HTML|``.
    """
    if not info:
        return "none"
    tag = str(info.get("tag") or "").upper()
    if info.get("isRoot"):
        return f"{tag or 'BODY'}|"
    return f"{tag}|{info.get('index', -1)}|{info.get('selector') or ''}"


def element_label(info: dict | None) -> str:
    """``tagName|id|className`` text for evidence."""
    if not info:
        return "none"
    return "|".join(str(info.get(k) or "") for k in ("tag", "id", "cls"))


def is_trapped(signatures: Sequence[str], stable_repeats: int = 6, max_distinct: int = 2) -> bool:
    """True if the active-element signature stabilizes on a real element.

    Stable means the same signature repeated ``stable_repeats`` times in a
    row; the walk must also have visited at most ``max_distinct`` distinct
    signatures. Runs sitting on <body>/<html> never count (nothing focusable).
    """
    if not signatures:
        return False
    run = 0
    best = 0
    stable_sig = None
    for prev, cur in zip(signatures, signatures[1:], strict=False):
        if cur == prev and not cur.startswith(_NON_ELEMENT_PREFIXES):
            run += 1
            if run > best:
                best = run
                stable_sig = cur
        else:
            run = 0
    if stable_sig is None or best < stable_repeats:
        return False
    return len(set(signatures)) <= max_distinct


async def _tab_walk(ctx: RunContext, key: str) -> tuple[list[str], dict]:
    await ctx.query(_RESET_FOCUS_JS)
    signatures: list[str] = []
    last: dict = {}
    for _ in range(ctx.options.max_tab_steps):
        await ctx.press(key, settle_ms=TAB_SETTLE_MS)
        last = await ctx.query(_ACTIVE_ELEMENT_JS) or {}
        signatures.append(element_signature(last))
        if is_trapped(signatures, ctx.options.trap_stable_repeats, ctx.options.trap_max_distinct):
            break
    return signatures, last


async def check_no_keyboard_trap(ctx: RunContext) -> list[Issue]:
    forward, info = await _tab_walk(ctx, "Tab")
    opts = ctx.options
    if not is_trapped(forward, opts.trap_stable_repeats, opts.trap_max_distinct):
        return []
    backward, _ = await _tab_walk(ctx, "Shift+Tab")
    if not is_trapped(backward, opts.trap_stable_repeats, opts.trap_max_distinct):
        return []

    before_escape = await ctx.query(_ACTIVE_ELEMENT_JS)
    await ctx.press("Escape")
    after_escape = await ctx.query(_ACTIVE_ELEMENT_JS)
    escapable = element_signature(before_escape) != element_signature(after_escape)

    return [
        ctx.issue(
            impact="serious",
            rule_id="wcag-2.1.2",
            message="Possible keyboard trap detected",
            description="Focus stayed on the same element after repeated Tab and Shift+Tab presses.",
            selector=info.get("selector"),
            html=info.get("html"),
            confidence=0.55 if escapable else 0.75,
            evidence=[
                f"focused element: {element_label(info)}",
                f"Tab: {len(forward)} presses, {len(set(forward))} distinct elements",
                f"Shift+Tab: {len(backward)} presses, {len(set(backward))} distinct elements",
                "Escape moved focus" if escapable else "Escape did not move focus",
            ],
        )
    ]


# ── Focus candidates ─────────────────────────────────────────────────

_FOCUSABLE_CANDIDATES_JS = """\
  const out = [];
  for (const el of document.querySelectorAll("a[href], button, input, select, textarea, summary, [tabindex]")) {
    if (el.tabIndex < 0 || el.disabled || !isVisible(el)) continue;
    if (el.matches("input[type=hidden]")) continue;
    out.push({selector: selectorOf(el), html: snippet(el)});
    if (out.length >= arg.limit) break;
  }
  return out;
"""


async def _focusables(ctx: RunContext) -> list[Candidate]:
    return await ctx.candidates(_FOCUSABLE_CANDIDATES_JS, {"limit": ctx.options.max_focusable_checks})


# ── Focus visible (2.4.7) ────────────────────────────────────────────

_STYLE_SNAPSHOT_JS = """\
  const el = document.querySelector(arg.selector);
  if (!el) return null;
  if (arg.blur) {
    const a = document.activeElement;
    if (a && typeof a.blur === "function") a.blur();
    el.scrollIntoView({block: "center", inline: "nearest"});
  }
  const st = window.getComputedStyle(el);
  const r = el.getBoundingClientRect();
  return {
    focused: document.activeElement === el,
    rect: {x: r.left, y: r.top, width: r.width, height: r.height},
    style: {
      outlineStyle: st.outlineStyle, outlineWidth: st.outlineWidth, outlineColor: st.outlineColor,
      outlineOffset: st.outlineOffset, boxShadow: st.boxShadow, borderTopColor: st.borderTopColor,
      borderBottomColor: st.borderBottomColor, borderTopWidth: st.borderTopWidth,
      borderBottomWidth: st.borderBottomWidth, backgroundColor: st.backgroundColor,
      color: st.color, textDecorationLine: st.textDecorationLine,
    },
  };
"""

_STYLE_KEYS = (
    "boxShadow",
    "borderTopColor",
    "borderBottomColor",
    "borderTopWidth",
    "borderBottomWidth",
    "backgroundColor",
    "color",
    "textDecorationLine",
)


def _outline_visible(style: dict) -> bool:
    if style.get("outlineStyle") in (None, "", "none", "hidden"):
        return False
    width = str(style.get("outlineWidth", "0px"))
    return width not in ("0px", "0", "") and "transparent" not in str(style.get("outlineColor", ""))


def focus_style_delta(before: dict, after: dict) -> list[str]:
    """Names of style properties that visibly changed when the element took focus."""
    changed: list[str] = []
    if _outline_visible(after) and (
        not _outline_visible(before)
        or any(before.get(k) != after.get(k) for k in ("outlineStyle", "outlineWidth", "outlineColor", "outlineOffset"))
    ):
        changed.append("outline")
    for key in _STYLE_KEYS:
        if before.get(key) != after.get(key):
            if key == "boxShadow" and after.get(key) in (None, "none"):
                continue
            changed.append(key)
    return changed


async def _pixel_ratio(ctx: RunContext, cand: Candidate, rect: dict) -> float | None:
    box = padded_box(rect)
    if box is None:
        return None
    await ctx.query(_STYLE_SNAPSHOT_JS, {"selector": cand.selector, "blur": True})
    await ctx.page.pause(ctx.options.settle_ms)
    shot_before = await ctx.page.screenshot_region(box)
    await ctx.page.focus(cand.selector)
    await ctx.page.pause(ctx.options.settle_ms)
    shot_after = await ctx.page.screenshot_region(box)
    if not shot_before or not shot_after:
        return None
    return byte_diff_ratio(shot_before, shot_after)


async def _focus_visible_step(ctx: RunContext, cand: Candidate) -> Issue | None:
    before = await ctx.query(_STYLE_SNAPSHOT_JS, {"selector": cand.selector, "blur": True})
    if not before:
        return None
    await ctx.page.focus(cand.selector)
    await ctx.page.pause(ctx.options.settle_ms)
    after = await ctx.query(_STYLE_SNAPSHOT_JS, {"selector": cand.selector})
    if not after or not after.get("focused"):
        return None
    delta = focus_style_delta(before.get("style", {}), after.get("style", {}))
    if delta:
        return None

    threshold = ctx.options.visual_diff_min_ratio
    ratio = None
    if ctx.options.enable_visual_focus_checks:
        ratio = await _pixel_ratio(ctx, cand, after.get("rect") or {})
        if ratio is not None and ratio >= threshold:
            return None

    evidence = ["no outline/box-shadow/border/background change on focus"]
    if ratio is not None:
        evidence.append(f"pixel diff ratio {ratio:.4f} (threshold {threshold})")
    far_below = ratio is not None and ratio < threshold / VISUAL_FAR_BELOW_FACTOR
    return ctx.issue(
        impact="serious",
        rule_id="wcag-2.4.7",
        message="Focus indicator may be missing",
        description="Focused elements should have a visible focus indicator.",
        selector=cand.selector,
        html=cand.html,
        confidence=0.72 if far_below else 0.62,
        needs_review=True,
        evidence=evidence,
    )


async def check_focus_visible(ctx: RunContext) -> list[Issue]:
    issues: list[Issue] = []
    for cand in await _focusables(ctx):
        try:
            issue = await _focus_visible_step(ctx, cand)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("focus-visible: candidate %s skipped (%s)", cand.selector, e)
            continue
        if issue is not None:
            issues.append(issue)
    return issues


# ── Focus not obscured (2.4.11 / 2.4.12) ─────────────────────────────

_SCROLL_INTO_VIEW_JS = """\
  const el = document.querySelector(arg.selector);
  if (!el) return false;
  el.scrollIntoView({block: "nearest", inline: "nearest"});
  return true;
"""

_HIT_TEST_JS = """\
  const el = document.querySelector(arg.selector);
  if (!el) return null;
  const r = el.getBoundingClientRect();
  const inset = 2;
  const points = [
    [r.left + r.width / 2, r.top + r.height / 2],
    [r.left + inset, r.top + inset],
    [r.right - inset, r.top + inset],
    [r.left + inset, r.bottom - inset],
    [r.right - inset, r.bottom - inset],
  ];
  const labels = el.labels ? Array.from(el.labels) : [];
  let blocked = 0;
  let blocker = null;
  for (const [x, y] of points) {
    const top = document.elementFromPoint(x, y);
    if (!top || top === el || el.contains(top) || top.contains(el)) continue;
    if (labels.some((l) => l === top || l.contains(top))) continue;
    blocked += 1;
    if (!blocker) blocker = top;
  }
  return {
    total: points.length,
    blocked,
    focused: document.activeElement === el,
    blocker: blocker ? selectorOf(blocker) : null,
    blockerHtml: blocker ? snippet(blocker) : null,
  };
"""

LENIENT_RULE = ("wcag-2.4.11", "Focused element may be obscured")
STRICT_RULE = ("wcag-2.4.12", "Focused element may be obscured (enhanced)")
STRICT_MIN_BLOCKED = 2


def is_obscured(blocked: int, total: int, strict: bool) -> bool:
    if total <= 0 or blocked <= 0:
        return False
    if strict:
        return blocked >= STRICT_MIN_BLOCKED
    return blocked >= total


async def _check_focus_obscured(ctx: RunContext, strict: bool) -> list[Issue]:
    rule_id, message = STRICT_RULE if strict else LENIENT_RULE
    issues: list[Issue] = []
    for cand in await _focusables(ctx):
        try:
            arg = {"selector": cand.selector}
            if not await ctx.query(_SCROLL_INTO_VIEW_JS, arg):
                continue
            await ctx.page.focus(cand.selector)
            await ctx.page.pause(ctx.options.settle_ms)
            hit = await ctx.query(_HIT_TEST_JS, arg)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("focus-obscured: candidate %s skipped (%s)", cand.selector, e)
            continue
        if not hit:
            continue
        blocked, total = int(hit.get("blocked", 0)), int(hit.get("total", 5))
        if not is_obscured(blocked, total, strict):
            continue
        evidence = [f"blocked points {blocked}/{total} ({blocked / total:.2f})"]
        if hit.get("blockerHtml"):
            evidence.append(f"blocked by {hit.get('blocker')}: {str(hit['blockerHtml'])[:120]}")
        issues.append(
            ctx.issue(
                impact="moderate",
                rule_id=rule_id,
                message=message,
                description="Focused element should not be hidden by overlays or sticky UI.",
                selector=cand.selector,
                html=cand.html,
                evidence=evidence,
            )
        )
    return issues


async def check_focus_not_obscured(ctx: RunContext) -> list[Issue]:
    return await _check_focus_obscured(ctx, strict=False)


async def check_focus_not_obscured_enhanced(ctx: RunContext) -> list[Issue]:
    return await _check_focus_obscured(ctx, strict=True)
