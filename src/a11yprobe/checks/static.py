# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Static DOM checks: single-pass inspections that need no interaction.

Exception: the bypass-blocks check activates the skip link (focus + Enter)
to confirm it actually moves focus or the viewport.
"""

from __future__ import annotations

import logging
from urllib.parse import unquote

from .. import Issue
from . import RunContext

logger = logging.getLogger(__name__)

MAX_CLICKABLE_OFFENDERS = 20
MAX_STATIC_OFFENDERS = 10
SKIP_LINK_SCROLL_MIN_PX = 12
BYPASS_NAV_LINK_THRESHOLD = 8

# ── Keyboard-accessible clickables (2.1.1) ───────────────────────────

_CLICKABLES_JS = """\
  const MANAGED = "[data-headlessui-state], [id^='headlessui-'], [data-radix-collection-item], " +
    "[id^='radix-'], [data-reach-menu-button], [data-reach-tab], [class*='MuiButtonBase'], " +
    "[class*='chakra-'], [data-bs-toggle], [data-toggle]";
  const NATIVE = "button, a[href], input, select, textarea, summary";
  const unfocusable = [];
  const noHandler = [];
  for (const el of document.body ? document.body.querySelectorAll("*") : []) {
    const role = el.getAttribute("role");
    const hasRole = role === "button" || role === "link";
    const hasClick = typeof el.onclick === "function" || el.hasAttribute("onclick");
    if (!hasRole && !hasClick) continue;
    if (!isVisible(el)) continue;
    if (!isFocusable(el)) {
      unfocusable.push({selector: selectorOf(el), html: snippet(el), role: role || ""});
    } else if (hasRole && !el.matches(NATIVE)) {
      const hasKey = el.hasAttribute("onkeydown") || el.hasAttribute("onkeyup") || el.hasAttribute("onkeypress") ||
        typeof el.onkeydown === "function" || typeof el.onkeyup === "function";
      if (!hasKey) {
        let managed = false;
        try { managed = !!el.closest(MANAGED); } catch (e) {}
        noHandler.push({selector: selectorOf(el), html: snippet(el), role: role, managed: managed});
      }
    }
    if (unfocusable.length >= arg.limit && noHandler.length >= arg.limit) break;
  }
  return {unfocusable: unfocusable.slice(0, arg.limit), noHandler: noHandler.slice(0, arg.limit)};
"""


async def check_keyboard_accessible(ctx: RunContext) -> list[Issue]:
    raw = await ctx.query(_CLICKABLES_JS, {"limit": MAX_CLICKABLE_OFFENDERS})
    if not isinstance(raw, dict):
        return []

    issues: list[Issue] = []
    for item in raw.get("unfocusable", []):
        issues.append(
            ctx.issue(
                impact="serious",
                rule_id="wcag-2.1.1",
                message="Interactive element may not be keyboard accessible",
                description="Element appears clickable but is not focusable via keyboard.",
                selector=item.get("selector"),
                html=item.get("html"),
                confidence=0.85,
                evidence=["click handler or button/link role", "not focusable"],
            )
        )

    framework_present = bool(ctx.frameworks)
    for item in raw.get("noHandler", []):
        managed = bool(item.get("managed")) or framework_present
        evidence = [f"role={item.get('role')}", "no native semantics", "no keyboard event attribute"]
        if managed:
            evidence.append("framework-managed widget pattern present")
        issues.append(
            ctx.issue(
                impact="moderate",
                rule_id="wcag-2.1.1",
                message="Element with button/link role has no keyboard handler",
                description="Custom button/link roles need Enter/Space handling that native elements provide.",
                selector=item.get("selector"),
                html=item.get("html"),
                confidence=0.30 if managed else 0.45,
                needs_review=True if managed else None,
                evidence=evidence,
            )
        )
    return issues


# ── Positive tabindex (2.4.3) ─────────────────────────────────────────

_POSITIVE_TABINDEX_JS = """\
  return Array.from(document.querySelectorAll("[tabindex]"))
    .filter((el) => el.tabIndex > 0)
    .map((el) => ({selector: selectorOf(el), html: snippet(el), tabindex: el.tabIndex}));
"""


async def check_focus_order(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_POSITIVE_TABINDEX_JS)
    return [
        ctx.issue(
            impact="moderate",
            rule_id="wcag-2.4.3",
            message="Custom positive tabindex may disrupt focus order",
            description="Positive tabindex values move elements ahead of the natural DOM order.",
            selector=c.selector,
            html=c.html,
            evidence=[f"tabindex={c.attrs.get('tabindex')}"],
        )
        for c in found
    ]


# ── Bypass blocks (2.4.1) ─────────────────────────────────────────────

_BYPASS_PROBE_JS = """\
  const hasMain = !!document.querySelector("main, [role=main]");
  const navLinks = document.querySelectorAll(
    "nav a[href], [role=navigation] a[href], header a[href], [role=banner] a[href]"
  ).length;
  let skip = null;
  for (const a of document.querySelectorAll("a[href^='#']")) {
    const label = ((a.textContent || "") + " " + (a.getAttribute("aria-label") || "")).toLowerCase();
    if (label.includes("skip") || label.includes("jump to")) { skip = a; break; }
  }
  if (!skip) return {hasMain, navLinks, skip: null};
  const raw = skip.getAttribute("href").slice(1);
  let id = raw;
  try { id = decodeURIComponent(raw); } catch (e) {}
  const target = id ? (document.getElementById(id) || document.querySelector("a[name='" + cssEscape(id) + "']")) : null;
  return {
    hasMain, navLinks,
    skip: {selector: selectorOf(skip), html: snippet(skip), targetId: id, resolved: !!target},
    scrollY: window.scrollY, hash: location.hash,
  };
"""

_BYPASS_AFTER_JS = """\
  const active = document.activeElement;
  let target = arg.targetId ? document.getElementById(arg.targetId) : null;
  if (!target && arg.targetId) target = document.querySelector("a[name='" + cssEscape(arg.targetId) + "']");
  const focusInTarget = !!(target && active && (target === active || target.contains(active)));
  return {focusInTarget, scrollY: window.scrollY, hash: location.hash};
"""


def _hash_points_at(hash_after: str | None, hash_before: str | None, target_id: str | None) -> bool:
    """True if activation changed location.hash to the skip target.

    location.hash is percent-encoded; target ids arrive decoded.
    """
    if not hash_after or not target_id or hash_after == hash_before:
        return False
    return unquote(hash_after) == f"#{target_id}"


async def check_bypass_blocks(ctx: RunContext) -> list[Issue]:
    probe = await ctx.query(_BYPASS_PROBE_JS)
    if not isinstance(probe, dict):
        return []
    has_main = bool(probe.get("hasMain"))
    skip = probe.get("skip")

    if skip and has_main:
        return []

    if skip:
        selector = skip.get("selector")
        if not skip.get("resolved"):
            return [
                ctx.issue(
                    impact="moderate",
                    rule_id="wcag-2.4.1",
                    message="Skip link target could not be resolved",
                    description="The skip link points to an id that does not exist on the page.",
                    selector=selector,
                    html=skip.get("html"),
                    evidence=[f"href=#{skip.get('targetId', '')}"],
                )
            ]
        await ctx.page.focus(selector)
        await ctx.press("Enter")
        after = await ctx.query(_BYPASS_AFTER_JS, {"targetId": skip.get("targetId")})
        if not isinstance(after, dict):
            return []
        scroll_delta = abs(float(after.get("scrollY") or 0) - float(probe.get("scrollY") or 0))
        hash_updated = _hash_points_at(after.get("hash"), probe.get("hash"), skip.get("targetId"))
        if after.get("focusInTarget") or scroll_delta > SKIP_LINK_SCROLL_MIN_PX or hash_updated:
            return []
        return [
            ctx.issue(
                impact="moderate",
                rule_id="wcag-2.4.1",
                message="Skip link did not move focus or viewport",
                description="Activating the skip link should move focus or scroll to the main content.",
                selector=selector,
                html=skip.get("html"),
                evidence=[f"scroll delta {scroll_delta:.0f}px", "focus stayed outside target", "hash unchanged"],
            )
        ]

    if has_main:
        return []
    nav_links = int(probe.get("navLinks") or 0)
    if nav_links < BYPASS_NAV_LINK_THRESHOLD:
        return []
    return [
        ctx.issue(
            impact="moderate",
            rule_id="wcag-2.4.1",
            message="Bypass mechanism not clearly detected",
            description="No skip link or main landmark found before a long block of navigation links.",
            confidence=0.55,
            needs_review=True,
            evidence=[f"{nav_links} navigation links", "no skip link", "no main landmark"],
        )
    ]


# ── Pause, stop, hide (2.2.2) ─────────────────────────────────────────

_MOVING_CONTENT_JS = """\
  return Array.from(document.querySelectorAll("marquee, blink"))
    .slice(0, arg.limit)
    .map((el) => ({selector: selectorOf(el), html: snippet(el)}));
"""


async def check_pause_stop_hide(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_MOVING_CONTENT_JS, {"limit": MAX_STATIC_OFFENDERS})
    return [
        ctx.issue(
            impact="moderate",
            rule_id="wcag-2.2.2",
            message="Moving content may not be pausable",
            description="Legacy moving content elements usually lack pause/stop controls.",
            selector=c.selector,
            html=c.html,
        )
        for c in found
    ]


# ── Audio control (1.4.2) ─────────────────────────────────────────────

_AUTOPLAY_MEDIA_JS = """\
  return Array.from(document.querySelectorAll("audio[autoplay], video[autoplay]"))
    .filter((el) => !el.hasAttribute("controls"))
    .map((el) => ({selector: selectorOf(el), html: snippet(el), muted: el.muted}));
"""


async def check_audio_control(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_AUTOPLAY_MEDIA_JS)
    return [
        ctx.issue(
            impact="moderate",
            rule_id="wcag-1.4.2",
            message="Autoplaying media may lack controls",
            description="Provide a mechanism to pause or stop audio that plays automatically.",
            selector=c.selector,
            html=c.html,
            evidence=["autoplay", "no controls attribute"] + (["muted"] if c.attrs.get("muted") else []),
        )
        for c in found
    ]
