"""Opt-in heuristics for pointer and motion input (2.5.x).

These only detect that a risky input pattern is present; none of them
exercise the gesture. Every finding is marked for review.
"""

from __future__ import annotations

import logging

from .. import Issue
from . import RunContext

logger = logging.getLogger(__name__)

MAX_EXPERIMENTAL_OFFENDERS = 10

_GESTURE_JS = """\
  return Array.from(document.querySelectorAll("[ontouchstart], [onpointerdown], [style*='touch-action']"))
    .slice(0, arg.limit)
    .map((el) => ({
      selector: selectorOf(el),
      html: snippet(el),
      handlers: ["ontouchstart", "onpointerdown"].filter((a) => el.hasAttribute(a)),
      touchAction: el.style ? el.style.touchAction || "" : "",
    }));
"""

_DOWN_ONLY_JS = """\
  return Array.from(document.querySelectorAll("[onmousedown], [onpointerdown]"))
    .filter((el) => !el.hasAttribute("onclick") && !el.hasAttribute("onmouseup") && !el.hasAttribute("onpointerup"))
    .slice(0, arg.limit)
    .map((el) => ({selector: selectorOf(el), html: snippet(el)}));
"""

_MOTION_JS = """\
  return {
    orientation: typeof window.ondeviceorientation === "function",
    motion: typeof window.ondevicemotion === "function",
  };
"""


async def check_pointer_gestures(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_GESTURE_JS, {"limit": MAX_EXPERIMENTAL_OFFENDERS})
    issues = []
    for c in found:
        evidence = [f"{h} handler" for h in c.attrs.get("handlers", [])]
        if c.attrs.get("touchAction"):
            evidence.append(f"touch-action: {c.attrs['touchAction']}")
        issues.append(
            ctx.issue(
                impact="moderate",
                rule_id="wcag-2.5.1",
                message="Pointer gesture interaction detected",
                description="Multipoint or path-based gestures need a single-pointer alternative.",
                selector=c.selector,
                html=c.html,
                needs_review=True,
                evidence=evidence,
            )
        )
    return issues


async def check_pointer_cancellation(ctx: RunContext) -> list[Issue]:
    found = await ctx.candidates(_DOWN_ONLY_JS, {"limit": MAX_EXPERIMENTAL_OFFENDERS})
    return [
        ctx.issue(
            impact="moderate",
            rule_id="wcag-2.5.2",
            message="Pointer cancellation may not be supported",
            description="Actions triggered on the down-event cannot be aborted by moving off the target.",
            selector=c.selector,
            html=c.html,
            needs_review=True,
            evidence=["down-event handler", "no up/click handler"],
        )
        for c in found
    ]


async def check_motion_actuation(ctx: RunContext) -> list[Issue]:
    raw = await ctx.query(_MOTION_JS)
    if not isinstance(raw, dict) or not (raw.get("orientation") or raw.get("motion")):
        return []
    evidence = [name for name in ("orientation", "motion") if raw.get(name)]
    return [
        ctx.issue(
            impact="moderate",
            rule_id="wcag-2.5.4",
            message="Motion-based input detected",
            description="Functions operated by device motion need a UI alternative and a way to disable motion.",
            needs_review=True,
            evidence=[f"window.ondevice{name} set" for name in evidence],
        )
    ]


async def check_concurrent_input(ctx: RunContext) -> list[Issue]:
    # Not detectable from the DOM; always surfaced for manual review.
    return [
        ctx.issue(
            impact="minor",
            rule_id="wcag-2.5.6",
            message="Concurrent input mechanisms require review",
            description="Verify the page does not restrict input to a single modality.",
            needs_review=True,
            confidence=0.3,
        )
    ]
