# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Issue construction, confidence scoring, dedup and per-rule capping.

Pure functions (no I/O) so the whole post-processing pipeline is
unit-testable without a browser.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable

from . import IMPACTS, Issue

CONFIDENCE_MIN = 0.05
CONFIDENCE_MAX = 0.98

IMPACT_BASELINE: dict[str, float] = {
    "critical": 0.90,
    "serious": 0.75,
    "moderate": 0.60,
    "minor": 0.40,
}
EVIDENCE_BONUS = 0.05
EVIDENCE_BONUS_MIN_ITEMS = 2

HELP_URL_BASE = "https://www.w3.org/WAI/WCAG22/Understanding/"

# rule id -> (WCAG level tag, Understanding document slug)
RULE_META: dict[str, tuple[str, str]] = {
    "wcag-1.4.2": ("wcag2a", "audio-control"),
    "wcag-2.1.1": ("wcag2a", "keyboard"),
    "wcag-2.1.2": ("wcag2a", "no-keyboard-trap"),
    "wcag-2.2.2": ("wcag2a", "pause-stop-hide"),
    "wcag-2.4.1": ("wcag2a", "bypass-blocks"),
    "wcag-2.4.3": ("wcag2a", "focus-order"),
    "wcag-2.4.7": ("wcag2aa", "focus-visible"),
    "wcag-2.4.11": ("wcag22aa", "focus-not-obscured-minimum"),
    "wcag-2.4.12": ("wcag22aaa", "focus-not-obscured-enhanced"),
    "wcag-2.5.1": ("wcag21a", "pointer-gestures"),
    "wcag-2.5.2": ("wcag21a", "pointer-cancellation"),
    "wcag-2.5.4": ("wcag21a", "motion-actuation"),
    "wcag-2.5.6": ("wcag21aaa", "concurrent-input-mechanisms"),
    "wcag-2.5.7": ("wcag22aa", "dragging-movements"),
    "wcag-3.2.3": ("wcag2aa", "consistent-navigation"),
    "wcag-3.2.4": ("wcag2aa", "consistent-identification"),
    "wcag-3.2.6": ("wcag22a", "consistent-help"),
    "wcag-4.1.2": ("wcag2a", "name-role-value"),
}


def default_tags(rule_id: str | None) -> list[str]:
    """["wcag2a", "wcag211"] style tags for a rule id."""
    if not rule_id or rule_id not in RULE_META:
        return []
    level, _ = RULE_META[rule_id]
    return [level, "wcag" + rule_id.removeprefix("wcag-").replace(".", "")]


def help_url(rule_id: str | None) -> str | None:
    if not rule_id or rule_id not in RULE_META:
        return None
    return HELP_URL_BASE + RULE_META[rule_id][1]


def build_issue(
    *,
    message: str,
    impact: str | None = None,
    selector: str | None = None,
    rule_id: str | None = None,
    description: str | None = None,
    tags: list[str] | None = None,
    failure_summary: str | None = None,
    html: str | None = None,
    target: list[str] | None = None,
    confidence: float | None = None,
    needs_review: bool | None = None,
    evidence: Iterable[str] | None = None,
    help_url_override: str | None = None,
    default_impact: str = "moderate",
) -> Issue:
    """Build a canonical Issue from raw check output."""
    if impact not in IMPACTS:
        impact = default_impact
    return Issue(
        impact=impact,
        message=message,
        selector=selector or None,
        rule_id=rule_id or None,
        description=description,
        help_url=help_url_override or help_url(rule_id),
        tags=list(tags) if tags is not None else default_tags(rule_id),
        failure_summary=failure_summary or description,
        html=html or None,
        target=list(target) if target is not None else ([selector] if selector else []),
        confidence=confidence,
        needs_review=needs_review,
        evidence=[str(e) for e in evidence] if evidence else [],
    )


def clamp_confidence(value: float) -> float:
    return round(min(CONFIDENCE_MAX, max(CONFIDENCE_MIN, float(value))), 4)


def score_confidence(impact: str, evidence_count: int) -> float:
    """Impact baseline + bonus for multi-item evidence, clamped to [0.05, 0.98]."""
    score = IMPACT_BASELINE.get(impact, IMPACT_BASELINE["moderate"])
    if evidence_count >= EVIDENCE_BONUS_MIN_ITEMS:
        score += EVIDENCE_BONUS
    return clamp_confidence(score)


def normalize_issue(issue: Issue, min_confidence_for_auto_raise: float = 0.7) -> Issue:
    """Return a copy with confidence, needs_review and decision filled in.

    A confidence set by the check is kept (clamped); otherwise it is scored
    from impact and evidence. needs_review set by the check wins over the
    auto-raise threshold.
    """
    if issue.confidence is None:
        confidence = score_confidence(issue.impact, len(issue.evidence))
    else:
        confidence = clamp_confidence(issue.confidence)
    needs_review = issue.needs_review
    if needs_review is None:
        needs_review = confidence < min_confidence_for_auto_raise
    return dataclasses.replace(
        issue,
        confidence=confidence,
        needs_review=needs_review,
        decision="review" if needs_review else "auto",
        tags=list(issue.tags),
        target=list(issue.target),
        evidence=list(issue.evidence),
    )


def dedupe_issues(issues: Iterable[Issue]) -> list[Issue]:
    """Stable first-seen-wins dedup on (rule_id, message, selector, html[:120])."""
    seen: set[tuple] = set()
    result: list[Issue] = []
    for issue in issues:
        key = issue.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        result.append(issue)
    return result


def cap_per_rule(issues: Iterable[Issue], max_per_rule: int) -> list[Issue]:
    """Keep at most max_per_rule issues per rule id, preserving order.

    Issues without a rule id share one bucket.
    """
    counts: dict[str | None, int] = {}
    result: list[Issue] = []
    for issue in issues:
        n = counts.get(issue.rule_id, 0)
        if n >= max_per_rule:
            continue
        counts[issue.rule_id] = n + 1
        result.append(issue)
    return result
