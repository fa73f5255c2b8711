# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for issue construction, confidence scoring, dedup and capping."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from a11yprobe import IMPACTS, Issue
from a11yprobe.issues import (
    CONFIDENCE_MAX,
    CONFIDENCE_MIN,
    build_issue,
    cap_per_rule,
    default_tags,
    dedupe_issues,
    help_url,
    normalize_issue,
    score_confidence,
)


def _issue(
    *,
    rule_id: str = "wcag-2.1.1",
    message: str = "msg",
    selector: str | None = "#a",
    html: str | None = "<button id=a>",
    impact: str = "moderate",
    evidence: list[str] | None = None,
    confidence: float | None = None,
    needs_review: bool | None = None,
) -> Issue:
    return Issue(
        impact=impact,
        message=message,
        selector=selector,
        rule_id=rule_id,
        html=html,
        evidence=evidence or [],
        confidence=confidence,
        needs_review=needs_review,
    )


# =========================================================================
# build_issue
# =========================================================================


class TestBuildIssue:
    def test_fills_tags_help_url_and_target(self):
        issue = build_issue(message="m", impact="serious", selector="#x", rule_id="wcag-2.4.7")
        assert issue.tags == ["wcag2aa", "wcag247"]
        assert issue.help_url == "https://www.w3.org/WAI/WCAG22/Understanding/focus-visible"
        assert issue.target == ["#x"]
        assert issue.engine == "a11yprobe"

    def test_unknown_impact_falls_back_to_default(self):
        issue = build_issue(message="m", impact="blocker", default_impact="minor")
        assert issue.impact == "minor"

    def test_failure_summary_defaults_to_description(self):
        issue = build_issue(message="m", description="desc")
        assert issue.failure_summary == "desc"

    def test_explicit_target_kept(self):
        issue = build_issue(message="m", selector="#next", target=["#next", "#root"])
        assert issue.target == ["#next", "#root"]

    def test_no_selector_empty_target(self):
        issue = build_issue(message="m")
        assert issue.selector is None
        assert issue.target == []

    def test_unknown_rule_has_no_tags_or_url(self):
        assert default_tags("wcag-9.9.9") == []
        assert help_url("wcag-9.9.9") is None
        assert help_url(None) is None


# =========================================================================
# Confidence
# =========================================================================


class TestScoreConfidence:
    def test_baselines(self):
        assert score_confidence("critical", 0) == 0.90
        assert score_confidence("serious", 0) == 0.75
        assert score_confidence("moderate", 0) == 0.60
        assert score_confidence("minor", 0) == 0.40

    def test_evidence_bonus_needs_two_items(self):
        assert score_confidence("moderate", 1) == 0.60
        assert score_confidence("moderate", 2) == 0.65

    def test_critical_with_evidence_not_clamped(self):
        assert score_confidence("critical", 5) == 0.95

    @given(
        impact=st.sampled_from(IMPACTS),
        evidence=st.integers(min_value=0, max_value=50),
    )
    def test_bounds(self, impact, evidence):
        assert CONFIDENCE_MIN <= score_confidence(impact, evidence) <= CONFIDENCE_MAX


class TestNormalizeIssue:
    def test_scored_when_unset(self):
        out = normalize_issue(_issue(impact="serious", evidence=["a", "b"]))
        assert out.confidence == 0.80
        assert out.needs_review is False
        assert out.decision == "auto"

    def test_low_confidence_needs_review(self):
        out = normalize_issue(_issue(impact="moderate"))
        assert out.confidence == 0.60
        assert out.needs_review is True
        assert out.decision == "review"

    def test_explicit_needs_review_wins(self):
        out = normalize_issue(_issue(impact="critical", needs_review=True))
        assert out.confidence == 0.90
        assert out.decision == "review"

    def test_explicit_confidence_kept(self):
        out = normalize_issue(_issue(confidence=0.85))
        assert out.confidence == 0.85
        assert out.decision == "auto"

    def test_threshold_is_configurable(self):
        out = normalize_issue(_issue(impact="moderate"), min_confidence_for_auto_raise=0.5)
        assert out.decision == "auto"

    def test_original_not_mutated(self):
        original = _issue()
        normalize_issue(original)
        assert original.confidence is None
        assert original.decision is None

    @given(confidence=st.floats(min_value=-10, max_value=10, allow_nan=False))
    def test_explicit_confidence_clamped(self, confidence):
        out = normalize_issue(_issue(confidence=confidence))
        assert CONFIDENCE_MIN <= out.confidence <= CONFIDENCE_MAX


# =========================================================================
# Dedup and cap
# =========================================================================


class TestDedupeIssues:
    def test_first_seen_wins(self):
        a = _issue(evidence=["first"])
        b = _issue(evidence=["second"])
        out = dedupe_issues([a, b])
        assert out == [a]

    def test_html_compared_on_first_120_chars(self):
        prefix = "<div>" + "x" * 200
        a = _issue(html=prefix + "A")
        b = _issue(html=prefix + "B")
        assert len(dedupe_issues([a, b])) == 1

    def test_different_selectors_kept(self):
        out = dedupe_issues([_issue(selector="#a"), _issue(selector="#b")])
        assert [i.selector for i in out] == ["#a", "#b"]

    @given(st.lists(st.tuples(st.sampled_from(["r1", "r2"]), st.sampled_from(["m1", "m2"]), st.sampled_from(["#a", "#b"]))))
    def test_keys_unique_after_dedup(self, rows):
        issues = [_issue(rule_id=r, message=m, selector=s) for r, m, s in rows]
        keys = [i.dedup_key() for i in dedupe_issues(issues)]
        assert len(keys) == len(set(keys))
        assert set(keys) == {i.dedup_key() for i in issues}


class TestCapPerRule:
    def test_keeps_encounter_order(self):
        issues = [_issue(rule_id="r1", selector=f"#{i}") for i in range(5)]
        out = cap_per_rule(issues, 3)
        assert [i.selector for i in out] == ["#0", "#1", "#2"]

    def test_caps_each_rule_independently(self):
        issues = [_issue(rule_id="r1"), _issue(rule_id="r2"), _issue(rule_id="r1"), _issue(rule_id="r2")]
        out = cap_per_rule(issues, 1)
        assert [i.rule_id for i in out] == ["r1", "r2"]

    @given(
        rules=st.lists(st.sampled_from(["a", "b", "c", None]), max_size=60),
        cap=st.integers(min_value=1, max_value=10),
    )
    def test_never_exceeds_cap(self, rules, cap):
        out = cap_per_rule([_issue(rule_id=r) for r in rules], cap)
        for r in set(rules):
            assert sum(1 for i in out if i.rule_id == r) <= cap
