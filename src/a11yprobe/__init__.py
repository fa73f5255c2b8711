# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""a11yprobe: keyboard-driven WCAG conformance checks against a live page.

Drives real keyboard sequences against a rendered page and reports:
- issues: deduplicated, confidence-scored findings per WCAG rule
- run stats: per-check timing, error and count summary for the last run
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

IMPACTS = ("critical", "serious", "moderate", "minor")


@dataclass
class Issue:
    """A single accessibility finding."""

    impact: str  # critical, serious, moderate, minor
    message: str
    selector: str | None = None
    rule_id: str | None = None  # e.g. wcag-2.1.1
    description: str | None = None
    help_url: str | None = None
    tags: list[str] = field(default_factory=list)
    failure_summary: str | None = None
    html: str | None = None
    target: list[str] = field(default_factory=list)
    engine: str = "a11yprobe"
    confidence: float | None = None  # None until normalized
    needs_review: bool | None = None  # None = derive from confidence
    evidence: list[str] = field(default_factory=list)
    decision: str | None = None  # auto | review

    def dedup_key(self) -> tuple[str | None, str, str | None, str]:
        return (self.rule_id, self.message, self.selector, (self.html or "")[:120])

    def to_dict(self) -> dict:
        return {
            "impact": self.impact,
            "message": self.message,
            "selector": self.selector,
            "ruleId": self.rule_id,
            "description": self.description,
            "helpUrl": self.help_url,
            "tags": list(self.tags),
            "failureSummary": self.failure_summary,
            "html": self.html,
            "target": list(self.target),
            "engine": self.engine,
            "confidence": self.confidence,
            "needsReview": self.needs_review,
            "evidence": list(self.evidence),
            "decision": self.decision,
        }


@dataclass
class Candidate:
    """A DOM element picked by a page-side query as the subject of a check."""

    selector: str
    html: str = ""
    attrs: dict = field(default_factory=dict)  # aria-controls, href, ...

    @classmethod
    def from_raw(cls, raw: dict) -> Candidate:
        attrs = {k: v for k, v in raw.items() if k not in ("selector", "html")}
        return cls(selector=raw.get("selector") or "", html=raw.get("html") or "", attrs=attrs)


@dataclass
class CheckTiming:
    """Timing and outcome of one executed check."""

    check: str
    duration_ms: float
    issues: int
    error: str | None = None


@dataclass
class RunStats:
    """Summary of the last run_all() invocation."""

    total_duration_ms: float
    raw_issue_count: int
    deduped_issue_count: int
    final_issue_count: int
    suppressed_issue_count: int = 0
    capped_issue_count: int = 0
    frameworks: list[str] = field(default_factory=list)
    checks: list[CheckTiming] = field(default_factory=list)

    @property
    def failed_checks(self) -> list[str]:
        return [c.check for c in self.checks if c.error]

    def to_dict(self) -> dict:
        return asdict(self)


from .engine import A11yProbe  # noqa: E402
from .logging_config import configure as configure_logging  # noqa: E402
from .options import ScanOptions, SuppressionRule  # noqa: E402

__all__ = [
    "IMPACTS",
    "A11yProbe",
    "Candidate",
    "CheckTiming",
    "Issue",
    "RunStats",
    "ScanOptions",
    "SuppressionRule",
    "configure_logging",
]
