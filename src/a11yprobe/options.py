# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Scan options and suppression rules.

Both models accept the camelCase keys used by scan workers
(``maxFocusableChecks``, ``ruleId``) as well as snake_case field names.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import OptionsError

logger = logging.getLogger(__name__)

ENV_PREFIX = "A11YPROBE_"


class SuppressionRule(BaseModel):
    """Pattern that removes matching issues. Every present field must match."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    rule_id: str | None = None
    message_includes: str | None = None
    selector_pattern: str | None = None  # regex, matched case-insensitively

    @property
    def is_empty(self) -> bool:
        return not (self.rule_id or self.message_includes or self.selector_pattern)


class ScanOptions(BaseModel):
    """Run configuration for A11yProbe."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    max_focusable_checks: int = Field(20, ge=0, description="Focusables sampled by focus checks")
    max_tab_steps: int = Field(30, ge=1, description="Tab presses per direction in the trap check")
    impact: str = Field("moderate", pattern="^(critical|serious|moderate|minor)$")
    include_multi_page_checks: bool = False
    include_experimental_checks: bool = False
    max_issues_per_rule: int = Field(25, ge=1)
    max_component_checks: int = Field(8, ge=0, description="Candidates per scenario check")
    include_accessibility_tree_checks: bool = True
    min_confidence_for_auto_raise: float = Field(0.7, ge=0.0, le=1.0)
    enable_visual_focus_checks: bool = True
    visual_diff_min_ratio: float = Field(0.012, ge=0.0, le=1.0)
    suppressions: list[SuppressionRule] = Field(default_factory=list)
    # Keyboard-trap stability: a direction is trapped once the active element
    # repeats trap_stable_repeats times while visiting <= trap_max_distinct elements.
    trap_stable_repeats: int = Field(6, ge=1)
    trap_max_distinct: int = Field(2, ge=1)
    settle_ms: int = Field(120, ge=0, le=5000, description="Pause after each key press")
    max_html_length: int = Field(300, ge=40)

    @classmethod
    def from_mapping(cls, raw: Mapping | ScanOptions | None) -> ScanOptions:
        """Build options from a dict (camelCase or snake_case keys)."""
        if raw is None:
            return cls()
        if isinstance(raw, ScanOptions):
            return raw
        try:
            return cls.model_validate(dict(raw))
        except ValidationError as e:
            raise OptionsError(f"Invalid scan options: {e}") from e

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> ScanOptions:
        """Build options from ``A11YPROBE_*`` environment variables.

        Recognized: EXPERIMENTAL, TREE_CHECKS, VISUAL_FOCUS_CHECKS,
        AUTORAISE_CONFIDENCE, MAX_ISSUES_PER_RULE, SUPPRESSIONS_JSON.
        Malformed suppressions JSON is logged and ignored.
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        def _get(name: str) -> str:
            return env.get(ENV_PREFIX + name, "").strip()

        if v := _get("EXPERIMENTAL"):
            values["include_experimental_checks"] = v.lower() in ("1", "true", "yes")
        if v := _get("TREE_CHECKS"):
            values["include_accessibility_tree_checks"] = v.lower() not in ("0", "false", "no")
        if v := _get("VISUAL_FOCUS_CHECKS"):
            values["enable_visual_focus_checks"] = v.lower() not in ("0", "false", "no")
        if v := _get("AUTORAISE_CONFIDENCE"):
            try:
                values["min_confidence_for_auto_raise"] = float(v)
            except ValueError:
                logger.warning("Ignoring non-numeric %sAUTORAISE_CONFIDENCE=%r", ENV_PREFIX, v)
        if v := _get("MAX_ISSUES_PER_RULE"):
            try:
                values["max_issues_per_rule"] = int(v)
            except ValueError:
                logger.warning("Ignoring non-integer %sMAX_ISSUES_PER_RULE=%r", ENV_PREFIX, v)
        if v := _get("SUPPRESSIONS_JSON"):
            values["suppressions"] = _parse_suppressions_json(v)

        values.update(overrides)
        return cls.from_mapping(values)


def _parse_suppressions_json(raw: str) -> list[dict]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring malformed suppressions JSON: %s", e)
        return []
    if not isinstance(parsed, list):
        logger.warning("Ignoring suppressions JSON: expected a list, got %s", type(parsed).__name__)
        return []
    return [item for item in parsed if isinstance(item, dict)]
