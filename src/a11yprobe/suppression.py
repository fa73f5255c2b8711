# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Suppression rules: drop known false positives before issues are returned.

Rules come from two places: caller configuration (ScanOptions.suppressions)
and framework detection. A rule matches an issue when every field it sets
matches: rule_id exactly, message_includes as a substring, selector_pattern
as a case-insensitive regex search against the issue selector.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from functools import lru_cache

from . import Issue
from .options import SuppressionRule

logger = logging.getLogger(__name__)

# Known false positives per component library. Framework widgets attach
# keyboard handlers from JS, so attribute-based handler checks miss them.
_FRAMEWORK_RULES: dict[str, tuple[SuppressionRule, ...]] = {
    "headlessui": (
        SuppressionRule(
            rule_id="wcag-2.1.1",
            message_includes="no keyboard handler",
            selector_pattern=r"headlessui-(menu|listbox|popover|disclosure|tabs)",
        ),
    ),
    "radix": (
        SuppressionRule(
            rule_id="wcag-2.1.1",
            message_includes="no keyboard handler",
            selector_pattern=r"radix-",
        ),
    ),
    "reachui": (
        SuppressionRule(
            rule_id="wcag-2.1.1",
            message_includes="no keyboard handler",
            selector_pattern=r"reach-|\[data-reach",
        ),
    ),
    "mui": (
        SuppressionRule(
            rule_id="wcag-2.1.1",
            message_includes="no keyboard handler",
            selector_pattern=r"Mui(ButtonBase|MenuItem|Tab|ListItem)",
        ),
    ),
    "chakra": (
        SuppressionRule(
            rule_id="wcag-2.1.1",
            message_includes="no keyboard handler",
            selector_pattern=r"chakra-",
        ),
    ),
    "bootstrap": (
        SuppressionRule(
            rule_id="wcag-2.1.1",
            message_includes="no keyboard handler",
            selector_pattern=r"dropdown-toggle|navbar-toggler",
        ),
    ),
}


def framework_suppressions(frameworks: Iterable[str]) -> list[SuppressionRule]:
    """Suppression rules for the detected frameworks, in detection order."""
    rules: list[SuppressionRule] = []
    for name in frameworks:
        rules.extend(_FRAMEWORK_RULES.get(name, ()))
    return rules


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning("Ignoring invalid suppression selector pattern %r: %s", pattern, e)
        return None


def rule_matches(rule: SuppressionRule, issue: Issue) -> bool:
    if rule.is_empty:
        return False
    if rule.rule_id and issue.rule_id != rule.rule_id:
        return False
    if rule.message_includes and rule.message_includes not in (issue.message or ""):
        return False
    if rule.selector_pattern:
        compiled = _compile(rule.selector_pattern)
        if compiled is None or not compiled.search(issue.selector or ""):
            return False
    return True


def should_suppress(issue: Issue, rules: Iterable[SuppressionRule]) -> bool:
    """True if any rule matches the issue."""
    return any(rule_matches(rule, issue) for rule in rules)
