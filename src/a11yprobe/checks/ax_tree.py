"""Accessibility-tree checks: name/role/value violations (4.1.2).

Walks the platform accessibility tree breadth-first. When the page handle
cannot produce a tree the check is skipped (zero issues), not failed.

Offenders are located by an AX path (``ax:main > form > button[2]``)
since tree nodes have no CSS selector.
"""

from __future__ import annotations

import logging
from collections import deque

from .. import Issue
from . import RunContext

logger = logging.getLogger(__name__)

NAME_REQUIRED_ROLES = frozenset(
    {
        "button",
        "link",
        "tab",
        "menuitem",
        "menuitemcheckbox",
        "menuitemradio",
        "checkbox",
        "radio",
        "switch",
        "textbox",
        "combobox",
    }
)

# Landmark/structural roles kept in the AX path for readability
_PATH_ROLES = frozenset(
    {
        "banner",
        "navigation",
        "main",
        "contentinfo",
        "complementary",
        "search",
        "form",
        "region",
        "dialog",
        "alertdialog",
        "menu",
        "menubar",
        "tablist",
        "list",
        "table",
        "grid",
        "toolbar",
    }
)


def find_tree_violations(tree: dict, limit: int) -> list[dict]:
    """BFS over a nested AX tree; returns raw violation dicts (pure function)."""
    found: list[dict] = []
    queue: deque[tuple[dict, tuple[str, ...]]] = deque([(tree, ())])
    while queue and len(found) < limit:
        node, path = queue.popleft()
        role = str(node.get("role", "")).lower()

        if not node.get("ignored") and role in NAME_REQUIRED_ROLES:
            if not str(node.get("name", "")).strip():
                found.append({"kind": "missing-name", "role": role, "path": path, "node": node})
            props = node.get("properties") or {}
            if role == "tab" and "selected" in props and not isinstance(props["selected"], bool):
                found.append({"kind": "tab-selected", "role": role, "path": path, "node": node})

        counts: dict[str, int] = {}
        for child in node.get("children", []):
            child_role = str(child.get("role", "")).lower() or "node"
            counts[child_role] = counts.get(child_role, 0) + 1
            if child_role in _PATH_ROLES or child_role in NAME_REQUIRED_ROLES:
                seg = child_role if counts[child_role] == 1 else f"{child_role}[{counts[child_role]}]"
                queue.append((child, (*path, seg)))
            else:
                queue.append((child, path))
    return found[:limit]


def _ax_path(path: tuple[str, ...], role: str) -> str:
    if path and path[-1].split("[")[0] == role:
        return "ax:" + " > ".join(path)
    return "ax:" + " > ".join((*path, role))


async def check_accessibility_tree(ctx: RunContext) -> list[Issue]:
    tree = await ctx.page.accessibility_tree()
    if not tree:
        logger.info("Accessibility tree unavailable; tree checks skipped")
        return []

    issues: list[Issue] = []
    for v in find_tree_violations(tree, ctx.options.max_issues_per_rule):
        node = v["node"]
        role = v["role"]
        locator = _ax_path(v["path"], role)
        evidence = [f"role={role}"]
        if node.get("backendDOMNodeId") is not None:
            evidence.append(f"backendDOMNodeId={node['backendDOMNodeId']}")
        if v["kind"] == "missing-name":
            issues.append(
                ctx.issue(
                    impact="serious",
                    rule_id="wcag-4.1.2",
                    message=f"Element with role {role} has no accessible name",
                    description="Interactive roles must expose a non-empty accessible name.",
                    selector=locator,
                    evidence=evidence,
                )
            )
        else:
            selected = node.get("properties", {}).get("selected")
            issues.append(
                ctx.issue(
                    impact="moderate",
                    rule_id="wcag-4.1.2",
                    message="Tab exposes a non-boolean selected state",
                    description="aria-selected on tabs must be true or false.",
                    selector=locator,
                    evidence=[*evidence, f"selected={selected!r}"],
                )
            )
    return issues
