# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page handle: the only browser-automation surface checks depend on.

Checks talk to a ``PageHandle`` (evaluate-in-page, press key, focus,
region screenshot, accessibility tree, pause). ``PlaywrightPageHandle``
implements it on top of a Playwright ``Page``; any other driver that
provides the same coroutines is substitutable.

The handle never launches, navigates, or closes anything: the page is
handed over already loaded and stays owned by the caller.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any, Protocol, runtime_checkable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .errors import PageHandleError

logger = logging.getLogger(__name__)

_CDP_AX_TREE_TIMEOUT = 10.0  # seconds
_FOCUS_TIMEOUT_MS = 2000
_HANDLE_METHODS = ("evaluate", "evaluate_on", "press", "focus", "screenshot_region", "accessibility_tree", "pause")


@runtime_checkable
class PageHandle(Protocol):
    """Capabilities a scan needs from a live, already-navigated page."""

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def evaluate_on(self, selector: str, script: str, arg: Any = None) -> Any: ...

    async def press(self, key: str) -> None: ...

    async def focus(self, selector: str) -> None: ...

    async def screenshot_region(self, box: dict) -> bytes: ...

    async def accessibility_tree(self) -> dict | None: ...

    async def pause(self, ms: int) -> None: ...


def cdp_ax_nodes_to_tree(nodes: list[dict]) -> dict | None:
    """Convert CDP Accessibility.getFullAXTree flat node list to a nested tree.

    Each node becomes {"role", "name", "value", "focused", "properties",
    "children", "backendDOMNodeId"}. ``properties`` keeps the raw CDP
    property values (``selected`` may be a bool, a string, or absent).
    """
    if not nodes:
        return None

    node_map: dict[str, dict] = {}
    for n in nodes:
        node_id = n.get("nodeId", "")
        role_obj = n.get("role", {})
        name_obj = n.get("name", {})
        role = role_obj.get("value", "") if isinstance(role_obj, dict) else str(role_obj)
        name = name_obj.get("value", "") if isinstance(name_obj, dict) else str(name_obj)

        properties: dict[str, Any] = {}
        for prop in n.get("properties", []):
            prop_val = prop.get("value", {})
            properties[prop.get("name", "")] = prop_val.get("value") if isinstance(prop_val, dict) else prop_val

        value_obj = n.get("value", {})
        value = value_obj.get("value", "") if isinstance(value_obj, dict) else (value_obj or "")

        node_map[node_id] = {
            "role": role,
            "name": name,
            "value": str(value),
            "focused": bool(properties.get("focused", False)),
            "ignored": bool(n.get("ignored", False)),
            "properties": properties,
            "children": [],
            "backendDOMNodeId": n.get("backendDOMNodeId"),
        }

    for n in nodes:
        parent_node = node_map.get(n.get("nodeId", ""))
        if parent_node is None:
            continue
        for cid in n.get("childIds", []):
            child_node = node_map.get(cid)
            if child_node:
                parent_node["children"].append(child_node)

    # Root is the first node
    return node_map.get(nodes[0].get("nodeId", ""))


class PlaywrightPageHandle:
    """PageHandle backed by a Playwright async Page."""

    def __init__(self, page: Page) -> None:
        self.page = page

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            return await self.page.evaluate(script, arg)
        except PlaywrightError as e:
            raise PageHandleError(f"evaluate failed: {e}") from e

    async def evaluate_on(self, selector: str, script: str, arg: Any = None) -> Any:
        try:
            handle = await self.page.query_selector(selector)
            if handle is None:
                raise PageHandleError(f"no element matches {selector!r}")
            try:
                return await handle.evaluate(script, arg)
            finally:
                await handle.dispose()
        except PlaywrightError as e:
            raise PageHandleError(f"evaluate_on {selector!r} failed: {e}") from e

    async def press(self, key: str) -> None:
        try:
            await self.page.keyboard.press(key)
        except PlaywrightError as e:
            raise PageHandleError(f"press {key!r} failed: {e}") from e

    async def focus(self, selector: str) -> None:
        try:
            await self.page.focus(selector, timeout=_FOCUS_TIMEOUT_MS)
        except PlaywrightError as e:
            raise PageHandleError(f"focus {selector!r} failed: {e}") from e

    async def screenshot_region(self, box: dict) -> bytes:
        clip = {k: float(box[k]) for k in ("x", "y", "width", "height")}
        try:
            return await self.page.screenshot(clip=clip, type="png", animations="disabled")
        except PlaywrightError as e:
            raise PageHandleError(f"screenshot failed: {e}") from e

    async def accessibility_tree(self) -> dict | None:
        """Full AX tree via CDP. None when CDP is unavailable (non-Chromium)."""
        try:
            cdp = await self.page.context.new_cdp_session(self.page)
        except PlaywrightError:
            logger.debug("CDP session unavailable; accessibility tree skipped", exc_info=True)
            return None
        try:
            async with asyncio.timeout(_CDP_AX_TREE_TIMEOUT):
                result = await cdp.send("Accessibility.getFullAXTree")
            return cdp_ax_nodes_to_tree(result.get("nodes", []))
        except (PlaywrightError, TimeoutError):
            logger.debug("Accessibility.getFullAXTree failed", exc_info=True)
            return None
        finally:
            with suppress(PlaywrightError):
                await cdp.detach()

    async def pause(self, ms: int) -> None:
        if ms > 0:
            await self.page.wait_for_timeout(ms)


def as_page_handle(page: Any) -> PageHandle:
    """Wrap a Playwright page; pass through anything providing the PageHandle coroutines."""
    if isinstance(page, Page):
        return PlaywrightPageHandle(page)
    # Duck-typed: any object exposing every handle coroutine
    if all(callable(getattr(page, name, None)) for name in _HANDLE_METHODS):
        return page
    raise TypeError(f"Unsupported page object: {type(page).__name__}")
