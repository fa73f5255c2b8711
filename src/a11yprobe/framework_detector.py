# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Component-library detection from DOM signatures.

Leaf module. One page round trip per run; the result feeds the
suppression engine (framework-specific false positives) and the
keyboard-accessibility check (lower confidence on managed widgets).
"""

from __future__ import annotations

import logging

from .page_handle import PageHandle

logger = logging.getLogger(__name__)

FRAMEWORKS = ("radix", "mui", "headlessui", "reachui", "bootstrap", "chakra")

# Each entry is a CSS selector list; one match is enough.
FRAMEWORK_SIGNATURES: dict[str, str] = {
    "radix": "[data-radix-collection-item], [data-radix-popper-content-wrapper], "
    "[data-radix-scroll-area-viewport], [id^='radix-'], [aria-controls^='radix-']",
    "mui": "[class*='MuiButtonBase-root'], [class*='MuiPopover-root'], [class*='MuiMenu-'], "
    "[class*='MuiTab-'], [class*='MuiDialog-']",
    "headlessui": "[id^='headlessui-'], [data-headlessui-state], [data-headlessui-portal]",
    "reachui": "[data-reach-menu-button], [data-reach-dialog-overlay], [data-reach-tabs], "
    "[data-reach-listbox-button], [data-reach-disclosure-button]",
    "bootstrap": "[data-bs-toggle], [data-toggle='dropdown'], [data-toggle='modal'], "
    ".navbar-toggler, .dropdown-menu, .carousel-item",
    "chakra": "[class*='chakra-'], [data-chakra-component], #chakra-toast-portal",
}

_DETECT_JS = """\
(signatures) => {
  const found = [];
  for (const [name, selector] of Object.entries(signatures)) {
    try {
      if (document.querySelector(selector)) found.push(name);
    } catch (e) {}
  }
  if (!found.includes("bootstrap") && window.bootstrap && window.bootstrap.Modal) found.push("bootstrap");
  return found;
}
"""


async def detect_frameworks(page: PageHandle) -> list[str]:
    """Return detected framework tags in FRAMEWORKS order. Errors yield []."""
    try:
        raw = await page.evaluate(_DETECT_JS, FRAMEWORK_SIGNATURES)
    except Exception:
        logger.debug("Framework detection failed", exc_info=True)
        return []
    if not isinstance(raw, list):
        return []
    found = {str(x) for x in raw}
    detected = [name for name in FRAMEWORKS if name in found]
    if detected:
        logger.info("Detected UI frameworks: %s", ", ".join(detected))
    return detected
