"""Element locator: stable, human-readable selector paths for offenders.

Page side: ``HELPERS_JS`` is spliced into every check script by
``page_script()`` so all checks build selectors the same way:

- ``#id`` when the element has an id
- otherwise ``tag.class1.class2:nth-of-type(n)`` segments joined with
  `` > ``, walking at most 4 levels up and stopping at an ancestor id

Python side: ``element_selector()`` applies the same rules to lxml
elements parsed from page snapshots (cross-page checks).
"""

from __future__ import annotations

import re

import lxml.html

MAX_SELECTOR_DEPTH = 4
MAX_CLASSES = 2

HELPERS_JS = """\
  const MAX_HTML = (arg && arg.maxHtml) || 300;
  const cssEscape = (s) => (window.CSS && CSS.escape) ? CSS.escape(s) : String(s).replace(/[^\\w-]/g, "\\\\$&");
  const buildSelector = (el) => {
    if (!el || !el.tagName) return null;
    if (el.id) return "#" + cssEscape(el.id);
    const parts = [];
    let node = el;
    while (node && node.tagName && parts.length < 4) {
      if (node !== el && node.id) { parts.unshift("#" + cssEscape(node.id)); break; }
      let part = node.tagName.toLowerCase();
      if (node.classList && node.classList.length > 0) {
        const classes = Array.from(node.classList).slice(0, 2).map(cssEscape);
        if (classes.length) part += "." + classes.join(".");
      }
      const parent = node.parentElement;
      if (parent) {
        const sibs = Array.from(parent.children).filter((s) => s.tagName === node.tagName);
        if (sibs.length > 1) part += ":nth-of-type(" + (sibs.indexOf(node) + 1) + ")";
      }
      parts.unshift(part);
      node = node.parentElement;
    }
    return parts.join(" > ");
  };
  const selectorOf = (el) => buildSelector(el) || (el && el.tagName ? el.tagName.toLowerCase() : "");
  const snippet = (el) => (el && el.outerHTML ? el.outerHTML.slice(0, MAX_HTML) : null);
  const isVisible = (el) => {
    if (!el || !el.isConnected) return false;
    const st = window.getComputedStyle(el);
    if (st.display === "none" || st.visibility === "hidden" || st.visibility === "collapse") return false;
    if (el.hidden || el.closest("[hidden]")) return false;
    if (el.getAttribute("aria-hidden") === "true") return false;
    const r = el.getBoundingClientRect();
    return r.width > 0 && r.height > 0;
  };
  const FOCUSABLE = "a[href], area[href], button, input:not([type=hidden]), select, textarea, " +
    "iframe, summary, [contenteditable=''], [contenteditable=true], [tabindex]";
  const isFocusable = (el) => {
    if (!el || el.disabled) return false;
    if (el.matches(FOCUSABLE) && el.tabIndex >= 0) return true;
    return el.tabIndex >= 0 && el.hasAttribute("tabindex");
  };
  const byId = (id) => (id ? document.getElementById(id) : null);
  const ctrlTarget = (el) => {
    const ids = (el.getAttribute("aria-controls") || "").trim().split(/\\s+/).filter(Boolean);
    for (const id of ids) { const t = byId(id); if (t) return t; }
    return null;
  };
"""


def page_script(body: str) -> str:
    """Wrap a check body into a single-argument page function with helpers."""
    return "(arg) => {\n" + HELPERS_JS + body + "\n}"


# ── Python mirror for parsed snapshots ──────────────────────────────────

_CSS_SPECIAL_RE = re.compile(r"([^\w-])")


def css_escape(value: str) -> str:
    escaped = _CSS_SPECIAL_RE.sub(r"\\\1", value)
    if escaped[:1].isdigit():
        escaped = f"\\3{escaped[0]} {escaped[1:]}"
    return escaped


def _segment(el: lxml.html.HtmlElement) -> str:
    tag = el.tag.lower() if isinstance(el.tag, str) else "node"
    part = tag
    classes = (el.get("class") or "").split()[:MAX_CLASSES]
    if classes:
        part += "." + ".".join(css_escape(c) for c in classes)
    parent = el.getparent()
    if parent is not None:
        sibs = [s for s in parent if isinstance(s.tag, str) and s.tag.lower() == tag]
        if len(sibs) > 1:
            part += f":nth-of-type({sibs.index(el) + 1})"
    return part


def element_selector(el: lxml.html.HtmlElement) -> str:
    """Selector path for an lxml element, same rules as the page-side helper."""
    el_id = el.get("id")
    if el_id:
        return "#" + css_escape(el_id)
    parts: list[str] = []
    node = el
    while node is not None and isinstance(node.tag, str) and len(parts) < MAX_SELECTOR_DEPTH:
        if node is not el and node.get("id"):
            parts.insert(0, "#" + css_escape(node.get("id")))
            break
        parts.insert(0, _segment(node))
        node = node.getparent()
    return " > ".join(parts)
