"""Cross-page consistency checks over pre-captured page snapshots.

Snapshots are ``{"html": str, "url": str?}`` mappings parsed with lxml,
not live pages. With no snapshots each check emits one review item
instead of silently passing.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import lxml.html
from lxml import etree

from .. import Issue
from ..issues import build_issue
from ..locator import element_selector
from . import RunContext

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")
_HELP_RE = re.compile(r"\b(help|support|contact)\b", re.IGNORECASE)
_NAV_XPATH = "//nav//a | //*[@role='navigation']//a"
MAX_EVIDENCE = 5


@dataclass
class ParsedSnapshot:
    index: int
    label: str  # url when known, else "page N"
    doc: lxml.html.HtmlElement | None


def _text(el: lxml.html.HtmlElement) -> str:
    return _WS_RE.sub(" ", el.text_content() or "").strip()


def parse_snapshots(snapshots: Iterable[Mapping | object]) -> list[ParsedSnapshot]:
    parsed: list[ParsedSnapshot] = []
    for i, snap in enumerate(snapshots):
        if isinstance(snap, Mapping):
            html, url = snap.get("html") or "", snap.get("url") or ""
        else:
            html, url = getattr(snap, "html", "") or "", getattr(snap, "url", "") or ""
        doc = None
        if html.strip():
            try:
                doc = lxml.html.document_fromstring(html)
            except (etree.ParserError, ValueError) as e:
                logger.debug("Snapshot %d could not be parsed: %s", i, e)
        parsed.append(ParsedSnapshot(index=i, label=url or f"page {i + 1}", doc=doc))
    return parsed


def _review_issue(rule_id: str, message: str, description: str) -> Issue:
    return build_issue(
        impact="moderate",
        rule_id=rule_id,
        message=message,
        description=description,
        needs_review=True,
        confidence=0.3,
    )


# ── Consistent navigation (3.2.3) ────────────────────────────────────


def navigation_issues(pages: list[ParsedSnapshot]) -> list[Issue]:
    if not pages:
        return [
            _review_issue(
                "wcag-3.2.3",
                "Consistent navigation requires multi-page review",
                "Provide multiple pages to compare navigation consistency.",
            )
        ]
    link_sets = []
    for page in pages:
        links = {_text(a) for a in page.doc.xpath(_NAV_XPATH)} if page.doc is not None else set()
        link_sets.append(links - {""})

    base = link_sets[0]
    evidence = []
    for page, links in zip(pages[1:], link_sets[1:], strict=True):
        if links == base:
            continue
        missing = sorted(base - links)[:3]
        extra = sorted(links - base)[:3]
        evidence.append(f"{page.label}: missing {missing or '-'}, extra {extra or '-'}")
    if not evidence:
        return []
    return [
        build_issue(
            impact="moderate",
            rule_id="wcag-3.2.3",
            message="Navigation differs between pages",
            description="Repeated navigation should keep the same links across pages.",
            evidence=[f"baseline: {pages[0].label}", *evidence[:MAX_EVIDENCE]],
        )
    ]


# ── Consistent identification (3.2.4) ────────────────────────────────


def identification_issues(pages: list[ParsedSnapshot]) -> list[Issue]:
    if not pages:
        return [
            _review_issue(
                "wcag-3.2.4",
                "Consistent identification requires multi-page review",
                "Provide multiple pages to compare labels and controls.",
            )
        ]
    hrefs_by_text: dict[str, dict[str, tuple[ParsedSnapshot, lxml.html.HtmlElement]]] = {}
    for page in pages:
        if page.doc is None:
            continue
        for a in page.doc.iter("a"):
            text = _text(a)
            if not text:
                continue
            href = (a.get("href") or "").strip()
            hrefs_by_text.setdefault(text, {}).setdefault(href, (page, a))

    issues: list[Issue] = []
    for text, by_href in hrefs_by_text.items():
        if len(by_href) < 2:
            continue
        first_page, first_el = next(iter(by_href.values()))
        issues.append(
            build_issue(
                impact="moderate",
                rule_id="wcag-3.2.4",
                message=f'Link text "{text[:60]}" maps to different destinations',
                description="Controls with the same label should lead to the same place.",
                selector=element_selector(first_el),
                html=lxml.html.tostring(first_el, encoding="unicode")[:300],
                evidence=[f"{p.label}: {href or '(no href)'}" for href, (p, _) in list(by_href.items())[:MAX_EVIDENCE]],
            )
        )
        logger.debug("Inconsistent link label %r first seen on %s", text, first_page.label)
    return issues


# ── Consistent help (3.2.6) ──────────────────────────────────────────


def help_issues(pages: list[ParsedSnapshot]) -> list[Issue]:
    if not pages:
        return [
            _review_issue(
                "wcag-3.2.6",
                "Consistent help requires multi-page review",
                "Provide multiple pages to compare help mechanisms.",
            )
        ]
    has_help = []
    for page in pages:
        found = page.doc is not None and any(_HELP_RE.search(_text(a)) for a in page.doc.iter("a"))
        has_help.append(found)
    if all(h == has_help[0] for h in has_help):
        return []
    return [
        build_issue(
            impact="moderate",
            rule_id="wcag-3.2.6",
            message="Help mechanisms differ across pages",
            description="Help links should be available consistently across similar pages.",
            evidence=[
                f"{page.label}: {'help link' if found else 'no help link'}"
                for page, found in list(zip(pages, has_help, strict=True))[:MAX_EVIDENCE]
            ],
        )
    ]


# ── Battery entry points ─────────────────────────────────────────────


async def check_consistent_navigation(ctx: RunContext) -> list[Issue]:
    return navigation_issues(parse_snapshots(ctx.page_snapshots))


async def check_consistent_identification(ctx: RunContext) -> list[Issue]:
    return identification_issues(parse_snapshots(ctx.page_snapshots))


async def check_consistent_help(ctx: RunContext) -> list[Issue]:
    return help_issues(parse_snapshots(ctx.page_snapshots))
