# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Anchor extraction with structural location tagging.

Walks ``<a href>`` elements in document order and produces pre-classification
LinkRecords.  Location is decided once, first match wins:

  1. footer — anchor or an ancestor (up to <body>) is <footer> or role=contentinfo
  2. nav    — anchor contains a SharePoint navigation label span
  3. body   — everything else
"""

from __future__ import annotations

import logging

import lxml.html

from . import LinkRecord, Location
from .document import Document
from .sanitizer import sanitize_text

logger = logging.getLogger(__name__)

# (tag, class) pairs that mark an anchor as a site-navigation item
DEFAULT_NAV_MARKERS: tuple[tuple[str, str], ...] = (
    ("span", "ms-HorizontalNavItem-linkText"),
    ("span", "ms-Nav-linkText"),
)

_SCRIPT_SCHEME = "javascript:"


def _is_footer(element: lxml.html.HtmlElement) -> bool:
    current = element
    while current is not None and current.tag != "body":
        if current.tag == "footer" or (current.get("role") or "").strip().lower() == "contentinfo":
            return True
        current = current.getparent()
    return False


def _has_nav_marker(element: lxml.html.HtmlElement, markers: tuple[tuple[str, str], ...]) -> bool:
    if not markers:
        return False
    for descendant in element.iterdescendants(*{tag for tag, _ in markers}):
        classes = (descendant.get("class") or "").split()
        for tag, cls in markers:
            if descendant.tag == tag and cls in classes:
                return True
    return False


def link_location(
    element: lxml.html.HtmlElement,
    nav_markers: tuple[tuple[str, str], ...] = DEFAULT_NAV_MARKERS,
) -> Location:
    """Structural location of one anchor element."""
    if _is_footer(element):
        return Location.FOOTER
    if _has_nav_marker(element, nav_markers):
        return Location.NAV
    return Location.BODY


def extract_links(
    document: Document,
    *,
    nav_markers: tuple[tuple[str, str], ...] = DEFAULT_NAV_MARKERS,
) -> list[LinkRecord]:
    """Every anchor with a usable destination, in document order.

    Drops empty destinations and ``javascript:`` pseudo-links.  Read-only.
    """
    records: list[LinkRecord] = []
    skipped = 0

    for anchor in document.anchors():
        url = document.resolve(anchor.get("href", ""))
        if not url or url.lower().startswith(_SCRIPT_SCHEME):
            skipped += 1
            continue
        records.append(
            LinkRecord(
                url=url,
                text=sanitize_text(anchor.text_content()),
                location=link_location(anchor, nav_markers),
            )
        )

    logger.debug("Extracted %d links from %s (%d skipped)", len(records), document.url, skipped)
    return records
