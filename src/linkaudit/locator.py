# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Re-find a link's anchor element by URL, for highlighting.

The page may have changed since extraction, so matching falls back through
strategies of decreasing precision.  Each strategy is a pure predicate over one
candidate anchor; the first strategy with any matching anchor wins, and within a
strategy the first anchor in document order wins.

Not finding an element is an expected outcome (``None``), not an error.

``Highlighter`` owns the single "marked element" slot: marking a new element
clears the previous mark first; ``clear()`` is idempotent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlsplit

import lxml.html

from .document import Document

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AnchorView:
    """A candidate anchor: raw attribute value and browser-resolved destination."""

    element: lxml.html.HtmlElement
    href: str
    resolved: str


def _strip_fragment(url: str) -> str:
    return url.split("#", 1)[0]


def _strip_query(url: str) -> str:
    return url.split("?", 1)[0]


def _host_and_path(url: str) -> tuple[str, str] | None:
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or host is None:
        return None
    return host, parts.path


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def match_exact(anchor: AnchorView, target: str) -> bool:
    return anchor.href == target


def match_without_fragment(anchor: AnchorView, target: str) -> bool:
    return anchor.href == _strip_fragment(target)


def match_without_query(anchor: AnchorView, target: str) -> bool:
    return anchor.href == _strip_query(_strip_fragment(target))


def match_host_and_path(anchor: AnchorView, target: str) -> bool:
    """Hostname and path equal; query and fragment ignored."""
    target_parts = _host_and_path(target)
    if target_parts is None:
        return False
    return _host_and_path(anchor.resolved) == target_parts


def match_resolved_href(anchor: AnchorView, target: str) -> bool:
    """Computed absolute href equals the target (covers relative attributes)."""
    return anchor.resolved == target


Strategy = Callable[[AnchorView, str], bool]

STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("exact", match_exact),
    ("without_fragment", match_without_fragment),
    ("without_query", match_without_query),
    ("host_and_path", match_host_and_path),
    ("resolved_href", match_resolved_href),
)


@dataclass(frozen=True, slots=True)
class LocateResult:
    element: lxml.html.HtmlElement
    strategy: str


def anchor_views(document: Document) -> list[AnchorView]:
    views = []
    for el in document.anchors():
        href = el.get("href", "")
        views.append(AnchorView(element=el, href=href, resolved=document.resolve(href)))
    return views


def locate(document: Document, url: str) -> LocateResult | None:
    """Best-matching anchor currently in *document* for *url*, or None."""
    if not url:
        return None
    candidates = anchor_views(document)
    for name, strategy in STRATEGIES:
        for anchor in candidates:
            if strategy(anchor, url):
                logger.debug("Located %s via %s", url, name)
                return LocateResult(element=anchor.element, strategy=name)
    logger.debug("Could not locate element for %s", url)
    return None


# ---------------------------------------------------------------------------
# Mark state
# ---------------------------------------------------------------------------

HIGHLIGHT_STYLE = (
    "outline: 5px solid #ff0000; outline-offset: 3px; "
    "background-color: rgba(255, 0, 0, 0.15); border-radius: 4px; "
    "transition: all 0.2s ease-in-out; z-index: 9999"
)


class Highlighter:
    """Single-slot mark: Unmarked | Marked(element).

    Not safe for concurrent ``mark`` calls; callers debounce.
    """

    __slots__ = ("_marked", "_saved_style", "_strategy")

    def __init__(self) -> None:
        self._marked: lxml.html.HtmlElement | None = None
        self._saved_style: str | None = None
        self._strategy: str = ""

    @property
    def marked(self) -> lxml.html.HtmlElement | None:
        return self._marked

    @property
    def is_marked(self) -> bool:
        return self._marked is not None

    @property
    def strategy(self) -> str:
        """Strategy that produced the current mark ("" when unmarked)."""
        return self._strategy

    def mark(self, document: Document, url: str) -> bool:
        """Clear any previous mark, then locate and mark *url*.  False if not found."""
        self.clear()
        result = locate(document, url)
        if result is None:
            return False

        element = result.element
        self._saved_style = element.get("style")
        element.set("style", HIGHLIGHT_STYLE)
        self._marked = element
        self._strategy = result.strategy
        return True

    def clear(self) -> None:
        """Remove the mark and restore the element's original style.  Idempotent."""
        element = self._marked
        if element is None:
            return
        if self._saved_style is None:
            element.attrib.pop("style", None)
        else:
            element.set("style", self._saved_style)
        self._marked = None
        self._saved_style = None
        self._strategy = ""
