# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Document handle: an lxml HTML tree plus the address it was loaded from.

The tree is the "live" page for extraction and highlighting.  It is read by the
extractor and the locator; the only mutation is the highlight style applied by
``locator.Highlighter``.

Three ways in:
- ``Document.from_html()`` for HTML already in hand (snapshots, tests)
- ``fetch_document()`` plain HTTP GET via httpx
- ``render_document()`` / ``capture_page()`` via Playwright for JS-rendered pages
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

import httpx
import lxml.html
from lxml import etree
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from .errors import DocumentError

try:
    from importlib.metadata import version as _pkg_version

    _LINKAUDIT_VERSION = _pkg_version("retio-linkaudit")
except Exception:
    _LINKAUDIT_VERSION = "unknown"

logger = logging.getLogger(__name__)

USER_AGENT = f"LinkAudit/{_LINKAUDIT_VERSION} (+https://github.com/Retio-ai/linkaudit)"
_FETCH_TIMEOUT = 30.0
_RENDER_TIMEOUT_MS = 30_000

_EMPTY_HTML = "<html><head></head><body></body></html>"

# lxml refuses str input that carries an encoding declaration (XHTML prologs)
_XML_DECL_RE = re.compile(r"^\s*<\?xml[^>]*\?>")

# SharePoint host markers (production + dogfood tenants)
SHAREPOINT_HOST_MARKERS: tuple[str, ...] = ("sharepoint.com", "sharepoint-df.com")

_ASPX_RE = re.compile(r"\.aspx", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class SiteInfo:
    """Identifying details of the scanned page."""

    site_title: str
    page_title: str
    clean_url: str  # URL cut right after ".aspx"
    full_url: str


class Document:
    """Parsed page.  Hrefs resolve against ``<base href>`` or the page URL."""

    __slots__ = ("_root", "_url", "_base_url")

    def __init__(self, root: lxml.html.HtmlElement, url: str) -> None:
        self._root = root
        self._url = url
        base = root.find(".//base[@href]")
        self._base_url = urljoin(url, base.get("href").strip()) if base is not None else url

    @classmethod
    def from_html(cls, html: str | bytes, url: str) -> Document:
        """Parse *html* as the page at *url*.

        Empty input, or markup without a single element (comments only), gives
        an empty document.
        """
        if isinstance(html, str):
            html = _XML_DECL_RE.sub("", html, count=1)
        if not html.strip():
            html = _EMPTY_HTML
        try:
            root = lxml.html.document_fromstring(html)
        except etree.ParserError as e:
            if str(e) != "Document is empty":
                raise DocumentError(f"Cannot parse HTML for {url}: {e}") from e
            root = lxml.html.document_fromstring(_EMPTY_HTML)
        except ValueError as e:
            raise DocumentError(f"Cannot parse HTML for {url}: {e}") from e
        return cls(root, url)

    # -- Properties --

    @property
    def root(self) -> lxml.html.HtmlElement:
        return self._root

    @property
    def url(self) -> str:
        return self._url

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def host(self) -> str:
        """Lowercased hostname of the page ("" when the URL has none)."""
        try:
            return (urlsplit(self._url).hostname or "").lower()
        except ValueError:
            return ""

    @property
    def title(self) -> str:
        return (self._root.findtext(".//title") or "").strip()

    # -- Anchors --

    def anchors(self) -> list[lxml.html.HtmlElement]:
        """All ``<a href>`` elements in document order."""
        return [el for el in self._root.iter("a") if el.get("href") is not None]

    def resolve(self, href: str) -> str:
        """Absolute destination of *href*, the way a browser computes ``element.href``."""
        href = href.strip()
        if not href:
            return ""
        try:
            return urljoin(self._base_url, href)
        except ValueError:
            return href

    def __repr__(self) -> str:
        return f"Document(url={self._url!r}, anchors={len(self.anchors())})"


# ---------------------------------------------------------------------------
# SharePoint detection
# ---------------------------------------------------------------------------


def is_sharepoint_site(document: Document) -> bool:
    """Host markers, the PnP version meta tag, or a SharePoint script include."""
    host = document.host
    if any(marker in host for marker in SHAREPOINT_HOST_MARKERS):
        return True
    root = document.root
    if root.find('.//meta[@name="ms.sharepointpnpversion"]') is not None:
        return True
    return any("sharepoint" in (s.get("src") or "").lower() for s in root.iter("script"))


def site_info(document: Document) -> SiteInfo:
    header = document.root.get_element_by_id("SiteHeaderTitle", None)
    site_title = header.text_content().strip() if header is not None else ""

    full_url = document.url
    m = _ASPX_RE.search(full_url)
    clean_url = full_url[: m.end()] if m else full_url

    return SiteInfo(
        site_title=site_title or "Unknown Site",
        page_title=document.title or "Unknown Page",
        clean_url=clean_url,
        full_url=full_url,
    )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


async def fetch_document(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = _FETCH_TIMEOUT,
) -> Document:
    """GET *url* (redirects followed) and parse the final response."""
    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(headers={"User-Agent": USER_AGENT}, follow_redirects=True)
    try:
        resp = await client.get(url, timeout=timeout, follow_redirects=True)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise DocumentError(f"Page returned HTTP {e.response.status_code}: {url}") from e
    except httpx.HTTPError as e:
        raise DocumentError(f"Could not fetch {url}: {type(e).__name__}") from e
    finally:
        if own_client:
            await client.aclose()

    final_url = str(resp.url)
    logger.debug("Fetched %s (%d bytes, final=%s)", url, len(resp.content), final_url)
    return Document.from_html(resp.text, final_url)


async def capture_page(page: Page) -> Document:
    """Snapshot the current DOM of a Playwright page."""
    try:
        html = await page.content()
    except PlaywrightError as e:
        raise DocumentError(f"Could not read page content: {e}") from e
    return Document.from_html(html, page.url)


async def render_document(url: str, *, timeout_ms: int = _RENDER_TIMEOUT_MS) -> Document:
    """Load *url* in headless Chromium and capture the rendered DOM."""
    async with async_playwright() as pw:
        try:
            browser = await pw.chromium.launch(headless=True)
        except PlaywrightError as e:
            raise DocumentError(f"Chromium unavailable: {e}") from e
        try:
            page = await browser.new_page(user_agent=USER_AGENT)
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            return await capture_page(page)
        except PlaywrightError as e:
            raise DocumentError(f"Could not render {url}: {e}") from e
        finally:
            await browser.close()
