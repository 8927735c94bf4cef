# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Receivers for the two non-panel sides of the channel.

- ``ProbeService`` — network side; answers CHECK_LINK_STATUS with one probe.
- ``PageAgent``    — page side; owns the document, the rule set, and the mark
  state.  Answers link scans, highlight requests, and batch status checks,
  fanning each batch out to the probe side one link per call.

A batch status check never fails as a whole: a transport failure for one link
turns into NetworkError (``transport_failed=True``) for that link only.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from . import NETWORK_ERROR, Category, LinkRecord, VerificationOutcome
from .classifier import ClassificationRuleSet, scan
from .document import Document, is_sharepoint_site, site_info
from .errors import TransportError
from .locator import Highlighter
from .ranker import sort_key
from .rpc import (
    ChannelProtocol,
    CheckExternalLinksStatusRequest,
    CheckExternalLinksStatusResponse,
    CheckLinkStatusRequest,
    CheckLinkStatusResponse,
    CheckSiteRequest,
    CheckSiteResponse,
    GetLinksRequest,
    GetLinksResponse,
    Handler,
    HighlightLinkRequest,
    HighlightResponse,
    LinkPayload,
    PingRequest,
    PingResponse,
    RemoveHighlightRequest,
    RequestType,
    SiteInfoPayload,
    check_link_call_timeout,
)
from .verifier import PROBE_TIMEOUT, probe

logger = logging.getLogger(__name__)


class ProbeService:
    """Network-side receiver.  Shares one httpx client across probes."""

    def __init__(self, client: httpx.AsyncClient | None = None, *, timeout: float = PROBE_TIMEOUT) -> None:
        self._client = client
        self._own_client = client is None
        self._timeout = timeout

    async def __aenter__(self) -> ProbeService:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._own_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def handlers(self) -> dict[RequestType, Handler]:
        return {RequestType.CHECK_LINK_STATUS: self.check_link_status}

    async def check_link_status(self, request: CheckLinkStatusRequest) -> CheckLinkStatusResponse:
        if self._client is None:
            self._client = httpx.AsyncClient()
        outcome = await probe(self._client, request.url, timeout=self._timeout)
        return CheckLinkStatusResponse.from_outcome(outcome)


class PageAgent:
    """Page-side receiver bound to one document.

    *probe_channel* carries CHECK_LINK_STATUS requests to a ``ProbeService``.
    *probe_call_timeout* must cover that service's probe budget twice over;
    see ``rpc.check_link_call_timeout``.
    """

    def __init__(
        self,
        document: Document,
        probe_channel: ChannelProtocol,
        *,
        rules: ClassificationRuleSet | None = None,
        probe_call_timeout: float | None = None,
    ) -> None:
        self._document = document
        self._probe_channel = probe_channel
        self._rules = rules or ClassificationRuleSet.default()
        if probe_call_timeout is None:
            probe_call_timeout = check_link_call_timeout(PROBE_TIMEOUT)
        self._probe_call_timeout = probe_call_timeout
        self._highlighter = Highlighter()

    @property
    def document(self) -> Document:
        return self._document

    @property
    def highlighter(self) -> Highlighter:
        return self._highlighter

    def replace_document(self, document: Document) -> None:
        """Swap in a fresh snapshot of the page.  Drops any mark on the old one."""
        self._highlighter.clear()
        self._document = document

    def handlers(self) -> dict[RequestType, Handler]:
        return {
            RequestType.PING: self.ping,
            RequestType.CHECK_SITE: self.check_site,
            RequestType.GET_LINKS: self.get_links,
            RequestType.CHECK_EXTERNAL_LINKS_STATUS: self.check_external_links_status,
            RequestType.HIGHLIGHT_LINK: self.highlight_link,
            RequestType.REMOVE_HIGHLIGHT: self.remove_highlight,
        }

    # -- Handlers --

    async def ping(self, request: PingRequest) -> PingResponse:
        return PingResponse()

    async def check_site(self, request: CheckSiteRequest) -> CheckSiteResponse:
        doc = self._document
        sharepoint = is_sharepoint_site(doc)
        info = None
        if sharepoint:
            s = site_info(doc)
            info = SiteInfoPayload(
                site_title=s.site_title, page_title=s.page_title, clean_url=s.clean_url, full_url=s.full_url
            )
        return CheckSiteResponse(is_sharepoint=sharepoint, url=doc.url, title=doc.title, site_info=info)

    async def get_links(self, request: GetLinksRequest) -> GetLinksResponse:
        result = scan(self._document, self._rules)
        wanted = set(request.categories)

        def _payloads(category: Category) -> tuple[LinkPayload, ...]:
            if category not in wanted:
                return ()
            return tuple(LinkPayload.from_record(r) for r in result.by_category(category))

        return GetLinksResponse(
            team=_payloads(Category.TEAM),
            onedrive=_payloads(Category.ONEDRIVE),
            email=_payloads(Category.EMAIL),
            external=_payloads(Category.EXTERNAL),
            excluded_count=result.excluded_count,
            total=result.total,
        )

    async def check_external_links_status(
        self, request: CheckExternalLinksStatusRequest
    ) -> CheckExternalLinksStatusResponse:
        records = [p.to_record() for p in request.links]
        outcomes = await self.verify([r.url for r in records])

        checked: list[tuple[LinkRecord, bool]] = []
        for record, outcome in zip(records, outcomes, strict=True):
            checked.append((record.with_status(outcome.status), outcome.transport_failed))

        checked.sort(key=lambda pair: sort_key(pair[0]))
        return CheckExternalLinksStatusResponse(
            links=tuple(LinkPayload.from_record(r, transport_failed=failed) for r, failed in checked)
        )

    async def highlight_link(self, request: HighlightLinkRequest) -> HighlightResponse:
        found = self._highlighter.mark(self._document, request.url)
        if not found:
            logger.debug("Highlight target not on page: %s", request.url)
        return HighlightResponse(success=True, found=found, strategy=self._highlighter.strategy)

    async def remove_highlight(self, request: RemoveHighlightRequest) -> HighlightResponse:
        self._highlighter.clear()
        return HighlightResponse(success=True)

    # -- Verification over the probe channel --

    async def _check_one(self, url: str) -> VerificationOutcome:
        try:
            response = await self._probe_channel.call(
                CheckLinkStatusRequest(url=url), timeout=self._probe_call_timeout
            )
        except TransportError as e:
            logger.warning("Probe channel failed for %s: %s", url, e)
            return VerificationOutcome(url=url, status=NETWORK_ERROR, transport_failed=True)
        return response.to_outcome()

    async def verify(self, urls: list[str]) -> list[VerificationOutcome]:
        """Index-aligned outcomes; all calls in flight at once."""
        return list(await asyncio.gather(*(self._check_one(url) for url in urls)))
