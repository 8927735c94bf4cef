# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the page-side agent and the probe service."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from linkaudit import NETWORK_ERROR, Category, LinkRecord, Status
from linkaudit.agent import PageAgent, ProbeService
from linkaudit.rpc import (
    CheckExternalLinksStatusRequest,
    CheckLinkStatusRequest,
    CheckSiteRequest,
    GetLinksRequest,
    HighlightLinkRequest,
    LinkPayload,
    LocalChannel,
    PingRequest,
    RemoveHighlightRequest,
    RequestType,
    check_link_call_timeout,
)
from tests._helpers import ScriptedChannel, build_stack, make_document, status_transport

RANDOM = "https://random.com/page"
STATUS = "https://status.example.net/"
DOCS = "https://example.org/docs?id=7#top"


def _payloads(*urls: str) -> tuple[LinkPayload, ...]:
    return tuple(
        LinkPayload.from_record(LinkRecord(url=u, text=u, category=Category.EXTERNAL)) for u in urls
    )


class TestProbeService:
    @pytest.mark.asyncio
    async def test_check_link_status(self):
        async with httpx.AsyncClient(transport=status_transport({RANDOM: 404})) as client:
            service = ProbeService(client)
            response = await service.check_link_status(CheckLinkStatusRequest(url=RANDOM))
        assert response.to_outcome().status == Status.http(404)
        assert response.methods == ("HEAD",)

    @pytest.mark.asyncio
    async def test_context_manager_leaves_caller_client_open(self):
        async with httpx.AsyncClient(transport=status_transport({})) as client:
            async with ProbeService(client) as service:
                assert RequestType.CHECK_LINK_STATUS in service.handlers()
            assert not client.is_closed


class TestPageAgent:
    @pytest.mark.asyncio
    async def test_ping(self, sharepoint_document):
        async with httpx.AsyncClient(transport=status_transport({})) as client:
            _, channel, _ = build_stack(sharepoint_document, client)
            assert (await channel.call(PingRequest())).status == "ready"

    @pytest.mark.asyncio
    async def test_check_site(self, sharepoint_document):
        async with httpx.AsyncClient(transport=status_transport({})) as client:
            _, channel, _ = build_stack(sharepoint_document, client)
            site = await channel.call(CheckSiteRequest())
        assert site.is_sharepoint
        assert site.site_info.site_title == "Human Resources"
        assert site.title == "HR Home"

    @pytest.mark.asyncio
    async def test_check_site_non_sharepoint(self):
        doc = make_document("<p>x</p>", url="https://plain.example/")
        async with httpx.AsyncClient(transport=status_transport({})) as client:
            _, channel, _ = build_stack(doc, client)
            site = await channel.call(CheckSiteRequest())
        assert not site.is_sharepoint
        assert site.site_info is None

    @pytest.mark.asyncio
    async def test_get_links_all(self, sharepoint_document):
        async with httpx.AsyncClient(transport=status_transport({})) as client:
            _, channel, _ = build_stack(sharepoint_document, client)
            links = await channel.call(GetLinksRequest())
        assert len(links.team) == 1
        assert len(links.onedrive) == 1
        assert len(links.email) == 1
        assert [p.url for p in links.external] == [RANDOM, DOCS, STATUS]
        assert links.excluded_count == 3
        assert links.total == 9

    @pytest.mark.asyncio
    async def test_get_links_subset(self, sharepoint_document):
        async with httpx.AsyncClient(transport=status_transport({})) as client:
            _, channel, _ = build_stack(sharepoint_document, client)
            links = await channel.call(GetLinksRequest(categories=(Category.EMAIL,)))
        assert len(links.email) == 1
        assert links.team == () and links.onedrive == () and links.external == ()
        assert links.total == 9

    @pytest.mark.asyncio
    async def test_check_external_links_sorted_by_severity(self, sharepoint_document):
        routes = {RANDOM: 404, STATUS: 200, DOCS: 503}
        async with httpx.AsyncClient(transport=status_transport(routes)) as client:
            _, channel, _ = build_stack(sharepoint_document, client)
            response = await channel.call(CheckExternalLinksStatusRequest(links=_payloads(RANDOM, STATUS, DOCS)))
        assert [p.url for p in response.links] == [DOCS, RANDOM, STATUS]
        assert [p.status.code for p in response.links] == [503, 404, 200]
        assert not any(p.transport_failed for p in response.links)

    @pytest.mark.asyncio
    async def test_unreachable_link_is_network_error_not_transport_failure(self, sharepoint_document):
        async with httpx.AsyncClient(transport=status_transport({})) as client:
            _, channel, _ = build_stack(sharepoint_document, client)
            response = await channel.call(CheckExternalLinksStatusRequest(links=_payloads(RANDOM)))
        assert response.links[0].status.to_status() == NETWORK_ERROR
        assert not response.links[0].transport_failed

    @pytest.mark.asyncio
    async def test_transport_failure_isolated_to_one_link(self, sharepoint_document):
        async with httpx.AsyncClient(transport=status_transport({RANDOM: 200, STATUS: 200})) as client:
            probe_channel = ScriptedChannel(
                LocalChannel("probe").serve(ProbeService(client)), fail={RequestType.CHECK_LINK_STATUS: 1}
            )
            agent = PageAgent(sharepoint_document, probe_channel)
            response = await agent.check_external_links_status(
                CheckExternalLinksStatusRequest(links=_payloads(RANDOM, STATUS))
            )
        failed = [p for p in response.links if p.transport_failed]
        assert len(failed) == 1
        assert failed[0].status.to_status() == NETWORK_ERROR
        ok = [p for p in response.links if not p.transport_failed]
        assert ok[0].status.code == 200

    @pytest.mark.asyncio
    async def test_slow_head_rejection_then_get_within_call_deadline(self, sharepoint_document):
        probe_timeout = 0.5

        async def handler(request: httpx.Request) -> httpx.Response:
            # Each request uses most of its own budget
            await asyncio.sleep(0.3)
            return httpx.Response(405 if request.method == "HEAD" else 200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            probe_channel = LocalChannel("probe").serve(ProbeService(client, timeout=probe_timeout))
            agent = PageAgent(
                sharepoint_document,
                probe_channel,
                probe_call_timeout=check_link_call_timeout(probe_timeout),
            )
            response = await agent.check_external_links_status(
                CheckExternalLinksStatusRequest(links=_payloads(RANDOM))
            )
        (link,) = response.links
        assert not link.transport_failed
        assert link.status.code == 200

    @pytest.mark.asyncio
    async def test_probe_channel_closed(self, sharepoint_document):
        async with httpx.AsyncClient(transport=status_transport({RANDOM: 200})) as client:
            _, channel, probe_channel = build_stack(sharepoint_document, client)
            probe_channel.close()
            response = await channel.call(CheckExternalLinksStatusRequest(links=_payloads(RANDOM)))
        assert response.links[0].transport_failed

    @pytest.mark.asyncio
    async def test_highlight_and_remove(self, sharepoint_document):
        async with httpx.AsyncClient(transport=status_transport({})) as client:
            agent, channel, _ = build_stack(sharepoint_document, client)
            marked = await channel.call(HighlightLinkRequest(url=RANDOM))
            assert marked.found
            assert marked.strategy == "exact"
            assert agent.highlighter.is_marked

            missing = await channel.call(HighlightLinkRequest(url="https://nowhere.example/"))
            assert missing.success and not missing.found
            assert not agent.highlighter.is_marked

            await channel.call(HighlightLinkRequest(url=RANDOM))
            cleared = await channel.call(RemoveHighlightRequest())
            assert cleared.success
            assert not agent.highlighter.is_marked

    @pytest.mark.asyncio
    async def test_replace_document_clears_mark(self, sharepoint_document):
        async with httpx.AsyncClient(transport=status_transport({})) as client:
            agent, _, _ = build_stack(sharepoint_document, client)
            agent.highlighter.mark(sharepoint_document, RANDOM)
            fresh = make_document('<a href="https://new.example/">new</a>')
            agent.replace_document(fresh)
        assert agent.document is fresh
        assert not agent.highlighter.is_marked
        assert all(a.get("style") is None for a in sharepoint_document.anchors())
