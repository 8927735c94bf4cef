# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for typed RPC messages and the in-process channel."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from linkaudit import TIMEOUT, Category, LinkRecord, Location, Status, VerificationOutcome
from linkaudit.errors import ChannelUnavailableError, RemoteCallError, TransportError, TransportTimeoutError
from linkaudit.rpc import (
    CheckLinkStatusRequest,
    CheckLinkStatusResponse,
    LinkPayload,
    LocalChannel,
    PingRequest,
    PingResponse,
    RequestType,
    StatusPayload,
    batch_call_timeout,
    check_link_call_timeout,
)


class TestPayloads:
    def test_link_payload_round_trip(self):
        record = LinkRecord(
            url="https://random.com/page", text="Random", location=Location.FOOTER, category=Category.EXTERNAL
        ).with_status(Status.http(404))
        payload = LinkPayload.model_validate_json(LinkPayload.from_record(record).model_dump_json())
        assert payload.to_record() == record

    def test_status_payload(self):
        assert StatusPayload.from_status(TIMEOUT).to_status() == TIMEOUT
        assert StatusPayload.from_status(Status.http(503)).code == 503

    def test_outcome_round_trip(self):
        outcome = VerificationOutcome(url="https://a.example/", status=Status.http(200), methods=("HEAD",))
        assert CheckLinkStatusResponse.from_outcome(outcome).to_outcome() == outcome

    def test_request_type_tag(self):
        assert PingRequest().type == RequestType.PING
        assert CheckLinkStatusRequest(url="https://a.example/").type == "CHECK_LINK_STATUS"

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            CheckLinkStatusRequest(url="https://a.example/", method="HEAD")

    def test_messages_frozen(self):
        req = CheckLinkStatusRequest(url="https://a.example/")
        with pytest.raises(ValidationError):
            req.url = "https://b.example/"


class TestLocalChannel:
    @pytest.mark.asyncio
    async def test_round_trip(self):
        channel = LocalChannel("page")

        async def ping(request):
            return PingResponse()

        channel.register(RequestType.PING, ping)
        response = await channel.call(PingRequest())
        assert isinstance(response, PingResponse)
        assert response.status == "ready"

    @pytest.mark.asyncio
    async def test_receiver_gets_a_copy(self):
        channel = LocalChannel()
        seen = []

        async def handler(request):
            seen.append(request)
            return CheckLinkStatusResponse(url=request.url, status=StatusPayload.from_status(TIMEOUT))

        channel.register(RequestType.CHECK_LINK_STATUS, handler)
        request = CheckLinkStatusRequest(url="https://a.example/")
        await channel.call(request)
        assert seen[0] == request
        assert seen[0] is not request

    @pytest.mark.asyncio
    async def test_no_handler_is_unavailable(self):
        with pytest.raises(ChannelUnavailableError) as exc_info:
            await LocalChannel().call(PingRequest())
        assert exc_info.value.request_type == RequestType.PING

    @pytest.mark.asyncio
    async def test_closed_is_unavailable(self):
        channel = LocalChannel()

        async def ping(request):
            return PingResponse()

        channel.register(RequestType.PING, ping)
        channel.close()
        assert channel.closed
        with pytest.raises(ChannelUnavailableError):
            await channel.call(PingRequest())

    @pytest.mark.asyncio
    async def test_handler_exception_is_remote_error(self):
        channel = LocalChannel()

        async def boom(request):
            raise RuntimeError("receiver crashed")

        channel.register(RequestType.PING, boom)
        with pytest.raises(RemoteCallError, match="receiver crashed"):
            await channel.call(PingRequest())

    @pytest.mark.asyncio
    async def test_timeout_is_distinct(self):
        channel = LocalChannel()

        async def slow(request):
            await asyncio.sleep(5)
            return PingResponse()

        channel.register(RequestType.PING, slow)
        with pytest.raises(TransportTimeoutError):
            await channel.call(PingRequest(), timeout=0.05)

    @pytest.mark.asyncio
    async def test_wrong_response_type_is_remote_error(self):
        channel = LocalChannel()

        async def wrong(request):
            return CheckLinkStatusResponse(url="x", status=StatusPayload.from_status(TIMEOUT))

        channel.register(RequestType.PING, wrong)
        with pytest.raises(RemoteCallError):
            await channel.call(PingRequest())

    def test_error_kinds_share_base(self):
        for exc_type in (ChannelUnavailableError, RemoteCallError, TransportTimeoutError):
            assert issubclass(exc_type, TransportError)
        assert not issubclass(RemoteCallError, ChannelUnavailableError)

    @pytest.mark.asyncio
    async def test_serve_reopens(self):
        class Receiver:
            def handlers(self):
                async def ping(request):
                    return PingResponse()

                return {RequestType.PING: ping}

        channel = LocalChannel()
        channel.close()
        assert channel.serve(Receiver()) is channel
        assert not channel.closed
        assert isinstance(await channel.call(PingRequest()), PingResponse)


class TestCallDeadlines:
    def test_link_check_covers_head_and_get(self):
        assert check_link_call_timeout(10.0) == 25.0
        for probe_timeout in (0.3, 15.0, 60.0):
            assert check_link_call_timeout(probe_timeout) > 2 * probe_timeout

    def test_batch_outlasts_one_link_check(self):
        for probe_timeout in (0.3, 10.0, 60.0):
            assert batch_call_timeout(probe_timeout) > check_link_call_timeout(probe_timeout)
