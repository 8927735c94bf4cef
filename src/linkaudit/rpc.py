# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Typed request/response messaging between the panel, page, and probe sides.

Defines ``ChannelProtocol`` and ``LocalChannel`` (in-process asyncio dispatch).
Every call declares its own timeout.  Failure kinds are kept apart:

- ``ChannelUnavailableError`` — nobody is listening (closed / no handler)
- ``RemoteCallError``         — the receiver raised while handling the request
- ``TransportTimeoutError``   — the receiver did not answer in time

Payloads cross the channel as JSON, exactly as they would between isolated
execution contexts, so receivers never share objects with callers.

Dependencies: ``linkaudit`` data model, errors.py.  No agent/auditor import.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, ValidationError

from . import Category, LinkRecord, Location, Status, StatusKind, VerificationOutcome
from .errors import ChannelUnavailableError, RemoteCallError, TransportTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 30.0
# Dispatch and serialization slack on top of the work a call waits for
CALL_MARGIN = 5.0


def check_link_call_timeout(probe_timeout: float) -> float:
    """Deadline for one CHECK_LINK_STATUS call.

    A probe can spend its whole budget twice: HEAD answered 405, then the GET.
    """
    return 2 * probe_timeout + CALL_MARGIN


def batch_call_timeout(probe_timeout: float) -> float:
    """Deadline for CHECK_EXTERNAL_LINKS_STATUS.  Its per-link calls run concurrently."""
    return check_link_call_timeout(probe_timeout) + CALL_MARGIN


class RequestType(StrEnum):
    PING = "PING"
    CHECK_SITE = "CHECK_SITE"
    GET_LINKS = "GET_LINKS"
    CHECK_LINK_STATUS = "CHECK_LINK_STATUS"
    CHECK_EXTERNAL_LINKS_STATUS = "CHECK_EXTERNAL_LINKS_STATUS"
    HIGHLIGHT_LINK = "HIGHLIGHT_LINK"
    REMOVE_HIGHLIGHT = "REMOVE_HIGHLIGHT"


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Shared payloads
# ---------------------------------------------------------------------------


class StatusPayload(_Message):
    kind: StatusKind
    code: int | None = None

    @classmethod
    def from_status(cls, status: Status) -> StatusPayload:
        return cls(kind=status.kind, code=status.code)

    def to_status(self) -> Status:
        return Status(self.kind, self.code)


class LinkPayload(_Message):
    url: str
    text: str
    location: Location
    category: Category
    status: StatusPayload = StatusPayload(kind=StatusKind.UNCHECKED)
    transport_failed: bool = False

    @classmethod
    def from_record(cls, record: LinkRecord, *, transport_failed: bool = False) -> LinkPayload:
        return cls(
            url=record.url,
            text=record.text,
            location=record.location,
            category=record.category,
            status=StatusPayload.from_status(record.status),
            transport_failed=transport_failed,
        )

    def to_record(self) -> LinkRecord:
        return LinkRecord(
            url=self.url,
            text=self.text,
            location=self.location,
            category=self.category,
            status=self.status.to_status(),
        )


class SiteInfoPayload(_Message):
    site_title: str
    page_title: str
    clean_url: str
    full_url: str


# ---------------------------------------------------------------------------
# Requests / responses
# ---------------------------------------------------------------------------


class PingRequest(_Message):
    type: Literal["PING"] = "PING"


class PingResponse(_Message):
    status: Literal["ready"] = "ready"


class CheckSiteRequest(_Message):
    type: Literal["CHECK_SITE"] = "CHECK_SITE"


class CheckSiteResponse(_Message):
    is_sharepoint: bool
    url: str
    title: str
    site_info: SiteInfoPayload | None = None


class GetLinksRequest(_Message):
    type: Literal["GET_LINKS"] = "GET_LINKS"
    categories: tuple[Category, ...] = (Category.TEAM, Category.ONEDRIVE, Category.EMAIL, Category.EXTERNAL)


class GetLinksResponse(_Message):
    team: tuple[LinkPayload, ...] = ()
    onedrive: tuple[LinkPayload, ...] = ()
    email: tuple[LinkPayload, ...] = ()
    external: tuple[LinkPayload, ...] = ()
    excluded_count: int = 0
    total: int = 0


class CheckLinkStatusRequest(_Message):
    type: Literal["CHECK_LINK_STATUS"] = "CHECK_LINK_STATUS"
    url: str


class CheckLinkStatusResponse(_Message):
    url: str
    status: StatusPayload
    methods: tuple[str, ...] = ()
    elapsed_ms: float = 0.0

    @classmethod
    def from_outcome(cls, outcome: VerificationOutcome) -> CheckLinkStatusResponse:
        return cls(
            url=outcome.url,
            status=StatusPayload.from_status(outcome.status),
            methods=outcome.methods,
            elapsed_ms=outcome.elapsed_ms,
        )

    def to_outcome(self) -> VerificationOutcome:
        return VerificationOutcome(
            url=self.url,
            status=self.status.to_status(),
            methods=self.methods,
            elapsed_ms=self.elapsed_ms,
        )


class CheckExternalLinksStatusRequest(_Message):
    type: Literal["CHECK_EXTERNAL_LINKS_STATUS"] = "CHECK_EXTERNAL_LINKS_STATUS"
    links: tuple[LinkPayload, ...]


class CheckExternalLinksStatusResponse(_Message):
    links: tuple[LinkPayload, ...]  # severity-sorted


class HighlightLinkRequest(_Message):
    type: Literal["HIGHLIGHT_LINK"] = "HIGHLIGHT_LINK"
    url: str


class RemoveHighlightRequest(_Message):
    type: Literal["REMOVE_HIGHLIGHT"] = "REMOVE_HIGHLIGHT"


class HighlightResponse(_Message):
    success: bool = True
    found: bool = False
    strategy: str = ""


Request = (
    PingRequest
    | CheckSiteRequest
    | GetLinksRequest
    | CheckLinkStatusRequest
    | CheckExternalLinksStatusRequest
    | HighlightLinkRequest
    | RemoveHighlightRequest
)

Response = (
    PingResponse
    | CheckSiteResponse
    | GetLinksResponse
    | CheckLinkStatusResponse
    | CheckExternalLinksStatusResponse
    | HighlightResponse
)

RESPONSE_TYPES: dict[RequestType, type[BaseModel]] = {
    RequestType.PING: PingResponse,
    RequestType.CHECK_SITE: CheckSiteResponse,
    RequestType.GET_LINKS: GetLinksResponse,
    RequestType.CHECK_LINK_STATUS: CheckLinkStatusResponse,
    RequestType.CHECK_EXTERNAL_LINKS_STATUS: CheckExternalLinksStatusResponse,
    RequestType.HIGHLIGHT_LINK: HighlightResponse,
    RequestType.REMOVE_HIGHLIGHT: HighlightResponse,
}

Handler = Callable[[BaseModel], Awaitable[BaseModel]]


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------


@runtime_checkable
class ChannelProtocol(Protocol):
    """Request/response transport with a per-call timeout."""

    async def call(self, request: BaseModel, *, timeout: float = DEFAULT_CALL_TIMEOUT) -> BaseModel: ...


@runtime_checkable
class Receiver(Protocol):
    """Anything that can serve requests: maps request types to handlers."""

    def handlers(self) -> dict[RequestType, Handler]: ...


class LocalChannel:
    """In-process channel.  Messages are JSON round-tripped in both directions."""

    def __init__(self, name: str = "local") -> None:
        self._name = name
        self._handlers: dict[RequestType, Handler] = {}
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    def register(self, request_type: RequestType, handler: Handler) -> None:
        self._handlers[request_type] = handler

    def serve(self, receiver: Receiver) -> LocalChannel:
        """Register every handler *receiver* exposes.  Reopens a closed channel."""
        for request_type, handler in receiver.handlers().items():
            self.register(request_type, handler)
        self._closed = False
        return self

    def close(self) -> None:
        self._closed = True

    async def call(self, request: BaseModel, *, timeout: float = DEFAULT_CALL_TIMEOUT) -> BaseModel:
        request_type = RequestType(request.type)
        if self._closed:
            raise ChannelUnavailableError(f"Channel {self._name!r} is closed", request_type=request_type)
        handler = self._handlers.get(request_type)
        if handler is None:
            raise ChannelUnavailableError(
                f"No receiver for {request_type} on channel {self._name!r}", request_type=request_type
            )

        wire_request = type(request).model_validate_json(request.model_dump_json())
        try:
            response = await asyncio.wait_for(handler(wire_request), timeout=timeout)
        except TimeoutError as e:
            raise TransportTimeoutError(
                f"{request_type} got no answer within {timeout:.1f}s", request_type=request_type
            ) from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("Receiver failed handling %s", request_type, exc_info=True)
            raise RemoteCallError(f"{request_type} failed: {type(e).__name__}: {e}", request_type=request_type) from e

        expected = RESPONSE_TYPES[request_type]
        try:
            return expected.model_validate_json(response.model_dump_json())
        except (ValidationError, AttributeError) as e:
            raise RemoteCallError(
                f"{request_type} returned an invalid {type(response).__name__}", request_type=request_type
            ) from e
