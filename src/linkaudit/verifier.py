# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Concurrent reachability probes for external links.

Per URL:
  1. HEAD with its own deadline (no body transfer, ``Cache-Control: no-cache``)
  2. success → status code
  3. deadline reached → Timeout, *no* fallback
  4. any other failure (connection error, 405/501 to HEAD) → one GET, same budget
  5. GET fails too → NetworkError

All probes of a batch are launched together; output is index-aligned with the
input regardless of completion order, and a failing probe never affects its
siblings.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

import httpx

from . import NETWORK_ERROR, TIMEOUT, Status, VerificationOutcome
from .document import USER_AGENT

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 10.0  # seconds, per request

# HEAD answers that mean "method rejected", not "resource state"
_HEAD_REJECTED_CODES = frozenset({405, 501})

_PROBE_HEADERS = {
    "User-Agent": USER_AGENT,
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class _ProbeTimeout(Exception):
    pass


class _ProbeFailed(Exception):
    pass


async def _request_status(client: httpx.AsyncClient, method: str, url: str, timeout: float) -> int:
    """Status code for one request.  Raises _ProbeTimeout / _ProbeFailed."""

    async def _send() -> int:
        # Streamed so GET never downloads the body
        async with client.stream(
            method, url, headers=_PROBE_HEADERS, timeout=timeout, follow_redirects=True
        ) as resp:
            return resp.status_code

    try:
        return await asyncio.wait_for(_send(), timeout=timeout)
    except (TimeoutError, httpx.TimeoutException) as e:
        raise _ProbeTimeout(f"{method} {url} timed out after {timeout:.0f}s") from e
    except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
        raise _ProbeFailed(f"{method} {url}: {type(e).__name__}") from e


async def probe(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float = PROBE_TIMEOUT,
) -> VerificationOutcome:
    """Probe one URL.  Never raises for network conditions."""
    start = time.monotonic()
    methods: list[str] = ["HEAD"]

    def _outcome(status: Status) -> VerificationOutcome:
        return VerificationOutcome(
            url=url,
            status=status,
            methods=tuple(methods),
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
        )

    try:
        code = await _request_status(client, "HEAD", url, timeout)
        if code not in _HEAD_REJECTED_CODES:
            return _outcome(Status.http(code))
        logger.debug("HEAD rejected (%d) for %s, falling back to GET", code, url)
    except _ProbeTimeout:
        logger.debug("HEAD timeout for %s", url)
        return _outcome(TIMEOUT)
    except _ProbeFailed as e:
        logger.debug("HEAD failed, falling back to GET: %s", e)

    methods.append("GET")
    try:
        code = await _request_status(client, "GET", url, timeout)
    except (_ProbeTimeout, _ProbeFailed) as e:
        logger.debug("GET fallback failed: %s", e)
        return _outcome(NETWORK_ERROR)
    return _outcome(Status.http(code))


async def _guarded_probe(client: httpx.AsyncClient, url: str, timeout: float) -> VerificationOutcome:
    try:
        return await probe(client, url, timeout=timeout)
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.warning("Unexpected probe failure for %s", url, exc_info=True)
        return VerificationOutcome(url=url, status=NETWORK_ERROR, methods=("HEAD",))


async def verify(
    urls: Sequence[str],
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = PROBE_TIMEOUT,
) -> list[VerificationOutcome]:
    """Probe every URL concurrently.  ``result[i]`` belongs to ``urls[i]``."""
    if not urls:
        return []

    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(headers=_PROBE_HEADERS)

    try:
        outcomes = await asyncio.gather(*(_guarded_probe(client, url, timeout) for url in urls))
    finally:
        if own_client:
            await client.aclose()

    failures = sum(1 for o in outcomes if not o.status.is_http)
    logger.info("Verified %d links (%d unreachable)", len(outcomes), failures)
    return list(outcomes)
