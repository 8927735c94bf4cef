# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""RFC 9457-style problem details for linkaudit errors.

Maps linkaudit exceptions (and Playwright ``net::ERR_*`` render failures) to a
``ProblemDetail`` the CLI can print or emit as JSON.  Details are scrubbed of
credentials, tokens, and local paths before they leave the process.

Type URI namespace: ``https://www.retio.ai/linkaudit/errors/{slug}``
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

_ERROR_BASE = "https://www.retio.ai/linkaudit/errors"

MAX_DETAIL_LENGTH = 200


class ProblemType(StrEnum):
    """Error taxonomy for linkaudit."""

    # Page loading
    PAGE_UNAVAILABLE = "page-unavailable"
    PAGE_TIMEOUT = "page-timeout"
    DNS_RESOLUTION_FAILED = "dns-resolution-failed"
    CONNECTION_FAILED = "connection-failed"
    TLS_ERROR = "tls-error"
    BROWSER_UNAVAILABLE = "browser-unavailable"

    # Settings
    INVALID_SETTINGS = "invalid-settings"

    # Channel / scan
    CHANNEL_UNAVAILABLE = "channel-unavailable"
    REMOTE_CALL_FAILED = "remote-call-failed"
    CALL_TIMEOUT = "call-timeout"
    SCAN_SUPERSEDED = "scan-superseded"

    INTERNAL_ERROR = "internal-error"

    @property
    def uri(self) -> str:
        return f"{_ERROR_BASE}/{self.value}"


# (status, title)
_TYPE_METADATA: dict[ProblemType, tuple[int, str]] = {
    ProblemType.PAGE_UNAVAILABLE: (502, "Page Unavailable"),
    ProblemType.PAGE_TIMEOUT: (504, "Page Timed Out"),
    ProblemType.DNS_RESOLUTION_FAILED: (502, "DNS Resolution Failed"),
    ProblemType.CONNECTION_FAILED: (502, "Connection Failed"),
    ProblemType.TLS_ERROR: (502, "TLS Error"),
    ProblemType.BROWSER_UNAVAILABLE: (503, "Browser Unavailable"),
    ProblemType.INVALID_SETTINGS: (422, "Invalid Settings"),
    ProblemType.CHANNEL_UNAVAILABLE: (503, "Channel Unavailable"),
    ProblemType.REMOTE_CALL_FAILED: (500, "Remote Call Failed"),
    ProblemType.CALL_TIMEOUT: (504, "Call Timed Out"),
    ProblemType.SCAN_SUPERSEDED: (409, "Scan Superseded"),
    ProblemType.INTERNAL_ERROR: (500, "Internal Error"),
}

_CLI_HINTS: dict[ProblemType, str] = {
    ProblemType.PAGE_UNAVAILABLE: "Check the URL, or save the page and pass it with --file.",
    ProblemType.PAGE_TIMEOUT: "The page took too long to load. Try again or raise --timeout.",
    ProblemType.DNS_RESOLUTION_FAILED: "Check the URL spelling and ensure the domain exists.",
    ProblemType.CONNECTION_FAILED: "Check that the site is reachable from this machine.",
    ProblemType.TLS_ERROR: "The site's certificate was rejected.",
    ProblemType.BROWSER_UNAVAILABLE: "Ensure Chromium is installed: playwright install chromium",
    ProblemType.INVALID_SETTINGS: "Fix the settings file, or run without --settings for defaults.",
    ProblemType.CHANNEL_UNAVAILABLE: "Refresh the page and try again.",
    ProblemType.CALL_TIMEOUT: "Refresh the page and try again.",
}

# ── Secret sanitization ──────────────────────────────────────────────

_SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"Bearer\s+\S+"), "Bearer <redacted>"),
    (re.compile(r"Basic\s+[A-Za-z0-9+/=]{8,}"), "Basic <redacted>"),
    (re.compile(r"://[^@\s/]+@"), "://<redacted>@"),
    (
        re.compile(r"(?:API_KEY|SECRET|TOKEN|PASSWORD|CREDENTIAL)\s*[=:]\s*\S+", re.IGNORECASE),
        "<redacted>",
    ),
    (re.compile(r"([?&](?:sig|code|token|access_token|key)=)[^&#\s]+", re.IGNORECASE), r"\1<redacted>"),
    (re.compile(r"eyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}"), "<redacted>"),
]

_PATH_PATTERN = re.compile(
    r"(/(?:Users|home|tmp|var|etc|opt|root|srv|usr|Library|private|mnt|media)/[\w./-]+"
    r"|[A-Z]:\\[\w.\\-]+)"
)


def sanitize_detail(text: str) -> str:
    """Scrub secrets and filesystem paths from *text*, then truncate."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    text = _PATH_PATTERN.sub("<path>", text)
    if len(text) > MAX_DETAIL_LENGTH:
        text = text[:MAX_DETAIL_LENGTH] + "..."
    return text


# ── Chromium net::ERR_* classification ───────────────────────────────

_NET_ERR_RE = re.compile(r"net::ERR_(\w+)")
_HOSTNAME_RE = re.compile(r"https?://([^/:\s]+)")

_CONNECTION_CODES = {
    "CONNECTION_REFUSED",
    "CONNECTION_CLOSED",
    "CONNECTION_RESET",
    "EMPTY_RESPONSE",
    "ADDRESS_UNREACHABLE",
}


def classify_network_error(message: str) -> tuple[ProblemType, str] | None:
    """Classify a Playwright ``net::ERR_*`` message.  None if there is no such code."""
    m = _NET_ERR_RE.search(message)
    if m is None:
        return None
    code = m.group(1)
    hm = _HOSTNAME_RE.search(message)
    host = f" '{hm.group(1)}'" if hm else ""

    if code == "NAME_NOT_RESOLVED":
        return ProblemType.DNS_RESOLUTION_FAILED, f"Could not resolve domain name{host}"
    if code == "CONNECTION_TIMED_OUT":
        return ProblemType.PAGE_TIMEOUT, f"Connection timed out{host and ' to' + host}"
    if code in _CONNECTION_CODES:
        return ProblemType.CONNECTION_FAILED, f"Connection failed{host and ' to' + host}"
    if "CERT" in code or "SSL" in code:
        return ProblemType.TLS_ERROR, f"SSL/TLS error{host and ' for' + host}"
    return ProblemType.PAGE_UNAVAILABLE, f"Navigation failed (net::ERR_{code})"


# ── ProblemDetail ────────────────────────────────────────────────────

_STANDARD_FIELDS = frozenset({"type", "title", "status", "detail", "instance"})


@dataclass(frozen=True, slots=True)
class ProblemDetail:
    type: str = "about:blank"
    title: str = ""
    status: int = 500
    detail: str = ""
    instance: str = ""
    extensions: dict[str, Any] = field(default_factory=dict)
    hint: str = field(default="", repr=False)

    def to_dict(self) -> dict[str, Any]:
        """JSON dict.  Empty optional fields omitted, extensions merged at top level."""
        d: dict[str, Any] = {"type": self.type, "status": self.status}
        if self.title:
            d["title"] = self.title
        if self.detail:
            d["detail"] = self.detail
        if self.instance:
            d["instance"] = self.instance
        for k, v in self.extensions.items():
            if k not in _STANDARD_FIELDS:
                d[k] = v
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def to_cli_text(self) -> str:
        """Human-friendly CLI message::

        Error: <detail>
        Hint: <hint>
        """
        lines = [f"Error: {self.detail}"]
        if self.hint:
            lines.append(f"Hint: {self.hint}")
        return "\n".join(lines)


def _build(problem_type: ProblemType, detail: str, *, instance: str, extensions: dict[str, Any]) -> ProblemDetail:
    status, title = _TYPE_METADATA[problem_type]
    return ProblemDetail(
        type=problem_type.uri,
        title=title,
        status=status,
        detail=sanitize_detail(detail),
        instance=instance,
        extensions={k: sanitize_detail(v) if isinstance(v, str) else v for k, v in extensions.items()},
        hint=_CLI_HINTS.get(problem_type, ""),
    )


def _exception_type(exc: Exception) -> ProblemType | None:
    from .errors import (
        ChannelUnavailableError,
        ConfigError,
        DocumentError,
        RemoteCallError,
        StaleScanError,
        TransportTimeoutError,
    )

    # Most specific first; TransportError subclasses before any base
    checks: tuple[tuple[type, ProblemType], ...] = (
        (ChannelUnavailableError, ProblemType.CHANNEL_UNAVAILABLE),
        (TransportTimeoutError, ProblemType.CALL_TIMEOUT),
        (RemoteCallError, ProblemType.REMOTE_CALL_FAILED),
        (StaleScanError, ProblemType.SCAN_SUPERSEDED),
        (ConfigError, ProblemType.INVALID_SETTINGS),
        (DocumentError, ProblemType.PAGE_UNAVAILABLE),
    )
    for exc_type, problem_type in checks:
        if isinstance(exc, exc_type):
            return problem_type
    return None


def from_exception(
    exc: Exception,
    *,
    instance: str = "",
    extensions: dict[str, Any] | None = None,
) -> ProblemDetail:
    """Build a ProblemDetail from an exception.

    Render failures carrying a Chromium ``net::ERR_*`` code are classified by
    that code.  Anything that is not a ``LinkAuditError`` gets a generic detail.
    """
    from .errors import DocumentError, LinkAuditError, TransportError

    ext = dict(extensions) if extensions else {}
    message = str(exc)

    if isinstance(exc, DocumentError):
        net = classify_network_error(message)
        if net is not None:
            problem_type, human = net
            return _build(problem_type, human, instance=instance, extensions=ext)
        if "Chromium unavailable" in message:
            return _build(ProblemType.BROWSER_UNAVAILABLE, message, instance=instance, extensions=ext)

    if isinstance(exc, TransportError) and exc.request_type:
        ext.setdefault("request_type", str(exc.request_type))

    problem_type = _exception_type(exc)
    if problem_type is not None:
        return _build(problem_type, message, instance=instance, extensions=ext)

    if isinstance(exc, TimeoutError):
        return _build(ProblemType.PAGE_TIMEOUT, message or "Operation timed out", instance=instance, extensions=ext)

    if isinstance(exc, LinkAuditError):
        return _build(ProblemType.INTERNAL_ERROR, message, instance=instance, extensions=ext)

    return _build(
        ProblemType.INTERNAL_ERROR,
        f"Unexpected {type(exc).__name__}",
        instance=instance,
        extensions=ext,
    )
