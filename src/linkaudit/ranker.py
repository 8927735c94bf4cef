# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Severity ranking, total-order sorting, and status grouping.

Severity classes (lower = shown first):

  1  NetworkError, Timeout, HTTP 0
  2  HTTP 5xx
  3  HTTP 4xx
  4  HTTP 3xx
  5  HTTP 2xx, email links
  6  anything else (Unchecked, unrecognised codes)

Class 6 folds into the "Network/Unknown Errors" group; classes 1-5 map to one
group each.  Groups can be switched off individually via the status filters.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from http import HTTPStatus

from . import Category, LinkRecord, Status, StatusKind

logger = logging.getLogger(__name__)

SEVERITY_NETWORK = 1
SEVERITY_SERVER_ERROR = 2
SEVERITY_CLIENT_ERROR = 3
SEVERITY_REDIRECT = 4
SEVERITY_SUCCESS = 5
SEVERITY_UNKNOWN = 6


# ---------------------------------------------------------------------------
# Severity
# ---------------------------------------------------------------------------


def status_severity(status: Status) -> int:
    """Severity class of a verification status."""
    if status.kind is StatusKind.TIMEOUT or status.kind is StatusKind.NETWORK_ERROR:
        return SEVERITY_NETWORK
    if status.kind is StatusKind.UNCHECKED:
        return SEVERITY_UNKNOWN
    code = status.code
    if code == 0:
        return SEVERITY_NETWORK
    if 500 <= code < 600:
        return SEVERITY_SERVER_ERROR
    if 400 <= code < 500:
        return SEVERITY_CLIENT_ERROR
    if 300 <= code < 400:
        return SEVERITY_REDIRECT
    if 200 <= code < 300:
        return SEVERITY_SUCCESS
    return SEVERITY_UNKNOWN


def severity_class(record: LinkRecord) -> int:
    """Severity of a record.  Email links rank with successes."""
    if record.category is Category.EMAIL:
        return SEVERITY_SUCCESS
    return status_severity(record.status)


def status_text(status: Status) -> str:
    """Human label: ``"404 Not Found"``, ``"Request Timeout"``, ``"Network Error"``."""
    if status.kind is StatusKind.TIMEOUT:
        return "Request Timeout"
    if status.kind is StatusKind.NETWORK_ERROR or status.code == 0:
        return "Network Error"
    if status.kind is StatusKind.UNCHECKED:
        return "Checking..."
    try:
        return f"{status.code} {HTTPStatus(status.code).phrase}"
    except ValueError:
        return f"{status.code} Unknown"


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def sort_key(record: LinkRecord) -> tuple:
    """Total-order key: severity, then code or textual status, then identity.

    Numeric codes sort before textual statuses of the same class; textual
    forms start with a letter so this matches a numeric-vs-text string compare.
    """
    status = record.status
    if status.is_http:
        status_part = (0, status.code, "")
    else:
        status_part = (1, 0, str(status))
    return (
        severity_class(record),
        *status_part,
        record.url,
        record.text,
        record.location.value,
        record.category.value,
    )


def sort_by_severity(records: Iterable[LinkRecord]) -> list[LinkRecord]:
    """Broken links first.  Idempotent and independent of input order."""
    return sorted(records, key=sort_key)


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


class StatusGroup(StrEnum):
    """Display groups, declared in display order."""

    NETWORK = "Network/Unknown Errors"
    SERVER_ERROR = "Server Errors (5xx)"
    CLIENT_ERROR = "Client Errors (4xx)"
    REDIRECT = "Redirects (3xx)"
    SUCCESS = "Success (2xx)"

    @property
    def filter_key(self) -> str:
        return _GROUP_FILTER_KEYS[self]


_GROUP_FILTER_KEYS: dict[StatusGroup, str] = {
    StatusGroup.NETWORK: "network",
    StatusGroup.SERVER_ERROR: "5xx",
    StatusGroup.CLIENT_ERROR: "4xx",
    StatusGroup.REDIRECT: "3xx",
    StatusGroup.SUCCESS: "2xx",
}

_SEVERITY_GROUPS: dict[int, StatusGroup] = {
    SEVERITY_NETWORK: StatusGroup.NETWORK,
    SEVERITY_SERVER_ERROR: StatusGroup.SERVER_ERROR,
    SEVERITY_CLIENT_ERROR: StatusGroup.CLIENT_ERROR,
    SEVERITY_REDIRECT: StatusGroup.REDIRECT,
    SEVERITY_SUCCESS: StatusGroup.SUCCESS,
    SEVERITY_UNKNOWN: StatusGroup.NETWORK,
}


def group_for(record: LinkRecord) -> StatusGroup:
    return _SEVERITY_GROUPS[severity_class(record)]


class ReportState(StrEnum):
    """Terminal display state — never conflate these."""

    OK = "ok"
    NO_LINKS = "no_links"
    NO_MATCH = "no_match"
    FAILED = "failed"


NO_EXTERNAL_LINKS_MESSAGE = "No external links found on this page."
NO_MATCH_MESSAGE = "No external links match your current filter settings."


@dataclass(frozen=True)
class LinkGroup:
    name: StatusGroup
    members: tuple[LinkRecord, ...]

    @property
    def count(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class ExternalReport:
    """Grouped, severity-sorted external links after filtering."""

    groups: tuple[LinkGroup, ...]
    raw_count: int  # before filtering
    state: ReportState
    message: str = ""
    suppressed: frozenset[StatusGroup] = field(default_factory=frozenset)

    @property
    def displayed_count(self) -> int:
        return sum(g.count for g in self.groups)

    def links(self) -> list[LinkRecord]:
        return [r for g in self.groups for r in g.members]


def build_report(
    records: Iterable[LinkRecord],
    status_filters: Mapping[str, bool] | None = None,
) -> ExternalReport:
    """Sort, group, and filter verified external links.

    *status_filters* maps group filter keys (``"network"``, ``"5xx"``, ...) to
    enabled flags; absent keys count as enabled.
    """
    filters = dict(status_filters or {})
    ordered = sort_by_severity(records)
    if not ordered:
        return ExternalReport(groups=(), raw_count=0, state=ReportState.NO_LINKS, message=NO_EXTERNAL_LINKS_MESSAGE)

    buckets: dict[StatusGroup, list[LinkRecord]] = {g: [] for g in StatusGroup}
    for record in ordered:
        buckets[group_for(record)].append(record)

    suppressed = frozenset(g for g in StatusGroup if not filters.get(g.filter_key, True))
    groups = tuple(
        LinkGroup(name=g, members=tuple(members))
        for g, members in buckets.items()
        if members and g not in suppressed
    )

    if not groups:
        logger.debug("All %d external links suppressed by filters", len(ordered))
        return ExternalReport(
            groups=(),
            raw_count=len(ordered),
            state=ReportState.NO_MATCH,
            message=NO_MATCH_MESSAGE,
            suppressed=suppressed,
        )
    return ExternalReport(groups=groups, raw_count=len(ordered), state=ReportState.OK, suppressed=suppressed)
