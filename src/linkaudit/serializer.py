# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Audit report serialization: JSON and plain-text table formats.

- JSON: structured data for programmatic consumption
- Text: one table per link section, externals grouped by status (tabulate)

The per-link ``transport_failed`` flag is internal to the scan and never
appears in either format.
"""

from __future__ import annotations

import json
from typing import Any

from tabulate import tabulate

from . import LinkRecord
from .auditor import AuditReport
from .ranker import ExternalReport, ReportState, status_text
from .sanitizer import sanitize_text

_SECTIONS: tuple[tuple[str, str], ...] = (
    ("team", "Team Links"),
    ("onedrive", "OneDrive Links"),
    ("email", "Email Links"),
)


def _link_dict(record: LinkRecord, *, with_status: bool = False) -> dict[str, Any]:
    d: dict[str, Any] = {
        "url": record.url,
        "text": record.text,
        "location": record.location.value,
    }
    if with_status:
        d["status"] = str(record.status)
        d["status_text"] = status_text(record.status)
    return d


def _external_dict(report: ExternalReport) -> dict[str, Any]:
    return {
        "state": report.state.value,
        **({"message": report.message} if report.message else {}),
        "raw_count": report.raw_count,
        "displayed_count": report.displayed_count,
        "suppressed": sorted(g.filter_key for g in report.suppressed),
        "groups": [
            {
                "name": g.name.value,
                "count": g.count,
                "links": [_link_dict(r, with_status=True) for r in g.members],
            }
            for g in report.groups
        ],
    }


def to_dict(report: AuditReport) -> dict[str, Any]:
    data: dict[str, Any] = {
        "state": report.state.value,
        **({"message": report.message} if report.message else {}),
    }
    if report.site is not None:
        data["site"] = report.site.model_dump(exclude_none=True)
    for key, _title in _SECTIONS:
        links = getattr(report, key)
        if links is not None:
            data[key] = [_link_dict(r) for r in links]
    if report.external is not None:
        data["external"] = _external_dict(report.external)
    data["meta"] = {
        "total_links": report.total_links,
        "excluded_count": report.excluded_count,
        "attempts": report.attempts,
        "timings_ms": report.timings,
    }
    return data


def to_json(report: AuditReport, indent: int = 2) -> str:
    """Serialize an AuditReport to a JSON string."""
    return json.dumps(to_dict(report), ensure_ascii=False, indent=indent)


def _table(records: tuple[LinkRecord, ...] | list[LinkRecord], *, with_status: bool = False) -> str:
    headers = ["Status", "Text", "URL", "Location"] if with_status else ["Text", "URL", "Location"]
    rows = []
    for r in records:
        row = [sanitize_text(r.text, max_len=60), sanitize_text(r.url, max_len=100), r.location.value]
        if with_status:
            row.insert(0, status_text(r.status))
        rows.append(row)
    return tabulate(rows, headers=headers, tablefmt="simple")


def to_text(report: AuditReport) -> str:
    """Human-readable report: site header, link sections, grouped externals."""
    lines: list[str] = []

    if report.site is not None:
        site = report.site
        if site.site_info is not None:
            lines.append(f"Site: {sanitize_text(site.site_info.site_title)}")
            lines.append(f"Page: {sanitize_text(site.site_info.page_title)}")
            lines.append(f"URL:  {site.site_info.clean_url}")
        else:
            lines.append(f"Page: {sanitize_text(site.title) or site.url}")
            lines.append(f"URL:  {site.url}")
        lines.append("")

    if report.state in (ReportState.FAILED, ReportState.NO_LINKS):
        lines.append(report.message)
        return "\n".join(lines)

    for key, title in _SECTIONS:
        links = getattr(report, key)
        if links is None:
            continue
        lines.append(f"== {title} ({len(links)}) ==")
        lines.append(_table(links) if links else "(none)")
        lines.append("")

    external = report.external
    if external is not None:
        lines.append(f"== External Links ({external.displayed_count}) ==")
        if external.state is not ReportState.OK:
            lines.append(external.message)
            lines.append("")
        for group in external.groups:
            lines.append(f"-- {group.name.value} ({group.count}) --")
            lines.append(_table(group.members, with_status=True))
            lines.append("")

    summary = f"{report.total_links} links scanned, {report.excluded_count} excluded"
    if report.timings:
        summary += f", {sum(report.timings.values()):.0f}ms"
    lines.append(summary)
    return "\n".join(lines)
