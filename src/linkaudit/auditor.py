# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Panel-side scan orchestration.

One ``run()`` = ping → site check → link scan → external verification →
ranking, all over a channel to the page side.  A transport failure anywhere in
the batch (including a single link whose check was lost in transport) retries
the whole batch once; a second consecutive failure becomes a FAILED report.
Link checks lost in transport on the final attempt are kept as NetworkError
for those links only.

Each run takes a generation number.  When a newer run starts, the older one
raises ``StaleScanError`` at its next step instead of returning results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from . import Category, LinkRecord
from .config import Settings
from .errors import StaleScanError, TransportError
from .pipeline_timer import PipelineTimer
from .ranker import NO_MATCH_MESSAGE, ExternalReport, ReportState, build_report
from .rpc import (
    DEFAULT_CALL_TIMEOUT,
    ChannelProtocol,
    CheckExternalLinksStatusRequest,
    CheckSiteRequest,
    CheckSiteResponse,
    GetLinksRequest,
    GetLinksResponse,
    PingRequest,
    RequestType,
)

logger = logging.getLogger(__name__)

NO_LINKS_MESSAGE = "No links found on this page."
SCAN_FAILED_MESSAGE = "Failed to scan links. Please refresh the page and try again."

MAX_ATTEMPTS = 2
PING_TIMEOUT = 5.0
BATCH_TIMEOUT = 120.0


@dataclass(frozen=True)
class AuditReport:
    """Result of one scan.  Disabled link types are ``None``; enabled but empty are ``()``."""

    state: ReportState
    message: str = ""
    site: CheckSiteResponse | None = None
    team: tuple[LinkRecord, ...] | None = None
    onedrive: tuple[LinkRecord, ...] | None = None
    email: tuple[LinkRecord, ...] | None = None
    external: ExternalReport | None = None
    excluded_count: int = 0
    total_links: int = 0
    timings: dict[str, float] = field(default_factory=dict)
    attempts: int = 1
    generation: int = 0

    @property
    def ok(self) -> bool:
        return self.state is not ReportState.FAILED

    @property
    def live_count(self) -> int:
        """Links surfaced across all enabled categories (externals after filtering)."""
        n = sum(len(links) for links in (self.team, self.onedrive, self.email) if links)
        if self.external is not None:
            n += self.external.displayed_count
        return n


def _records(payloads) -> tuple[LinkRecord, ...]:
    return tuple(p.to_record() for p in payloads)


def _enabled_categories(settings: Settings) -> tuple[Category, ...]:
    lt = settings.link_types
    flags = (
        (Category.TEAM, lt.teams),
        (Category.ONEDRIVE, lt.onedrive),
        (Category.EMAIL, lt.email),
        (Category.EXTERNAL, lt.external),
    )
    return tuple(c for c, enabled in flags if enabled)


class LinkAuditor:
    """Drives scans against the page side over *channel*."""

    def __init__(
        self,
        channel: ChannelProtocol,
        settings: Settings | None = None,
        *,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        batch_timeout: float = BATCH_TIMEOUT,
    ) -> None:
        self._channel = channel
        self._settings = settings or Settings()
        self._call_timeout = call_timeout
        self._batch_timeout = batch_timeout
        self._generation = 0

    @property
    def settings(self) -> Settings:
        return self._settings

    @settings.setter
    def settings(self, value: Settings) -> None:
        # Takes effect on the next run; a running scan keeps its snapshot
        self._settings = value

    @property
    def generation(self) -> int:
        return self._generation

    def _ensure_current(self, generation: int) -> None:
        if generation != self._generation:
            raise StaleScanError(
                f"Scan {generation} superseded by scan {self._generation}",
                generation=generation,
                current=self._generation,
            )

    async def run(self) -> AuditReport:
        """Scan the page once, retrying the batch once on transport failure."""
        settings = self._settings
        self._generation += 1
        generation = self._generation

        for attempt in range(1, MAX_ATTEMPTS + 1):
            timer = PipelineTimer()
            try:
                report = await self._attempt(settings, generation, timer, final=attempt == MAX_ATTEMPTS)
            except TransportError as e:
                self._ensure_current(generation)
                report_info = timer.failure_report()
                logger.warning(
                    "Scan %d attempt %d/%d failed at %s: %s",
                    generation,
                    attempt,
                    MAX_ATTEMPTS,
                    report_info["failed_at"],
                    e,
                )
                continue
            finally:
                timer.finalize()
            logger.info(
                "Scan %d finished: state=%s links=%d (%.0fms)",
                generation,
                report.state,
                report.live_count,
                timer.total_ms(),
            )
            return replace(report, timings=timer.elapsed_per_stage(), attempts=attempt, generation=generation)

        logger.error("Scan %d failed after %d attempts", generation, MAX_ATTEMPTS)
        return AuditReport(
            state=ReportState.FAILED,
            message=SCAN_FAILED_MESSAGE,
            timings=timer.elapsed_per_stage(),
            attempts=MAX_ATTEMPTS,
            generation=generation,
        )

    async def _attempt(
        self, settings: Settings, generation: int, timer: PipelineTimer, *, final: bool
    ) -> AuditReport:
        timer.stage("connect")
        await self._channel.call(PingRequest(), timeout=PING_TIMEOUT)
        self._ensure_current(generation)
        site: CheckSiteResponse = await self._channel.call(CheckSiteRequest(), timeout=self._call_timeout)
        self._ensure_current(generation)

        timer.stage("links")
        categories = _enabled_categories(settings)
        links: GetLinksResponse = await self._channel.call(
            GetLinksRequest(categories=categories), timeout=self._call_timeout
        )
        self._ensure_current(generation)

        external_report: ExternalReport | None = None
        if Category.EXTERNAL in categories:
            checked = links.external
            if checked:
                timer.stage("verification")
                response = await self._channel.call(
                    CheckExternalLinksStatusRequest(links=links.external), timeout=self._batch_timeout
                )
                self._ensure_current(generation)
                lost = sum(1 for p in response.links if p.transport_failed)
                if lost and not final:
                    raise TransportError(
                        f"{lost} of {len(response.links)} link checks lost in transport",
                        request_type=RequestType.CHECK_EXTERNAL_LINKS_STATUS,
                    )
                if lost:
                    logger.warning("Scan %d: %d link checks lost again, reported as network errors", generation, lost)
                checked = response.links
            timer.stage("ranking")
            external_report = build_report(_records(checked), settings.external_status_codes.as_filter_map())

        def _section(category: Category, payloads) -> tuple[LinkRecord, ...] | None:
            return _records(payloads) if category in categories else None

        team = _section(Category.TEAM, links.team)
        onedrive = _section(Category.ONEDRIVE, links.onedrive)
        email = _section(Category.EMAIL, links.email)

        others = sum(len(s) for s in (team, onedrive, email) if s)
        external_raw = external_report.raw_count if external_report is not None else 0
        if others == 0 and external_raw == 0:
            state, message = ReportState.NO_LINKS, NO_LINKS_MESSAGE
        elif others == 0 and external_report is not None and external_report.state is ReportState.NO_MATCH:
            state, message = ReportState.NO_MATCH, NO_MATCH_MESSAGE
        else:
            state, message = ReportState.OK, ""

        return AuditReport(
            state=state,
            message=message,
            site=site,
            team=team,
            onedrive=onedrive,
            email=email,
            external=external_report,
            excluded_count=links.excluded_count,
            total_links=links.total,
        )

