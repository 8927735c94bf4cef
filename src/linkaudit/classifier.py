# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Rule-based link classification — ordered first-match waterfall.

Every destination lands in exactly one category:

  1. email     — ``mailto:`` scheme (checked before any exclusion rule)
  2. team      — Teams host, or SharePoint host with a ``/teams/`` path
  3. onedrive  — ``*-my.sharepoint.com`` host, or a ``/personal/`` path
  4. external  — http(s), off-page host, not a first-party domain
  5. excluded  — everything else, including unparsable URLs

Classification is pure: same URL + page host + rule set → same category.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from . import Category, LinkRecord
from .config import RuleSettings
from .document import Document
from .extractor import extract_links

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Default domain tables
# ---------------------------------------------------------------------------

# Vendor-ecosystem domains never reported as external (subdomains included)
FIRST_PARTY_DOMAINS: tuple[str, ...] = (
    "microsoft.com",
    "sharepoint.com",
    "sharepoint-df.com",
    "office.com",
    "office365.com",
    "teams.microsoft.com",
    "outlook.com",
    "outlook.office.com",
    "onedrive.com",
    "live.com",
    "hotmail.com",
    "msn.com",
    "bing.com",
    "azure.com",
    "azurewebsites.net",
    "microsoftonline.com",
    "graph.microsoft.com",
    "powerapps.com",
    "powerbi.com",
    "dynamics.com",
    "xbox.com",
    "skype.com",
    "linkedin.com",
    "github.com",
    "visualstudio.com",
    "vscode.dev",
    "aka.ms",
    "microsoftstore.com",
)

TEAM_DOMAINS: tuple[str, ...] = ("teams.microsoft.com",)
DOCUMENT_SHARING_DOMAINS: tuple[str, ...] = ("sharepoint.com", "sharepoint-df.com")
PERSONAL_HOST_SUFFIXES: tuple[str, ...] = ("-my.sharepoint.com", "-my.sharepoint-df.com")
TEAM_PATH_SEGMENT = "/teams/"
PERSONAL_PATH_SEGMENT = "/personal/"

_HTTP_SCHEMES = frozenset({"http", "https"})


# ---------------------------------------------------------------------------
# Parsed destination
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedLink:
    """Lowercased scheme/host and raw path of a destination."""

    scheme: str
    host: str
    path: str

    @classmethod
    def parse(cls, url: str) -> ParsedLink | None:
        """None when *url* is not a parsable absolute URL."""
        try:
            parts = urlsplit(url.strip())
            host = (parts.hostname or "").lower()
        except (ValueError, AttributeError):
            return None
        if not parts.scheme:
            return None
        return cls(scheme=parts.scheme.lower(), host=host, path=parts.path)


def host_in_domains(host: str, domains: Iterable[str]) -> bool:
    """True if *host* equals one of *domains* or is a subdomain of one."""
    return any(host == d or host.endswith("." + d) for d in domains)


RulePredicate = Callable[[ParsedLink, str], bool]


def _is_email(link: ParsedLink, page_host: str) -> bool:
    return link.scheme == "mailto"


# ---------------------------------------------------------------------------
# Rule set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassificationRuleSet:
    """Ordered (category, predicate) rules plus the first-party exclusion list.

    Immutable; build a new one when configuration changes between scans.
    """

    first_party_domains: tuple[str, ...] = FIRST_PARTY_DOMAINS
    team_domains: tuple[str, ...] = TEAM_DOMAINS
    document_sharing_domains: tuple[str, ...] = DOCUMENT_SHARING_DOMAINS
    personal_host_suffixes: tuple[str, ...] = PERSONAL_HOST_SUFFIXES
    team_path_segment: str = TEAM_PATH_SEGMENT
    personal_path_segment: str = PERSONAL_PATH_SEGMENT

    @classmethod
    def default(cls) -> ClassificationRuleSet:
        return cls()

    @classmethod
    def from_settings(cls, settings: RuleSettings) -> ClassificationRuleSet:
        """Apply overrides from the settings blob; unset fields keep defaults."""
        overrides = {
            name: value
            for name, value in (
                ("first_party_domains", settings.first_party_domains),
                ("team_domains", settings.team_domains),
                ("document_sharing_domains", settings.document_sharing_domains),
                ("personal_host_suffixes", settings.personal_host_suffixes),
                ("team_path_segment", settings.team_path_segment),
                ("personal_path_segment", settings.personal_path_segment),
            )
            if value is not None
        }
        for name in ("first_party_domains", "team_domains", "document_sharing_domains", "personal_host_suffixes"):
            if name in overrides:
                overrides[name] = tuple(d.strip().lower() for d in overrides[name] if d.strip())
        for name in ("team_path_segment", "personal_path_segment"):
            if name in overrides:
                overrides[name] = overrides[name].lower()
        return cls(**overrides)

    # -- Predicates (rules 2-4) --

    def _is_team(self, link: ParsedLink, page_host: str) -> bool:
        if host_in_domains(link.host, self.team_domains):
            return True
        return host_in_domains(link.host, self.document_sharing_domains) and (
            self.team_path_segment in link.path.lower()
        )

    def _is_onedrive(self, link: ParsedLink, page_host: str) -> bool:
        if link.host and any(link.host.endswith(s) for s in self.personal_host_suffixes):
            return True
        return self.personal_path_segment in link.path.lower()

    def _is_external(self, link: ParsedLink, page_host: str) -> bool:
        if link.scheme not in _HTTP_SCHEMES or not link.host:
            return False
        if link.host == page_host:
            return False
        return not host_in_domains(link.host, self.first_party_domains)

    @property
    def rules(self) -> tuple[tuple[Category, RulePredicate], ...]:
        """Rules in precedence order; first match wins."""
        return (
            (Category.EMAIL, _is_email),
            (Category.TEAM, self._is_team),
            (Category.ONEDRIVE, self._is_onedrive),
            (Category.EXTERNAL, self._is_external),
        )


_DEFAULT_RULES = ClassificationRuleSet()


def classify_url(url: str, page_host: str, rules: ClassificationRuleSet | None = None) -> Category:
    """Category of one destination relative to the page at *page_host*."""
    link = ParsedLink.parse(url)
    if link is None:
        return Category.EXCLUDED
    rule_set = rules or _DEFAULT_RULES
    page_host = page_host.lower()
    for category, predicate in rule_set.rules:
        if predicate(link, page_host):
            return category
    return Category.EXCLUDED


# ---------------------------------------------------------------------------
# Batch classification
# ---------------------------------------------------------------------------


@dataclass
class Classification:
    """Categorized links of one scan, each list in document order."""

    team: list[LinkRecord] = field(default_factory=list)
    onedrive: list[LinkRecord] = field(default_factory=list)
    email: list[LinkRecord] = field(default_factory=list)
    external: list[LinkRecord] = field(default_factory=list)
    excluded_count: int = 0

    @property
    def live_count(self) -> int:
        return len(self.team) + len(self.onedrive) + len(self.email) + len(self.external)

    @property
    def total(self) -> int:
        return self.live_count + self.excluded_count

    def by_category(self, category: Category) -> list[LinkRecord]:
        if category is Category.EXCLUDED:
            raise KeyError("excluded links are counted, not kept")
        return getattr(self, category.value)


def classify(
    records: Iterable[LinkRecord],
    page_host: str,
    rules: ClassificationRuleSet | None = None,
) -> Classification:
    """Partition extracted records.  Excluded records are dropped and counted."""
    result = Classification()
    for record in records:
        category = classify_url(record.url, page_host, rules)
        if category is Category.EXCLUDED:
            result.excluded_count += 1
            continue
        result.by_category(category).append(record.with_category(category))
    logger.debug(
        "Classified: team=%d onedrive=%d email=%d external=%d excluded=%d",
        len(result.team),
        len(result.onedrive),
        len(result.email),
        len(result.external),
        result.excluded_count,
    )
    return result


def scan(document: Document, rules: ClassificationRuleSet | None = None) -> Classification:
    """Extract and classify every link on *document*."""
    return classify(extract_links(document), document.host, rules)
