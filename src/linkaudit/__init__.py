# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Link Audit: link classification and verification for rendered pages.

Extracts every hyperlink from a page, sorts it into one of four live categories
(team sites, OneDrive, email, external), probes external links over the network
and ranks the results by severity for display:
- extractor/classifier: document → categorized LinkRecords
- verifier: concurrent HEAD/GET probes → VerificationOutcome per URL
- ranker: severity classes, total sort order, filterable status groups
- locator: fuzzy re-identification of a link's element for highlighting
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import StrEnum

NO_TEXT_PLACEHOLDER = "No text"


class Location(StrEnum):
    """Structural position of an anchor on the page."""

    BODY = "body"
    FOOTER = "footer"
    NAV = "nav"


class Category(StrEnum):
    """Semantic link category.  EXCLUDED links never leave the classifier."""

    TEAM = "team"
    ONEDRIVE = "onedrive"
    EMAIL = "email"
    EXTERNAL = "external"
    EXCLUDED = "excluded"


class StatusKind(StrEnum):
    UNCHECKED = "unchecked"
    HTTP = "http"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"


_STATUS_LABELS = {
    StatusKind.UNCHECKED: "Unchecked",
    StatusKind.TIMEOUT: "Timeout",
    StatusKind.NETWORK_ERROR: "NetworkError",
}


@dataclass(frozen=True, slots=True)
class Status:
    """Verification outcome: Unchecked | Http(code) | Timeout | NetworkError."""

    kind: StatusKind
    code: int | None = None  # only set for HTTP

    def __post_init__(self) -> None:
        if (self.kind is StatusKind.HTTP) != (self.code is not None):
            raise ValueError(f"status code must be set exactly for HTTP statuses: {self.kind}/{self.code}")

    @classmethod
    def http(cls, code: int) -> Status:
        return cls(StatusKind.HTTP, int(code))

    @property
    def is_http(self) -> bool:
        return self.kind is StatusKind.HTTP

    def __str__(self) -> str:
        if self.kind is StatusKind.HTTP:
            return str(self.code)
        return _STATUS_LABELS[self.kind]


UNCHECKED = Status(StatusKind.UNCHECKED)
TIMEOUT = Status(StatusKind.TIMEOUT)
NETWORK_ERROR = Status(StatusKind.NETWORK_ERROR)


@dataclass(frozen=True, slots=True)
class LinkRecord:
    """A single link flowing through the pipeline.

    Records are immutable; category and status transitions return new records
    and each is allowed exactly once.
    """

    url: str
    text: str = NO_TEXT_PLACEHOLDER
    location: Location = Location.BODY
    category: Category = Category.EXCLUDED  # pre-classification state
    status: Status = UNCHECKED

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("LinkRecord.url must be non-empty")
        if not self.text or not self.text.strip():
            object.__setattr__(self, "text", NO_TEXT_PLACEHOLDER)

    def with_category(self, category: Category) -> LinkRecord:
        if self.category is not Category.EXCLUDED:
            raise ValueError(f"category already assigned: {self.category}")
        return dataclasses.replace(self, category=category)

    def with_status(self, status: Status) -> LinkRecord:
        if self.status != UNCHECKED:
            raise ValueError(f"status already set for {self.url}: {self.status}")
        if status == UNCHECKED:
            raise ValueError("cannot transition to Unchecked")
        return dataclasses.replace(self, status=status)

    @property
    def severity_rank(self) -> int:
        from .ranker import severity_class

        return severity_class(self)

    @property
    def is_footer(self) -> bool:
        return self.location is Location.FOOTER

    @property
    def is_nav(self) -> bool:
        return self.location is Location.NAV


@dataclass(frozen=True, slots=True)
class VerificationOutcome:
    """Result of probing one URL.  Not persisted."""

    url: str
    status: Status
    methods: tuple[str, ...] = ()  # HTTP methods attempted, in order
    elapsed_ms: float = 0.0
    transport_failed: bool = False  # channel failure, not a network failure
