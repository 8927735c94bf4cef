# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Settings blob: link-type toggles, status-group filters, classifier overrides.

The blob is owned by the preferences store; we only read it. Shape::

    {
      "linkTypes": {"teams": true, "onedrive": true, "external": true, "email": true},
      "externalStatusCodes": {"2xx": true, "3xx": true, "4xx": true, "5xx": true, "network": true},
      "rules": {"firstPartyDomains": [...], ...}        # optional
    }

Absent keys default to ``true``.  Models are frozen: one snapshot per scan.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Status filter keys, in display order
STATUS_FILTER_KEYS: tuple[str, ...] = ("network", "5xx", "4xx", "3xx", "2xx")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class LinkTypeSettings(_Frozen):
    """Which link categories are collected and shown."""

    teams: bool = True
    onedrive: bool = True
    external: bool = True
    email: bool = True


class StatusCodeSettings(_Frozen):
    """Which external status groups are surfaced."""

    success: bool = Field(True, alias="2xx")
    redirect: bool = Field(True, alias="3xx")
    client_error: bool = Field(True, alias="4xx")
    server_error: bool = Field(True, alias="5xx")
    network: bool = True

    def as_filter_map(self) -> dict[str, bool]:
        """Group filter key → enabled flag."""
        return {
            "network": self.network,
            "5xx": self.server_error,
            "4xx": self.client_error,
            "3xx": self.redirect,
            "2xx": self.success,
        }


class RuleSettings(_Frozen):
    """Optional classifier overrides.  ``None`` keeps the built-in default."""

    first_party_domains: tuple[str, ...] | None = Field(None, alias="firstPartyDomains")
    team_domains: tuple[str, ...] | None = Field(None, alias="teamDomains")
    document_sharing_domains: tuple[str, ...] | None = Field(None, alias="documentSharingDomains")
    personal_host_suffixes: tuple[str, ...] | None = Field(None, alias="personalHostSuffixes")
    team_path_segment: str | None = Field(None, alias="teamPathSegment")
    personal_path_segment: str | None = Field(None, alias="personalPathSegment")


class Settings(_Frozen):
    """Top-level settings snapshot."""

    link_types: LinkTypeSettings = Field(default_factory=LinkTypeSettings, alias="linkTypes")
    external_status_codes: StatusCodeSettings = Field(
        default_factory=StatusCodeSettings, alias="externalStatusCodes"
    )
    rules: RuleSettings = Field(default_factory=RuleSettings)

    def to_blob(self) -> dict:
        """Serialize back to the stored blob shape (camelCase keys)."""
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_settings(data: dict | None) -> Settings:
    """Validate a settings blob.  ``None`` or ``{}`` → all defaults."""
    if not data:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigError(f"Settings must be a mapping, got {type(data).__name__}")
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e


def load_settings(path: Path | str | None) -> Settings:
    """Load settings from a JSON or YAML file.  ``None`` → defaults."""
    if path is None:
        return Settings()
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read settings file {path}: {e.strerror}") from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(raw) if raw.strip() else None
        else:
            data = yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot parse settings file {path}: {e}") from e

    settings = parse_settings(data)
    logger.debug("Loaded settings from %s", path)
    return settings
