# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Link Audit exception hierarchy.

All linkaudit-specific errors inherit from LinkAuditError.  Network failures
while probing links are never raised: the verifier turns them into statuses.
"""

from __future__ import annotations


class LinkAuditError(Exception):
    """Base exception for all linkaudit errors."""


class DocumentError(LinkAuditError):
    """The page could not be fetched, rendered, or parsed."""


class ConfigError(LinkAuditError):
    """Settings file is unreadable or has an invalid shape."""


class TransportError(LinkAuditError):
    """A request over a message channel failed (independent of the target network)."""

    def __init__(self, message: str, *, request_type: str = "") -> None:
        super().__init__(message)
        self.request_type = request_type


class ChannelUnavailableError(TransportError):
    """No receiver is listening on the channel (closed, or no handler registered)."""


class RemoteCallError(TransportError):
    """The receiver handled the request but raised."""


class TransportTimeoutError(TransportError):
    """The receiver did not answer within the per-call timeout."""


class StaleScanError(LinkAuditError):
    """A newer scan started before this one finished; its results were discarded."""

    def __init__(self, message: str, *, generation: int = 0, current: int = 0) -> None:
        super().__init__(message)
        self.generation = generation
        self.current = current
