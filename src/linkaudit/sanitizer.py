# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Text sanitization for link labels.

Anchor text ends up in terminal output and JSON reports. Page content can carry
hidden Unicode, ANSI escapes, or enormous labels, so every label goes through
sanitize_text() before it is stored on a LinkRecord.
"""

from __future__ import annotations

import re

# Zero-width chars, bidi overrides, C0/C1 controls
_CONTROL_CHAR_RE = re.compile(
    r"[\u200B-\u200F\u202A-\u202E\u2060-\u2069\uFEFF\uFFF9-\uFFFB"
    r"\u0000-\u0008\u000B\u000C\u000E-\u001F\u007F-\u009F]"
)

_ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")

_WHITESPACE_RE = re.compile(r"\s+")


def sanitize_text(text: str, max_len: int = 256) -> str:
    """Sanitize a link label.

    - Removes ANSI escape sequences and Unicode control characters
    - Collapses runs of whitespace (including newlines) into one space
    - Truncates to max_len, marking truncation with an ellipsis
    """
    if not text:
        return ""

    text = _ANSI_ESCAPE_RE.sub("", text)
    text = _CONTROL_CHAR_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()

    if len(text) > max_len:
        text = text[: max_len - 1].rstrip() + "…"
    return text
