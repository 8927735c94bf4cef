# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import linkaudit  # noqa: F401
except ImportError:
    raise ImportError("linkaudit is not installed. Run: pip install -e '.[test]'") from None

import pytest

from linkaudit.document import Document
from tests._helpers import PAGE_URL, SHAREPOINT_PAGE


@pytest.fixture
def sharepoint_document() -> Document:
    return Document.from_html(SHAREPOINT_PAGE, PAGE_URL)


@pytest.fixture(autouse=True)
def _block_real_browser(request, monkeypatch):
    """Safety net: unit tests never launch Chromium.

    Tests that exercise rendering patch ``async_playwright`` themselves; tests
    marked ``allow_real_browser`` opt out.
    """
    if "allow_real_browser" in request.keywords:
        return

    def _no_real_browser():
        raise RuntimeError("Test tried to launch a real browser. Patch 'linkaudit.document.async_playwright'.")

    monkeypatch.setattr("linkaudit.document.async_playwright", _no_real_browser)
