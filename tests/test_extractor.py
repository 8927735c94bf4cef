# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for anchor extraction and location tagging."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from linkaudit import NO_TEXT_PLACEHOLDER, Category, Location
from linkaudit.document import Document
from linkaudit.extractor import extract_links, link_location
from tests._helpers import PAGE_URL, make_document


class TestExtractLinks:
    def test_fixture_page(self, sharepoint_document):
        links = extract_links(sharepoint_document)
        # javascript: pseudo-link dropped; everything else kept
        assert len(links) == 9
        assert all(link.category is Category.EXCLUDED for link in links)
        assert not any(link.url.startswith("javascript:") for link in links)

    def test_relative_hrefs_resolved(self, sharepoint_document):
        urls = [link.url for link in extract_links(sharepoint_document)]
        assert "https://contoso.sharepoint.com/sites/hr/SitePages/Policies.aspx" in urls
        assert "https://contoso.sharepoint.com/sites/hr" in urls

    def test_base_href_respected(self):
        doc = make_document('<base href="https://cdn.example.com/docs/"><a href="guide.html">Guide</a>')
        assert extract_links(doc)[0].url == "https://cdn.example.com/docs/guide.html"

    def test_empty_href_dropped(self):
        doc = make_document('<a href="">x</a><a href="   ">y</a><a>no href</a>')
        assert extract_links(doc) == []

    def test_javascript_case_insensitive(self):
        doc = make_document('<a href="JavaScript:alert(1)">x</a>')
        assert extract_links(doc) == []

    def test_blank_text_placeholder(self, sharepoint_document):
        links = {link.url: link for link in extract_links(sharepoint_document)}
        assert links["https://example.org/docs?id=7#top"].text == NO_TEXT_PLACEHOLDER

    def test_text_sanitized(self):
        doc = make_document('<a href="https://a.example/">  Hello\n   <b>world</b> </a>')
        assert extract_links(doc)[0].text == "Hello world"

    def test_empty_document(self):
        doc = make_document("")
        assert extract_links(doc) == []

    def test_comment_only_document(self):
        doc = Document.from_html("<!-- placeholder -->", PAGE_URL)
        assert extract_links(doc) == []


class TestLocation:
    def test_footer_tag(self, sharepoint_document):
        links = {link.url: link for link in extract_links(sharepoint_document)}
        assert links["https://status.example.net/"].location is Location.FOOTER

    def test_contentinfo_role(self):
        doc = make_document('<div role="contentinfo"><div><a href="https://a.example/">x</a></div></div>')
        assert extract_links(doc)[0].location is Location.FOOTER

    def test_nav_marker(self, sharepoint_document):
        links = {link.url: link for link in extract_links(sharepoint_document)}
        assert links["https://contoso.sharepoint.com/teams/Benefits"].location is Location.NAV

    def test_left_nav_marker(self):
        doc = make_document('<a href="https://a.example/"><span class="ms-Nav-linkText x">Docs</span></a>')
        assert extract_links(doc)[0].location is Location.NAV

    def test_footer_wins_over_nav(self):
        doc = make_document(
            '<footer><a href="https://a.example/"><span class="ms-Nav-linkText">Docs</span></a></footer>'
        )
        assert extract_links(doc)[0].location is Location.FOOTER

    def test_plain_anchor_is_body(self):
        doc = make_document('<nav><a href="https://a.example/">Docs</a></nav>')
        assert extract_links(doc)[0].location is Location.BODY

    def test_custom_markers(self):
        doc = make_document('<a href="https://a.example/"><i class="menu">Docs</i></a>')
        anchor = doc.anchors()[0]
        assert link_location(anchor, nav_markers=(("i", "menu"),)) is Location.NAV
        assert link_location(anchor, nav_markers=()) is Location.BODY


@settings(max_examples=50)
@given(st.lists(st.integers(min_value=0, max_value=10_000), min_size=1, max_size=30, unique=True))
def test_document_order_preserved(ids):
    body = "".join(f'<div><a href="https://a.example/{i}">L{i}</a></div>' for i in ids)
    links = extract_links(make_document(body, PAGE_URL))
    assert [link.url for link in links] == [f"https://a.example/{i}" for i in ids]


@pytest.mark.parametrize("depth", [1, 5, 20])
def test_nested_footer_depth(depth):
    inner = '<a href="https://a.example/">x</a>'
    for _ in range(depth):
        inner = f"<div>{inner}</div>"
    doc = make_document(f"<footer>{inner}</footer>")
    assert extract_links(doc)[0].location is Location.FOOTER
