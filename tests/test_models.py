# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the core data model: Status variants and LinkRecord transitions."""

from __future__ import annotations

import pytest

from linkaudit import (
    NETWORK_ERROR,
    NO_TEXT_PLACEHOLDER,
    TIMEOUT,
    UNCHECKED,
    Category,
    LinkRecord,
    Location,
    Status,
    StatusKind,
)


class TestStatus:
    def test_http_carries_code(self):
        s = Status.http(404)
        assert s.kind is StatusKind.HTTP
        assert s.code == 404
        assert s.is_http
        assert str(s) == "404"

    @pytest.mark.parametrize(
        "status, label",
        [(TIMEOUT, "Timeout"), (NETWORK_ERROR, "NetworkError"), (UNCHECKED, "Unchecked")],
    )
    def test_sentinel_labels(self, status, label):
        assert str(status) == label
        assert not status.is_http
        assert status.code is None

    def test_http_without_code_rejected(self):
        with pytest.raises(ValueError):
            Status(StatusKind.HTTP)

    def test_code_on_non_http_rejected(self):
        with pytest.raises(ValueError):
            Status(StatusKind.TIMEOUT, 408)

    def test_equality_by_value(self):
        assert Status.http(200) == Status(StatusKind.HTTP, 200)
        assert Status(StatusKind.TIMEOUT) == TIMEOUT


class TestLinkRecord:
    def test_defaults(self):
        r = LinkRecord(url="https://a.example/")
        assert r.text == NO_TEXT_PLACEHOLDER
        assert r.location is Location.BODY
        assert r.category is Category.EXCLUDED
        assert r.status == UNCHECKED

    def test_empty_url_rejected(self):
        with pytest.raises(ValueError):
            LinkRecord(url="")

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_becomes_placeholder(self, text):
        assert LinkRecord(url="https://a.example/", text=text).text == NO_TEXT_PLACEHOLDER

    def test_category_assigned_once(self):
        r = LinkRecord(url="https://a.example/").with_category(Category.EXTERNAL)
        assert r.category is Category.EXTERNAL
        with pytest.raises(ValueError):
            r.with_category(Category.TEAM)

    def test_status_set_once(self):
        r = LinkRecord(url="https://a.example/").with_status(Status.http(200))
        assert r.status == Status.http(200)
        with pytest.raises(ValueError):
            r.with_status(TIMEOUT)

    def test_status_cannot_go_back_to_unchecked(self):
        with pytest.raises(ValueError):
            LinkRecord(url="https://a.example/").with_status(UNCHECKED)

    def test_transitions_return_new_records(self):
        original = LinkRecord(url="https://a.example/")
        updated = original.with_category(Category.EXTERNAL)
        assert original.category is Category.EXCLUDED
        assert updated is not original

    def test_frozen(self):
        r = LinkRecord(url="https://a.example/")
        with pytest.raises(AttributeError):
            r.url = "https://b.example/"

    def test_location_helpers(self):
        assert LinkRecord(url="https://a.example/", location=Location.FOOTER).is_footer
        assert LinkRecord(url="https://a.example/", location=Location.NAV).is_nav

    def test_severity_rank(self):
        r = LinkRecord(url="https://a.example/", category=Category.EXTERNAL).with_status(Status.http(404))
        assert r.severity_rank == 3
        assert LinkRecord(url="mailto:a@b.com", category=Category.EMAIL).severity_rank == 5
