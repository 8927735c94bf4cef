# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the structlog + stdlib logging bridge."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from linkaudit.logging_config import bind_scan_context, clear_scan_context, configure


@pytest.fixture(autouse=True)
def _restore_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    clear_scan_context()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestConfigure:
    def test_single_stderr_handler(self):
        configure()
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

    def test_level(self):
        configure(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_defaults_to_info(self):
        configure(level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_noisy_loggers_quieted(self):
        configure(level="INFO")
        assert logging.getLogger("httpx").level == logging.WARNING
        configure(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_json_lines(self, capsys):
        configure(json_output=True)
        logging.getLogger("linkaudit.test").warning("probe failed for %s", "https://a.example/")
        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "probe failed for https://a.example/"
        assert record["level"] == "warning"
        assert record["logger"] == "linkaudit.test"

    def test_context_bound(self, capsys):
        configure(json_output=True)
        bind_scan_context(url="https://contoso.sharepoint.com/")
        logging.getLogger("linkaudit.test").warning("scan started")
        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["url"] == "https://contoso.sharepoint.com/"
