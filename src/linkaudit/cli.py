# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Link Audit CLI: scan and locate commands.

Usage:
    linkaudit scan URL [--file HTML] [--browser] [--settings FILE] [--format text|json] [--timeout S]
    linkaudit locate TARGET_URL --file HTML --base-url URL
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .verifier import PROBE_TIMEOUT

logger = logging.getLogger(__name__)


def _read_html(path_str: str) -> str:
    from .errors import DocumentError

    path = Path(path_str)
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise DocumentError(f"Cannot read HTML file {path.name}: {e.strerror}") from e


async def _load_document(args: argparse.Namespace):
    from .document import Document, fetch_document, render_document

    if args.file:
        return Document.from_html(_read_html(args.file), args.url)
    if args.browser:
        return await render_document(args.url)
    return await fetch_document(args.url)


async def _scan(args: argparse.Namespace):
    from ._progress import print_step, status_spinner
    from .agent import PageAgent, ProbeService
    from .auditor import LinkAuditor
    from .classifier import ClassificationRuleSet
    from .config import load_settings
    from .rpc import LocalChannel, batch_call_timeout, check_link_call_timeout

    settings = load_settings(args.settings)

    with status_spinner(f"Loading {args.url}..."):
        document = await _load_document(args)
    print_step(f"Loaded {document.url}")

    async with ProbeService(timeout=args.timeout) as probes:
        probe_channel = LocalChannel("probe").serve(probes)
        agent = PageAgent(
            document,
            probe_channel,
            rules=ClassificationRuleSet.from_settings(settings.rules),
            probe_call_timeout=check_link_call_timeout(args.timeout),
        )
        page_channel = LocalChannel("page").serve(agent)
        auditor = LinkAuditor(page_channel, settings, batch_timeout=batch_call_timeout(args.timeout))
        try:
            with status_spinner("Checking links..."):
                return await auditor.run()
        finally:
            page_channel.close()
            probe_channel.close()


def cmd_scan(args: argparse.Namespace) -> int:
    """Scan a page and print the link report."""
    from .logging_config import bind_scan_context, clear_scan_context
    from .ranker import ReportState
    from .serializer import to_json, to_text

    bind_scan_context(url=args.url)
    try:
        report = asyncio.run(_scan(args))
    finally:
        clear_scan_context()

    if args.format == "json":
        print(to_json(report))
    else:
        print(to_text(report))
    return 1 if report.state is ReportState.FAILED else 0


def cmd_locate(args: argparse.Namespace) -> int:
    """Find the anchor for TARGET_URL in a saved page."""
    import lxml.html

    from .document import Document
    from .locator import Highlighter

    document = Document.from_html(_read_html(args.file), args.base_url)
    highlighter = Highlighter()
    if not highlighter.mark(document, args.target_url):
        print(f"Not found: {args.target_url}", file=sys.stderr)
        return 1

    element = highlighter.marked
    text = " ".join(element.text_content().split()) or "(no text)"
    print(f"strategy: {highlighter.strategy}")
    print(f"href:     {element.get('href', '')}")
    print(f"text:     {text}")
    print(f"path:     {element.getroottree().getpath(element)}")
    logger.debug("Marked element: %s", lxml.html.tostring(element, encoding="unicode")[:200])
    highlighter.clear()
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Link Audit CLI", prog="linkaudit")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_scan = subparsers.add_parser(
        "scan",
        help="Extract, classify, and verify the links on a page",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s https://contoso.sharepoint.com/sites/hr/SitePages/Home.aspx
  %(prog)s https://contoso.sharepoint.com/... --browser --format json
  %(prog)s https://contoso.sharepoint.com/... --file saved.html --settings prefs.yaml""",
    )
    p_scan.add_argument("url", metavar="URL", help="Page address (also the base for --file)")
    source = p_scan.add_mutually_exclusive_group()
    source.add_argument("--file", type=str, metavar="HTML", help="Read the page from a saved HTML file")
    source.add_argument("--browser", action="store_true", help="Render with headless Chromium (Playwright)")
    p_scan.add_argument("--settings", type=str, metavar="FILE", help="Settings file (JSON or YAML)")
    p_scan.add_argument("--format", choices=["text", "json"], default="text", help="Output format (default: text)")
    p_scan.add_argument(
        "--timeout",
        type=float,
        default=PROBE_TIMEOUT,
        metavar="S",
        help=f"Per-link probe timeout in seconds (default: {PROBE_TIMEOUT:g})",
    )

    p_locate = subparsers.add_parser("locate", help="Find the anchor element for a link in a saved page")
    p_locate.add_argument("target_url", metavar="TARGET_URL")
    p_locate.add_argument("--file", type=str, metavar="HTML", required=True)
    p_locate.add_argument("--base-url", type=str, metavar="URL", required=True)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    from .logging_config import configure

    parser = _build_parser()
    args = parser.parse_args(argv)

    configure(json_output=args.json_logs, level="DEBUG" if args.verbose else "WARNING")

    commands = {"scan": cmd_scan, "locate": cmd_locate}
    try:
        code = commands[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except SystemExit:
        raise
    except Exception as e:
        from .problem_details import from_exception

        problem = from_exception(e)
        print(problem.to_cli_text(), file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
