from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Dict, List, Optional, Sequence

from webfetch.config import DEFAULT_MAX_CHARS
from webfetch.tool import TOOL_DESCRIPTION, WebFetchTool


def _parse_headers(values: List[str]) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for value in values:
        name, sep, header_value = value.partition(":")
        if not sep or not name.strip():
            raise SystemExit(f"Invalid header (expected 'Name: value'): {value!r}")
        headers[name.strip()] = header_value.strip()
    return headers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="webfetch", description=TOOL_DESCRIPTION)
    parser.add_argument("url", help="URL to fetch (https:// is assumed when the scheme is omitted)")
    parser.add_argument("--max-chars", type=int, default=DEFAULT_MAX_CHARS, help="Maximum characters returned")
    parser.add_argument("--mode", choices=("full", "probe"), default="full")
    parser.add_argument("--strategy", choices=("direct", "smart"), default="direct")
    parser.add_argument("--accept", help="Explicit Accept header override")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        help="Extra request header as 'Name: value' (repeatable)",
    )
    parser.add_argument("--details", action="store_true", help="Also print the diagnostic record as JSON")
    parser.add_argument("--verbose", action="store_true", help="Log redirects and strategy decisions")
    return parser


def main(argv: Optional[Sequence[str]] = None, *, tool: Optional[WebFetchTool] = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    params = {
        "url": args.url,
        "max_chars": args.max_chars,
        "mode": args.mode,
        "strategy": args.strategy,
        "accept": args.accept,
        "headers": _parse_headers(args.header),
    }
    tool = tool or WebFetchTool()
    result = asyncio.run(tool.execute(params))
    print(result.text)
    if args.details:
        print(json.dumps(result.details.to_dict(), indent=2, ensure_ascii=False), file=sys.stderr)
    return 1 if result.is_error else 0
