#!/usr/bin/env python
"""Request a meta-summary from a running dashboard and print it as it streams."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from typing import Any, Callable, Iterable

import httpx

from app.core.logging import configure_logging
from app.schemas import ContentEvent, DoneEvent, ErrorEvent, MetadataEvent
from app.utils.sse import parse_event

logger = logging.getLogger("scripts.meta_summary")

EXIT_OK = 0
EXIT_REQUEST_ERROR = 1
EXIT_STREAM_ERROR = 2


def build_filters(args: argparse.Namespace) -> dict[str, Any]:
    filters: dict[str, Any] = {}
    if args.org_id is not None:
        filters["orgId"] = args.org_id
    if args.date_from:
        filters["dateFrom"] = args.date_from.isoformat()
    if args.date_to:
        filters["dateTo"] = args.date_to.isoformat()
    if args.value_moments:
        filters["valueMoments"] = args.value_moments
    if args.search:
        filters["searchText"] = args.search
    return filters


def render_stream(lines: Iterable[str], write: Callable[[str], Any]) -> int:
    """Print content fragments in order; return the exit code for the stream."""
    for line in lines:
        event = parse_event(line)
        if isinstance(event, MetadataEvent):
            write(f"# {event.trial_count} trials ({event.date_range})\n\n")
        elif isinstance(event, ContentEvent):
            write(event.text)
        elif isinstance(event, ErrorEvent):
            write(f"\n\n[error] {event.error}\n")
            return EXIT_STREAM_ERROR
        elif isinstance(event, DoneEvent):
            write("\n")
            return EXIT_OK
    write("\n\n[error] stream closed without a terminal event\n")
    return EXIT_STREAM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--org-id", type=int, default=None)
    parser.add_argument("--date-from", type=date.fromisoformat, default=None)
    parser.add_argument("--date-to", type=date.fromisoformat, default=None)
    parser.add_argument(
        "--value-moment",
        dest="value_moments",
        action="append",
        default=[],
        help="Repeat to include several value moments.",
    )
    parser.add_argument("--search", default=None)
    parser.add_argument("--timeout", type=float, default=300.0)
    parser.add_argument("--log-level", default="WARNING")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level, stream=sys.stderr)
    payload = {"filters": build_filters(args)}
    logger.info("Requesting meta-summary with filters %s", payload["filters"])

    def write(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    try:
        with httpx.stream(
            "POST",
            f"{args.base_url.rstrip('/')}/api/meta-summary",
            json=payload,
            timeout=args.timeout,
        ) as response:
            if response.status_code != 200:
                response.read()
                print(
                    f"Request failed ({response.status_code}): {response.text}",
                    file=sys.stderr,
                )
                return EXIT_REQUEST_ERROR
            return render_stream(response.iter_lines(), write)
    except httpx.HTTPError as exc:
        print(f"Could not reach {args.base_url}: {exc}", file=sys.stderr)
        return EXIT_REQUEST_ERROR


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
