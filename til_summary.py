"""Print the learning-log dashboard as a text report.

Usage:
    python til_summary.py til_entries.json [--root til] [--now EPOCH_MS]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime

from analytics import WEEK_COUNT, build_dashboard_payload, format_dashboard_text
from entries import load_dashboard_input


def main(
    path: str = "til_entries.json",
    root: str | None = None,
    now_ms: int | None = None,
    week_count: int = WEEK_COUNT,
) -> None:
    """Load *path*, compute the dashboard and print the report.

    Exits with status 1 when the input file is missing or malformed.
    """
    try:
        dashboard_input = load_dashboard_input(path)
    except FileNotFoundError:
        print(f"Error: input file not found: {path}", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as exc:
        print(f"Error: invalid JSON in {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    now = datetime.fromtimestamp(now_ms / 1000) if now_ms is not None else None
    payload = build_dashboard_payload(
        dashboard_input.entries,
        root or dashboard_input.root,
        dashboard_input.backlog,
        now=now,
        week_count=week_count,
    )
    print(format_dashboard_text(payload))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Learning-log dashboard summary")
    parser.add_argument("path", nargs="?", default="til_entries.json", help="Input JSON file")
    parser.add_argument("--root", default=None, help="Tracked root (overrides the file)")
    parser.add_argument("--now", type=int, default=None, help="Reference time in epoch millis")
    parser.add_argument("--weeks", type=int, default=WEEK_COUNT, help="Weekly trend buckets")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    main(args.path, root=args.root, now_ms=args.now, week_count=args.weeks)
