"""Core analytics for a dated learning log.

Derives the dashboard views (streak, heatmap, weekly trend, category
share, backlog rollup) from the validated entries produced by
``entries``.  Every function here is a pure function of its arguments:
"now" and the random source are parameters, never ambient state.
Used by the CLI (til_summary.py), the web service (app.py) and the
chart script (til_viz.py).
"""

from __future__ import annotations

import logging
import math
import random
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable

from entries import (
    BacklogItem,
    BacklogRecord,
    Entry,
    canonical_date,
    canonical_timestamp,
    extract_category,
    filter_tracked_entries,
    parse_day,
)

logger = logging.getLogger(__name__)

HEATMAP_DAYS = 365
STREAK_SCAN_DAYS = 365
WEEK_COUNT = 16
TRAILING_DAYS = 7
SPARK_GLYPHS = ["▁", "▂", "▃", "▅", "▇"]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def _resolve_now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now()


# ---------------------------------------------------------------------------
# Activity over time
# ---------------------------------------------------------------------------

def compute_streak(
    entries: Iterable[Entry],
    root: str,
    now: datetime | None = None,
) -> int:
    """Count consecutive active days ending at *now*.

    Walks backward from the day containing *now*.  An inactive today is
    skipped without breaking the streak (so a day that is not logged yet
    does not zero it); any later inactive day ends the walk.  The scan
    stops after ``STREAK_SCAN_DAYS`` days.

    Args:
        entries: All entries; filtered internally.
        root: Tracked-root prefix (e.g. "til").
        now: Reference time.  Defaults to the current local time.

    Returns:
        The streak length in days, 0 when nothing qualifies.
    """
    tracked = filter_tracked_entries(entries, root)
    if not tracked:
        return 0

    active_days = {canonical_date(e) for e in tracked}
    cursor = _resolve_now(now).date()

    streak = 0
    for i in range(STREAK_SCAN_DAYS):
        if cursor.isoformat() in active_days:
            streak += 1
        elif i > 0:
            break
        cursor -= timedelta(days=1)
    return streak


def compute_weekly_count(
    entries: Iterable[Entry],
    root: str,
    now: datetime | None = None,
) -> int:
    """Count tracked entries dated within the trailing 7 days (today included)."""
    today = _resolve_now(now).date()
    cutoff = today - timedelta(days=TRAILING_DAYS - 1)
    count = 0
    for e in filter_tracked_entries(entries, root):
        day = parse_day(canonical_date(e))
        if day is not None and cutoff <= day <= today:
            count += 1
    return count


def heatmap_level(count: int, max_count: int) -> int:
    """Map a day's count to an intensity level 0-4 relative to *max_count*."""
    if count == 0 or max_count == 0:
        return 0
    ratio = count / max_count
    if ratio <= 0.25:
        return 1
    if ratio <= 0.5:
        return 2
    if ratio <= 0.75:
        return 3
    return 4


def compute_heatmap_data(
    entries: Iterable[Entry],
    root: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the 365-day activity heatmap ending today.

    Args:
        entries: All entries; filtered internally.
        root: Tracked-root prefix.
        now: Reference time.  Defaults to the current local time.

    Returns:
        Dict with keys:
            - cells: exactly ``HEATMAP_DAYS`` dicts (date, count, level),
              oldest first, last cell is today.
            - max_count: the highest per-day count inside the window.
    """
    today = _resolve_now(now).date()
    window = [
        (today - timedelta(days=offset)).isoformat()
        for offset in range(HEATMAP_DAYS - 1, -1, -1)
    ]
    in_window = set(window)

    counts: dict[str, int] = {}
    for e in filter_tracked_entries(entries, root):
        day = canonical_date(e)
        if day in in_window:
            counts[day] = counts.get(day, 0) + 1

    max_count = max(counts.values(), default=0)
    cells = [
        {
            "date": day,
            "count": counts.get(day, 0),
            "level": heatmap_level(counts.get(day, 0), max_count),
        }
        for day in window
    ]
    return {"cells": cells, "max_count": max_count}


def compute_weekly_trend(
    entries: Iterable[Entry],
    root: str,
    week_count: int = WEEK_COUNT,
    now: datetime | None = None,
) -> list[dict]:
    """Count tracked entries per Monday-based week for the last *week_count* weeks.

    The newest bucket is the week containing *now*; it covers Monday
    through Sunday, so entries dated later this week still land in it.
    Entries before the oldest bucket or after this week's Sunday are
    dropped, as are entries whose date cannot be parsed.

    Args:
        entries: All entries; filtered internally.
        root: Tracked-root prefix.
        week_count: Number of buckets to produce.
        now: Reference time.  Defaults to the current local time.

    Returns:
        List of exactly *week_count* dicts (week_label, week_start,
        count), oldest first.  week_label is "M/D" of the bucket's
        Monday, week_start its ISO date.
    """
    if week_count <= 0:
        return []

    today = _resolve_now(now).date()
    this_monday = today - timedelta(days=today.weekday())
    oldest_monday = this_monday - timedelta(weeks=week_count - 1)
    last_day = this_monday + timedelta(days=6)

    trend = []
    for i in range(week_count):
        monday = oldest_monday + timedelta(weeks=i)
        trend.append(
            {
                "week_label": f"{monday.month}/{monday.day}",
                "week_start": monday.isoformat(),
                "count": 0,
            }
        )

    for e in filter_tracked_entries(entries, root):
        day = parse_day(canonical_date(e))
        if day is None or day < oldest_monday or day > last_day:
            continue
        trend[(day - oldest_monday).days // 7]["count"] += 1

    return trend


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def compute_category_files(entries: Iterable[Entry], root: str) -> list[dict]:
    """Group tracked entries into per-category file listings.

    Args:
        entries: All entries; filtered internally.
        root: Tracked-root prefix.

    Returns:
        List of dicts (name, count, files), largest category first.
        Each files list holds dicts (path, filename, modified_at) with
        the most recently modified entry first.
    """
    grouped: dict[str, list[Entry]] = {}
    for e in filter_tracked_entries(entries, root):
        grouped.setdefault(extract_category(e.path, root), []).append(e)

    categories = []
    for name, members in grouped.items():
        members = sorted(members, key=lambda e: e.modified_at, reverse=True)
        categories.append(
            {
                "name": name,
                "count": len(members),
                "files": [
                    {
                        "path": e.path,
                        "filename": e.filename,
                        "modified_at": e.modified_at.isoformat(),
                    }
                    for e in members
                ],
            }
        )
    categories.sort(key=lambda c: c["count"], reverse=True)
    return categories


def compute_category_distribution(entries: Iterable[Entry], root: str) -> list[dict]:
    """Compute each category's count and rounded percentage share.

    Percentages are rounded per category (half up), so they need not sum
    to exactly 100.

    Returns:
        List of dicts (name, count, percentage) sorted by count
        descending; empty when no entry qualifies.
    """
    tracked = filter_tracked_entries(entries, root)
    total = len(tracked)
    if total == 0:
        return []

    counts: dict[str, int] = {}
    for e in tracked:
        category = extract_category(e.path, root)
        counts[category] = counts.get(category, 0) + 1

    distribution = [
        {"name": name, "count": count, "percentage": round_half_up(count / total * 100)}
        for name, count in counts.items()
    ]
    distribution.sort(key=lambda d: d["count"], reverse=True)
    return distribution


# ---------------------------------------------------------------------------
# Selection helpers
# ---------------------------------------------------------------------------

def select_recent_entries(
    entries: Iterable[Entry],
    root: str,
    count: int,
) -> list[Entry]:
    """Return the *count* most recent tracked entries.

    Orders by the declared date(-time) string, so a timed entry sorts
    ahead of a date-only entry on the same day; remaining ties fall back
    to the creation timestamp.
    """
    tracked = filter_tracked_entries(entries, root)
    ordered = sorted(
        tracked,
        key=lambda e: (canonical_timestamp(e), e.created_at),
        reverse=True,
    )
    return ordered[: max(count, 0)]


def pick_random_review_items(
    entries: Iterable[Entry],
    root: str,
    incomplete_items: list[BacklogItem],
    random_fn: Callable[[], float] | None = None,
) -> dict[str, dict]:
    """Pick one written entry and one open backlog item to review today.

    Args:
        entries: All entries; filtered internally.
        root: Tracked-root prefix.
        incomplete_items: Open backlog items from the backlog collaborator.
        random_fn: Source of floats in [0, 1).  Defaults to
            ``random.random``; inject a constant for deterministic picks.

    Returns:
        Dict with optional keys "entry" (path, filename, category) and
        "backlog" (display_name, path, category).  A key is absent when
        its source list is empty.
    """
    rand = random_fn if random_fn is not None else random.random
    tracked = filter_tracked_entries(entries, root)
    result: dict[str, dict] = {}

    if tracked:
        picked = tracked[min(int(rand() * len(tracked)), len(tracked) - 1)]
        result["entry"] = {
            "path": picked.path,
            "filename": picked.filename,
            "category": extract_category(picked.path, root),
        }

    if incomplete_items:
        item = incomplete_items[min(int(rand() * len(incomplete_items)), len(incomplete_items) - 1)]
        result["backlog"] = {
            "display_name": item.display_name,
            "path": item.path,
            "category": item.category,
        }

    return result


# ---------------------------------------------------------------------------
# Backlog
# ---------------------------------------------------------------------------

def _completion_ratio(record: BacklogRecord) -> float:
    return record.done / record.total if record.total > 0 else 0.0


def compute_dashboard_backlog(records: Iterable[BacklogRecord]) -> dict[str, Any]:
    """Roll up backlog progress records.

    Args:
        records: Pre-parsed backlog progress, one per checklist file.

    Returns:
        Dict with keys categories (list of dicts category, file_path,
        done, total, sorted by completion ratio descending), total_done
        and total_items.
    """
    records = list(records)
    ordered = sorted(records, key=_completion_ratio, reverse=True)
    return {
        "categories": [
            {
                "category": r.category,
                "file_path": r.file_path,
                "done": r.done,
                "total": r.total,
            }
            for r in ordered
        ],
        "total_done": sum(r.done for r in records),
        "total_items": sum(r.total for r in records),
    }


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

def build_dashboard_payload(
    entries: Iterable[Entry],
    root: str,
    backlog: Iterable[BacklogRecord] = (),
    now: datetime | None = None,
    week_count: int = WEEK_COUNT,
) -> dict[str, Any]:
    """One-call entry point: compute every dashboard view.

    *now* is resolved once and passed to every component, so a fixed
    *now* yields identical output on every call.

    Args:
        entries: All entries from the storage collaborator.
        root: Tracked-root prefix.
        backlog: Pre-parsed backlog progress records.
        now: Reference time.  Defaults to the current local time.
        week_count: Number of weekly trend buckets.

    Returns:
        Dict with keys: generated_at, root, summary (total_entries,
        category_count, this_week_count, streak), heatmap, categories,
        backlog, weekly_trend, category_distribution.
    """
    entries = list(entries)
    now = _resolve_now(now)
    categories = compute_category_files(entries, root)
    total = sum(c["count"] for c in categories)

    logger.debug("Computing dashboard for %d entries (%d tracked) under %r", len(entries), total, root)

    return {
        "generated_at": now.isoformat(),
        "root": root,
        "summary": {
            "total_entries": total,
            "category_count": len(categories),
            "this_week_count": compute_weekly_count(entries, root, now),
            "streak": compute_streak(entries, root, now),
        },
        "heatmap": compute_heatmap_data(entries, root, now),
        "categories": categories,
        "backlog": compute_dashboard_backlog(backlog),
        "weekly_trend": compute_weekly_trend(entries, root, week_count, now),
        "category_distribution": compute_category_distribution(entries, root),
    }


# ---------------------------------------------------------------------------
# Text report
# ---------------------------------------------------------------------------

def format_progress_bar(done: int, total: int, width: int = 10) -> str:
    """Render done/total as a fixed-width bar of filled and empty cells."""
    filled = round_half_up(done / total * width) if total > 0 else 0
    filled = max(0, min(filled, width))
    return "█" * filled + "░" * (width - filled)


def compute_sparkline(cells: list[dict]) -> str:
    """Collapse heatmap cells into one glyph per 7-day chunk.

    Each chunk total maps to ``SPARK_GLYPHS[floor(min(total / max, 1) * 4)]``
    where max is the largest chunk total (at least 1).
    """
    weeks = [
        sum(c["count"] for c in cells[i : i + 7])
        for i in range(0, len(cells), 7)
    ]
    max_week = max(weeks + [1])
    return "".join(
        SPARK_GLYPHS[math.floor(min(w / max_week, 1) * 4)] for w in weeks
    )


def format_dashboard_text(payload: dict[str, Any]) -> str:
    """Render a dashboard payload as a sectioned plain-text report.

    Args:
        payload: Dict returned by ``build_dashboard_payload``.

    Returns:
        A Markdown-flavoured string: summary table, activity sparkline,
        category table and backlog table.  Sections without content are
        left out.
    """
    summary = payload["summary"]
    lines = [
        "## Learning Dashboard\n",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Total entries | {summary['total_entries']} |",
        f"| Categories | {summary['category_count']} |",
        f"| This week | {summary['this_week_count']} |",
        f"| Streak | {summary['streak']} days |",
    ]

    cells = payload["heatmap"]["cells"]
    if cells:
        lines.append(f"\n### Activity ({len(cells)} days)\n")
        lines.append(compute_sparkline(cells))

    categories = payload["categories"]
    if categories:
        lines.append("\n### Categories\n")
        lines.append("| Category | Count | Last modified |")
        lines.append("|----------|-------|---------------|")
        for cat in categories:
            latest = cat["files"][0]["modified_at"][:10] if cat["files"] else "-"
            lines.append(f"| {cat['name']} | {cat['count']} | {latest} |")

    backlog = payload["backlog"]
    if backlog["total_items"] > 0:
        done, total = backlog["total_done"], backlog["total_items"]
        pct = round_half_up(done / total * 100)
        lines.append("\n### Backlog progress\n")
        lines.append(f"Overall: {done}/{total} ({pct}%) {format_progress_bar(done, total)}\n")
        lines.append("| Category | Progress | Done | Bar |")
        lines.append("|----------|----------|------|-----|")
        for c in backlog["categories"]:
            cat_pct = round_half_up(c["done"] / c["total"] * 100) if c["total"] > 0 else 0
            lines.append(
                f"| {c['category']} | {cat_pct}% | {c['done']}/{c['total']} "
                f"| {format_progress_bar(c['done'], c['total'])} |"
            )

    return "\n".join(lines)
