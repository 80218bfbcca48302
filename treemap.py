"""Area-proportional treemap layout over a category distribution.

Rectangles are produced by recursive binary partition: the items are
split where the two halves' counts are most balanced, the rectangle is
cut across its longer side in proportion, and each half recurses.
"""

from __future__ import annotations

import logging
from typing import Any

from analytics import round_half_up

logger = logging.getLogger(__name__)

MAX_TREEMAP_SEGMENTS = 7
OTHERS_LABEL = "Others"


def collapse_segments(
    data: list[dict],
    max_segments: int = MAX_TREEMAP_SEGMENTS,
) -> list[dict]:
    """Keep the first *max_segments* items and fold the rest into "Others".

    Args:
        data: Distribution dicts (name, count, percentage), sorted by
            count descending.
        max_segments: Number of items kept verbatim.

    Returns:
        *data* unchanged when it is short enough, otherwise the top
        items plus one "Others" item whose percentage is recomputed
        against the full total.
    """
    if len(data) <= max_segments:
        return list(data)

    total = sum(d["count"] for d in data)
    top = list(data[:max_segments])
    other_count = sum(d["count"] for d in data[max_segments:])
    pct = round_half_up(other_count / total * 100) if total > 0 else 0
    top.append({"name": OTHERS_LABEL, "count": other_count, "percentage": pct})
    return top


def _balanced_split(items: list[dict], total: int) -> int:
    """Return k (1 <= k < len(items)) minimising |sum(items[:k]) - sum(items[k:])|."""
    best_split = 1
    best_diff = float("inf")
    left_sum = 0
    for i in range(len(items) - 1):
        left_sum += items[i]["count"]
        diff = abs(left_sum - (total - left_sum))
        if diff < best_diff:
            best_diff = diff
            best_split = i + 1
    return best_split


def _bisect(
    items: list[dict],
    x: float,
    y: float,
    w: float,
    h: float,
) -> list[dict]:
    if not items:
        return []
    if len(items) == 1:
        return [{"x": x, "y": y, "width": w, "height": h, **items[0]}]

    total = sum(i["count"] for i in items)
    if total == 0:
        return []

    k = _balanced_split(items, total)
    left, right = items[:k], items[k:]
    frac = sum(i["count"] for i in left) / total

    if w >= h:
        lw = w * frac
        return _bisect(left, x, y, lw, h) + _bisect(right, x + lw, y, w - lw, h)
    lh = h * frac
    return _bisect(left, x, y, w, lh) + _bisect(right, x, y + lh, w, h - lh)


def compute_treemap_layout(
    data: list[dict],
    width: float,
    height: float,
    max_segments: int = MAX_TREEMAP_SEGMENTS,
) -> list[dict[str, Any]]:
    """Lay a category distribution out as rectangles tiling width x height.

    Args:
        data: Distribution dicts (name, count, percentage) sorted by
            count descending, as returned by
            ``analytics.compute_category_distribution``.
        width: Bounding box width.
        height: Bounding box height.
        max_segments: Items beyond this many are folded into "Others".

    Returns:
        List of dicts (x, y, width, height, name, count, percentage,
        color_index).  color_index follows the input order, not the
        position on screen.  Empty for empty data, a zero-sized box or a
        zero total.
    """
    if not data or width <= 0 or height <= 0:
        return []

    total = sum(d["count"] for d in data)
    if total == 0:
        return []

    display = collapse_segments(data, max_segments)
    items = [
        {
            "name": d["name"],
            "count": d["count"],
            "percentage": d["percentage"],
            "color_index": i,
        }
        for i, d in enumerate(display)
    ]
    rects = _bisect(items, 0.0, 0.0, float(width), float(height))
    logger.debug("Treemap: %d items -> %d rects in %sx%s", len(data), len(rects), width, height)
    return rects
