"""FastAPI service for the learning-log dashboard.

Serves the analytics bundle as JSON and as a text report.  The input
file is produced by the storage/metadata adapter; results are cached
per input fingerprint and calendar day (1-hour TTL on top).

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from datetime import date
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse

from analytics import build_dashboard_payload, format_dashboard_text, pick_random_review_items
from entries import load_dashboard_input
from treemap import MAX_TREEMAP_SEGMENTS, compute_treemap_layout

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
DATA_PATH = Path(os.environ.get("TIL_STATS_DATA", Path(__file__).parent / "til_entries.json"))
CACHE_TTL_SECONDS = 3600  # 1 hour

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Learning Log Dashboard",
    root_path="/til_stats",
)

# ---------------------------------------------------------------------------
# Thread-safe cache
# ---------------------------------------------------------------------------
_cache_lock = threading.Lock()
_cache: dict[str, Any] = {
    "key": None,
    "input": None,
    "data": None,
    "built_at": 0.0,
}


def _fingerprint() -> tuple:
    """Cache key: input file identity plus today's date."""
    try:
        st = DATA_PATH.stat()
    except FileNotFoundError:
        raise HTTPException(status_code=503, detail="Data file not found")
    return (st.st_mtime_ns, st.st_size, date.today().isoformat())


def _get_cached(force_refresh: bool = False) -> dict[str, Any]:
    """Return the cached input and payload, rebuilding if stale or forced."""
    key = _fingerprint()
    now = time.monotonic()
    with _cache_lock:
        if (
            not force_refresh
            and _cache["data"] is not None
            and _cache["key"] == key
            and (now - _cache["built_at"]) < CACHE_TTL_SECONDS
        ):
            return dict(_cache)

    try:
        dashboard_input = load_dashboard_input(str(DATA_PATH))
    except FileNotFoundError:
        raise HTTPException(status_code=503, detail="Data file not found")
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("Invalid dashboard input %s: %s", DATA_PATH, exc)
        raise HTTPException(status_code=500, detail=f"Invalid JSON in {DATA_PATH.name}")

    data = build_dashboard_payload(
        dashboard_input.entries,
        dashboard_input.root,
        dashboard_input.backlog,
    )

    with _cache_lock:
        _cache["key"] = key
        _cache["input"] = dashboard_input
        _cache["data"] = data
        _cache["built_at"] = time.monotonic()
        return dict(_cache)


def _get_cached_data(force_refresh: bool = False) -> dict[str, Any]:
    return _get_cached(force_refresh)["data"]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/data")
def api_data():
    """Return the full dashboard JSON payload."""
    return _get_cached_data()


@app.get("/api/refresh")
def api_refresh():
    """Force a cache rebuild and return fresh data."""
    data = _get_cached_data(force_refresh=True)
    return {
        "status": "refreshed",
        "generated_at": data["generated_at"],
    }


@app.get("/api/text", response_class=PlainTextResponse)
def api_text():
    """Return the dashboard as a plain-text report."""
    return PlainTextResponse(content=format_dashboard_text(_get_cached_data()))


@app.get("/api/treemap")
def api_treemap(
    width: float = Query(800.0, ge=0),
    height: float = Query(400.0, ge=0),
    max_segments: int = Query(MAX_TREEMAP_SEGMENTS, ge=1),
):
    """Lay out the category distribution for a width x height box."""
    data = _get_cached_data()
    return {
        "width": width,
        "height": height,
        "rects": compute_treemap_layout(data["category_distribution"], width, height, max_segments),
    }


@app.get("/api/review")
def api_review():
    """Pick one entry and one open backlog item to revisit."""
    dashboard_input = _get_cached()["input"]
    return pick_random_review_items(
        dashboard_input.entries,
        dashboard_input.root,
        dashboard_input.backlog_items,
    )
