"""Entry model and ingestion boundary for learning-log analytics.

Raw entry descriptors arrive from the storage/metadata adapter as
JSON-like dicts.  They are validated once here and turned into frozen
``Entry`` records; everything downstream (``analytics``, ``treemap``)
works on those records only.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable

logger = logging.getLogger(__name__)

TRACKED_EXTENSION = "md"
BACKLOG_FILENAME = "backlog.md"
TRACKING_LABEL = "til"
INDEX_LABEL = "moc"
UNCATEGORIZED = "(uncategorized)"
DEFAULT_ROOT = "til"


def _to_datetime(value: Any, key: str) -> datetime:
    """Convert an epoch-millis value to a naive local datetime.

    Raises:
        ValueError: If *value* is missing, not numeric or outside the
            platform's timestamp range.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be epoch milliseconds, got {value!r}")
    try:
        return datetime.fromtimestamp(value / 1000)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"{key} out of range: {value!r}") from exc


@dataclass(frozen=True)
class Entry:
    """One tracked text record.

    ``explicit_date`` is the author-declared date (``YYYY-MM-DD`` or
    ``YYYY-MM-DDTHH:mm:ss``) and is ``None`` when absent.  ``labels`` is
    empty when the author declared none.
    """

    path: str
    extension: str
    created_at: datetime
    modified_at: datetime
    explicit_date: str | None = None
    labels: frozenset[str] = field(default_factory=frozenset)

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @classmethod
    def from_dict(cls, raw: dict) -> Entry:
        """Build an Entry from an external descriptor dict.

        Args:
            raw: Dict with keys path, createdAt, modifiedAt (epoch
                millis) and optional extension, explicitDate, labels.

        Returns:
            A validated Entry.

        Raises:
            ValueError: If the path is missing or a timestamp is invalid.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"entry descriptor must be an object, got {type(raw).__name__}")

        path = raw.get("path")
        if not isinstance(path, str) or not path:
            raise ValueError("entry descriptor has no path")

        extension = raw.get("extension")
        if not isinstance(extension, str):
            name = path.rsplit("/", 1)[-1]
            extension = name.rsplit(".", 1)[-1] if "." in name else ""

        created_at = _to_datetime(raw.get("createdAt"), "createdAt")
        modified_raw = raw.get("modifiedAt")
        modified_at = created_at if modified_raw is None else _to_datetime(modified_raw, "modifiedAt")

        explicit_date = raw.get("explicitDate")
        if explicit_date is not None and not isinstance(explicit_date, str):
            explicit_date = str(explicit_date)

        labels = raw.get("labels") or []
        if isinstance(labels, str):
            labels = [labels]

        return cls(
            path=path,
            extension=extension,
            created_at=created_at,
            modified_at=modified_at,
            explicit_date=explicit_date or None,
            labels=frozenset(str(label) for label in labels),
        )


@dataclass(frozen=True)
class BacklogRecord:
    """Pre-parsed progress of one backlog checklist file."""

    category: str
    file_path: str
    done: int
    total: int

    @classmethod
    def from_dict(cls, raw: dict) -> BacklogRecord:
        if not isinstance(raw, dict):
            raise ValueError("backlog record must be an object")
        done = raw.get("done", 0)
        total = raw.get("total", 0)
        if any(isinstance(v, bool) or not isinstance(v, int) for v in (done, total)):
            raise ValueError(f"backlog counts must be integers, got {done!r}/{total!r}")
        return cls(
            category=str(raw.get("category", "")),
            file_path=str(raw.get("filePath", "")),
            done=done,
            total=total,
        )


@dataclass(frozen=True)
class BacklogItem:
    """One incomplete backlog checklist item."""

    display_name: str
    path: str
    category: str

    @classmethod
    def from_dict(cls, raw: dict) -> BacklogItem:
        if not isinstance(raw, dict) or not raw.get("path"):
            raise ValueError("backlog item needs a path")
        path = str(raw["path"])
        return cls(
            display_name=str(raw.get("displayName") or path),
            path=path,
            category=str(raw.get("category", "")),
        )


@dataclass(frozen=True)
class DashboardInput:
    """Everything the engine needs for one dashboard computation."""

    root: str
    entries: list[Entry]
    backlog: list[BacklogRecord]
    backlog_items: list[BacklogItem]


def _parse_many(raw_items: Any, factory: Any, kind: str) -> list:
    """Apply *factory* to each raw item, skipping (and counting) invalid ones."""
    if not isinstance(raw_items, list):
        if raw_items is not None:
            logger.warning("Expected a list of %s, got %s", kind, type(raw_items).__name__)
        return []

    parsed = []
    skipped = 0
    for raw in raw_items:
        try:
            parsed.append(factory(raw))
        except ValueError as exc:
            skipped += 1
            logger.debug("Skipping %s descriptor: %s", kind, exc)
    if skipped:
        logger.warning("Skipped %d invalid %s descriptors out of %d", skipped, kind, len(raw_items))
    return parsed


def parse_entries(raw_entries: Any) -> list[Entry]:
    """Validate a list of entry descriptors, dropping invalid ones."""
    return _parse_many(raw_entries, Entry.from_dict, "entry")


def parse_dashboard_input(document: Any) -> DashboardInput:
    """Validate a whole input document.

    Args:
        document: Decoded JSON object with keys root, entries, backlog
            and backlogItems (all optional).

    Returns:
        A DashboardInput with invalid descriptors removed.

    Raises:
        ValueError: If *document* is not a JSON object.
    """
    if not isinstance(document, dict):
        raise ValueError("dashboard input must be a JSON object")

    root = document.get("root") or DEFAULT_ROOT
    return DashboardInput(
        root=str(root).rstrip("/"),
        entries=parse_entries(document.get("entries")),
        backlog=_parse_many(document.get("backlog"), BacklogRecord.from_dict, "backlog"),
        backlog_items=_parse_many(document.get("backlogItems"), BacklogItem.from_dict, "backlog item"),
    )


def load_dashboard_input(path: str) -> DashboardInput:
    """Load and validate a dashboard input JSON file.

    Raises:
        FileNotFoundError: If the file at *path* does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
        ValueError: If the document is not a JSON object.
    """
    with open(path, "r", encoding="utf-8") as f:
        document = json.load(f)
    return parse_dashboard_input(document)


# ---------------------------------------------------------------------------
# Filter and date resolution
# ---------------------------------------------------------------------------

def is_tracked(entry: Entry, root: str) -> bool:
    """Return True when *entry* counts toward analytics under *root*."""
    if not entry.path.startswith(root + "/"):
        return False
    if entry.extension != TRACKED_EXTENSION:
        return False
    if entry.filename == BACKLOG_FILENAME:
        return False
    return TRACKING_LABEL in entry.labels and INDEX_LABEL not in entry.labels


def filter_tracked_entries(entries: Iterable[Entry], root: str) -> list[Entry]:
    """Return the entries under *root* that count toward analytics.

    An entry qualifies when it lives below ``root/``, has the tracked
    extension, is not the backlog file, carries the tracking label and
    does not carry the index label.
    """
    return [e for e in entries if is_tracked(e, root)]


def canonical_timestamp(entry: Entry) -> str:
    """Return the entry's declared date(-time) string, or its creation date."""
    if entry.explicit_date:
        return entry.explicit_date
    return entry.created_at.strftime("%Y-%m-%d")


def canonical_date(entry: Entry) -> str:
    """Return the ``YYYY-MM-DD`` day an entry is bucketed under."""
    return canonical_timestamp(entry)[:10]


def parse_day(day: str) -> date | None:
    """Best-effort parse of a canonical date; None when malformed."""
    try:
        return date.fromisoformat(day[:10])
    except ValueError:
        return None


def extract_category(path: str, root: str) -> str:
    """Map an entry path to its category (first segment under *root*)."""
    relative = path[len(root) + 1:]
    parts = relative.split("/")
    return parts[0] if len(parts) >= 2 else UNCATEGORIZED
