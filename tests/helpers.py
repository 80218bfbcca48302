"""Shared test helpers for til_stats tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from entries import Entry

# Saturday noon, local time
NOW = datetime(2026, 2, 21, 12, 0, 0)


def make_entry(
    path: str,
    created_at: datetime | None = None,
    explicit_date: str | None = None,
    labels: tuple[str, ...] = ("til",),
    modified_at: datetime | None = None,
) -> Entry:
    """Build an Entry; extension comes from the path, timestamps default to NOW."""
    created_at = created_at or NOW
    name = path.rsplit("/", 1)[-1]
    return Entry(
        path=path,
        extension=name.rsplit(".", 1)[-1] if "." in name else "",
        created_at=created_at,
        modified_at=modified_at or created_at,
        explicit_date=explicit_date,
        labels=frozenset(labels),
    )


def days_ago(n: int, path: str | None = None, now: datetime = NOW) -> Entry:
    """Build an entry created *n* days before *now*."""
    return make_entry(path or f"til/ts/day-{n}.md", created_at=now - timedelta(days=n))


def make_descriptor(path: str, when: datetime = NOW, **extra) -> dict:
    """Build an external entry descriptor dict (epoch millis timestamps)."""
    millis = int(when.timestamp() * 1000)
    descriptor = {
        "path": path,
        "extension": path.rsplit(".", 1)[-1],
        "createdAt": millis,
        "modifiedAt": millis,
        "labels": ["til"],
    }
    descriptor.update(extra)
    return descriptor
