"""Shared fixtures for til_stats tests."""

from __future__ import annotations

import json
from datetime import datetime
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from helpers import NOW, make_descriptor


def _sample_document() -> dict:
    """Return an input document covering entries, backlog and backlog items."""
    return {
        "root": "til",
        "entries": [
            make_descriptor("til/ts/generics.md", NOW),
            make_descriptor("til/ts/mapped-types.md", datetime(2026, 2, 20, 9, 0)),
            make_descriptor("til/react/hooks.md", datetime(2026, 2, 19, 9, 0)),
            make_descriptor("til/TIL MOC.md", NOW, labels=["til", "moc"]),
            make_descriptor("notes/random.md", NOW),
        ],
        "backlog": [
            {"category": "ts", "filePath": "til/ts/backlog.md", "done": 5, "total": 10},
            {"category": "react", "filePath": "til/react/backlog.md", "done": 3, "total": 4},
        ],
        "backlogItems": [
            {"displayName": "Conditional types", "path": "til/ts/conditional-types", "category": "ts"},
        ],
    }


@pytest.fixture()
def sample_document():
    return _sample_document()


@pytest.fixture()
def data_file(tmp_path, sample_document):
    """Write the sample document to a temporary JSON file."""
    path = tmp_path / "til_entries.json"
    path.write_text(json.dumps(sample_document), encoding="utf-8")
    return path


@pytest.fixture()
def client(data_file):
    """TestClient for app.py reading the temporary data file.

    Points DATA_PATH at the fixture file and resets the module-level
    cache between tests.
    """
    import app as app_module

    fresh_cache = {"key": None, "input": None, "data": None, "built_at": 0.0}
    with patch.object(app_module, "_cache", fresh_cache):
        with patch.object(app_module, "DATA_PATH", data_file):
            with TestClient(app_module.app) as tc:
                yield tc
