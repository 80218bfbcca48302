"""Tests for the FastAPI app (app.py) routes and caching behaviour."""

from __future__ import annotations

from unittest.mock import patch

import pytest


# ── JSON API routes ───────────────────────────


class TestApiData:
    def test_returns_200(self, client):
        response = client.get("/api/data")
        assert response.status_code == 200

    def test_content_type_is_json(self, client):
        response = client.get("/api/data")
        assert "application/json" in response.headers["content-type"]

    def test_payload_has_generated_at(self, client):
        data = client.get("/api/data").json()
        assert "generated_at" in data

    def test_summary_counts_tracked_entries(self, client):
        summary = client.get("/api/data").json()["summary"]
        assert summary["total_entries"] == 3
        assert summary["category_count"] == 2

    def test_payload_has_sections(self, client):
        data = client.get("/api/data").json()
        for key in ("heatmap", "categories", "backlog", "weekly_trend", "category_distribution"):
            assert key in data, f"Missing key: {key}"

    def test_heatmap_has_365_cells(self, client):
        data = client.get("/api/data").json()
        assert len(data["heatmap"]["cells"]) == 365

    def test_backlog_rollup(self, client):
        backlog = client.get("/api/data").json()["backlog"]
        assert backlog["total_done"] == 8
        assert backlog["total_items"] == 14
        assert backlog["categories"][0]["category"] == "react"


class TestApiRefresh:
    def test_response_has_status_refreshed(self, client):
        data = client.get("/api/refresh").json()
        assert data["status"] == "refreshed"

    def test_response_has_generated_at(self, client):
        data = client.get("/api/refresh").json()
        assert "generated_at" in data


class TestApiText:
    def test_returns_plain_text(self, client):
        response = client.get("/api/text")
        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]

    def test_contains_report_sections(self, client):
        text = client.get("/api/text").text
        assert "Learning Dashboard" in text
        assert "Backlog progress" in text


class TestApiTreemap:
    def test_rects_tile_box(self, client):
        data = client.get("/api/treemap", params={"width": 300, "height": 200}).json()
        rects = data["rects"]
        assert len(rects) == 2
        area = sum(r["width"] * r["height"] for r in rects)
        assert area == pytest.approx(300 * 200)

    def test_zero_width_is_empty(self, client):
        data = client.get("/api/treemap", params={"width": 0, "height": 200}).json()
        assert data["rects"] == []

    def test_negative_width_rejected(self, client):
        response = client.get("/api/treemap", params={"width": -1})
        assert response.status_code == 422


class TestApiReview:
    def test_picks_entry_and_backlog(self, client):
        with patch("analytics.random.random", return_value=0.0):
            data = client.get("/api/review").json()
        assert data["entry"]["path"] == "til/ts/generics.md"
        assert data["backlog"]["display_name"] == "Conditional types"


# ── Health check ──────────────────────────────


class TestHealthCheck:
    def test_healthz_returns_200(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200

    def test_health_returns_ok(self, client):
        assert client.get("/health").json() == {"status": "ok"}


# ── Error handling ────────────────────────────


class TestMissingDataFile:
    def test_api_data_503_when_data_missing(self, client, tmp_path):
        with patch("app.DATA_PATH", tmp_path / "missing.json"):
            response = client.get("/api/data")
            assert response.status_code == 503

    def test_text_503_when_data_missing(self, client, tmp_path):
        with patch("app.DATA_PATH", tmp_path / "missing.json"):
            response = client.get("/api/text")
            assert response.status_code == 503


class TestInvalidJsonFile:
    def test_api_data_500_when_json_invalid(self, client, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        with patch("app.DATA_PATH", bad):
            response = client.get("/api/data")
            assert response.status_code == 500

    def test_api_data_500_when_not_an_object(self, client, tmp_path):
        bad = tmp_path / "list.json"
        bad.write_text("[]", encoding="utf-8")
        with patch("app.DATA_PATH", bad):
            response = client.get("/api/data")
            assert response.status_code == 500


# ── Caching behaviour ────────────────────────


class TestCaching:
    def test_second_request_uses_cache(self, client):
        """build_dashboard_payload runs once for two requests on unchanged input."""
        with patch("app.build_dashboard_payload") as mock_build:
            mock_build.return_value = {"generated_at": "2026-02-21T12:00:00", "summary": {}}
            client.get("/api/data")
            client.get("/api/data")
            assert mock_build.call_count == 1

    def test_refresh_forces_rebuild(self, client):
        with patch("app.build_dashboard_payload") as mock_build:
            mock_build.return_value = {"generated_at": "2026-02-21T12:00:00", "summary": {}}
            client.get("/api/data")
            assert mock_build.call_count == 1

            client.get("/api/refresh")
            assert mock_build.call_count == 2

    def test_changed_input_invalidates_cache(self, client, data_file):
        with patch("app.build_dashboard_payload") as mock_build:
            mock_build.return_value = {"generated_at": "2026-02-21T12:00:00", "summary": {}}
            client.get("/api/data")
            data_file.write_text('{"root": "til", "entries": []}', encoding="utf-8")
            client.get("/api/data")
            assert mock_build.call_count == 2


# ── 404 for unknown routes ───────────────────


class TestNotFound:
    def test_unknown_api_route_returns_404(self, client):
        response = client.get("/api/nonexistent")
        assert response.status_code == 404
