"""Unit tests for /health and ScanStatsTracker."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from revoke_radar.config import Config
from revoke_radar.main import create_app
from revoke_radar.utils.health import ScanStatsTracker


def _patch_load_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("revoke_radar.main.load_config", lambda: Config.defaults())


# ─── GET /health ──────────────────────────────────────────────────────────────


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_503_before_ready(self) -> None:
        application = create_app()
        transport = ASGITransport(app=application)  # type: ignore[arg-type]
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")
        assert response.status_code == 503
        assert response.json()["error"]["status"] == "starting"

    @pytest.mark.asyncio
    async def test_scan_routes_503_before_ready(self) -> None:
        application = create_app()
        transport = ASGITransport(app=application)  # type: ignore[arg-type]
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/chains")
        assert response.status_code == 503

    def test_200_after_startup(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _patch_load_config(monkeypatch)
        with TestClient(create_app()) as client:
            response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["spenders"] == {"free": 5, "pro": 6}
        assert body["chains"] == [1, 10, 8453, 42161]
        assert body["default_chain_ids"] == [8453]
        assert body["scan"] == {"token_concurrency": 4, "spender_concurrency": 6}
        assert body["stats"]["scans_total"] == 0
        assert body["stats"]["avg_scan_ms"] == 0.0


# ─── ScanStatsTracker ─────────────────────────────────────────────────────────


class TestScanStatsTracker:
    def test_empty(self) -> None:
        tracker = ScanStatsTracker()
        assert tracker.avg_ms == 0.0
        assert tracker.p99_ms == 0.0
        assert tracker.count == 0

    def test_average(self) -> None:
        tracker = ScanStatsTracker()
        for ms in (10, 20, 30):
            tracker.record(ms)
        assert tracker.avg_ms == pytest.approx(20.0)

    def test_p99_needs_ten_samples(self) -> None:
        tracker = ScanStatsTracker()
        for ms in range(9):
            tracker.record(ms)
        assert tracker.p99_ms == 0.0
        tracker.record(1000)
        assert tracker.p99_ms > 0.0

    def test_window_evicts_oldest(self) -> None:
        tracker = ScanStatsTracker(window=3)
        for ms in (100, 1, 2, 3):
            tracker.record(ms)
        assert tracker.count == 3
        assert tracker.avg_ms == pytest.approx(2.0)
        assert tracker.scans_total == 4

    def test_outcome_totals(self) -> None:
        tracker = ScanStatsTracker()
        tracker.record(5, ok=True, errors=2)
        tracker.record(7, ok=False, errors=1)
        snapshot = tracker.snapshot()
        assert snapshot["scans_total"] == 2
        assert snapshot["scans_failed"] == 1
        assert snapshot["errors_total"] == 3
        assert snapshot["avg_scan_ms"] == 6.0
