"""Unit tests for the application lifespan: startup state and ordered shutdown."""

from __future__ import annotations

import httpx
import pytest
from starlette.testclient import TestClient

from revoke_radar.config import Config
from revoke_radar.main import create_app
from revoke_radar.scanner.engine import ApprovalScanner
from revoke_radar.spenders import SpenderRegistry
from revoke_radar.utils.health import ScanStatsTracker


def test_startup_populates_state(monkeypatch: pytest.MonkeyPatch) -> None:
    config = Config.defaults()
    monkeypatch.setattr("revoke_radar.main.load_config", lambda: config)
    application = create_app()
    assert application.state.ready is False

    with TestClient(application):
        state = application.state
        assert state.ready is True
        assert state.config is config
        assert isinstance(state.spender_registry, SpenderRegistry)
        assert isinstance(state.scanner, ApprovalScanner)
        assert isinstance(state.scan_stats, ScanStatsTracker)
        assert isinstance(state.http_client, httpx.AsyncClient)


def test_shutdown_closes_http_client(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("revoke_radar.main.load_config", lambda: Config.defaults())
    application = create_app()
    with TestClient(application):
        client = application.state.http_client
    assert application.state.ready is False
    assert client.is_closed


def test_cors_origins_are_configurable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("revoke_radar.main.load_config", lambda: Config.defaults())
    with TestClient(create_app(cors_origins=["https://radar.example"])) as client:
        allowed = client.get("/", headers={"Origin": "https://radar.example"})
        denied = client.get("/", headers={"Origin": "https://evil.example"})
    assert allowed.headers["access-control-allow-origin"] == "https://radar.example"
    assert "access-control-allow-origin" not in denied.headers
