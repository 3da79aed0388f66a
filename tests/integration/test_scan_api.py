"""Integration tests for the HTTP surface: POST /api/scan, GET /api/spenders,
GET /api/chains, GET /.

The full app runs under starlette's TestClient (lifespan included). Outbound
explorer / RPC traffic goes to FakeChain via a patched create_http_client.
"""

from __future__ import annotations

import re

import pytest
from starlette.testclient import TestClient

from revoke_radar.config import Config
from revoke_radar.main import create_app
from revoke_radar.spenders import DEFAULT_FREE_SPENDERS
from tests.fakes import OWNER, UNLIMITED, FakeChain, token_row

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
DAI = "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb"
PERMIT2 = DEFAULT_FREE_SPENDERS[4].address
AERODROME = DEFAULT_FREE_SPENDERS[0].address

ULID_RE = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


def _client(monkeypatch: pytest.MonkeyPatch, chain: FakeChain, config: Config | None = None) -> TestClient:
    monkeypatch.setattr("revoke_radar.main.load_config", lambda: config or Config.defaults())
    monkeypatch.setattr("revoke_radar.main.create_http_client", chain.client)
    return TestClient(create_app())


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain(
        [token_row(USDC, "USDC", 6), token_row(DAI, "DAI", "18")],
        allowances={(USDC, PERMIT2): UNLIMITED, (DAI, AERODROME): 25 * 10**17},
    )


# ─── POST /api/scan ───────────────────────────────────────────────────────────


class TestScanEndpoint:
    def test_successful_scan(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            response = client.post("/api/scan", json={"owner": OWNER})

        assert response.status_code == 200
        assert ULID_RE.match(response.headers["X-Scan-ID"])
        body = response.json()
        assert "error" not in body
        assert [(i["tokenSymbol"], i["spenderName"], i["risk"], i["allowanceLabel"]) for i in body["items"]] == [
            ("USDC", "Permit2", "red", "Unlimited"),
            ("DAI", "Aerodrome Router", "orange", "2.5000"),
        ]
        meta = body["meta"]
        assert meta["tokensChecked"] == 2
        assert meta["spendersChecked"] == 5
        assert meta["calls"] == 10
        assert meta["errors"] == 0
        assert isinstance(meta["durationMs"], int)

    def test_invalid_owner_is_400(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            response = client.post("/api/scan", json={"owner": "vitalik.eth"})

        assert response.status_code == 400
        body = response.json()
        assert body["items"] == []
        assert body["error"] == "Invalid owner"
        assert body["meta"]["calls"] == 0
        assert "X-Scan-ID" in response.headers
        assert chain.explorer_requests == []

    def test_invalid_json_is_400(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            response = client.post(
                "/api/scan",
                content=b"{not json",
                headers={"content-type": "application/json"},
            )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON body"

    def test_discovery_failure_is_500(self, monkeypatch: pytest.MonkeyPatch) -> None:
        with _client(monkeypatch, FakeChain(explorer_status=502)) as client:
            response = client.post("/api/scan", json={"owner": OWNER})

        assert response.status_code == 500
        body = response.json()
        assert body["items"] == []
        assert "502" in body["error"]
        assert body["meta"]["errors"] == 1

    def test_failed_reads_reported_in_meta(self, monkeypatch: pytest.MonkeyPatch) -> None:
        chain = FakeChain([token_row(USDC, "USDC", 6)], failing={(USDC, PERMIT2), (USDC, AERODROME)})
        with _client(monkeypatch, chain) as client:
            response = client.post("/api/scan", json={"owner": OWNER})

        assert response.status_code == 200
        assert response.json()["meta"]["errors"] == 2
        assert response.json()["meta"]["calls"] == 5

    def test_pro_scan_uses_pro_list(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            response = client.post("/api/scan", json={"owner": OWNER, "isPro": True})
        assert response.json()["meta"]["spendersChecked"] == 6

    def test_stats_recorded_for_health(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            client.post("/api/scan", json={"owner": OWNER})
            client.post("/api/scan", json={"owner": "bad"})
            stats = client.get("/health").json()["stats"]
        assert stats["scans_total"] == 2
        assert stats["scans_failed"] == 1

    def test_rate_limited(self, monkeypatch: pytest.MonkeyPatch) -> None:
        with _client(monkeypatch, FakeChain([])) as client:
            statuses = [client.post("/api/scan", json={"owner": OWNER}).status_code for _ in range(31)]
        assert statuses[:30] == [200] * 30
        assert statuses[30] == 429


# ─── GET routes ───────────────────────────────────────────────────────────────


class TestReadRoutes:
    def test_spenders_default_tier(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            body = client.get("/api/spenders").json()
        assert body["tier"] == "free"
        assert body["count"] == 5
        assert body["spenders"][0] == {
            "name": "Aerodrome Router",
            "address": AERODROME,
            "tier": "core",
        }

    def test_spenders_pro_tier(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            assert client.get("/api/spenders", params={"tier": "pro"}).json()["count"] == 6

    def test_spenders_unknown_tier(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            response = client.get("/api/spenders", params={"tier": "platinum"})
        assert response.status_code == 400
        assert "platinum" in response.json()["error"]

    def test_chains(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            body = client.get("/api/chains").json()
        assert {"id": 8453, "name": "Base"} in body["chains"]
        assert body["default_chain_ids"] == [8453]

    def test_root(self, monkeypatch: pytest.MonkeyPatch, chain: FakeChain) -> None:
        with _client(monkeypatch, chain) as client:
            body = client.get("/").json()
        assert body["service"] == "Revoke Radar"
        assert body["scan"] == "/api/scan"


# ─── Spender file at startup ──────────────────────────────────────────────────


def test_spender_file_loaded_at_startup(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    spenders_file = tmp_path / "spenders.yaml"
    spenders_file.write_text(f"free:\n  - name: Only Router\n    address: '{AERODROME}'\n")
    config = Config.defaults()
    config.spenders_path = str(spenders_file)

    async def idle_watcher(self, path: str) -> None:
        return None

    monkeypatch.setattr("revoke_radar.spenders.SpenderRegistry.start_watcher", idle_watcher)
    chain = FakeChain([token_row(USDC)], allowances={(USDC, AERODROME): UNLIMITED})
    with _client(monkeypatch, chain, config) as client:
        body = client.post("/api/scan", json={"owner": OWNER}).json()
    assert body["meta"]["spendersChecked"] == 1
    assert body["items"][0]["spenderName"] == "Only Router"
