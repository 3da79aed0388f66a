"""Health endpoint for Revoke Radar.

  GET /health — 503 while the lifespan is starting, 200 with a status body after.

Polled by container health probes and by the front end before it enables the
scan button.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from revoke_radar.config import Config
from revoke_radar.spenders import SpenderRegistry
from revoke_radar.utils.health import ScanStatsTracker

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check.

    Response body (200)::

        {
          "status": "ok",
          "spenders": {"free": 5, "pro": 6},
          "chains": [8453, 1, 10, 42161],
          "default_chain_ids": [8453],
          "scan": {
            "token_concurrency": 4,
            "spender_concurrency": 6
          },
          "stats": {
            "scans_total": 0, "scans_failed": 0, "errors_total": 0,
            "avg_scan_ms": 0.0, "p99_scan_ms": 0.0
          }
        }

    Response body (503)::

        {"error": {"status": "starting", "message": "..."}}
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "Revoke Radar is starting up.",
            },
        )

    config: Config = request.app.state.config
    registry: SpenderRegistry = request.app.state.spender_registry
    stats: ScanStatsTracker = request.app.state.scan_stats

    return {
        "status": "ok",
        "spenders": registry.counts(),
        "chains": sorted(config.chains),
        "default_chain_ids": list(config.scan.default_chain_ids),
        "scan": {
            "token_concurrency": config.scan.token_concurrency,
            "spender_concurrency": config.scan.spender_concurrency,
        },
        "stats": stats.snapshot(),
    }
