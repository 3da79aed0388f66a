"""Scan API routes.

  POST /api/scan      — run one approval scan (rate limited)
  GET  /api/spenders  — spender list for a tier
  GET  /api/chains    — supported chains

Every route is gated on ``app.state.ready`` via the ``require_ready``
dependency wired in create_app().
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from revoke_radar.limiter import SCAN_RATE_LIMIT, limiter
from revoke_radar.models.responses import build_scan_response
from revoke_radar.models.scan import ScanMeta, ScanOutcome, ScanStage, Tier
from revoke_radar.scanner.engine import ApprovalScanner
from revoke_radar.spenders import SpenderRegistry
from revoke_radar.utils.health import ScanStatsTracker
from revoke_radar.utils.logger import clear_request_id, get_logger, set_request_id
from revoke_radar.utils.ulid import generate_scan_id

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["scan"])


@router.post("/scan")
@limiter.limit(SCAN_RATE_LIMIT)
async def scan(request: Request) -> JSONResponse:
    """Scan an owner's token approvals.

    Body: ``{"owner": "0x…", "isPro"?: bool, "chainIds"?: [int], "userSpenders"?: [{name?, address}]}``
    """
    scan_id = generate_scan_id()
    set_request_id(scan_id)
    try:
        try:
            body: Any = await request.json()
        except ValueError:
            logger.info("Scan rejected", reason="body is not valid JSON")
            outcome = ScanOutcome(
                meta=ScanMeta(),
                error="Invalid JSON body",
                status_code=400,
                stage=ScanStage.FAILED,
                failed_stage=ScanStage.VALIDATING,
            )
        else:
            scanner: ApprovalScanner = request.app.state.scanner
            outcome = await scanner.scan(body)

        stats: ScanStatsTracker = request.app.state.scan_stats
        stats.record(outcome.meta.duration_ms, ok=outcome.ok, errors=outcome.meta.errors)
        return build_scan_response(outcome, scan_id)
    finally:
        clear_request_id()


@router.get("/spenders")
async def list_spenders(request: Request, tier: str = Tier.FREE.value) -> dict[str, Any]:
    """Spender list checked for ``tier`` (``free`` or ``pro``)."""
    try:
        selected = Tier(tier)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown tier '{tier}'. Expected one of: {[t.value for t in Tier]}",
        )
    registry: SpenderRegistry = request.app.state.spender_registry
    spenders = registry.spenders_for(selected)
    return {
        "tier": selected.value,
        "count": len(spenders),
        "spenders": [s.to_dict() for s in spenders],
    }


@router.get("/chains")
async def list_chains(request: Request) -> dict[str, Any]:
    """Chains a scan may target, plus the default selection."""
    config = request.app.state.config
    return {
        "chains": [chain.to_dict() for chain in config.chains.values()],
        "default_chain_ids": list(config.scan.default_chain_ids),
    }
