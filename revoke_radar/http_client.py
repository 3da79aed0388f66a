"""Shared outbound HTTP client (explorer + JSON-RPC traffic)."""

from __future__ import annotations

import httpx

from revoke_radar.constants import (
    DEFAULT_RPC_TIMEOUT_S,
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
)


def create_http_client() -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient with connection pooling configured.

    Created once at lifespan startup and stored in app.state.http_client; never
    instantiated per request. The pool (100) is well above the per-scan fan-out
    ceiling (token_concurrency × spender_concurrency = 24 by default), so reads
    are bounded by the scheduler rather than by pool waits.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(DEFAULT_RPC_TIMEOUT_S),
        headers={"Accept": "application/json"},
        follow_redirects=True,
    )
