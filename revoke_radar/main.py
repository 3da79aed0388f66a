"""Revoke Radar FastAPI application factory + lifespan lifecycle.

  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - app          — module-level instance for uvicorn

Startup sequence:
  1. load_config()            → app.state.config
  2. SpenderRegistry.load()   → app.state.spender_registry (+ watcher task if the
                                spender file exists)
  3. create_http_client()     → app.state.http_client
  4. ApprovalScanner(...)     → app.state.scanner
  5. ScanStatsTracker()       → app.state.scan_stats
  6. app.state.ready = True

Shutdown (reverse):
  app.state.ready = False → stop watcher → close HTTP client

Usage:
  uvicorn revoke_radar.main:app --host 127.0.0.1 --port 8787
"""

from __future__ import annotations

import asyncio
import os
import pathlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from revoke_radar.api.scan import router as scan_router
from revoke_radar.config import DEFAULT_CORS_ORIGINS, Config, load_config
from revoke_radar.health import router as health_router
from revoke_radar.http_client import create_http_client
from revoke_radar.limiter import limiter
from revoke_radar.middleware import BodySizeLimitMiddleware
from revoke_radar.scanner.engine import ApprovalScanner
from revoke_radar.spenders import SpenderRegistry
from revoke_radar.utils.health import ScanStatsTracker
from revoke_radar.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

root_router = APIRouter(tags=["root"])


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True.

    /health handles the 503 case itself.
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "Revoke Radar is starting up.",
            },
        )


# ─── Root Endpoint ────────────────────────────────────────────────────────────


@root_router.get("/")
async def root() -> dict[str, str]:
    """Root endpoint — service identity / discovery."""
    return {
        "service": "Revoke Radar",
        "tagline": "Find risky ERC-20 approvals before someone else does",
        "scan": "/api/scan",
        "spenders": "/api/spenders",
        "chains": "/api/chains",
        "health": "/health",
    }


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup and shutdown sequence."""
    logger.info("Revoke Radar starting up...")

    # ── Step 1: Load configuration ────────────────────────────────────────────
    # SystemExit on an invalid config: the process exits before ready=True.
    config: Config = load_config()
    app.state.config = config

    # ── Step 2: Spender lists + hot-reload watcher ────────────────────────────
    spender_registry = SpenderRegistry()
    app.state.spender_registry = spender_registry

    spenders_path = pathlib.Path(config.spenders_path).expanduser()
    watcher_task: asyncio.Task[None] | None = None
    if spenders_path.exists():
        count = spender_registry.load(str(spenders_path))
        logger.info("Spender lists loaded from file", path=str(spenders_path), count=count)
        watcher_task = asyncio.create_task(spender_registry.start_watcher(str(spenders_path)))
    else:
        logger.info(
            "No spender file found — using built-in lists",
            path=str(spenders_path),
            counts=spender_registry.counts(),
        )

    # ── Step 3: Shared HTTP client ────────────────────────────────────────────
    http_client: httpx.AsyncClient = create_http_client()
    app.state.http_client = http_client

    # ── Step 4: Scanner + stats ───────────────────────────────────────────────
    app.state.scanner = ApprovalScanner(http_client, config, spender_registry)
    app.state.scan_stats = ScanStatsTracker()

    # ── Step 5: Mark as ready ─────────────────────────────────────────────────
    app.state.ready = True
    logger.info(
        "Revoke Radar ready",
        chains=sorted(config.chains),
        default_chain_ids=config.scan.default_chain_ids,
    )

    yield

    # ── Shutdown (reverse order) ──────────────────────────────────────────────
    logger.info("Revoke Radar shutting down...")
    app.state.ready = False

    if watcher_task is not None and not watcher_task.done():
        watcher_task.cancel()
        try:
            await watcher_task
        except asyncio.CancelledError:
            pass

    try:
        await http_client.aclose()
        logger.info("HTTP client closed")
    except Exception as exc:
        logger.warning("HTTP client close error (non-fatal)", error=str(exc))

    logger.info("Revoke Radar shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(cors_origins: list[str] | None = None) -> FastAPI:
    """Create and configure the Revoke Radar FastAPI application.

    Call directly in tests to get an isolated app instance:
        app = create_app()

    Args:
        cors_origins: Browser origins allowed to call the API. Defaults to the
                      local front-end dev server.
    """
    application = FastAPI(
        title="Revoke Radar",
        description="ERC-20 approval scanner",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )

    # /health returns 503 for any request that arrives before startup completes.
    application.state.ready = False

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins is not None else list(DEFAULT_CORS_ORIGINS),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Scan-ID"],
    )
    # Last-added middleware is outermost: size limit runs before CORS and routing.
    application.add_middleware(BodySizeLimitMiddleware)
    application.add_middleware(SlowAPIMiddleware)

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(scan_router, dependencies=[Depends(require_ready)])

    @application.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────

app = create_app()
