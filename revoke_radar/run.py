"""Programmatic uvicorn entry point for Revoke Radar.

Reads host, port and CORS origins from the loaded config (127.0.0.1:8787 by
default). The module-level ``revoke_radar.main:app`` uses the default origins.

Usage:
    python -m revoke_radar.run
    revoke-radar                 # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from revoke_radar.config import load_config
from revoke_radar.main import create_app

# Inbound connection cap; each scan opens up to
# token_concurrency × spender_concurrency outbound connections.
UVICORN_LIMIT_CONCURRENCY: int = 50
UVICORN_BACKLOG: int = 50
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the Revoke Radar server.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()
    application = create_app(cors_origins=config.server.cors_origins)

    uvicorn.run(
        application,
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
