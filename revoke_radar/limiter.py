"""Shared rate limiter for the scan endpoint.

A scan fans out into up to ``max_tokens × spenders`` outbound RPC calls, so the
scan route is capped per client IP. The Limiter instance is shared between:
  - revoke_radar/api/scan.py (route decorator)
  - revoke_radar/main.py     (app.state.limiter + SlowAPIMiddleware registration)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

SCAN_RATE_LIMIT = "30/minute"
