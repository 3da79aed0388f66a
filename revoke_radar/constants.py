"""Shared constants for Revoke Radar.

Numeric caps, protocol constants and defaults used across modules live here.
No magic numbers in other modules — import from here.
"""

# ─── Request limits ───────────────────────────────────────────────────────────

# Maximum accepted request body. A scan request is a few hundred bytes; anything
# larger is rejected with HTTP 413 before the route handler runs.
MAX_REQUEST_BODY_BYTES: int = 65_536  # 64 KiB

# Upper bound on caller-supplied spenders per scan. Each extra spender adds one
# allowance read per discovered token.
MAX_USER_SPENDERS: int = 20

# Custom spender names are trimmed to this many characters.
MAX_SPENDER_NAME_LENGTH: int = 32

# ─── Tier quotas ──────────────────────────────────────────────────────────────

# Maximum number of discovered tokens scanned per chain, by tier.
DEFAULT_FREE_MAX_TOKENS: int = 15
DEFAULT_PRO_MAX_TOKENS: int = 40

# ─── Fan-out ceilings ─────────────────────────────────────────────────────────

# Outer level (tokens) × inner level (spenders) bounds in-flight allowance reads:
# 4 × 6 = 24 simultaneous eth_call requests per scan.
DEFAULT_TOKEN_CONCURRENCY: int = 4
DEFAULT_SPENDER_CONCURRENCY: int = 6

# ─── Outbound HTTP ────────────────────────────────────────────────────────────

# Shared httpx.AsyncClient pool. Comfortably above the fan-out ceiling so
# concurrent scans do not starve each other of connections.
POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 50
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds

DEFAULT_RPC_TIMEOUT_S: float = 15.0
DEFAULT_DISCOVERY_TIMEOUT_S: float = 15.0

# ─── ERC-20 ───────────────────────────────────────────────────────────────────

# keccak("allowance(address,address)")[:4]
ALLOWANCE_SELECTOR: str = "0xdd62ed3e"

# Allowances at or above 2**255 are reported as unlimited. Approval tooling
# commonly grants values near (but not exactly) 2**256 - 1.
UNLIMITED_THRESHOLD: int = 1 << 255

# Token metadata fallbacks for explorer rows that omit or garble these fields.
DEFAULT_TOKEN_DECIMALS: int = 18
# ERC-20 decimals is a uint8; larger explorer values are treated as garbled.
MAX_TOKEN_DECIMALS: int = 255
DEFAULT_TOKEN_SYMBOL: str = "TOKEN"

# ─── Chains ───────────────────────────────────────────────────────────────────

BASE_CHAIN_ID: int = 8453
DEFAULT_CHAIN_IDS: tuple[int, ...] = (BASE_CHAIN_ID,)

# ─── Health ───────────────────────────────────────────────────────────────────

# Rolling window size for scan duration statistics reported by /health.
SCAN_STATS_WINDOW: int = 100
