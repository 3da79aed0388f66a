"""Token discovery — which tokens does an owner hold on a chain?

One GET to the chain's Blockscout ``token-balances`` endpoint. The payload shape
varies between explorer versions, so parsing is schema-tolerant:

  - root: a bare list of rows, or an object with an ``items`` list
  - row:  token fields either nested under ``row["token"]`` or on the row itself
  - each logical field resolves through a fixed, ordered alias list (below);
    arbitrary keys are never inspected

Rows are truncated to the tier quota *before* normalisation. Rows with no
resolvable ``0x`` address are dropped silently.

Any network error or non-success status raises ``DiscoveryFailure``, which
aborts the scan — an owner whose holdings cannot be discovered cannot be scanned.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from revoke_radar.chains import ChainInfo
from revoke_radar.constants import (
    DEFAULT_DISCOVERY_TIMEOUT_S,
    DEFAULT_TOKEN_DECIMALS,
    DEFAULT_TOKEN_SYMBOL,
    MAX_TOKEN_DECIMALS,
)
from revoke_radar.models.scan import TokenRecord
from revoke_radar.scanner.errors import DiscoveryFailure
from revoke_radar.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

# ─── Field aliases (resolved in order) ────────────────────────────────────────

ADDRESS_FIELDS: tuple[str, ...] = ("address", "address_hash", "contract_address", "token_address")
SYMBOL_FIELDS: tuple[str, ...] = ("symbol", "token_symbol")
DECIMALS_FIELDS: tuple[str, ...] = ("decimals", "token_decimals")


def _first_present(obj: dict, fields: tuple[str, ...]) -> Any:
    for name in fields:
        value = obj.get(name)
        if value is not None:
            return value
    return None


def parse_decimals(value: Any) -> int:
    """Coerce an explorer decimals value to an int in ``0..255``; 18 otherwise."""
    if isinstance(value, bool):
        return DEFAULT_TOKEN_DECIMALS
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    elif isinstance(value, str):
        try:
            parsed = int(value.strip(), 10)
        except ValueError:
            return DEFAULT_TOKEN_DECIMALS
    else:
        return DEFAULT_TOKEN_DECIMALS
    if parsed < 0 or parsed > MAX_TOKEN_DECIMALS:
        return DEFAULT_TOKEN_DECIMALS
    return parsed


def normalize_token_row(row: Any, chain_id: int) -> Optional[TokenRecord]:
    """Turn one explorer row into a TokenRecord, or None if it has no address."""
    if not isinstance(row, dict):
        return None
    token = row.get("token")
    source = token if isinstance(token, dict) else row

    address = _first_present(source, ADDRESS_FIELDS)
    if not isinstance(address, str) or not address.startswith("0x"):
        return None

    symbol = _first_present(source, SYMBOL_FIELDS)
    return TokenRecord(
        address=address,
        symbol=str(symbol) if symbol is not None else DEFAULT_TOKEN_SYMBOL,
        decimals=parse_decimals(_first_present(source, DECIMALS_FIELDS)),
        chain_id=chain_id,
    )


def extract_rows(payload: Any) -> list:
    """Return the list of balance rows from a bare list or ``{"items": [...]}``."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        items = payload.get("items")
        return items if isinstance(items, list) else []
    return []


class TokenDiscovery:
    """Discovers an owner's tokens on one chain via its Blockscout explorer."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        chain: ChainInfo,
        timeout_s: float = DEFAULT_DISCOVERY_TIMEOUT_S,
    ) -> None:
        self.chain = chain
        self._http = http_client
        self._timeout = timeout_s

    async def fetch_rows(self, owner: str, max_tokens: int) -> list:
        """Fetch raw balance rows, truncated to ``max_tokens``.

        Raises:
            DiscoveryFailure: Network error, non-2xx status or non-JSON body.
        """
        url = self.chain.token_balances_url(owner)
        try:
            with PerformanceLogger("Token discovery", logger, chain_id=self.chain.id):
                response = await self._http.get(url, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise DiscoveryFailure(
                f"Token discovery failed on {self.chain.name}: {type(exc).__name__}",
                chain_id=self.chain.id,
            ) from exc

        if not response.is_success:
            raise DiscoveryFailure(
                f"Token discovery failed on {self.chain.name}: HTTP {response.status_code}",
                chain_id=self.chain.id,
                status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise DiscoveryFailure(
                f"Token discovery failed on {self.chain.name}: invalid JSON",
                chain_id=self.chain.id,
                status=response.status_code,
            ) from exc

        return extract_rows(payload)[:max_tokens]

    async def discover(self, owner: str, max_tokens: int) -> list[TokenRecord]:
        """Return up to ``max_tokens`` normalised token records for ``owner``."""
        rows = await self.fetch_rows(owner, max_tokens)
        tokens = [
            record
            for record in (normalize_token_row(row, self.chain.id) for row in rows)
            if record is not None
        ]
        logger.debug(
            "Tokens discovered",
            chain_id=self.chain.id,
            rows=len(rows),
            tokens=len(tokens),
        )
        return tokens
