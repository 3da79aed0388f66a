"""Supported chains and their outbound endpoints.

Each chain has a Blockscout explorer (token discovery) and a JSON-RPC endpoint
(allowance reads). Many Blockscout instances expose an eth-rpc proxy at
``/api/eth-rpc``, which is the default RPC URL unless the config overrides it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ChainInfo:
    id: int
    name: str
    explorer_url: str
    rpc_url: str

    def token_balances_url(self, owner: str) -> str:
        return f"{self.explorer_url}/api/v2/addresses/{owner}/token-balances"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


def _blockscout_chain(chain_id: int, name: str, explorer_url: str, rpc_url: Optional[str] = None) -> ChainInfo:
    return ChainInfo(
        id=chain_id,
        name=name,
        explorer_url=explorer_url,
        rpc_url=rpc_url or f"{explorer_url}/api/eth-rpc",
    )


DEFAULT_CHAINS: dict[int, ChainInfo] = {
    8453: _blockscout_chain(8453, "Base", "https://base.blockscout.com", "https://mainnet.base.org"),
    1: _blockscout_chain(1, "Ethereum", "https://eth.blockscout.com"),
    10: _blockscout_chain(10, "Optimism", "https://optimism.blockscout.com"),
    42161: _blockscout_chain(42161, "Arbitrum", "https://arbitrum.blockscout.com"),
}


def build_chain_registry(overrides: Optional[dict[int, dict]] = None) -> dict[int, ChainInfo]:
    """Merge per-chain config overrides onto the built-in chain table.

    ``overrides`` maps chain id → ``{name?, explorer_url?, rpc_url?}``. An id not
    in the built-in table adds a new chain and must supply ``explorer_url``.

    Raises:
        ValueError: If a new chain has no explorer_url.
    """
    registry = dict(DEFAULT_CHAINS)
    for chain_id, raw in (overrides or {}).items():
        base = registry.get(chain_id)
        explorer_url = (raw.get("explorer_url") or (base.explorer_url if base else "")).rstrip("/")
        if not explorer_url:
            raise ValueError(f"chain {chain_id}: explorer_url is required for a new chain")
        name = raw.get("name") or (base.name if base else f"Chain {chain_id}")
        rpc_url = raw.get("rpc_url")
        if not rpc_url and base is not None and base.explorer_url == explorer_url:
            rpc_url = base.rpc_url
        registry[chain_id] = _blockscout_chain(chain_id, name, explorer_url, rpc_url)
    return registry
