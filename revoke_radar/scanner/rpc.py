"""Minimal async JSON-RPC client for read-only contract calls.

Talks to an EVM node over HTTP with the shared ``httpx.AsyncClient``; no web3
dependency. Only ``eth_call`` is needed: the allowance query is ABI-encoded by
hand from a precomputed selector.

All failures (transport, HTTP status, JSON-RPC error object, malformed result)
are raised as ``ReadFailure``. Callers that must not fail — AllowanceReader —
catch it.
"""

from __future__ import annotations

import itertools
from typing import Any

import httpx

from revoke_radar.constants import ALLOWANCE_SELECTOR, DEFAULT_RPC_TIMEOUT_S
from revoke_radar.scanner.errors import ReadFailure

# One ABI word: 32 bytes = 64 hex chars.
_WORD_HEX_LEN = 64


# ─── ABI helpers ──────────────────────────────────────────────────────────────


def strip_hex_prefix(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def encode_address(address: str) -> str:
    """ABI-encode an address as one left-padded 32-byte word (no 0x prefix)."""
    return strip_hex_prefix(address).lower().rjust(_WORD_HEX_LEN, "0")


def encode_allowance_call(owner: str, spender: str) -> str:
    """Calldata for ``allowance(owner, spender)``, 0x-prefixed."""
    return ALLOWANCE_SELECTOR + encode_address(owner) + encode_address(spender)


def decode_uint256(data: Any) -> int:
    """Decode the first 32-byte word of an eth_call result as an unsigned int.

    Raises:
        ReadFailure: If the result is not a hex string at least one word long.
                     An empty ``"0x"`` result (call to a non-contract, or a
                     function that returned nothing) is malformed.
    """
    if not isinstance(data, str):
        raise ReadFailure(f"eth_call result is not a string: {type(data).__name__}")
    payload = strip_hex_prefix(data)
    if len(payload) < _WORD_HEX_LEN:
        raise ReadFailure(f"eth_call result too short ({len(payload)} hex chars)")
    try:
        return int(payload[:_WORD_HEX_LEN], 16)
    except ValueError as exc:
        raise ReadFailure(f"eth_call result is not hex: {exc}") from exc


# ─── Client ───────────────────────────────────────────────────────────────────


class JsonRpcClient:
    """JSON-RPC 2.0 over HTTP POST, bound to one node URL.

    The ``httpx.AsyncClient`` is shared and owned by the application lifespan;
    this class never closes it.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: str,
        timeout_s: float = DEFAULT_RPC_TIMEOUT_S,
    ) -> None:
        self.url = url
        self._http = http_client
        self._timeout = timeout_s
        self._ids = itertools.count(1)

    async def _rpc(self, method: str, params: list) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._http.post(self.url, json=payload, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise ReadFailure(f"RPC transport error: {type(exc).__name__}: {exc}") from exc

        if response.status_code != 200:
            raise ReadFailure(f"RPC HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ReadFailure("RPC response is not valid JSON") from exc

        if not isinstance(data, dict):
            raise ReadFailure("RPC response is not a JSON object")
        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise ReadFailure(f"RPC error {error.get('code')}: {error.get('message')}")
            raise ReadFailure(f"RPC error: {error}")
        if "result" not in data:
            raise ReadFailure("RPC response has no result")
        return data["result"]

    async def eth_call(self, to: str, data: str) -> str:
        """Execute a read-only call at the latest block and return raw hex data."""
        return await self._rpc("eth_call", [{"to": to, "data": data}, "latest"])

    async def call_allowance(self, token: str, owner: str, spender: str) -> int:
        """Return ``token.allowance(owner, spender)``.

        Raises:
            ReadFailure: On any transport, node or decoding failure.
        """
        result = await self.eth_call(token, encode_allowance_call(owner, spender))
        return decode_uint256(result)
