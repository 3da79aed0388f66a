"""In-process fakes for the explorer and JSON-RPC node, on httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

import httpx

from revoke_radar.constants import ALLOWANCE_SELECTOR

UNLIMITED = (1 << 256) - 1

OWNER = "0x1111111111111111111111111111111111111111"


def token_row(address: str, symbol: str = "TKN", decimals: Any = 18) -> dict:
    """A Blockscout v2 token-balances row (token fields nested under "token")."""
    return {"token": {"address_hash": address, "symbol": symbol, "decimals": decimals}, "value": "1"}


def encode_uint(value: int) -> str:
    return "0x" + format(value, "064x")


class FakeChain:
    """In-process explorer + RPC node.

    ``allowances`` maps ``(token_lower, spender_lower)`` → amount; unknown pairs
    return 0. ``failing`` is a set of ``(token_lower, spender_lower)`` pairs whose
    eth_call answers with a JSON-RPC error.
    """

    def __init__(
        self,
        rows: Optional[list] = None,
        *,
        allowances: Optional[dict[tuple[str, str], int]] = None,
        failing: Optional[set[tuple[str, str]]] = None,
        explorer_status: int = 200,
        explorer_payload: Any = None,
    ) -> None:
        self.rows = rows or []
        self.allowances = {(t.lower(), s.lower()): v for (t, s), v in (allowances or {}).items()}
        self.failing = {(t.lower(), s.lower()) for t, s in (failing or set())}
        self.explorer_status = explorer_status
        self.explorer_payload = explorer_payload
        self.explorer_requests: list[httpx.Request] = []
        self.rpc_requests: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and "/token-balances" in request.url.path:
            self.explorer_requests.append(request)
            if self.explorer_status != 200:
                return httpx.Response(self.explorer_status, json={"message": "unavailable"})
            payload = self.explorer_payload if self.explorer_payload is not None else {"items": self.rows}
            return httpx.Response(200, json=payload)

        body = json.loads(request.content)
        self.rpc_requests.append(body)
        call = body["params"][0]
        data: str = call["data"]
        assert data.startswith(ALLOWANCE_SELECTOR)
        spender = "0x" + data[10 + 64 + 24 : 10 + 128]
        key = (call["to"].lower(), spender.lower())
        if key in self.failing:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": 3, "message": "execution reverted"}},
            )
        amount = self.allowances.get(key, 0)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": encode_uint(amount)})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def client_factory(self) -> Callable[[], httpx.AsyncClient]:
        return self.client
