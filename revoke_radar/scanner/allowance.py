"""Allowance reader — one eth_call per (token, owner, spender), never raises.

INVARIANTS:
  - Every read increments ``counters.calls`` exactly once, success or failure.
  - A failed read returns 0 and increments ``counters.errors``.
  - ``read()`` never raises ``ScanError`` or any other ``Exception``; only task
    cancellation propagates.

A failed read is indistinguishable from a true zero allowance in the scan output;
the aggregate ``errors`` counter is the only signal that results may be
incomplete.
"""

from __future__ import annotations

import threading

from revoke_radar.models.scan import AllowanceResult
from revoke_radar.scanner.rpc import JsonRpcClient
from revoke_radar.utils.logger import get_logger

logger = get_logger(__name__)


class ScanCounters:
    """Call / error counters shared by every worker of one scan.

    Both fan-out levels increment concurrently; increments go through a lock so
    the counts stay exact even if a worker is ever moved off the event loop.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls = 0
        self._errors = 0

    def record_call(self) -> None:
        with self._lock:
            self._calls += 1

    def record_error(self) -> None:
        with self._lock:
            self._errors += 1

    @property
    def calls(self) -> int:
        with self._lock:
            return self._calls

    @property
    def errors(self) -> int:
        with self._lock:
            return self._errors


class AllowanceReader:
    """Reads ERC-20 allowances through one chain's JSON-RPC endpoint."""

    def __init__(self, rpc: JsonRpcClient, counters: ScanCounters) -> None:
        self._rpc = rpc
        self._counters = counters

    async def read(self, token: str, owner: str, spender: str) -> AllowanceResult:
        self._counters.record_call()
        try:
            amount = await self._rpc.call_allowance(token, owner, spender)
        except Exception as exc:  # noqa: BLE001
            # One bad pair must not abort the batch: count it and report zero.
            self._counters.record_error()
            return AllowanceResult(
                token=token,
                owner=owner,
                spender=spender,
                amount=0,
                failed=True,
                error=f"{type(exc).__name__}: {exc}",
            )
        return AllowanceResult(token=token, owner=owner, spender=spender, amount=amount)

    async def read_allowance(self, token: str, owner: str, spender: str) -> int:
        """Return the current allowance, or 0 if the read failed."""
        result = await self.read(token, owner, spender)
        if result.failed:
            logger.debug(
                "Allowance read failed",
                token=result.token,
                spender=result.spender,
                error=result.error,
            )
        return result.amount
