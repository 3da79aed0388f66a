"""Scan data contracts: request, token/spender records, items, telemetry.

Everything here is created fresh for one scan and discarded once the response is
returned. Python attributes are snake_case; ``to_dict()`` produces the camelCase
wire format the HTTP API returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


# ─── Enums ────────────────────────────────────────────────────────────────────


class RiskLevel(str, Enum):
    """Risk tier for an approval.

    ``GREEN`` is never assigned to an emitted item: a token/spender pair with no
    risky approval simply produces no item.
    """

    RED = "red"
    ORANGE = "orange"
    GREEN = "green"


#: Sort key for scan output — red first, then orange, then green.
RISK_ORDER: dict[RiskLevel, int] = {
    RiskLevel.RED: 0,
    RiskLevel.ORANGE: 1,
    RiskLevel.GREEN: 2,
}


class Tier(str, Enum):
    """Product tier selecting spender list and token quota."""

    FREE = "free"
    PRO = "pro"


class ScanStage(str, Enum):
    """Orchestrator state machine. ``FAILED`` is reachable from every stage."""

    VALIDATING = "validating"
    DISCOVERING = "discovering"
    SCANNING = "scanning"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


# ─── Inputs ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Spender:
    """A contract that may hold an allowance over the owner's tokens.

    tier: optional category tag — "core", "known" (built-in lists) or "custom"
          (supplied by the caller).
    """

    name: str
    address: str
    tier: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "address": self.address, "tier": self.tier}


@dataclass(frozen=True)
class TokenRecord:
    """Canonical token descriptor derived from one explorer balance row."""

    address: str
    symbol: str
    decimals: int
    chain_id: int


@dataclass(frozen=True)
class ScanRequest:
    """Validated scan request. Immutable for the duration of one scan."""

    owner: str
    is_pro: bool = False
    chain_ids: tuple[int, ...] = ()
    user_spenders: tuple[Spender, ...] = ()

    @property
    def tier(self) -> Tier:
        return Tier.PRO if self.is_pro else Tier.FREE


# ─── Per-pair results ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AllowanceResult:
    """Allowance observed for one (token, owner, spender) triple.

    A failed read carries ``amount == 0``, ``failed=True`` and the error text
    that caused it. Downstream stages only look at ``amount``, so a failed read
    and a true zero allowance produce the same output; the failure is visible
    only in the scan's error counter and the debug log.
    """

    token: str
    owner: str
    spender: str
    amount: int
    failed: bool = False
    error: Optional[str] = None


@dataclass
class ScanItem:
    """One non-zero approval in the scan output."""

    chain_id: int
    chain_name: str
    token_symbol: str
    token_address: str
    spender_name: str
    spender_address: str
    allowance_label: str
    risk: RiskLevel
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "tokenSymbol": self.token_symbol,
            "tokenAddress": self.token_address,
            "spenderName": self.spender_name,
            "spenderAddress": self.spender_address,
            "allowanceLabel": self.allowance_label,
            "risk": self.risk.value,
            "reason": self.reason,
        }


# ─── Telemetry / outcome ──────────────────────────────────────────────────────


@dataclass
class ScanMeta:
    """Scan telemetry.

    tokens_checked / spenders_checked are input cardinalities (not filtered
    counts). calls counts every allowance read attempt; errors counts the failed
    ones (plus one for a fatal scan failure).
    """

    tokens_checked: int = 0
    spenders_checked: int = 0
    calls: int = 0
    errors: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "tokensChecked": self.tokens_checked,
            "spendersChecked": self.spenders_checked,
            "calls": self.calls,
            "errors": self.errors,
            "durationMs": self.duration_ms,
        }


@dataclass
class ScanOutcome:
    """Result of one orchestrated scan — success or typed failure.

    The response body is always well-formed: failures carry an empty item list,
    best-effort telemetry and a non-empty ``error`` message.
    """

    items: list[ScanItem] = field(default_factory=list)
    meta: ScanMeta = field(default_factory=ScanMeta)
    error: Optional[str] = None
    status_code: int = 200
    stage: ScanStage = ScanStage.DONE
    failed_stage: Optional[ScanStage] = None  # stage that was running when the scan failed

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "items": [item.to_dict() for item in self.items],
            "meta": self.meta.to_dict(),
        }
        if self.error is not None:
            body["error"] = self.error
        return body
