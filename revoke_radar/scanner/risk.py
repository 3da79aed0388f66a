"""Risk classification and allowance label formatting.

Two rules only:
  - amount >= 2**255 → RED, "Unlimited"
  - any other non-zero amount → ORANGE, formatted fixed-point label
Zero allowances never become items; ``classify()`` returns None for them.

Label formatting (value = amount / 10**decimals):
  ≥ 1000 → rounded integer followed by "+"   e.g. "1234+"
  ≥ 10   → 2 fractional digits                e.g. "12.50"
  ≥ 1    → 4 fractional digits                e.g. "1.2346"
  else   → 6 fractional digits                e.g. "0.500000"

Decimal arithmetic keeps huge finite allowances exact enough to render without
float overflow. Rounding is half-up.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional

from revoke_radar.constants import UNLIMITED_THRESHOLD
from revoke_radar.models.scan import RiskLevel

UNLIMITED_LABEL = "Unlimited"

UNLIMITED_REASON = "Unlimited approval — spender could drain funds if compromised."
ACTIVE_REASON = "Active approval — revoke if you no longer use this spender."

# uint256 has 78 decimal digits; leave headroom for the fractional part.
_DECIMAL_PRECISION = 120

_QUANTUM_BY_PLACES = {
    0: Decimal(1),
    2: Decimal("0.01"),
    4: Decimal("0.0001"),
    6: Decimal("0.000001"),
}


@dataclass(frozen=True)
class Classification:
    label: str
    risk: RiskLevel
    reason: str


def is_unlimited(amount: int) -> bool:
    return amount >= UNLIMITED_THRESHOLD


def format_allowance(amount: int, decimals: int) -> str:
    """Render a raw token amount as a short human-readable label."""
    if amount == 0:
        return "0"
    if is_unlimited(amount):
        return UNLIMITED_LABEL

    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        value = Decimal(amount).scaleb(-decimals)
        if value >= 1000:
            return f"{_quantize(value, 0)}+"
        if value >= 10:
            return _quantize(value, 2)
        if value >= 1:
            return _quantize(value, 4)
        return _quantize(value, 6)


def _quantize(value: Decimal, places: int) -> str:
    return f"{value.quantize(_QUANTUM_BY_PLACES[places], rounding=ROUND_HALF_UP):f}"


def classify(amount: int, decimals: int) -> Optional[Classification]:
    """Classify a raw allowance. Returns None for zero (no item is emitted)."""
    if amount <= 0:
        return None
    if is_unlimited(amount):
        return Classification(
            label=UNLIMITED_LABEL,
            risk=RiskLevel.RED,
            reason=UNLIMITED_REASON,
        )
    return Classification(
        label=format_allowance(amount, decimals),
        risk=RiskLevel.ORANGE,
        reason=ACTIVE_REASON,
    )
