"""Spender lists — which contracts get checked for allowances.

Two tiers:
  free — short, high-hit-rate list of routers
  pro  — the free list plus additional known spenders

The lists are injected configuration: ``SpenderRegistry`` loads them from a YAML
file (``spenders_path`` in config) and falls back to the built-in Base list when
no file exists. The file is watched with watchfiles and reloaded on change; a
broken edit is logged and the previous lists are kept.

File format::

    free:
      - name: Aerodrome Router
        address: "0xcF77a3Ba9A5CA399B7c97c74d54e5b1Beb874E43"
        tier: core
    pro:
      - name: Uniswap V3 NonfungiblePositionManager
        address: "0xC36442b4a4522E871399CD717aBDD847Ab11FE88"
        tier: known

The pro list is always ``free + pro`` entries, de-duplicated by address.

Caller-supplied ("custom") spenders are parsed by ``parse_user_spenders()``;
invalid entries are dropped rather than failing the scan.
"""

from __future__ import annotations

import asyncio
import re
import threading
from typing import Any, Iterable, Optional

import watchfiles
import yaml

from revoke_radar.constants import MAX_SPENDER_NAME_LENGTH, MAX_USER_SPENDERS
from revoke_radar.models.scan import Spender, Tier
from revoke_radar.utils.logger import get_logger

logger = get_logger(__name__)

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

CUSTOM_SPENDER_TIER = "custom"
DEFAULT_CUSTOM_SPENDER_NAME = "Custom"

# ─── Built-in lists (Base mainnet) ────────────────────────────────────────────

DEFAULT_FREE_SPENDERS: tuple[Spender, ...] = (
    Spender("Aerodrome Router", "0xcF77a3Ba9A5CA399B7c97c74d54e5b1Beb874E43", "core"),
    Spender("1inch Router v6", "0x54b5eb235c3935c39f834e58fd439b826f2a1dfb", "core"),
    Spender("Uniswap Universal Router", "0xEf1c6E67703c7BD7107eed8303Fbe6EC2554BF6B", "core"),
    Spender("Uniswap V3 SwapRouter", "0xE592427A0AEce92De3Edee1F18E0157C05861564", "core"),
    Spender("Permit2", "0x000000000022D473030F116dDEE9F6B43aC78BA3", "known"),
)

DEFAULT_PRO_EXTRA_SPENDERS: tuple[Spender, ...] = (
    Spender("Uniswap V3 NonfungiblePositionManager", "0xC36442b4a4522E871399CD717aBDD847Ab11FE88", "known"),
)


def is_address(value: Any) -> bool:
    """True for a ``0x``-prefixed 40-hex-digit string (surrounding spaces allowed)."""
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value.strip()))


def merge_spenders(*groups: Iterable[Spender]) -> list[Spender]:
    """Concatenate spender groups, keeping the first entry per address."""
    seen: set[str] = set()
    merged: list[Spender] = []
    for group in groups:
        for spender in group:
            key = spender.address.lower()
            if key in seen:
                continue
            seen.add(key)
            merged.append(spender)
    return merged


def parse_user_spenders(raw: Any) -> list[Spender]:
    """Parse caller-supplied spenders: ``[{name?, address}, ...]``.

    Entries that are not mappings or lack a valid address are dropped. Names are
    trimmed and cut to 32 characters (default ``"Custom"``). At most
    ``MAX_USER_SPENDERS`` entries are kept.
    """
    if not isinstance(raw, list):
        return []
    spenders: list[Spender] = []
    for item in raw:
        if not isinstance(item, dict) or not is_address(item.get("address")):
            continue
        name = item.get("name")
        name = name.strip() if isinstance(name, str) else ""
        spenders.append(
            Spender(
                name=(name or DEFAULT_CUSTOM_SPENDER_NAME)[:MAX_SPENDER_NAME_LENGTH],
                address=item["address"].strip(),
                tier=CUSTOM_SPENDER_TIER,
            )
        )
        if len(spenders) >= MAX_USER_SPENDERS:
            break
    return spenders


# ─── SpenderRegistry ─────────────────────────────────────────────────────────


class SpenderRegistry:
    """Thread-safe holder of the free / pro spender lists with hot-reload.

    Usage (in lifespan):
        registry = SpenderRegistry()
        registry.load(config.spenders_path)
        task = asyncio.create_task(registry.start_watcher(config.spenders_path))
    """

    def __init__(
        self,
        free: Iterable[Spender] = DEFAULT_FREE_SPENDERS,
        pro_extra: Iterable[Spender] = DEFAULT_PRO_EXTRA_SPENDERS,
    ) -> None:
        self._lock = threading.Lock()
        self._free: list[Spender] = []
        self._pro: list[Spender] = []
        self._set_lists(list(free), list(pro_extra))

    def _set_lists(self, free: list[Spender], pro_extra: list[Spender]) -> None:
        free_list = merge_spenders(free)
        pro_list = merge_spenders(free_list, pro_extra)
        with self._lock:
            self._free = free_list
            self._pro = pro_list

    # ── Public read API ───────────────────────────────────────────────────────

    def spenders_for(self, tier: Tier) -> list[Spender]:
        """Snapshot of the spender list for ``tier`` (copy — safe to mutate)."""
        with self._lock:
            return list(self._pro if tier == Tier.PRO else self._free)

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {Tier.FREE.value: len(self._free), Tier.PRO.value: len(self._pro)}

    # ── Load from file ────────────────────────────────────────────────────────

    def load(self, path: str) -> int:
        """Load spender lists from a YAML file.

        Returns the number of pro-tier spenders after loading (≥ 0).
        Missing file → built-in defaults, returns their count.
        Returns -1 on YAML parse / read error or invalid structure (prior lists
        unchanged). Never raises.
        """
        try:
            with open(path) as fh:
                raw = yaml.safe_load(fh)
        except FileNotFoundError:
            logger.debug("Spender file not found — using built-in lists", path=path)
            self._set_lists(list(DEFAULT_FREE_SPENDERS), list(DEFAULT_PRO_EXTRA_SPENDERS))
            return len(self.spenders_for(Tier.PRO))
        except yaml.YAMLError as exc:
            logger.error(
                "Spender reload failed: YAML parse error — keeping prior lists",
                path=path,
                error=str(exc),
            )
            return -1
        except OSError as exc:
            logger.error(
                "Spender reload failed: could not read file — keeping prior lists",
                path=path,
                error=str(exc),
            )
            return -1

        if not isinstance(raw, dict):
            logger.error(
                "Spender file root must be a mapping with free/pro keys — keeping prior lists",
                path=path,
                actual_type=type(raw).__name__,
            )
            return -1

        free = _parse_entries(raw.get("free") or [], section="free")
        pro_extra = _parse_entries(raw.get("pro") or [], section="pro")
        if not free:
            logger.error("Spender file has no valid free-tier entries — keeping prior lists", path=path)
            return -1

        self._set_lists(free, pro_extra)
        count = len(self.spenders_for(Tier.PRO))
        logger.info("Spender lists loaded", path=path, free=len(self.spenders_for(Tier.FREE)), pro=count)
        return count

    # ── Hot-reload watcher ────────────────────────────────────────────────────

    async def start_watcher(self, path: str) -> None:
        """Reload the spender file whenever it changes. Runs until cancelled."""
        logger.info("Spender file watcher started", path=path)
        try:
            async for _ in watchfiles.awatch(path):
                count = self.load(path)
                if count >= 0:
                    logger.info("Spender lists hot-reloaded", count=count, path=path)
        except asyncio.CancelledError:
            logger.debug("Spender file watcher cancelled", path=path)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Spender file watcher error (watcher stopped)",
                error=str(exc),
                path=path,
            )


# ─── Parsing helpers ──────────────────────────────────────────────────────────


def _parse_entries(raw_list: Any, section: str) -> list[Spender]:
    """Parse one tier section. Invalid entries are skipped with a WARNING."""
    if not isinstance(raw_list, list):
        logger.warning("Spender section is not a list — ignoring", section=section)
        return []

    entries: list[Spender] = []
    for i, item in enumerate(raw_list):
        if not isinstance(item, dict):
            logger.warning("Spender entry is not a mapping — skipping", section=section, index=i)
            continue
        address = item.get("address")
        if not is_address(address):
            logger.warning("Spender entry has invalid address — skipping", section=section, index=i)
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            logger.warning("Spender entry missing name — skipping", section=section, index=i)
            continue
        tier = item.get("tier")
        entries.append(
            Spender(
                name=name.strip(),
                address=address.strip(),
                tier=tier if isinstance(tier, str) else None,
            )
        )
    return entries


def resolve_spenders(registry: SpenderRegistry, tier: Tier, user_spenders: Optional[Iterable[Spender]] = None) -> list[Spender]:
    """Spender list for one scan: tier list followed by caller-supplied extras."""
    return merge_spenders(registry.spenders_for(tier), user_spenders or ())
