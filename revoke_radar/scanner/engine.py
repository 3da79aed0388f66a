"""Scan orchestrator — validate, discover, fan out, classify, aggregate.

Provides ``ApprovalScanner.scan()``: the single entry point used by the HTTP
layer. It ALWAYS returns a ``ScanOutcome`` with a well-formed body; it never
raises (task cancellation excepted).

State machine:

    validating → discovering → scanning → aggregating → done
         └───────────┴────────────┴────────────┴──→ failed

  validating   Parse the JSON body into a ScanRequest. Failure → HTTP 400,
               all-zero telemetry.
  discovering  Tier selects spender list + token quota; discover tokens on every
               requested chain. DiscoveryFailure is fatal → HTTP 500.
  scanning     Per chain: map_bounded over tokens (outer limit), and per token
               map_bounded over spenders (inner limit). Each pair is one
               allowance read; read failures are absorbed by AllowanceReader.
               Chains run one after another so in-flight reads never exceed
               outer × inner.
  aggregating  Flatten, drop empty pairs, stable sort by risk (red, orange,
               green), finalise telemetry.

Any other exception is reported as InternalFailure (HTTP 500) with
``errors + 1`` and best-effort ``calls``.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from revoke_radar.chains import ChainInfo
from revoke_radar.config import Config
from revoke_radar.models.scan import (
    RISK_ORDER,
    ScanItem,
    ScanMeta,
    ScanOutcome,
    ScanRequest,
    ScanStage,
    Spender,
    TokenRecord,
)
from revoke_radar.scanner.allowance import AllowanceReader, ScanCounters
from revoke_radar.scanner.discovery import TokenDiscovery
from revoke_radar.scanner.errors import DiscoveryFailure, InternalFailure, InvalidRequest, ScanError
from revoke_radar.scanner.pool import map_bounded
from revoke_radar.scanner.risk import classify
from revoke_radar.scanner.rpc import JsonRpcClient
from revoke_radar.spenders import SpenderRegistry, is_address, parse_user_spenders, resolve_spenders
from revoke_radar.utils.logger import get_logger

logger = get_logger(__name__)

INTERNAL_FAILURE_MESSAGE = "Internal scan failure"


# ─── Request validation ───────────────────────────────────────────────────────


def parse_scan_request(body: Any, config: Config) -> ScanRequest:
    """Validate a decoded JSON body and build a ScanRequest.

    Accepted fields: ``owner`` (required), ``isPro``, ``chainIds``,
    ``userSpenders``. Unknown fields are ignored.

    Raises:
        InvalidRequest: Body is not an object, owner is missing / malformed, or
                        chainIds is malformed or names an unsupported chain.
    """
    if not isinstance(body, dict):
        raise InvalidRequest("Invalid owner")

    owner = body.get("owner")
    if not isinstance(owner, str) or not owner.startswith("0x") or not is_address(owner):
        raise InvalidRequest("Invalid owner")

    raw_chain_ids = body.get("chainIds")
    if raw_chain_ids is None:
        chain_ids = tuple(config.scan.default_chain_ids)
    else:
        if (
            not isinstance(raw_chain_ids, list)
            or not raw_chain_ids
            or not all(isinstance(c, int) and not isinstance(c, bool) for c in raw_chain_ids)
        ):
            raise InvalidRequest("chainIds must be a non-empty list of chain ids")
        unsupported = [c for c in raw_chain_ids if c not in config.chains]
        if unsupported:
            raise InvalidRequest(f"Unsupported chain ids: {unsupported}")
        chain_ids = tuple(dict.fromkeys(raw_chain_ids))

    return ScanRequest(
        owner=owner.strip(),
        is_pro=bool(body.get("isPro")),
        chain_ids=chain_ids,
        user_spenders=tuple(parse_user_spenders(body.get("userSpenders"))),
    )


# ─── Scanner ──────────────────────────────────────────────────────────────────


class ApprovalScanner:
    """Runs approval scans against the configured explorers and RPC nodes.

    Holds only long-lived collaborators (shared HTTP client, config, spender
    registry). All per-scan state — counters, results — is created inside
    ``scan()`` and discarded when it returns.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        config: Config,
        spender_registry: SpenderRegistry,
    ) -> None:
        self._http = http_client
        self._config = config
        self._spenders = spender_registry

    async def scan(self, body: Any) -> ScanOutcome:
        """Run one scan for a decoded request body. Never raises."""
        t0 = time.perf_counter()
        counters = ScanCounters()
        stage = ScanStage.VALIDATING

        def _elapsed_ms() -> int:
            return int((time.perf_counter() - t0) * 1000)

        try:
            request = parse_scan_request(body, self._config)

            stage = ScanStage.DISCOVERING
            spenders = resolve_spenders(self._spenders, request.tier, request.user_spenders)
            max_tokens = self._config.max_tokens_for(request.tier)
            discovered: list[tuple[ChainInfo, list[TokenRecord]]] = []
            for chain_id in request.chain_ids:
                chain = self._config.chains[chain_id]
                discovery = TokenDiscovery(
                    self._http, chain, timeout_s=self._config.scan.discovery_timeout_s
                )
                discovered.append((chain, await discovery.discover(request.owner, max_tokens)))

            tokens_checked = sum(len(tokens) for _, tokens in discovered)
            spenders_checked = len(spenders)
            logger.info(
                "Scan started",
                owner=request.owner,
                tier=request.tier.value,
                chain_ids=list(request.chain_ids),
                tokens=tokens_checked,
                spenders=spenders_checked,
            )

            stage = ScanStage.SCANNING
            nested: list[list[Optional[ScanItem]]] = []
            for chain, tokens in discovered:
                nested.extend(await self._scan_chain(chain, tokens, spenders, request.owner, counters))

            stage = ScanStage.AGGREGATING
            items = [item for rows in nested for item in rows if item is not None]
            # list.sort is stable: equal tiers keep discovery order
            items.sort(key=lambda item: RISK_ORDER[item.risk])

            meta = ScanMeta(
                tokens_checked=tokens_checked,
                spenders_checked=spenders_checked,
                calls=counters.calls,
                errors=counters.errors,
                duration_ms=_elapsed_ms(),
            )
            logger.info(
                "Scan complete",
                items=len(items),
                calls=meta.calls,
                errors=meta.errors,
                duration_ms=meta.duration_ms,
            )
            return ScanOutcome(items=items, meta=meta)

        except InvalidRequest as exc:
            logger.info("Scan rejected", reason=str(exc))
            return ScanOutcome(
                meta=ScanMeta(duration_ms=_elapsed_ms()),
                error=str(exc),
                status_code=exc.status_code,
                stage=ScanStage.FAILED,
                failed_stage=stage,
            )

        except DiscoveryFailure as exc:
            logger.warning(
                "Scan aborted: token discovery failed",
                chain_id=exc.chain_id,
                status=exc.status,
                error=str(exc),
            )
            return self._failure(exc, str(exc), counters, _elapsed_ms(), stage)

        except ScanError as exc:
            logger.error("Scan failed", stage=stage.value, error=str(exc), error_type=type(exc).__name__)
            return self._failure(exc, str(exc) or INTERNAL_FAILURE_MESSAGE, counters, _elapsed_ms(), stage)

        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Unhandled exception during scan",
                stage=stage.value,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            fault = InternalFailure(INTERNAL_FAILURE_MESSAGE)
            fault.__cause__ = exc
            return self._failure(fault, str(fault), counters, _elapsed_ms(), stage)

    # ── Scanning ──────────────────────────────────────────────────────────────

    async def _scan_chain(
        self,
        chain: ChainInfo,
        tokens: list[TokenRecord],
        spenders: list[Spender],
        owner: str,
        counters: ScanCounters,
    ) -> list[list[Optional[ScanItem]]]:
        """Fan out over tokens × spenders on one chain; one result row per token."""
        rpc = JsonRpcClient(self._http, chain.rpc_url, timeout_s=self._config.scan.rpc_timeout_s)
        reader = AllowanceReader(rpc, counters)
        inner_limit = self._config.scan.spender_concurrency

        async def _scan_pair(token: TokenRecord, spender: Spender) -> Optional[ScanItem]:
            amount = await reader.read_allowance(token.address, owner, spender.address)
            classification = classify(amount, token.decimals)
            if classification is None:
                return None
            return ScanItem(
                chain_id=chain.id,
                chain_name=chain.name,
                token_symbol=token.symbol,
                token_address=token.address,
                spender_name=spender.name,
                spender_address=spender.address,
                allowance_label=classification.label,
                risk=classification.risk,
                reason=classification.reason,
            )

        async def _scan_token(token: TokenRecord, _idx: int) -> list[Optional[ScanItem]]:
            return await map_bounded(
                spenders,
                inner_limit,
                lambda spender, _i: _scan_pair(token, spender),
            )

        return await map_bounded(tokens, self._config.scan.token_concurrency, _scan_token)

    # ── Failure reporting ─────────────────────────────────────────────────────

    @staticmethod
    def _failure(
        exc: ScanError,
        message: str,
        counters: ScanCounters,
        duration_ms: int,
        stage: ScanStage,
    ) -> ScanOutcome:
        return ScanOutcome(
            meta=ScanMeta(
                calls=counters.calls,
                errors=counters.errors + 1,
                duration_ms=duration_ms,
            ),
            error=message,
            status_code=exc.status_code,
            stage=ScanStage.FAILED,
            failed_stage=stage,
        )
