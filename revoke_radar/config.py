"""Config loading for Revoke Radar.

Reads ``.revoke_radar/config.yaml`` (or ``~/.revoke_radar/config.yaml``).
Raises SystemExit on parse errors, a missing ``version`` field or invalid values.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. ``config_path`` argument (if provided — for testing or explicit override)
  2. REVOKE_RADAR_CONFIG environment variable (if set)
  3. ``.revoke_radar/config.yaml`` (working directory — for development)
  4. ``~/.revoke_radar/config.yaml`` (home directory — for deployments)

Environment variable overrides:
  REVOKE_RADAR_PORT   — overrides server.port
  REVOKE_RADAR_CONFIG — explicit config file path to try first
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml

from revoke_radar.chains import ChainInfo, build_chain_registry
from revoke_radar.constants import (
    DEFAULT_CHAIN_IDS,
    DEFAULT_DISCOVERY_TIMEOUT_S,
    DEFAULT_FREE_MAX_TOKENS,
    DEFAULT_PRO_MAX_TOKENS,
    DEFAULT_RPC_TIMEOUT_S,
    DEFAULT_SPENDER_CONCURRENCY,
    DEFAULT_TOKEN_CONCURRENCY,
)
from revoke_radar.models.scan import Tier
from revoke_radar.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".revoke_radar/config.yaml",
    os.path.expanduser("~/.revoke_radar/config.yaml"),
]

DEFAULT_SPENDERS_PATH = ".revoke_radar/spenders.yaml"

DEFAULT_CORS_ORIGINS: list[str] = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """HTTP binding and browser access."""

    host: str = "127.0.0.1"
    port: int = 8787
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))


@dataclass
class ScanConfig:
    """Fan-out ceilings, outbound timeouts and default chains."""

    token_concurrency: int = DEFAULT_TOKEN_CONCURRENCY
    spender_concurrency: int = DEFAULT_SPENDER_CONCURRENCY
    rpc_timeout_s: float = DEFAULT_RPC_TIMEOUT_S
    discovery_timeout_s: float = DEFAULT_DISCOVERY_TIMEOUT_S
    default_chain_ids: list[int] = field(default_factory=lambda: list(DEFAULT_CHAIN_IDS))


@dataclass
class TierConfig:
    """Per-tier quota. Only the token cap is tier-specific; spender lists come
    from the SpenderRegistry."""

    max_tokens: int


def _default_tiers() -> dict[Tier, TierConfig]:
    return {
        Tier.FREE: TierConfig(max_tokens=DEFAULT_FREE_MAX_TOKENS),
        Tier.PRO: TierConfig(max_tokens=DEFAULT_PRO_MAX_TOKENS),
    }


@dataclass
class Config:
    """Root configuration object populated from .revoke_radar/config.yaml.

    All fields have safe defaults — the service can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    tiers: dict[Tier, TierConfig] = field(default_factory=_default_tiers)
    chains: dict[int, ChainInfo] = field(default_factory=build_chain_registry)
    spenders_path: str = DEFAULT_SPENDERS_PATH
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    def max_tokens_for(self, tier: Tier) -> int:
        return self.tiers[tier].max_tokens

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are ignored.

        Raises:
            SystemExit(1): On any invalid value (non-positive concurrency or
                           quota, unknown default chain, malformed chain entry).
        """
        # ── Server ────────────────────────────────────────────────────────────
        server_raw = _section(raw, "server")
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=_positive_int(server_raw.get("port", 8787), "server.port"),
            cors_origins=list(server_raw.get("cors_origins", DEFAULT_CORS_ORIGINS)),
        )

        # ── Chains ────────────────────────────────────────────────────────────
        chains_raw = _section(raw, "chains")
        overrides: dict[int, dict] = {}
        for key, value in chains_raw.items():
            chain_id = _positive_int(key, "chains.<id>")
            if value is not None and not isinstance(value, dict):
                _config_error(f"chains.{key} must be a mapping")
            overrides[chain_id] = value or {}
        try:
            chains = build_chain_registry(overrides)
        except ValueError as exc:
            _config_error(str(exc))

        # ── Scan ──────────────────────────────────────────────────────────────
        scan_raw = _section(raw, "scan")
        default_chain_ids = [
            _positive_int(v, "scan.default_chain_ids")
            for v in scan_raw.get("default_chain_ids", list(DEFAULT_CHAIN_IDS))
        ]
        if not default_chain_ids:
            _config_error("scan.default_chain_ids must not be empty")
        unknown = [c for c in default_chain_ids if c not in chains]
        if unknown:
            _config_error(
                f"scan.default_chain_ids contains unsupported chains: {unknown}. "
                f"Supported: {sorted(chains)}"
            )
        scan = ScanConfig(
            token_concurrency=_positive_int(
                scan_raw.get("token_concurrency", DEFAULT_TOKEN_CONCURRENCY), "scan.token_concurrency"
            ),
            spender_concurrency=_positive_int(
                scan_raw.get("spender_concurrency", DEFAULT_SPENDER_CONCURRENCY), "scan.spender_concurrency"
            ),
            rpc_timeout_s=_positive_float(
                scan_raw.get("rpc_timeout_s", DEFAULT_RPC_TIMEOUT_S), "scan.rpc_timeout_s"
            ),
            discovery_timeout_s=_positive_float(
                scan_raw.get("discovery_timeout_s", DEFAULT_DISCOVERY_TIMEOUT_S), "scan.discovery_timeout_s"
            ),
            default_chain_ids=default_chain_ids,
        )

        # ── Tiers ─────────────────────────────────────────────────────────────
        tiers_raw = _section(raw, "tiers")
        tiers = _default_tiers()
        for tier in Tier:
            tier_raw = tiers_raw.get(tier.value) or {}
            if "max_tokens" in tier_raw:
                tiers[tier] = TierConfig(
                    max_tokens=_positive_int(tier_raw["max_tokens"], f"tiers.{tier.value}.max_tokens")
                )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            scan=scan,
            tiers=tiers,
            chains=chains,
            spenders_path=raw.get("spenders_path", DEFAULT_SPENDERS_PATH),
            path=path,
        )


# ─── Validation helpers ───────────────────────────────────────────────────────


def _config_error(message: str) -> NoReturn:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        _config_error(f"'{name}' must be a mapping")
    return value


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        _config_error(f"{name} must be a positive integer, got {value!r}")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        _config_error(f"{name} must be a positive integer, got {value!r}")
    if parsed < 1:
        _config_error(f"{name} must be a positive integer, got {value!r}")
    return parsed


def _positive_float(value: Any, name: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        _config_error(f"{name} must be a positive number, got {value!r}")
    if parsed <= 0:
        _config_error(f"{name} must be a positive number, got {value!r}")
    return parsed


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate Revoke Radar configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes the error to stderr and raises
    SystemExit(1). ``REVOKE_RADAR_PORT`` is applied after loading either way.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid values, or invalid ``REVOKE_RADAR_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("REVOKE_RADAR_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"Failed to parse {found_path}: {exc}\n"
            "Revoke Radar refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _config_error(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _config_error(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _config_error(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _config_error(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.server.host == "0.0.0.0":
        logger.warning(
            "Revoke Radar is configured to bind on 0.0.0.0 (all interfaces). "
            "Put it behind a reverse proxy that enforces request timeouts."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        default_chain_ids=config.scan.default_chain_ids,
        token_concurrency=config.scan.token_concurrency,
        spender_concurrency=config.scan.spender_concurrency,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If REVOKE_RADAR_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("REVOKE_RADAR_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _config_error(
                f"REVOKE_RADAR_PORT environment variable is not a valid integer: '{env_port}'"
            )
