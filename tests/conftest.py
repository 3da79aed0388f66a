"""Root test configuration for Revoke Radar.

  - reset_rate_limiter  — clears slowapi storage so tests never bleed into 429s
  - isolated_config_env — config and spender file lookups never touch the
                          developer's real ~/.revoke_radar directory
"""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the in-memory rate limiter storage between tests."""
    from revoke_radar.limiter import limiter

    limiter.reset()


@pytest.fixture(autouse=True)
def isolated_config_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Run every test from an empty directory with no config env vars set."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("REVOKE_RADAR_CONFIG", raising=False)
    monkeypatch.delenv("REVOKE_RADAR_PORT", raising=False)
    monkeypatch.setattr(
        "revoke_radar.config.DEFAULT_CONFIG_PATHS",
        [".revoke_radar/config.yaml"],
    )
