"""Scan error taxonomy.

  InvalidRequest   — malformed request (bad owner, unsupported chain). HTTP 400.
  DiscoveryFailure — explorer unreachable or non-success status. Fatal, HTTP 500.
  ReadFailure      — a single allowance read failed. Raised by the RPC client and
                     absorbed by AllowanceReader; never reaches the caller.
  InternalFailure  — anything else that escaped the pipeline. HTTP 500.
"""

from __future__ import annotations

from typing import Optional


class ScanError(Exception):
    """Base class for all scan failures. ``status_code`` is the HTTP mapping."""

    status_code: int = 500


class InvalidRequest(ScanError):
    status_code = 400


class DiscoveryFailure(ScanError):
    """Token discovery failed for a chain; the owner cannot be scanned."""

    status_code = 500

    def __init__(self, message: str, chain_id: Optional[int] = None, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.chain_id = chain_id
        self.status = status


class ReadFailure(ScanError):
    """One eth_call failed: transport error, revert or malformed return data."""


class InternalFailure(ScanError):
    status_code = 500
