"""Scan identifier generation.

Every scan gets a ULID (26 chars, Crockford Base32, time-ordered). It is used as:
  - the ``X-Scan-ID`` response header on ``POST /api/scan``
  - the ``request_id`` bound into every structured log line for that scan

Backed by ``python-ulid``.
"""

from __future__ import annotations

from ulid import ULID


def generate_scan_id() -> str:
    """Return a new ULID as a 26-character uppercase string.

    Example::

        scan_id = generate_scan_id()
        # "01KJ0JRVHYA7KX32VPN5ZSCTMV"
        assert len(scan_id) == 26
    """
    return str(ULID())
