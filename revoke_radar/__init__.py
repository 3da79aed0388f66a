"""Revoke Radar — ERC-20 approval scanner service."""

__version__ = "1.0.0"
