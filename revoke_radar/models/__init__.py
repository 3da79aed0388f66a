"""Revoke Radar models package.

  - scan.py      — ScanRequest, ScanItem, ScanMeta, ScanOutcome, RiskLevel, Tier
  - responses.py — JSONResponse builders for scan results
"""
