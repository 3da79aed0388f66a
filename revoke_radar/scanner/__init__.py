"""Revoke Radar scanner package.

Pipeline: token discovery (explorer) → bounded fan-out over token × spender
pairs → allowance reads (JSON-RPC eth_call) → risk classification → aggregation.
Entry point: ``ApprovalScanner.scan()`` in engine.py.
"""
