"""Ingestion layer.

This package contains adapters that fetch/receive lock state (status
polling, webhook events) and emit normalized `StateUpdate` events.
"""

__all__: list[str] = []
