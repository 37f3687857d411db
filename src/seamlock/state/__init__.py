"""State/reconciliation layer.

This package is the single source of truth for how updates from status
polling, webhook events, and lock commands are merged into a deterministic
per-device lock state.
"""
