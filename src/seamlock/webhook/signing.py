"""Webhook credential generation and HMAC-SHA256 signature checks."""

from __future__ import annotations

import hashlib
import hmac
import secrets

_SIGNATURE_PREFIX = "sha256="


def generate_secret() -> str:
    """Fresh 256-bit secret, hex-encoded."""
    return secrets.token_hex(32)


def generate_path() -> str:
    """Fresh unguessable URL path segment, including the leading ``/``."""
    return "/" + secrets.token_urlsafe(24)


def compute_signature(body: bytes, secret: str) -> str:
    """HMAC-SHA256 of *body* keyed with *secret*, lowercase hex."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check a ``sha256=<hex>`` (or bare hex) signature in constant time."""
    provided = signature.strip()
    if provided.lower().startswith(_SIGNATURE_PREFIX):
        provided = provided[len(_SIGNATURE_PREFIX) :]
    expected = compute_signature(body, secret)
    return hmac.compare_digest(expected.encode("ascii"), provided.lower().encode("utf-8"))
