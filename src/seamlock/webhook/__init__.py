"""Webhook receiver and subscription lifecycle."""

from seamlock.webhook.manager import WebhookLifecycleManager, WebhookRegistration, WebhookState
from seamlock.webhook.server import WebhookReceiver, decode_webhook_request
from seamlock.webhook.signing import compute_signature, generate_path, generate_secret, verify_signature

__all__ = [
    "WebhookLifecycleManager",
    "WebhookReceiver",
    "WebhookRegistration",
    "WebhookState",
    "compute_signature",
    "decode_webhook_request",
    "generate_path",
    "generate_secret",
    "verify_signature",
]
