"""Data models for Seam API responses."""

from seamlock.models._base import SeamBaseModel
from seamlock.models.action_attempt import ActionAttempt
from seamlock.models.device import Device, DeviceCapabilities, DeviceProperties, LockStatus
from seamlock.models.webhook import Webhook, WebhookEvent

__all__ = [
    "ActionAttempt",
    "Device",
    "DeviceCapabilities",
    "DeviceProperties",
    "LockStatus",
    "SeamBaseModel",
    "Webhook",
    "WebhookEvent",
]
