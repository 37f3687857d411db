"""seamlock - Async state reconciliation for Seam smart locks."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("seamlock")
except PackageNotFoundError:
    __version__ = "0+local"
from seamlock.accessory import AccessoryInformation, AccessoryProjection, Characteristic, LockAccessory
from seamlock.client import LockApi, SeamClient
from seamlock.commands import CommandSerializer
from seamlock.config import DeviceConfig, SeamConfig, WebhookConfig
from seamlock.exceptions import (
    SeamApiError,
    SeamCommandTimeoutError,
    SeamCommunicationError,
    SeamConfigError,
    SeamError,
    SeamResponseParseError,
    SeamTransportError,
    SeamUnsupportedEventTypeError,
    WebhookPayloadError,
    WebhookSignatureError,
)
from seamlock.ingestion.polling import PollingScheduler
from seamlock.models import ActionAttempt, Device, DeviceCapabilities, LockStatus, Webhook, WebhookEvent
from seamlock.platform import SeamLockPlatform
from seamlock.state.events import StateField, StateUpdate, UpdateSource
from seamlock.state.store import AppliedChange, DeviceState, Rejected, StateReconciler
from seamlock.webhook.manager import WebhookLifecycleManager, WebhookState

__all__ = [
    "__version__",
    "AccessoryInformation",
    "AccessoryProjection",
    "ActionAttempt",
    "AppliedChange",
    "Characteristic",
    "CommandSerializer",
    "Device",
    "DeviceCapabilities",
    "DeviceConfig",
    "DeviceState",
    "LockAccessory",
    "LockApi",
    "LockStatus",
    "PollingScheduler",
    "Rejected",
    "SeamApiError",
    "SeamClient",
    "SeamCommandTimeoutError",
    "SeamCommunicationError",
    "SeamConfig",
    "SeamConfigError",
    "SeamError",
    "SeamLockPlatform",
    "SeamResponseParseError",
    "SeamTransportError",
    "SeamUnsupportedEventTypeError",
    "StateField",
    "StateReconciler",
    "StateUpdate",
    "UpdateSource",
    "Webhook",
    "WebhookConfig",
    "WebhookEvent",
    "WebhookLifecycleManager",
    "WebhookPayloadError",
    "WebhookSignatureError",
    "WebhookState",
]
