"""Webhook subscription lifecycle.

Each start generates a fresh path and secret, binds the local listener and
then registers (or adopts) exactly one remote subscription. Remote
registration problems are never fatal: polling keeps the state correct,
webhooks only make it faster.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Protocol

from seamlock._constants import BASE_EVENT_TYPES, CORE_EVENT_TYPES, DOOR_EVENT_TYPES
from seamlock._redact import secret_preview
from seamlock.client import LockApi
from seamlock.config import WebhookConfig
from seamlock.exceptions import SeamConfigError, SeamError, SeamUnsupportedEventTypeError
from seamlock.ingestion.webhook_events import build_update_from_event
from seamlock.models.webhook import Webhook, WebhookEvent
from seamlock.state.store import AppliedChange, Rejected, StateReconciler
from seamlock.webhook.server import EventHandler, WebhookReceiver
from seamlock.webhook.signing import generate_path, generate_secret

_logger = logging.getLogger(__name__)


class WebhookState(StrEnum):
    DISABLED = "disabled"
    STARTING = "starting"
    LISTENING = "listening"
    STOPPING = "stopping"


@dataclasses.dataclass
class WebhookRegistration:
    """Credentials and remote id of the current webhook session."""

    base_url: str
    path: str
    secret: str
    remote_webhook_id: str | None = None

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"


class Listener(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...


ListenerFactory = Callable[..., Listener]


def _default_listener_factory(
    *, path: str, secret: str, handler: EventHandler, host: str, port: int
) -> Listener:
    return WebhookReceiver(path=path, secret=secret, handler=handler, host=host, port=port)


class WebhookLifecycleManager:
    """Owns the local webhook listener and its remote subscription."""

    def __init__(
        self,
        api: LockApi,
        reconciler: StateReconciler,
        config: WebhookConfig,
        *,
        listener_factory: ListenerFactory = _default_listener_factory,
    ) -> None:
        self._api = api
        self._reconciler = reconciler
        self._config = config
        self._listener_factory = listener_factory
        self._listener: Listener | None = None
        self._registration: WebhookRegistration | None = None
        self._state = WebhookState.DISABLED

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> WebhookState:
        return self._state

    @property
    def registration(self) -> WebhookRegistration | None:
        return self._registration

    @property
    def listener(self) -> Listener | None:
        return self._listener

    @property
    def path(self) -> str | None:
        return self._registration.path if self._registration else None

    @property
    def secret(self) -> str | None:
        return self._registration.secret if self._registration else None

    @property
    def webhook_url(self) -> str | None:
        return self._registration.url if self._registration else None

    @property
    def webhook_id(self) -> str | None:
        return self._registration.remote_webhook_id if self._registration else None

    def supported_event_types(self) -> list[str]:
        """Event types to subscribe to for the registered devices."""
        event_types = list(BASE_EVENT_TYPES)
        if self._reconciler.any_supports_door_sensor():
            event_types.extend(DOOR_EVENT_TYPES)
        return event_types

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bind the listener and register the remote subscription.

        Raises
        ------
        SeamConfigError
            Webhooks are enabled but no base URL is configured.
        OSError
            The listener could not bind its port.
        """
        if self._state != WebhookState.DISABLED:
            _logger.debug("Webhook manager already %s", self._state)
            return

        base_url = self._config.url
        if not self._config.enabled:
            _logger.debug("Webhooks disabled")
            if base_url:
                await self.sweep()
            return
        if not base_url:
            raise SeamConfigError("Webhook URL is required when webhooks are enabled")

        self._state = WebhookState.STARTING
        registration = WebhookRegistration(base_url=base_url, path=generate_path(), secret=generate_secret())
        listener = self._listener_factory(
            path=registration.path,
            secret=registration.secret,
            handler=self.handle_event,
            host=self._config.host,
            port=self._config.port,
        )
        try:
            await listener.start()
        except Exception:
            self._state = WebhookState.DISABLED
            _logger.error("Failed to start webhook server on port %s", self._config.port)
            raise

        self._listener = listener
        self._registration = registration
        self._state = WebhookState.LISTENING
        _logger.debug(
            "Webhook session path %s, secret %s",
            registration.path,
            secret_preview(registration.secret),
        )
        await self._register(registration)

    async def _register(self, registration: WebhookRegistration) -> None:
        url = registration.url
        try:
            existing = await self._api.list_webhooks()
        except SeamError as exc:
            _logger.error("Failed to list webhooks: %s", exc)
            return

        match = next((webhook for webhook in existing if webhook.url == url), None)
        if match is not None:
            registration.remote_webhook_id = match.webhook_id
            _logger.info("Webhook already registered: %s", url)
            await self._sweep(existing, keep=match.webhook_id)
            return

        await self._sweep(existing)
        try:
            created = await self._create(url, self.supported_event_types())
        except SeamError as exc:
            _logger.error("Failed to register webhook: %s", exc)
            return
        registration.remote_webhook_id = created.webhook_id
        _logger.info("Webhook registered successfully: %s", url)

    async def _create(self, url: str, event_types: Sequence[str]) -> Webhook:
        try:
            return await self._api.create_webhook(url, event_types)
        except SeamUnsupportedEventTypeError as exc:
            _logger.warning("Some event types not supported (%s), retrying with core events only", exc)
            return await self._api.create_webhook(url, CORE_EVENT_TYPES)

    async def stop(self) -> None:
        """Close the listener and remove remote subscriptions, best effort."""
        if self._state in (WebhookState.LISTENING, WebhookState.STARTING):
            self._state = WebhookState.STOPPING

        listener = self._listener
        self._listener = None
        if listener is not None:
            try:
                await listener.stop()
            except Exception:
                _logger.warning("Error closing webhook server", exc_info=True)

        if self._registration is not None and self._registration.remote_webhook_id:
            await self.delete_registration()
        if self._config.url:
            await self.sweep()

        self._registration = None
        self._state = WebhookState.DISABLED

    async def delete_registration(self) -> bool:
        """Delete the current remote subscription; ``True`` on success."""
        registration = self._registration
        if registration is None or not registration.remote_webhook_id:
            _logger.warning("No webhook registered to delete")
            return False
        try:
            await self._api.delete_webhook(registration.remote_webhook_id)
        except SeamError as exc:
            _logger.error("Failed to delete webhook: %s", exc)
            return False
        _logger.info("Webhook deleted: %s", registration.remote_webhook_id)
        registration.remote_webhook_id = None
        return True

    async def sweep(self) -> int:
        """Delete every remote subscription under the configured base URL."""
        try:
            existing = await self._api.list_webhooks()
        except SeamError as exc:
            _logger.debug("Webhook cleanup skipped: %s", exc)
            return 0
        return await self._sweep(existing)

    async def _sweep(self, existing: Sequence[Webhook], *, keep: str | None = None) -> int:
        base_url = self._config.url
        if not base_url:
            return 0
        removed = 0
        for webhook in existing:
            if webhook.webhook_id == keep or not webhook.url.startswith(base_url):
                continue
            try:
                await self._api.delete_webhook(webhook.webhook_id)
            except SeamError as exc:
                _logger.debug("Failed to delete old webhook %s: %s", webhook.webhook_id, exc)
                continue
            removed += 1
            _logger.debug("Deleted old webhook: %s", webhook.url)
        if removed:
            _logger.info("Cleaned up %d old webhook(s)", removed)
        return removed

    # ------------------------------------------------------------------
    # Event routing
    # ------------------------------------------------------------------

    def handle_event(self, event: WebhookEvent, received_at_ms: int) -> AppliedChange | Rejected | None:
        """Route a verified event to the reconciler."""
        device_id = event.device_id
        if not device_id or not self._reconciler.has_device(device_id):
            _logger.warning("No accessory found for device: %s", device_id)
            return None
        supports_door = self._reconciler.get_state(device_id).supports_door_sensor
        update = build_update_from_event(event, received_at_ms=received_at_ms, supports_door_sensor=supports_door)
        if update is None:
            return None
        return self._reconciler.apply(update)
