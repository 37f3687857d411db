"""Process-level coordination of the lock reconciliation components."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from seamlock._cache import TtlCache
from seamlock.accessory import AccessoryInformation, LockAccessory
from seamlock.client import LockApi, SeamClient
from seamlock.commands import CommandSerializer
from seamlock.config import SeamConfig
from seamlock.exceptions import SeamConfigError, SeamError
from seamlock.ingestion.normalize import now_ms
from seamlock.ingestion.polling import PollingScheduler
from seamlock.models.device import Device, DeviceCapabilities
from seamlock.state.events import StateField
from seamlock.state.store import StateReconciler
from seamlock.webhook.manager import ListenerFactory, WebhookLifecycleManager

_logger = logging.getLogger(__name__)


class SeamLockPlatform:
    """Owns the device registry and every component that feeds it.

    Usage::

        async with SeamLockPlatform(config) as platform:
            await platform.request_lock_change("device-id", True)
    """

    def __init__(
        self,
        config: SeamConfig,
        *,
        api: LockApi | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], int] = now_ms,
        listener_factory: ListenerFactory | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._client: SeamClient | None = None
        if api is None:
            self._client = SeamClient(config, session=session)
            api = self._client
        self._api: LockApi = api

        self.reconciler = StateReconciler()
        self.commands = CommandSerializer(
            api,
            self.reconciler,
            timeout=config.command_timeout,
            settle_delay=config.command_settle_delay,
            clock=clock,
        )
        self.polling = PollingScheduler(
            api,
            self.reconciler,
            lambda: self.reconciler.device_ids,
            interval=config.polling_interval,
            status_timeout=config.status_timeout,
            clock=clock,
        )
        webhook_kwargs: dict[str, Any] = {}
        if listener_factory is not None:
            webhook_kwargs["listener_factory"] = listener_factory
        self.webhooks = WebhookLifecycleManager(api, self.reconciler, config.webhooks, **webhook_kwargs)

        self._metadata_cache: TtlCache[Device] = TtlCache(config.metadata_ttl)
        self._accessories: dict[str, LockAccessory] = {}
        self._remove_listener: Callable[[], None] | None = None
        self._started = False

    async def __aenter__(self) -> SeamLockPlatform:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def config(self) -> SeamConfig:
        return self._config

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def accessories(self) -> dict[str, LockAccessory]:
        return dict(self._accessories)

    def accessory(self, device_id: str) -> LockAccessory | None:
        return self._accessories.get(device_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        if self._client is not None:
            await self._client.open()
        self._remove_listener = self.reconciler.add_listener(self._route_change)

        for device_config in self._config.devices:
            try:
                await self._configure_device(device_config.device_id, device_config.name)
            except SeamError as exc:
                _logger.error("Failed to configure lock accessory for %s: %s", device_config.device_id, exc)

        self.polling.start()
        try:
            await self.webhooks.start()
        except SeamConfigError as exc:
            _logger.error("Webhooks not started: %s", exc)
        except OSError as exc:
            _logger.error("Webhook server could not start, continuing with polling only: %s", exc)
        self._started = True
        _logger.info("Seam platform started with %d lock(s)", len(self._accessories))

    async def _configure_device(self, device_id: str, configured_name: str | None) -> LockAccessory:
        device = await self.device_metadata(device_id)
        capabilities = DeviceCapabilities.from_device(device)
        self.reconciler.register_device(device_id, capabilities)
        accessory = LockAccessory(
            device_id,
            self.reconciler,
            self.commands,
            self._api,
            info=AccessoryInformation.from_device(device, configured_name),
            battery_ttl=self._config.battery_ttl,
            status_timeout=self._config.status_timeout,
            clock=self._clock,
        )
        self._accessories[device_id] = accessory
        _logger.info("Configured lock accessory: %s (%s)", accessory.name, device_id)
        if capabilities.supports_door_sensor:
            _logger.info("%s supports a door sensor", accessory.name)
        return accessory

    async def stop(self) -> None:
        """Shut down: polling, then webhooks, then in-flight commands, then the client."""
        await self.polling.stop()
        await self.webhooks.stop()
        await self.commands.drain()
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        if self._client is not None:
            await self._client.close()
        if self._started:
            _logger.info("Seam platform stopped")
        self._started = False

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    async def device_metadata(self, device_id: str) -> Device:
        """Device metadata through the metadata cache."""
        return await self._metadata_cache.get_or_refresh(device_id, lambda: self._api.get_device(device_id))

    async def refresh_capabilities(self, device_id: str) -> DeviceCapabilities:
        """Re-read device metadata and re-resolve its capabilities."""
        if not self.reconciler.has_device(device_id):
            raise SeamConfigError(f"device {device_id} is not configured")
        self._metadata_cache.invalidate(device_id)
        device = await self.device_metadata(device_id)
        capabilities = DeviceCapabilities.from_device(device)
        self.reconciler.update_capabilities(device_id, capabilities)
        return capabilities

    async def request_lock_change(self, device_id: str, desired_locked: bool) -> None:
        """Host entry point for lock/unlock requests."""
        accessory = self._accessories.get(device_id)
        if accessory is None:
            raise SeamConfigError(f"device {device_id} is not configured")
        await accessory.request_lock_change(desired_locked)

    def _route_change(self, device_id: str, field: StateField, value: Any) -> None:
        accessory = self._accessories.get(device_id)
        if accessory is not None:
            accessory.on_state_change(device_id, field, value)
