"""High-level async client for the Seam REST API."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import aiohttp

from seamlock._api import devices as _devices_api
from seamlock._api import locks as _locks_api
from seamlock._api import webhooks as _webhooks_api
from seamlock._transport import HttpTransport, Transport
from seamlock.config import SeamConfig
from seamlock.exceptions import SeamError
from seamlock.models.action_attempt import ActionAttempt
from seamlock.models.device import Device, LockStatus
from seamlock.models.webhook import Webhook

_logger = logging.getLogger(__name__)


class LockApi(Protocol):
    """Operations the reconciliation core consumes from the remote API."""

    async def get_device(self, device_id: str) -> Device: ...

    async def list_devices(self) -> list[Device]: ...

    async def get_lock_status(self, device_id: str, *, timeout: float | None = None) -> LockStatus: ...

    async def lock_door(self, device_id: str, *, timeout: float | None = None) -> ActionAttempt: ...

    async def unlock_door(self, device_id: str, *, timeout: float | None = None) -> ActionAttempt: ...

    async def list_webhooks(self) -> list[Webhook]: ...

    async def create_webhook(self, url: str, event_types: Sequence[str]) -> Webhook: ...

    async def delete_webhook(self, webhook_id: str) -> None: ...


class SeamClient:
    """Async client for the Seam API.

    Usage::

        async with SeamClient(config) as client:
            device = await client.get_device("device-id")
    """

    def __init__(
        self,
        config: SeamConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SeamClient:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def open(self) -> None:
        if self._transport is not None:
            return
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = HttpTransport(
            self._http_session,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            api_version=self._config.api_version,
            default_timeout=self._config.status_timeout,
        )
        _logger.debug("Seam API client initialized for %s", self._config.base_url)

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise SeamError("Client not initialized. Use 'async with SeamClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    async def get_device(self, device_id: str) -> Device:
        """Fetch device information and properties."""
        return await _devices_api.fetch_device(self._require_transport(), device_id)

    async def list_devices(self) -> list[Device]:
        """List all devices on the workspace."""
        return await _devices_api.fetch_devices(self._require_transport())

    async def get_lock_status(self, device_id: str, *, timeout: float | None = None) -> LockStatus:
        """Read the current lock status (only reported fields are set)."""
        return await _devices_api.fetch_lock_status(self._require_transport(), device_id, timeout=timeout)

    # ------------------------------------------------------------------
    # Lock commands
    # ------------------------------------------------------------------

    async def lock_door(self, device_id: str, *, timeout: float | None = None) -> ActionAttempt:
        """Lock the device."""
        return await _locks_api.lock_door(self._require_transport(), device_id, timeout=timeout)

    async def unlock_door(self, device_id: str, *, timeout: float | None = None) -> ActionAttempt:
        """Unlock the device."""
        return await _locks_api.unlock_door(self._require_transport(), device_id, timeout=timeout)

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def list_webhooks(self) -> list[Webhook]:
        return await _webhooks_api.list_webhooks(self._require_transport())

    async def create_webhook(self, url: str, event_types: Sequence[str]) -> Webhook:
        return await _webhooks_api.create_webhook(self._require_transport(), url, event_types)

    async def delete_webhook(self, webhook_id: str) -> None:
        await _webhooks_api.delete_webhook(self._require_transport(), webhook_id)
