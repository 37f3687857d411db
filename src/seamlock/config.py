"""Platform configuration for seamlock."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from seamlock._constants import (
    API_VERSION,
    BASE_URL,
    COMMAND_SETTLE_DELAY,
    COMMAND_TIMEOUT,
    DEFAULT_POLLING_INTERVAL,
    DEFAULT_WEBHOOK_PORT,
    STATUS_TIMEOUT,
)
from seamlock.exceptions import SeamConfigError

_logger = logging.getLogger(__name__)


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return _env_bool(str(value), default)


@dataclasses.dataclass(frozen=True)
class DeviceConfig:
    """A configured lock device.

    Parameters
    ----------
    device_id : str
        Provider device identifier.
    name : str or None
        Optional display name; falls back to the name reported by the
        provider.
    """

    device_id: str
    name: str | None = None


@dataclasses.dataclass(frozen=True)
class WebhookConfig:
    """Webhook receiver configuration.

    Parameters
    ----------
    enabled : bool
        Whether the webhook receiver should run.
    url : str or None
        Externally reachable origin (e.g. ``"https://home.example.com"``).
        Required when ``enabled`` is true. The generated endpoint path is
        appended to it.
    port : int
        Local port the HTTP listener binds to.
    host : str
        Local interface the HTTP listener binds to.
    """

    enabled: bool = False
    url: str | None = None
    port: int = DEFAULT_WEBHOOK_PORT
    host: str = "0.0.0.0"

    def __post_init__(self) -> None:
        if self.url is not None:
            stripped = self.url.strip().rstrip("/")
            object.__setattr__(self, "url", stripped or None)


@dataclasses.dataclass(frozen=True)
class SeamConfig:
    """Platform configuration.

    Parameters
    ----------
    api_key : str
        Seam API key, passed as a bearer token.
    devices : tuple[DeviceConfig, ...]
        Devices to mirror.
    polling_interval : float
        Seconds between status polls, applied to all devices.
    webhooks : WebhookConfig
        Webhook receiver settings.
    debug : bool
        Verbose logging only; never changes behaviour.
    base_url : str
        API base URL.
    api_version : str
        Value of the ``seam-api-version`` header.
    status_timeout : float
        Timeout for a single status read.
    command_timeout : float
        Timeout for a lock/unlock command.
    command_settle_delay : float
        Seconds a device stays command-owned after a successful command.
    metadata_ttl : float
        Time-to-live of cached device metadata.
    battery_ttl : float
        Time-to-live of the battery read-through cache.
    """

    api_key: str
    devices: tuple[DeviceConfig, ...] = ()
    polling_interval: float = DEFAULT_POLLING_INTERVAL
    webhooks: WebhookConfig = dataclasses.field(default_factory=WebhookConfig)
    debug: bool = False
    base_url: str = BASE_URL
    api_version: str = API_VERSION
    status_timeout: float = STATUS_TIMEOUT
    command_timeout: float = COMMAND_TIMEOUT
    command_settle_delay: float = COMMAND_SETTLE_DELAY
    metadata_ttl: float = 300.0
    battery_ttl: float = 60.0

    def __post_init__(self) -> None:
        if not self.api_key:
            raise SeamConfigError("Seam API key is required in configuration")
        if not self.devices:
            raise SeamConfigError("At least one device must be configured")
        if self.polling_interval <= 0:
            raise SeamConfigError(f"polling interval must be positive, got {self.polling_interval}")
        object.__setattr__(self, "devices", tuple(self.devices))

    @property
    def device_ids(self) -> list[str]:
        return [device.device_id for device in self.devices]

    def device(self, device_id: str) -> DeviceConfig | None:
        for device in self.devices:
            if device.device_id == device_id:
                return device
        return None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], **overrides: Any) -> SeamConfig:
        """Create configuration from a host-style config document.

        Accepted keys: ``apiKey``, ``devices`` (list of ``{deviceId, name}``),
        ``polling.interval``, ``webhooks.{enabled,url,port}`` and ``debug``.
        Device entries without ``deviceId`` are skipped with a warning.
        """
        if not isinstance(mapping, Mapping):
            raise SeamConfigError("No configuration found for platform")

        devices: list[DeviceConfig] = []
        raw_devices = mapping.get("devices")
        if raw_devices is not None and not isinstance(raw_devices, list):
            raise SeamConfigError("'devices' must be a list")
        for entry in raw_devices or []:
            device_id = entry.get("deviceId") if isinstance(entry, Mapping) else None
            if not device_id:
                _logger.warning("Device configuration missing deviceId, skipping")
                continue
            devices.append(DeviceConfig(device_id=str(device_id), name=entry.get("name") or None))

        config_kwargs: dict[str, Any] = {
            "api_key": str(mapping.get("apiKey") or ""),
            "devices": tuple(devices),
            "debug": _as_bool(mapping.get("debug"), False),
        }

        polling = mapping.get("polling")
        if isinstance(polling, Mapping) and polling.get("interval") is not None:
            try:
                config_kwargs["polling_interval"] = float(polling["interval"])
            except (TypeError, ValueError) as exc:
                raise SeamConfigError(f"invalid polling interval: {polling['interval']!r}") from exc

        webhooks = mapping.get("webhooks")
        if isinstance(webhooks, Mapping):
            try:
                port = int(webhooks.get("port") or DEFAULT_WEBHOOK_PORT)
            except (TypeError, ValueError) as exc:
                raise SeamConfigError(f"invalid webhook port: {webhooks.get('port')!r}") from exc
            config_kwargs["webhooks"] = WebhookConfig(
                enabled=_as_bool(webhooks.get("enabled"), False),
                url=webhooks.get("url") or None,
                port=port,
            )

        config_kwargs.update(overrides)
        return cls(**config_kwargs)

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> SeamConfig:
        """Load a JSON config document from *path*."""
        try:
            document = json.loads(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise SeamConfigError(f"cannot read config file {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise SeamConfigError(f"config file {path} is not valid JSON: {exc}") from exc
        return cls.from_mapping(document, **overrides)

    @classmethod
    def from_env(cls, **overrides: Any) -> SeamConfig:
        """Create configuration from environment variables.

        Reads ``SEAM_API_KEY``, ``SEAM_DEVICE_IDS`` (comma separated) and the
        optional ``SEAM_POLLING_INTERVAL``, ``SEAM_WEBHOOKS_ENABLED``,
        ``SEAM_WEBHOOK_URL``, ``SEAM_WEBHOOK_PORT`` and ``SEAM_DEBUG``.
        Explicit keyword arguments override environment values.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {"api_key": env.get("SEAM_API_KEY", "")}

        device_ids = env.get("SEAM_DEVICE_IDS")
        if device_ids is not None:
            config_kwargs["devices"] = tuple(
                DeviceConfig(device_id=item.strip()) for item in device_ids.split(",") if item.strip()
            )

        interval_env = env.get("SEAM_POLLING_INTERVAL")
        if interval_env is not None and "polling_interval" not in overrides:
            try:
                config_kwargs["polling_interval"] = float(interval_env)
            except ValueError as exc:
                raise SeamConfigError(f"invalid SEAM_POLLING_INTERVAL: {interval_env!r}") from exc

        if "webhooks" not in overrides:
            port_env = env.get("SEAM_WEBHOOK_PORT")
            try:
                port = int(port_env) if port_env else DEFAULT_WEBHOOK_PORT
            except ValueError as exc:
                raise SeamConfigError(f"invalid SEAM_WEBHOOK_PORT: {port_env!r}") from exc
            config_kwargs["webhooks"] = WebhookConfig(
                enabled=_env_bool(env.get("SEAM_WEBHOOKS_ENABLED"), False),
                url=env.get("SEAM_WEBHOOK_URL") or None,
                port=port,
            )

        if "debug" not in overrides:
            config_kwargs["debug"] = _env_bool(env.get("SEAM_DEBUG"), False)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
