"""Device, lock status and capability models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from seamlock.ingestion.normalize import normalize_battery_level, safe_bool
from seamlock.models._base import SeamBaseModel

DOOR_SENSOR_CAPABILITY = "door_sensor"


class DeviceProperties(SeamBaseModel):
    """Subset of ``device.properties`` used by seamlock."""

    name: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    firmware_version: str | None = None
    locked: bool | None = None
    online: bool | None = None
    battery_level: int | None = None
    """Battery level as a 0-100 percentage."""
    door_open: bool | None = None
    has_door_sensor: bool | None = None

    @field_validator("locked", "online", "door_open", "has_door_sensor", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> bool | None:
        return safe_bool(value)

    @field_validator("battery_level", mode="before")
    @classmethod
    def _coerce_battery(cls, value: Any) -> int | None:
        return normalize_battery_level(value)

    @field_validator("manufacturer", "model", "firmware_version", "name", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str | None:
        # `model` is sometimes an object ({"display_name": ...}) on newer API versions.
        if isinstance(value, dict):
            value = value.get("display_name") or value.get("name")
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class Device(SeamBaseModel):
    """A device registered with the provider."""

    device_id: str
    device_type: str = ""
    display_name: str | None = None
    properties: DeviceProperties = Field(default_factory=DeviceProperties)
    capabilities_supported: list[str] = Field(default_factory=list)

    def resolved_name(self, configured: str | None = None) -> str:
        return configured or self.properties.name or self.display_name or "Smart Lock"


class LockStatus(BaseModel):
    """Observable lock state as reported by a status read.

    Only fields the provider actually returned are set; the rest stay
    ``None`` and are not part of :meth:`fields`.
    """

    model_config = ConfigDict(frozen=True)

    device_id: str
    locked: bool | None = None
    online: bool | None = None
    battery_level: int | None = Field(default=None, ge=0, le=100)
    door_open: bool | None = None

    @classmethod
    def from_device(cls, device: Device) -> LockStatus:
        props = device.properties
        return cls(
            device_id=device.device_id,
            locked=props.locked,
            online=props.online,
            battery_level=props.battery_level,
            door_open=props.door_open,
        )

    def fields(self) -> dict[str, Any]:
        """Reported fields, keyed by state field name."""
        return self.model_dump(exclude={"device_id"}, exclude_none=True)


class DeviceCapabilities(BaseModel):
    """Capability set resolved once when a device is registered."""

    model_config = ConfigDict(frozen=True)

    supports_door_sensor: bool = False

    @classmethod
    def from_device(cls, device: Device) -> DeviceCapabilities:
        props = device.properties
        supports_door = (
            DOOR_SENSOR_CAPABILITY in device.capabilities_supported
            or bool(props.has_door_sensor)
            or props.door_open is not None
        )
        return cls(supports_door_sensor=supports_door)
