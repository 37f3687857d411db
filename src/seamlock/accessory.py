"""Accessory projection of reconciled lock state.

Values are expressed in HomeKit characteristic terms so a host bridge can
mirror them without further translation.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from collections.abc import Callable
from typing import Any, Protocol

from seamlock._cache import TtlCache
from seamlock.client import LockApi
from seamlock.commands import CommandSerializer
from seamlock.exceptions import SeamError
from seamlock.ingestion.normalize import now_ms
from seamlock.models.device import Device
from seamlock.state.events import StateField, StateUpdate, UpdateSource
from seamlock.state.store import StateReconciler

_logger = logging.getLogger(__name__)


class LockState(enum.IntEnum):
    """``LockCurrentState`` / ``LockTargetState`` values."""

    UNSECURED = 0
    SECURED = 1


class StatusLowBattery(enum.IntEnum):
    NORMAL = 0
    LOW = 1


class ChargingState(enum.IntEnum):
    NOT_CHARGING = 0
    CHARGING = 1
    NOT_CHARGEABLE = 2


class ContactSensorState(enum.IntEnum):
    CONTACT_DETECTED = 0
    CONTACT_NOT_DETECTED = 1


class Characteristic(enum.StrEnum):
    LOCK_CURRENT_STATE = "LockCurrentState"
    LOCK_TARGET_STATE = "LockTargetState"
    BATTERY_LEVEL = "BatteryLevel"
    STATUS_LOW_BATTERY = "StatusLowBattery"
    CHARGING_STATE = "ChargingState"
    CONTACT_SENSOR_STATE = "ContactSensorState"
    STATUS_ACTIVE = "StatusActive"


CharacteristicCallback = Callable[[Characteristic, Any], None]


def _lock_state(locked: bool) -> LockState:
    return LockState.SECURED if locked else LockState.UNSECURED


def _contact_state(door_open: bool) -> ContactSensorState:
    return ContactSensorState.CONTACT_NOT_DETECTED if door_open else ContactSensorState.CONTACT_DETECTED


@dataclasses.dataclass(frozen=True)
class AccessoryInformation:
    name: str
    serial_number: str
    manufacturer: str = "Seam"
    model: str = "Smart Lock"
    firmware_revision: str = "1.0.0"

    @classmethod
    def from_device(cls, device: Device, configured_name: str | None = None) -> AccessoryInformation:
        props = device.properties
        return cls(
            name=device.resolved_name(configured_name),
            serial_number=device.device_id,
            manufacturer=props.manufacturer or "Seam",
            model=props.model or "Smart Lock",
            firmware_revision=props.firmware_version or "1.0.0",
        )


class AccessoryProjection(Protocol):
    """Receives reconciled state changes for exposure to a host."""

    def on_state_change(self, device_id: str, field: StateField, value: Any) -> None: ...


class LockAccessory:
    """Projection of one lock, with a contact sensor when the device has one."""

    def __init__(
        self,
        device_id: str,
        reconciler: StateReconciler,
        commands: CommandSerializer,
        api: LockApi,
        *,
        info: AccessoryInformation | None = None,
        battery_ttl: float = 60.0,
        status_timeout: float | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.device_id = device_id
        self.info = info or AccessoryInformation(name="Smart Lock", serial_number=device_id)
        self._reconciler = reconciler
        self._commands = commands
        self._api = api
        self._status_timeout = status_timeout
        self._clock = clock
        self._battery_cache: TtlCache[int] = TtlCache(battery_ttl)
        self._subscribers: list[CharacteristicCallback] = []
        self._target_locked = reconciler.get_state(device_id).locked

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def has_contact_sensor(self) -> bool:
        return self._reconciler.get_state(self.device_id).supports_door_sensor

    @property
    def target_locked(self) -> bool:
        return self._target_locked

    def subscribe(self, callback: CharacteristicCallback) -> Callable[[], None]:
        """Register a characteristic push callback; returns a remover."""
        self._subscribers.append(callback)

        def _remove() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _remove

    def _push(self, characteristic: Characteristic, value: Any) -> None:
        for callback in list(self._subscribers):
            try:
                callback(characteristic, value)
            except Exception:
                _logger.debug("Characteristic subscriber failed for %s", characteristic, exc_info=True)

    def characteristic_values(self) -> dict[Characteristic, Any]:
        """Current characteristic values derived from reconciled state."""
        state = self._reconciler.get_state(self.device_id)
        values: dict[Characteristic, Any] = {
            Characteristic.LOCK_CURRENT_STATE: _lock_state(state.locked),
            Characteristic.LOCK_TARGET_STATE: _lock_state(self._target_locked),
            Characteristic.BATTERY_LEVEL: state.battery_level,
            Characteristic.STATUS_LOW_BATTERY: StatusLowBattery.LOW if state.low_battery else StatusLowBattery.NORMAL,
            Characteristic.CHARGING_STATE: ChargingState.NOT_CHARGEABLE,
            Characteristic.STATUS_ACTIVE: state.online,
        }
        if state.supports_door_sensor:
            values[Characteristic.CONTACT_SENSOR_STATE] = _contact_state(state.door_open)
        return values

    def on_state_change(self, device_id: str, field: StateField, value: Any) -> None:
        if device_id != self.device_id:
            return
        if field == StateField.LOCKED:
            self._target_locked = value
            self._push(Characteristic.LOCK_CURRENT_STATE, _lock_state(value))
            self._push(Characteristic.LOCK_TARGET_STATE, _lock_state(value))
        elif field == StateField.BATTERY_LEVEL:
            self._push(Characteristic.BATTERY_LEVEL, value)
        elif field == StateField.LOW_BATTERY:
            self._push(Characteristic.STATUS_LOW_BATTERY, StatusLowBattery.LOW if value else StatusLowBattery.NORMAL)
        elif field == StateField.DOOR_OPEN:
            if self.has_contact_sensor:
                self._push(Characteristic.CONTACT_SENSOR_STATE, _contact_state(value))
        elif field == StateField.ONLINE:
            self._push(Characteristic.STATUS_ACTIVE, value)

    async def request_lock_change(self, desired_locked: bool) -> None:
        """Set the target state and run the command.

        On failure the target is rolled back to the reconciled value and the
        error propagates.
        """
        self._target_locked = desired_locked
        self._push(Characteristic.LOCK_TARGET_STATE, _lock_state(desired_locked))
        try:
            await self._commands.execute(self.device_id, desired_locked)
        except SeamError:
            reconciled = self._reconciler.get_state(self.device_id).locked
            self._target_locked = reconciled
            self._push(Characteristic.LOCK_TARGET_STATE, _lock_state(reconciled))
            raise

    async def battery_level(self) -> int:
        """Battery percentage as reconciled, refreshing from the API at most once per TTL.

        A fresh reading is fed to the reconciler as a polling update and only
        counts if the reconciler accepts it.
        """
        try:
            await self._battery_cache.get_or_refresh(self.device_id, self._read_battery)
        except SeamError as exc:
            _logger.debug("Battery read for %s failed, using reconciled value: %s", self.device_id, exc)
        return self._reconciler.get_state(self.device_id).battery_level

    async def _read_battery(self) -> int:
        status = await self._api.get_lock_status(self.device_id, timeout=self._status_timeout)
        if status.battery_level is None:
            return self._reconciler.get_state(self.device_id).battery_level
        self._reconciler.apply(
            StateUpdate(
                device_id=self.device_id,
                fields={StateField.BATTERY_LEVEL: status.battery_level},
                event_time=self._clock(),
                source=UpdateSource.POLLING,
            )
        )
        return status.battery_level
