"""Per-device authoritative lock state.

The reconciler is the only component allowed to mutate device state. It is
not thread-safe: all calls are expected to come from one event loop, which
gives the one-writer-per-device discipline without explicit locking.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from seamlock._constants import LOW_BATTERY_THRESHOLD
from seamlock.models.device import DeviceCapabilities
from seamlock.state.events import StateField, StateUpdate, UpdateSource
from seamlock.state.policy import RejectReason, is_stale, suppressed_fields

_logger = logging.getLogger(__name__)

StateListener = Callable[[str, StateField, Any], None]


class DeviceState(BaseModel):
    """Reconciled state of one lock."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    device_id: str
    locked: bool = True
    battery_level: int = Field(default=100, ge=0, le=100)
    low_battery: bool = False
    door_open: bool = False
    online: bool = True
    last_event_time: int = 0
    """Watermark (epoch ms) of the newest accepted update."""
    supports_door_sensor: bool = False
    command_in_flight: bool = False


class AppliedChange(BaseModel):
    """Result of an accepted update.

    ``changed`` may be empty: re-applying known values is a valid no-op.
    """

    model_config = ConfigDict(frozen=True)

    device_id: str
    source: UpdateSource
    event_time: int
    changed: dict[StateField, Any] = Field(default_factory=dict)
    ignored: frozenset[StateField] = frozenset()
    """Fields present in the update that were not applied."""


class Rejected(BaseModel):
    """Result of a discarded update."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    source: UpdateSource
    reason: RejectReason


class StateReconciler:
    """Arbitrates polling, webhook, and command updates per device.

    Rules, in order:

    1. Updates at or before the device watermark are rejected, except
       command results which always win.
    2. Door-sensor fields are dropped for devices without a door sensor.
    3. While a command is in flight, polling/webhook updates may not change
       ``locked``; their other fields still apply.
    4. Accepted updates set only the fields they carry and advance the
       watermark; listeners are notified for every value that changed.
    """

    def __init__(self) -> None:
        self._devices: dict[str, DeviceState] = {}
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_device(
        self,
        device_id: str,
        capabilities: DeviceCapabilities | None = None,
        **initial: Any,
    ) -> DeviceState:
        """Register *device_id*; capabilities are fixed from here on."""
        caps = capabilities or DeviceCapabilities()
        state = DeviceState(device_id=device_id, supports_door_sensor=caps.supports_door_sensor, **initial)
        state.low_battery = state.battery_level < LOW_BATTERY_THRESHOLD
        self._devices[device_id] = state
        return state.model_copy()

    def update_capabilities(self, device_id: str, capabilities: DeviceCapabilities) -> None:
        """Explicitly re-resolve the capability set of a registered device."""
        state = self._require(device_id)
        state.supports_door_sensor = capabilities.supports_door_sensor

    def unregister_device(self, device_id: str) -> None:
        self._devices.pop(device_id, None)

    def has_device(self, device_id: str) -> bool:
        return device_id in self._devices

    @property
    def device_ids(self) -> list[str]:
        return list(self._devices)

    def get_state(self, device_id: str) -> DeviceState:
        """Return a snapshot of the state of *device_id*."""
        return self._require(device_id).model_copy()

    def any_supports_door_sensor(self) -> bool:
        return any(state.supports_door_sensor for state in self._devices.values())

    def _require(self, device_id: str) -> DeviceState:
        state = self._devices.get(device_id)
        if state is None:
            raise KeyError(device_id)
        return state

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self, device_id: str, changed: dict[StateField, Any]) -> None:
        for field, value in changed.items():
            for listener in list(self._listeners):
                try:
                    listener(device_id, field, value)
                except Exception:
                    _logger.debug("State listener failed for %s.%s", device_id, field, exc_info=True)

    # ------------------------------------------------------------------
    # Command ownership
    # ------------------------------------------------------------------

    def mark_command_in_flight(self, device_id: str, in_flight: bool) -> None:
        """Set or clear command ownership. Reserved for the command serializer."""
        self._require(device_id).command_in_flight = in_flight

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def apply(self, update: StateUpdate) -> AppliedChange | Rejected:
        """Apply *update* and return what changed, or why it was discarded."""
        state = self._devices.get(update.device_id)
        if state is None:
            _logger.debug("Update for unknown device %s from %s ignored", update.device_id, update.source)
            return Rejected(device_id=update.device_id, source=update.source, reason=RejectReason.UNKNOWN_DEVICE)

        if is_stale(incoming_time=update.event_time, watermark=state.last_event_time, source=update.source):
            _logger.debug(
                "%s update for %s at %d is not newer than %d, skipping",
                update.source,
                update.device_id,
                update.event_time,
                state.last_event_time,
            )
            return Rejected(device_id=update.device_id, source=update.source, reason=RejectReason.STALE)

        fields = dict(update.fields)
        ignored: set[StateField] = set()

        if StateField.DOOR_OPEN in fields and not state.supports_door_sensor:
            fields.pop(StateField.DOOR_OPEN)
            ignored.add(StateField.DOOR_OPEN)

        would_change = {field for field, value in fields.items() if getattr(state, field.value) != value}
        blocked = suppressed_fields(would_change, command_in_flight=state.command_in_flight, source=update.source)
        if blocked:
            for field in blocked:
                fields.pop(field)
            ignored |= blocked
            if not fields:
                _logger.debug(
                    "%s update for %s blocked while a command is in flight: %s",
                    update.source,
                    update.device_id,
                    sorted(blocked),
                )
                return Rejected(
                    device_id=update.device_id,
                    source=update.source,
                    reason=RejectReason.COMMAND_IN_FLIGHT,
                )

        changed: dict[StateField, Any] = {}
        for field, value in fields.items():
            if getattr(state, field.value) != value:
                setattr(state, field.value, value)
                changed[field] = value

        if StateField.BATTERY_LEVEL in changed:
            low = state.battery_level < LOW_BATTERY_THRESHOLD
            if low != state.low_battery:
                state.low_battery = low
                changed[StateField.LOW_BATTERY] = low

        state.last_event_time = max(state.last_event_time, update.event_time)

        if changed:
            _logger.debug("%s update for %s changed %s", update.source, update.device_id, changed)
        self._notify(update.device_id, changed)

        return AppliedChange(
            device_id=update.device_id,
            source=update.source,
            event_time=update.event_time,
            changed=changed,
            ignored=frozenset(ignored),
        )
