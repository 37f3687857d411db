"""Normalized state updates.

All ingestion paths (polling, webhook, command) convert their inputs into
these events. Only the reconciler is allowed to apply them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from seamlock.ingestion.normalize import now_ms


class UpdateSource(StrEnum):
    POLLING = "polling"
    WEBHOOK = "webhook"
    COMMAND = "command"


class StateField(StrEnum):
    LOCKED = "locked"
    BATTERY_LEVEL = "battery_level"
    LOW_BATTERY = "low_battery"
    DOOR_OPEN = "door_open"
    ONLINE = "online"


#: Fields an update may carry. ``low_battery`` is derived, never supplied.
UPDATABLE_FIELDS: frozenset[StateField] = frozenset(
    {StateField.LOCKED, StateField.BATTERY_LEVEL, StateField.DOOR_OPEN, StateField.ONLINE}
)


class StateUpdate(BaseModel):
    """A partial update to apply to one device's state."""

    model_config = ConfigDict(frozen=True)

    device_id: str = Field(..., description="Provider device id")
    fields: dict[StateField, Any] = Field(default_factory=dict, description="Only present fields are considered")
    event_time: int = Field(default_factory=now_ms, description="Event time, epoch milliseconds")
    source: UpdateSource

    @field_validator("device_id")
    @classmethod
    def _normalize_device_id(cls, value: str) -> str:
        device_id = value.strip()
        if not device_id:
            raise ValueError("device_id must be non-empty")
        return device_id

    @model_validator(mode="after")
    def _check_fields(self) -> StateUpdate:
        unknown = set(self.fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"fields not updatable: {sorted(unknown)}")
        for key in (StateField.LOCKED, StateField.DOOR_OPEN, StateField.ONLINE):
            if key in self.fields and not isinstance(self.fields[key], bool):
                raise ValueError(f"{key} must be a bool")
        level = self.fields.get(StateField.BATTERY_LEVEL)
        if level is not None and (isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= 100):
            raise ValueError("battery_level must be an int in 0..100")
        return self

    @classmethod
    def from_fields(
        cls,
        device_id: str,
        fields: dict[str, Any],
        *,
        source: UpdateSource,
        event_time: int | None = None,
    ) -> StateUpdate:
        """Build an update from a plain ``{field_name: value}`` mapping."""
        return cls(
            device_id=device_id,
            fields={StateField(key): value for key, value in fields.items()},
            source=source,
            event_time=event_time if event_time is not None else now_ms(),
        )
