"""Webhook subscription and webhook event payload models."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from seamlock.ingestion.normalize import normalize_battery_level, parse_event_time_ms
from seamlock.models._base import SeamBaseModel


class Webhook(SeamBaseModel):
    """A webhook subscription registered with the provider."""

    webhook_id: str
    url: str = ""
    event_types: list[str] = Field(default_factory=list)
    secret: str | None = Field(default=None, repr=False)


class WebhookEvent(SeamBaseModel):
    """An event delivered to the webhook endpoint."""

    event_type: str
    device_id: str | None = None
    event_id: str | None = None
    occurred_at: str | None = None
    battery_level: Any = None
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("event_type")
    @classmethod
    def _require_event_type(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("event_type must be non-empty")
        return stripped

    @field_validator("occurred_at", mode="before")
    @classmethod
    def _stringify_occurred_at(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def event_time_ms(self, received_at_ms: int) -> int:
        """Occurrence time in epoch ms, falling back to *received_at_ms*."""
        parsed = parse_event_time_ms(self.occurred_at)
        return parsed if parsed is not None else received_at_ms

    def battery_percent(self) -> int | None:
        """Battery level carried by the event, top level or under ``data``."""
        value: Any = self.battery_level
        if value is None:
            value = self.data.get("battery_level")
        return normalize_battery_level(value)
