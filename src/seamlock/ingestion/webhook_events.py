"""Webhook event ingestion helpers.

This module translates decoded webhook events into normalized state updates.
Event types that carry no state (tamper, access denied, unknown types) map
to ``None`` and are only logged.
"""

from __future__ import annotations

import logging
from typing import Any

from seamlock import _constants as c
from seamlock.models.webhook import WebhookEvent
from seamlock.state.events import StateField, StateUpdate, UpdateSource

_logger = logging.getLogger(__name__)

_STATIC_FIELDS: dict[str, dict[StateField, Any]] = {
    c.EVENT_LOCK_LOCKED: {StateField.LOCKED: True},
    c.EVENT_LOCK_UNLOCKED: {StateField.LOCKED: False},
    c.EVENT_DEVICE_CONNECTED: {StateField.ONLINE: True},
    c.EVENT_DEVICE_DISCONNECTED: {StateField.ONLINE: False},
    c.EVENT_DEVICE_DOOR_OPENED: {StateField.DOOR_OPEN: True},
    c.EVENT_DEVICE_DOOR_CLOSED: {StateField.DOOR_OPEN: False},
}

_BATTERY_EVENTS = frozenset({c.EVENT_DEVICE_LOW_BATTERY, c.EVENT_DEVICE_BATTERY_STATUS_CHANGED})
_DOOR_EVENTS = frozenset(c.DOOR_EVENT_TYPES)


def fields_for_event(event: WebhookEvent, *, supports_door_sensor: bool) -> dict[StateField, Any]:
    """Map an event to the state fields it sets (possibly none)."""
    event_type = event.event_type
    device_id = event.device_id

    if event_type in _DOOR_EVENTS and not supports_door_sensor:
        _logger.debug("Device %s %s event ignored (door sensor not supported)", device_id, event_type)
        return {}

    static = _STATIC_FIELDS.get(event_type)
    if static is not None:
        if event_type == c.EVENT_DEVICE_DISCONNECTED:
            _logger.warning("Device %s disconnected", device_id)
        return dict(static)

    if event_type in _BATTERY_EVENTS:
        level = event.battery_percent()
        if event_type == c.EVENT_DEVICE_LOW_BATTERY:
            _logger.warning("Device %s has low battery", device_id)
        if level is None:
            _logger.debug("Battery event %s for %s carried no battery level", event_type, device_id)
            return {}
        _logger.debug("Device %s battery level updated: %d%%", device_id, level)
        return {StateField.BATTERY_LEVEL: level}

    if event_type == c.EVENT_DEVICE_TAMPERED:
        _logger.warning("Device %s tampering detected!", device_id)
    elif event_type == c.EVENT_LOCK_ACCESS_DENIED:
        _logger.warning("Device %s access denied", device_id)
    else:
        _logger.debug("Unhandled webhook event type: %s", event_type)
    return {}


def build_update_from_event(
    event: WebhookEvent,
    *,
    received_at_ms: int,
    supports_door_sensor: bool,
) -> StateUpdate | None:
    """Build a webhook-sourced update, or ``None`` for state-less events."""
    if not event.device_id:
        _logger.debug("Webhook event %s carried no device_id", event.event_type)
        return None
    fields = fields_for_event(event, supports_door_sensor=supports_door_sensor)
    if not fields:
        return None
    return StateUpdate(
        device_id=event.device_id,
        fields=fields,
        event_time=event.event_time_ms(received_at_ms),
        source=UpdateSource.WEBHOOK,
    )
