"""Deterministic update arbitration policy.

This module contains *no* payload parsing. The ingestion boundary is
responsible for producing normalized updates and event times.
"""

from __future__ import annotations

from enum import StrEnum

from seamlock.state.events import StateField, UpdateSource


class RejectReason(StrEnum):
    STALE = "stale"
    COMMAND_IN_FLIGHT = "command_in_flight"
    UNKNOWN_DEVICE = "unknown_device"


#: Fields a command owns while it is in flight.
COMMAND_OWNED_FIELDS: frozenset[StateField] = frozenset({StateField.LOCKED})


def is_stale(*, incoming_time: int, watermark: int, source: UpdateSource) -> bool:
    """An update at or before the watermark is stale, unless it is a command.

    A command result is ground truth for the field it sets, so it always
    wins regardless of timestamp.
    """
    if source == UpdateSource.COMMAND:
        return False
    return incoming_time <= watermark


def suppressed_fields(
    fields: set[StateField],
    *,
    command_in_flight: bool,
    source: UpdateSource,
) -> set[StateField]:
    """Fields of an update that must not be applied right now.

    While a command owns the device, polling and webhook updates may not
    touch lock-related fields; everything else still applies.
    """
    if not command_in_flight or source == UpdateSource.COMMAND:
        return set()
    return fields & COMMAND_OWNED_FIELDS
