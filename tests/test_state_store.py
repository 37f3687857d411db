from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

from seamlock.models.device import DeviceCapabilities
from seamlock.state.events import StateField, StateUpdate, UpdateSource
from seamlock.state.policy import RejectReason
from seamlock.state.store import AppliedChange, Rejected, StateReconciler


def _reconciler(*, door_sensor: bool = False) -> StateReconciler:
    reconciler = StateReconciler()
    reconciler.register_device("d1", DeviceCapabilities(supports_door_sensor=door_sensor))
    return reconciler


def _update(source: UpdateSource, event_time: int, **fields: Any) -> StateUpdate:
    return StateUpdate.from_fields("d1", fields, source=source, event_time=event_time)


def test_registered_device_starts_with_defaults() -> None:
    state = _reconciler().get_state("d1")

    assert state.locked is True
    assert state.battery_level == 100
    assert state.low_battery is False
    assert state.door_open is False
    assert state.online is True
    assert state.last_event_time == 0
    assert state.command_in_flight is False


def test_newer_update_applies_and_advances_watermark() -> None:
    reconciler = _reconciler()

    result = reconciler.apply(_update(UpdateSource.POLLING, 1000, locked=False, battery_level=80))

    assert isinstance(result, AppliedChange)
    assert result.changed == {StateField.LOCKED: False, StateField.BATTERY_LEVEL: 80}
    state = reconciler.get_state("d1")
    assert state.locked is False
    assert state.battery_level == 80
    assert state.last_event_time == 1000


@pytest.mark.parametrize("source", [UpdateSource.POLLING, UpdateSource.WEBHOOK])
@pytest.mark.parametrize("event_time", [1000, 999, 1])
def test_update_at_or_before_watermark_is_rejected(source: UpdateSource, event_time: int) -> None:
    reconciler = _reconciler()
    reconciler.apply(_update(UpdateSource.POLLING, 1000, locked=False))

    result = reconciler.apply(_update(source, event_time, locked=True, online=False))

    assert isinstance(result, Rejected)
    assert result.reason == RejectReason.STALE
    state = reconciler.get_state("d1")
    assert state.locked is False
    assert state.online is True
    assert state.last_event_time == 1000


def test_command_update_wins_even_when_older_than_watermark() -> None:
    reconciler = _reconciler()
    reconciler.apply(_update(UpdateSource.POLLING, 2000, locked=False))

    result = reconciler.apply(_update(UpdateSource.COMMAND, 1500, locked=True))

    assert isinstance(result, AppliedChange)
    state = reconciler.get_state("d1")
    assert state.locked is True
    # The watermark never moves backwards.
    assert state.last_event_time == 2000


def test_in_flight_command_blocks_locked_but_applies_other_fields() -> None:
    reconciler = _reconciler(door_sensor=True)
    reconciler.mark_command_in_flight("d1", True)

    result = reconciler.apply(
        _update(UpdateSource.POLLING, 10, locked=False, battery_level=50, online=False, door_open=True)
    )

    assert isinstance(result, AppliedChange)
    assert result.changed == {StateField.BATTERY_LEVEL: 50, StateField.ONLINE: False, StateField.DOOR_OPEN: True}
    assert result.ignored == frozenset({StateField.LOCKED})
    state = reconciler.get_state("d1")
    assert state.locked is True
    assert state.last_event_time == 10


def test_in_flight_command_rejects_update_that_only_changes_locked() -> None:
    reconciler = _reconciler()
    reconciler.mark_command_in_flight("d1", True)

    result = reconciler.apply(_update(UpdateSource.WEBHOOK, 10, locked=False))

    assert isinstance(result, Rejected)
    assert result.reason == RejectReason.COMMAND_IN_FLIGHT
    assert reconciler.get_state("d1").last_event_time == 0


def test_in_flight_command_allows_matching_locked_value() -> None:
    reconciler = _reconciler()
    reconciler.mark_command_in_flight("d1", True)

    result = reconciler.apply(_update(UpdateSource.POLLING, 10, locked=True))

    assert isinstance(result, AppliedChange)
    assert result.changed == {}
    assert result.ignored == frozenset()


def test_command_update_applies_while_in_flight() -> None:
    reconciler = _reconciler()
    reconciler.mark_command_in_flight("d1", True)

    result = reconciler.apply(_update(UpdateSource.COMMAND, 10, locked=False))

    assert isinstance(result, AppliedChange)
    assert reconciler.get_state("d1").locked is False


def test_door_field_ignored_without_door_sensor() -> None:
    reconciler = _reconciler(door_sensor=False)

    result = reconciler.apply(_update(UpdateSource.WEBHOOK, 10, door_open=True))

    assert isinstance(result, AppliedChange)
    assert result.changed == {}
    assert result.ignored == frozenset({StateField.DOOR_OPEN})
    assert reconciler.get_state("d1").door_open is False


def test_door_field_applied_with_door_sensor() -> None:
    reconciler = _reconciler(door_sensor=True)

    reconciler.apply(_update(UpdateSource.WEBHOOK, 10, door_open=True))

    assert reconciler.get_state("d1").door_open is True


def test_low_battery_is_derived_from_battery_level() -> None:
    reconciler = _reconciler()

    low = reconciler.apply(_update(UpdateSource.POLLING, 10, battery_level=15))
    normal = reconciler.apply(_update(UpdateSource.POLLING, 20, battery_level=20))

    assert isinstance(low, AppliedChange)
    assert low.changed[StateField.LOW_BATTERY] is True
    assert isinstance(normal, AppliedChange)
    assert normal.changed[StateField.LOW_BATTERY] is False
    assert reconciler.get_state("d1").low_battery is False


def test_repeated_values_are_a_no_op_that_still_advances_watermark() -> None:
    reconciler = _reconciler()

    result = reconciler.apply(_update(UpdateSource.POLLING, 10, locked=True, online=True))

    assert isinstance(result, AppliedChange)
    assert result.changed == {}
    assert reconciler.get_state("d1").last_event_time == 10


def test_unknown_device_is_rejected() -> None:
    reconciler = _reconciler()

    result = reconciler.apply(
        StateUpdate.from_fields("other", {"locked": False}, source=UpdateSource.POLLING, event_time=1)
    )

    assert isinstance(result, Rejected)
    assert result.reason == RejectReason.UNKNOWN_DEVICE


def test_listeners_receive_each_changed_field() -> None:
    reconciler = _reconciler()
    seen: list[tuple[str, StateField, Any]] = []

    def broken(_device_id: str, _field: StateField, _value: Any) -> None:
        raise RuntimeError("listener bug")

    reconciler.add_listener(broken)
    remove = reconciler.add_listener(lambda device_id, field, value: seen.append((device_id, field, value)))

    reconciler.apply(_update(UpdateSource.WEBHOOK, 10, locked=False, battery_level=10))
    remove()
    reconciler.apply(_update(UpdateSource.WEBHOOK, 20, locked=True))

    assert seen == [
        ("d1", StateField.LOCKED, False),
        ("d1", StateField.BATTERY_LEVEL, 10),
        ("d1", StateField.LOW_BATTERY, True),
    ]


def test_get_state_returns_a_snapshot() -> None:
    reconciler = _reconciler()

    snapshot = reconciler.get_state("d1")
    snapshot.locked = False

    assert reconciler.get_state("d1").locked is True


def test_capabilities_change_only_through_explicit_update() -> None:
    reconciler = _reconciler(door_sensor=False)
    reconciler.apply(_update(UpdateSource.POLLING, 10, door_open=True))
    assert reconciler.get_state("d1").door_open is False
    assert reconciler.any_supports_door_sensor() is False

    reconciler.update_capabilities("d1", DeviceCapabilities(supports_door_sensor=True))
    reconciler.apply(_update(UpdateSource.POLLING, 20, door_open=True))

    assert reconciler.get_state("d1").door_open is True
    assert reconciler.any_supports_door_sensor() is True


def test_out_of_order_sources_scenario() -> None:
    reconciler = _reconciler()

    reconciler.apply(_update(UpdateSource.POLLING, 1000, locked=False))
    assert reconciler.get_state("d1").locked is False

    late_webhook = reconciler.apply(_update(UpdateSource.WEBHOOK, 900, locked=True))
    assert isinstance(late_webhook, Rejected)
    assert reconciler.get_state("d1").locked is False

    reconciler.apply(_update(UpdateSource.COMMAND, 1100, locked=True))
    state = reconciler.get_state("d1")
    assert state.locked is True
    assert state.last_event_time == 1100

    late_poll = reconciler.apply(_update(UpdateSource.POLLING, 1050, locked=False))
    assert isinstance(late_poll, Rejected)
    assert reconciler.get_state("d1").locked is True


@pytest.mark.parametrize(
    "fields",
    [
        {"battery_level": 101},
        {"battery_level": -1},
        {"battery_level": 50.5},
        {"locked": "yes"},
        {"online": 1},
        {"low_battery": True},
    ],
)
def test_invalid_update_fields_are_refused(fields: dict[str, Any]) -> None:
    with pytest.raises((ValidationError, ValueError)):
        StateUpdate.from_fields("d1", fields, source=UpdateSource.POLLING, event_time=1)


def test_blank_device_id_is_refused() -> None:
    with pytest.raises(ValidationError):
        StateUpdate(device_id="  ", fields={}, source=UpdateSource.POLLING)
