from __future__ import annotations

import asyncio
import itertools
import logging

import pytest
from _fakes import FakeLockApi

from seamlock.commands import CommandSerializer
from seamlock.exceptions import SeamResponseParseError, SeamTransportError
from seamlock.ingestion.polling import PollingScheduler
from seamlock.models.device import DeviceCapabilities, LockStatus
from seamlock.state.events import StateField
from seamlock.state.store import AppliedChange, Rejected, StateReconciler


def _setup(*device_ids: str, **kwargs: float) -> tuple[FakeLockApi, StateReconciler, PollingScheduler]:
    api = FakeLockApi()
    reconciler = StateReconciler()
    for device_id in device_ids or ("d1",):
        reconciler.register_device(device_id)
    scheduler = PollingScheduler(
        api,
        reconciler,
        lambda: reconciler.device_ids,
        interval=kwargs.get("interval", 60.0),
        status_timeout=kwargs.get("status_timeout", 1.0),
        clock=itertools.count(1000, 10).__next__,
    )
    return api, reconciler, scheduler


@pytest.mark.asyncio
async def test_poll_device_applies_reported_fields() -> None:
    api, reconciler, scheduler = _setup()
    api.statuses["d1"] = LockStatus(device_id="d1", locked=False, battery_level=55)

    result = await scheduler.poll_device("d1")

    assert isinstance(result, AppliedChange)
    state = reconciler.get_state("d1")
    assert state.locked is False
    assert state.battery_level == 55
    assert state.online is True
    assert state.last_event_time == 1000


@pytest.mark.asyncio
async def test_poll_error_is_absorbed_and_state_untouched(caplog: pytest.LogCaptureFixture) -> None:
    api, reconciler, scheduler = _setup()
    api.statuses["d1"] = SeamTransportError("Request to /devices/get failed: connection refused")

    with caplog.at_level(logging.WARNING, logger="seamlock.ingestion.polling"):
        result = await scheduler.poll_device("d1")

    assert result is None
    state = reconciler.get_state("d1")
    assert state.online is True
    assert state.locked is True
    assert "connection refused" in scheduler.last_errors["d1"].message
    assert any("Failed to poll device d1" in record.message for record in caplog.records)


@pytest.mark.asyncio
async def test_malformed_status_is_discarded() -> None:
    api, reconciler, scheduler = _setup()
    api.statuses["d1"] = SeamResponseParseError("/devices/get returned no Device object")

    assert await scheduler.poll_device("d1") is None
    assert reconciler.get_state("d1").last_event_time == 0
    assert "d1" in scheduler.last_errors


@pytest.mark.asyncio
async def test_status_timeout_is_absorbed() -> None:
    api, reconciler, scheduler = _setup(status_timeout=0.01)
    api.status_delay = 0.5

    assert await scheduler.poll_device("d1") is None
    assert scheduler.last_errors["d1"].message == "timeout"
    assert reconciler.get_state("d1").last_event_time == 0


@pytest.mark.asyncio
async def test_successful_poll_clears_previous_error() -> None:
    api, _reconciler, scheduler = _setup()
    api.statuses["d1"] = SeamTransportError("down")
    await scheduler.poll_device("d1")

    api.statuses["d1"] = LockStatus(device_id="d1", locked=True)
    await scheduler.poll_device("d1")

    assert "d1" not in scheduler.last_errors


@pytest.mark.asyncio
async def test_empty_status_submits_nothing() -> None:
    _api, reconciler, scheduler = _setup()

    assert await scheduler.poll_device("d1") is None
    assert reconciler.get_state("d1").last_event_time == 0


@pytest.mark.asyncio
async def test_poll_all_continues_past_failing_device() -> None:
    api, reconciler, scheduler = _setup("d1", "d2")
    api.statuses["d1"] = RuntimeError("unexpected")
    api.statuses["d2"] = LockStatus(device_id="d2", locked=False)

    await scheduler.poll_all()

    assert reconciler.get_state("d2").locked is False
    assert scheduler.cycles == 1


@pytest.mark.asyncio
async def test_start_polls_immediately_and_stop_cancels() -> None:
    api, reconciler, scheduler = _setup()
    api.statuses["d1"] = LockStatus(device_id="d1", locked=False)

    scheduler.start()
    for _ in range(100):
        if scheduler.cycles:
            break
        await asyncio.sleep(0.01)

    assert scheduler.is_running
    assert reconciler.get_state("d1").locked is False
    await scheduler.stop()
    assert not scheduler.is_running
    assert api.count("get_lock_status") == 1


@pytest.mark.asyncio
async def test_poll_loop_repeats_on_interval() -> None:
    api, _reconciler, scheduler = _setup(interval=0.01)

    scheduler.start()
    for _ in range(100):
        if scheduler.cycles >= 3:
            break
        await asyncio.sleep(0.01)
    await scheduler.stop()

    assert scheduler.cycles >= 3
    assert api.count("get_lock_status") >= 3


@pytest.mark.asyncio
async def test_slow_poll_cannot_overwrite_command_that_finished_meanwhile() -> None:
    api = FakeLockApi()
    reconciler = StateReconciler()
    reconciler.register_device("d1")
    clock = itertools.count(1000, 10).__next__
    scheduler = PollingScheduler(api, reconciler, ["d1"], status_timeout=1.0, clock=clock)
    serializer = CommandSerializer(api, reconciler, timeout=1.0, settle_delay=0.05, clock=clock)
    api.statuses["d1"] = LockStatus(device_id="d1", locked=True)
    api.status_delay = 0.3

    poll = asyncio.ensure_future(scheduler.poll_device("d1"))
    await asyncio.sleep(0)
    await serializer.execute("d1", False)
    result = await poll

    assert isinstance(result, Rejected)
    state = reconciler.get_state("d1")
    assert state.locked is False
    assert state.command_in_flight is False


@pytest.mark.asyncio
async def test_door_reading_without_sensor_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    api = FakeLockApi()
    reconciler = StateReconciler()
    reconciler.register_device("d1", DeviceCapabilities(supports_door_sensor=False))
    scheduler = PollingScheduler(api, reconciler, ["d1"], clock=lambda: 1000)
    api.statuses["d1"] = LockStatus(device_id="d1", locked=False, door_open=True)

    with caplog.at_level(logging.DEBUG, logger="seamlock.ingestion.polling"):
        result = await scheduler.poll_device("d1")

    assert isinstance(result, AppliedChange)
    assert result.ignored == frozenset({StateField.DOOR_OPEN})
    assert reconciler.get_state("d1").door_open is False
    assert any("did not apply: door_open" in record.message for record in caplog.records)
