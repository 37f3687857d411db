from __future__ import annotations

import logging

import aiohttp
import pytest
from _fakes import FakeLockApi, ListenerRecorder

from seamlock._constants import BASE_EVENT_TYPES, CORE_EVENT_TYPES, DOOR_EVENT_TYPES
from seamlock.config import WebhookConfig
from seamlock.exceptions import SeamConfigError
from seamlock.models.device import DeviceCapabilities
from seamlock.models.webhook import WebhookEvent
from seamlock.state.store import AppliedChange, StateReconciler
from seamlock.webhook.manager import WebhookLifecycleManager, WebhookState
from seamlock.webhook.signing import compute_signature

_BASE = "https://home.example.com"


def _setup(
    config: WebhookConfig | None = None,
    *,
    door_sensor: bool = False,
    fail_bind: bool = False,
) -> tuple[FakeLockApi, StateReconciler, ListenerRecorder, WebhookLifecycleManager]:
    api = FakeLockApi()
    reconciler = StateReconciler()
    reconciler.register_device("d1", DeviceCapabilities(supports_door_sensor=door_sensor))
    listeners = ListenerRecorder(fail=fail_bind)
    manager = WebhookLifecycleManager(
        api,
        reconciler,
        config or WebhookConfig(enabled=True, url=_BASE, port=18080),
        listener_factory=listeners,
    )
    return api, reconciler, listeners, manager


def _active_under_base(api: FakeLockApi) -> int:
    return sum(1 for webhook in api.webhooks.values() if webhook.url.startswith(_BASE))


@pytest.mark.asyncio
async def test_start_binds_listener_and_registers_subscription() -> None:
    api, _reconciler, listeners, manager = _setup()

    await manager.start()

    assert manager.state == WebhookState.LISTENING
    listener = listeners.created[0]
    assert listener.started
    assert listener.path == manager.path
    assert listener.secret == manager.secret
    assert listener.port == 18080
    assert manager.webhook_url == f"{_BASE}{manager.path}"
    assert manager.webhook_id in api.webhooks
    created = [call for call in api.calls if call[0] == "create_webhook"]
    assert created == [("create_webhook", manager.webhook_url, BASE_EVENT_TYPES)]


@pytest.mark.asyncio
async def test_door_events_subscribed_when_a_device_has_a_door_sensor() -> None:
    api, _reconciler, _listeners, manager = _setup(door_sensor=True)

    await manager.start()

    created = next(call for call in api.calls if call[0] == "create_webhook")
    assert created[2] == BASE_EVENT_TYPES + DOOR_EVENT_TYPES


@pytest.mark.asyncio
async def test_restart_never_leaves_more_than_one_subscription() -> None:
    api, _reconciler, _listeners, manager = _setup()
    paths: list[str | None] = []

    for _ in range(2):
        await manager.start()
        paths.append(manager.path)
        assert _active_under_base(api) == 1
        await manager.stop()
        assert _active_under_base(api) == 0

    assert api.count("create_webhook") == 2
    assert len(set(paths)) == len(paths) == 2


@pytest.mark.asyncio
async def test_stop_clears_session_credentials() -> None:
    api, _reconciler, listeners, manager = _setup()
    await manager.start()

    await manager.stop()

    assert manager.state == WebhookState.DISABLED
    assert manager.path is None
    assert manager.secret is None
    assert manager.webhook_id is None
    assert listeners.created[0].stopped
    assert api.webhooks == {}


@pytest.mark.asyncio
async def test_exact_url_match_is_adopted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("seamlock.webhook.manager.generate_path", lambda: "/fixed")
    api, _reconciler, _listeners, manager = _setup()
    api.add_webhook("existing", f"{_BASE}/fixed")

    await manager.start()

    assert manager.webhook_id == "existing"
    assert api.count("create_webhook") == 0


@pytest.mark.asyncio
async def test_stale_subscriptions_under_base_url_are_swept() -> None:
    api, _reconciler, _listeners, manager = _setup()
    api.add_webhook("old", f"{_BASE}/previous-session")
    api.add_webhook("foreign", "https://elsewhere.example.com/hook")

    await manager.start()

    assert "old" not in api.webhooks
    assert "foreign" in api.webhooks
    assert _active_under_base(api) == 1


@pytest.mark.asyncio
async def test_unsupported_event_types_retry_with_core_set() -> None:
    api, _reconciler, _listeners, manager = _setup()
    api.unsupported_event_types = {"device.battery_status_changed"}

    await manager.start()

    created = [call for call in api.calls if call[0] == "create_webhook"]
    assert [call[2] for call in created] == [BASE_EVENT_TYPES, CORE_EVENT_TYPES]
    assert manager.webhook_id is not None


@pytest.mark.asyncio
async def test_registration_failure_is_not_fatal(caplog: pytest.LogCaptureFixture) -> None:
    api, _reconciler, _listeners, manager = _setup()
    api.fail_list_webhooks = True

    with caplog.at_level(logging.ERROR, logger="seamlock.webhook.manager"):
        await manager.start()

    assert manager.state == WebhookState.LISTENING
    assert manager.webhook_id is None
    assert caplog.records


@pytest.mark.asyncio
async def test_enabled_without_url_is_a_config_error() -> None:
    api, _reconciler, listeners, manager = _setup(WebhookConfig(enabled=True, url=None))

    with pytest.raises(SeamConfigError):
        await manager.start()

    assert manager.state == WebhookState.DISABLED
    assert listeners.created == []
    assert api.calls == []


@pytest.mark.asyncio
async def test_disabled_manager_only_sweeps_residual_subscriptions() -> None:
    api, _reconciler, listeners, manager = _setup(WebhookConfig(enabled=False, url=_BASE))
    api.add_webhook("old", f"{_BASE}/previous-session")

    await manager.start()

    assert manager.state == WebhookState.DISABLED
    assert listeners.created == []
    assert api.webhooks == {}
    assert api.count("create_webhook") == 0


@pytest.mark.asyncio
async def test_bind_failure_propagates_and_resets_state() -> None:
    api, _reconciler, _listeners, manager = _setup(fail_bind=True)

    with pytest.raises(OSError):
        await manager.start()

    assert manager.state == WebhookState.DISABLED
    assert manager.path is None
    assert api.count("create_webhook") == 0


@pytest.mark.asyncio
async def test_stop_tolerates_delete_failures() -> None:
    api, _reconciler, _listeners, manager = _setup()
    await manager.start()
    api.fail_delete_webhook = True

    await manager.stop()

    assert manager.state == WebhookState.DISABLED
    assert manager.registration is None


@pytest.mark.asyncio
async def test_delete_registration_reports_outcome() -> None:
    api, _reconciler, _listeners, manager = _setup()

    assert await manager.delete_registration() is False

    await manager.start()
    webhook_id = manager.webhook_id
    assert await manager.delete_registration() is True
    assert webhook_id not in api.webhooks
    assert manager.webhook_id is None


def test_handle_event_routes_to_reconciler() -> None:
    _api, reconciler, _listeners, manager = _setup()
    event = WebhookEvent.model_validate({"event_type": "lock.unlocked", "device_id": "d1"})

    result = manager.handle_event(event, 1000)

    assert isinstance(result, AppliedChange)
    assert reconciler.get_state("d1").locked is False


def test_handle_event_for_unknown_device_is_ignored(caplog: pytest.LogCaptureFixture) -> None:
    _api, _reconciler, _listeners, manager = _setup()
    event = WebhookEvent.model_validate({"event_type": "lock.unlocked", "device_id": "nope"})

    with caplog.at_level(logging.WARNING, logger="seamlock.webhook.manager"):
        assert manager.handle_event(event, 1000) is None
    assert any("nope" in record.message for record in caplog.records)


@pytest.mark.asyncio
async def test_signed_delivery_reaches_reconciler_through_real_listener() -> None:
    api = FakeLockApi()
    reconciler = StateReconciler()
    reconciler.register_device("d1")
    manager = WebhookLifecycleManager(
        api, reconciler, WebhookConfig(enabled=True, url=_BASE, port=0, host="127.0.0.1")
    )
    await manager.start()
    try:
        port = manager.listener.bound_port  # type: ignore[union-attr]
        body = b'{"event_type":"lock.unlocked","device_id":"d1"}'
        headers = {"x-seam-signature": f"sha256={compute_signature(body, manager.secret or '')}"}
        async with aiohttp.ClientSession() as session:
            async with session.post(f"http://127.0.0.1:{port}{manager.path}", data=body, headers=headers) as resp:
                assert resp.status == 200
    finally:
        await manager.stop()

    assert reconciler.get_state("d1").locked is False
    assert api.webhooks == {}
