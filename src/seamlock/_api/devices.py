"""Device endpoints.

Endpoints:
  - /devices/get   (single device, also the source of lock status)
  - /devices/list
"""

from __future__ import annotations

from seamlock._api._common import parse_model, parse_model_list, post_for_key
from seamlock._transport import Transport
from seamlock.models.device import Device, LockStatus

_GET_ENDPOINT = "/devices/get"
_LIST_ENDPOINT = "/devices/list"


async def fetch_device(transport: Transport, device_id: str, *, timeout: float | None = None) -> Device:
    data = await post_for_key(transport, _GET_ENDPOINT, {"device_id": device_id}, "device", timeout=timeout)
    return parse_model(Device, data, endpoint=_GET_ENDPOINT)


async def fetch_devices(transport: Transport) -> list[Device]:
    data = await post_for_key(transport, _LIST_ENDPOINT, {}, "devices")
    return parse_model_list(Device, data, endpoint=_LIST_ENDPOINT)


async def fetch_lock_status(transport: Transport, device_id: str, *, timeout: float | None = None) -> LockStatus:
    """Read the current lock status of *device_id*."""
    device = await fetch_device(transport, device_id, timeout=timeout)
    return LockStatus.from_device(device)
