"""Lock command endpoints."""

from __future__ import annotations

from seamlock._api._common import parse_model, post_for_key
from seamlock._transport import Transport
from seamlock.exceptions import SeamApiError
from seamlock.models.action_attempt import ActionAttempt

_LOCK_ENDPOINT = "/locks/lock_door"
_UNLOCK_ENDPOINT = "/locks/unlock_door"


async def _send(transport: Transport, endpoint: str, device_id: str, timeout: float | None) -> ActionAttempt:
    data = await post_for_key(transport, endpoint, {"device_id": device_id}, "action_attempt", timeout=timeout)
    if data is None:
        return ActionAttempt(status="pending")
    attempt = parse_model(ActionAttempt, data, endpoint=endpoint)
    if attempt.failed:
        raise SeamApiError(
            f"{endpoint} failed for {device_id}: {attempt.error_message}",
            error_type=str((attempt.error or {}).get("type", "")),
            endpoint=endpoint,
        )
    return attempt


async def lock_door(transport: Transport, device_id: str, *, timeout: float | None = None) -> ActionAttempt:
    return await _send(transport, _LOCK_ENDPOINT, device_id, timeout)


async def unlock_door(transport: Transport, device_id: str, *, timeout: float | None = None) -> ActionAttempt:
    return await _send(transport, _UNLOCK_ENDPOINT, device_id, timeout)
