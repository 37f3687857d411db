"""Webhook subscription endpoints.

Endpoints:
  - /webhooks/list
  - /webhooks/create  (url, event_types)
  - /webhooks/delete  (webhook_id)
"""

from __future__ import annotations

from collections.abc import Sequence

from seamlock._api._common import parse_model, parse_model_list, post_for_key
from seamlock._transport import Transport
from seamlock.exceptions import SeamApiError, SeamUnsupportedEventTypeError
from seamlock.models.webhook import Webhook

_LIST_ENDPOINT = "/webhooks/list"
_CREATE_ENDPOINT = "/webhooks/create"
_DELETE_ENDPOINT = "/webhooks/delete"


def _is_unsupported_event_type(exc: SeamApiError) -> bool:
    if "event_type" in exc.error_type:
        return True
    message = str(exc).lower()
    return "event_type" in message or "event type" in message


async def list_webhooks(transport: Transport) -> list[Webhook]:
    data = await post_for_key(transport, _LIST_ENDPOINT, {}, "webhooks")
    return parse_model_list(Webhook, data, endpoint=_LIST_ENDPOINT)


async def create_webhook(transport: Transport, url: str, event_types: Sequence[str]) -> Webhook:
    """Create a subscription for *url*.

    Raises
    ------
    SeamUnsupportedEventTypeError
        The provider rejected one of *event_types*.
    """
    try:
        data = await post_for_key(
            transport,
            _CREATE_ENDPOINT,
            {"url": url, "event_types": list(event_types)},
            "webhook",
        )
    except SeamApiError as exc:
        if _is_unsupported_event_type(exc):
            raise SeamUnsupportedEventTypeError(
                str(exc),
                status_code=exc.status_code,
                error_type=exc.error_type,
                endpoint=exc.endpoint,
            ) from exc
        raise
    return parse_model(Webhook, data, endpoint=_CREATE_ENDPOINT)


async def delete_webhook(transport: Transport, webhook_id: str) -> None:
    await transport.post_json(_DELETE_ENDPOINT, {"webhook_id": webhook_id})
