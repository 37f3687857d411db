"""Shared helpers for Seam API endpoint modules.

It is internal to seamlock and may change at any time.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from seamlock._transport import Transport
from seamlock.exceptions import SeamResponseParseError

M = TypeVar("M", bound=BaseModel)


async def post_for_key(
    transport: Transport,
    endpoint: str,
    payload: dict[str, Any],
    key: str,
    *,
    timeout: float | None = None,
) -> Any:
    """POST and return ``response[key]`` (``None`` when absent)."""
    response = await transport.post_json(endpoint, payload, timeout=timeout)
    return response.get(key)


def parse_model(model: type[M], data: Any, *, endpoint: str) -> M:
    """Validate *data* as *model*, mapping failures to `SeamResponseParseError`."""
    if not isinstance(data, dict):
        raise SeamResponseParseError(f"{endpoint} returned no {model.__name__} object")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise SeamResponseParseError(f"{endpoint} returned a malformed {model.__name__}: {exc}") from exc


def parse_model_list(model: type[M], data: Any, *, endpoint: str) -> list[M]:
    """Validate a list of objects, skipping malformed items."""
    if not isinstance(data, list):
        return []
    items: list[M] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            items.append(model.model_validate(item))
        except ValidationError:
            continue
    return items
