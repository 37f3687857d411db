"""Normalization helpers.

Centralizes defensive parsing of provider values.
"""

from __future__ import annotations

import math
import time
from datetime import UTC, datetime
from typing import Any


def now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
    return None


def normalize_battery_level(value: Any) -> int | None:
    """Convert a provider battery reading to an integer percentage.

    The provider reports either a 0-1 fraction or a 0-100 percentage.
    Any value <= 1 is treated as a fraction. This is the single conversion
    point for battery readings; adjust it here if the provider's unit
    changes.
    """
    level = safe_float(value)
    if level is None:
        return None
    if level <= 1:
        level *= 100
    return max(0, min(100, int(round(level))))


def parse_event_time_ms(value: Any) -> int | None:
    """Parse an event timestamp into epoch milliseconds.

    Accepts ISO-8601 strings (``Z`` suffix allowed), datetimes, and numeric
    epoch values in seconds or milliseconds. Returns ``None`` for anything
    unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        numeric = safe_float(text)
        if numeric is not None:
            return _epoch_to_ms(numeric)
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        numeric = safe_float(value)
        if numeric is None:
            return None
        return _epoch_to_ms(numeric)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp() * 1000)


def _epoch_to_ms(value: float) -> int | None:
    if value <= 0:
        return None
    # Treat values above 1e11 as milliseconds.
    if value > 1e11:
        return int(value)
    return int(value * 1000)
