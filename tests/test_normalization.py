from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from seamlock.ingestion.normalize import normalize_battery_level, parse_event_time_ms, safe_bool, safe_int


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (0.5, 50),
        (0.856, 86),
        (1, 100),
        (1.0, 100),
        (0, 0),
        (85, 85),
        ("0.2", 20),
        ("73", 73),
        (150, 100),
        (-5, 0),
        (None, None),
        ("abc", None),
        (True, None),
        (float("nan"), None),
    ],
)
def test_battery_level_normalization(raw: Any, expected: int | None) -> None:
    assert normalize_battery_level(raw) == expected


def test_event_time_from_iso_string_with_z_suffix() -> None:
    expected = int(datetime(2026, 2, 12, 20, 34, 7, tzinfo=UTC).timestamp() * 1000)

    assert parse_event_time_ms("2026-02-12T20:34:07Z") == expected
    assert parse_event_time_ms("2026-02-12T20:34:07") == expected


def test_event_time_from_epoch_seconds_and_milliseconds() -> None:
    assert parse_event_time_ms(1_770_928_447) == 1_770_928_447_000
    assert parse_event_time_ms(1_770_928_447_000) == 1_770_928_447_000
    assert parse_event_time_ms("1770928447") == 1_770_928_447_000


@pytest.mark.parametrize("raw", [None, "", "not a date", 0, -1, True])
def test_event_time_unparseable_returns_none(raw: Any) -> None:
    assert parse_event_time_ms(raw) is None


def test_event_time_from_datetime() -> None:
    moment = datetime(2026, 1, 1, tzinfo=UTC)

    assert parse_event_time_ms(moment) == int(moment.timestamp() * 1000)


def test_safe_helpers() -> None:
    assert safe_bool("yes") is True
    assert safe_bool("0") is False
    assert safe_bool("maybe") is None
    assert safe_int("12.7") == 12
    assert safe_int(None) is None
