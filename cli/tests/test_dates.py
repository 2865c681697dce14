from __future__ import annotations

from datetime import datetime, timezone

import pytest

from access_tokens_cli import dates
from access_tokens_client import ValidationError


def test_parse_date_iso_round_trips_through_format() -> None:
    ts = dates.parse_date("2025-03-04T05:06:07Z")
    assert ts == 1741064767
    assert dates.format_date(ts) == "2025-03-04T05:06:07Z"


def test_parse_date_offset_and_naive() -> None:
    assert dates.parse_date("2025-03-04T07:06:07+02:00") == 1741064767
    assert dates.parse_date("2025-03-04T05:06:07") == 1741064767
    assert dates.parse_date("2025-03-04") == 1741046400


def test_parse_date_unix_seconds_and_clear_sentinel() -> None:
    assert dates.parse_date("1700000000") == 1700000000
    assert dates.parse_date("null") is None


@pytest.mark.parametrize("value", ["next tuesday", "\u00b2", "\u0661\u0662"])
def test_parse_date_rejects_garbage(value) -> None:
    with pytest.raises(ValidationError) as exc:
        dates.parse_date(value)
    assert "Invalid date format" in str(exc.value)
    assert value in str(exc.value)


def test_format_date_whole_seconds() -> None:
    assert dates.format_date(None) == "-"
    assert dates.format_date(0) == "1970-01-01T00:00:00Z"
    assert dates.format_date(1741064767) == "2025-03-04T05:06:07Z"


def test_add_duration_to_now() -> None:
    now = datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)
    assert dates.add_duration_to_now("P30D", now) == int(datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc).timestamp())
    assert dates.add_duration_to_now("P1M", now) == int(datetime(2025, 2, 28, 12, 0, tzinfo=timezone.utc).timestamp())
    assert dates.add_duration_to_now("PT1H30M", now) == int(
        datetime(2025, 1, 31, 13, 30, tzinfo=timezone.utc).timestamp()
    )
    assert dates.add_duration_to_now("P1Y1W", now) == int(datetime(2026, 2, 7, 12, 0, tzinfo=timezone.utc).timestamp())


@pytest.mark.parametrize("value", ["", "P", "PT", "30D", "P1H", "PXD"])
def test_add_duration_rejects_invalid(value) -> None:
    with pytest.raises(ValidationError):
        dates.add_duration_to_now(value)


def test_coerce_timestamp() -> None:
    assert dates.coerce_timestamp(None) is None
    assert dates.coerce_timestamp(1700000000) == 1700000000
    assert dates.coerce_timestamp("2025-03-04T05:06:07Z") == 1741064767
    assert dates.coerce_timestamp(datetime(2025, 3, 4, 5, 6, 7)) == 1741064767
    with pytest.raises(ValueError):
        dates.coerce_timestamp(True)
    with pytest.raises(ValueError):
        dates.coerce_timestamp("soon")
    with pytest.raises(ValueError) as exc:
        dates.coerce_timestamp("\u00b2")
    assert "invalid ISO 8601" in str(exc.value)
