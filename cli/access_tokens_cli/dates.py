from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

from access_tokens_client import ValidationError

CLEAR_SENTINEL = "null"

_DURATION_RE = re.compile(
    r"^P(?!$)"
    r"(?:(?P<years>\d+)Y)?"
    r"(?:(?P<months>\d+)M)?"
    r"(?:(?P<weeks>\d+)W)?"
    r"(?:(?P<days>\d+)D)?"
    r"(?:T(?=\d)"
    r"(?:(?P<hours>\d+)H)?"
    r"(?:(?P<minutes>\d+)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?"
    r")?$",
    re.IGNORECASE,
)


def _to_epoch(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() // 1)


def _parse_iso(text: str) -> int:
    value = text.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return _to_epoch(datetime.fromisoformat(value))


def parse_date(text: str) -> int | None:
    """Parse a CLI date: 'null' clears, digits are Unix seconds, anything else is ISO 8601."""
    value = (text or "").strip()
    if value == CLEAR_SENTINEL:
        return None
    if value.isascii() and value.isdigit():
        return int(value)
    try:
        return _parse_iso(value)
    except ValueError:
        raise ValidationError(
            None,
            f"Invalid date format: {text}. Expected ISO 8601 date or Unix timestamp in seconds",
        ) from None


def coerce_timestamp(value: Any) -> int | None:
    """Normalize a timestamp read from a config file (YAML may already yield datetimes)."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    if isinstance(value, int):
        if value <= 0:
            raise ValueError(f"timestamp must be positive: {value}")
        return value
    if isinstance(value, datetime):
        return _to_epoch(value)
    if isinstance(value, date):
        return _to_epoch(datetime(value.year, value.month, value.day))
    if isinstance(value, str):
        if value.strip().isascii() and value.strip().isdigit():
            return int(value.strip())
        try:
            return _parse_iso(value)
        except ValueError:
            raise ValueError(f"invalid ISO 8601 datetime: {value}") from None
    raise ValueError(f"invalid timestamp: {value!r}")


def format_date(value: int | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _add_months(dt: datetime, months: int) -> datetime:
    if not months:
        return dt
    index = dt.month - 1 + months
    year = dt.year + index // 12
    month = index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def add_duration_to_now(duration: str, now: datetime | None = None) -> int:
    """Add an ISO 8601 duration (P30D, PT1H, P1M) to now and return Unix seconds."""
    match = _DURATION_RE.match((duration or "").strip())
    if not match:
        raise ValidationError(
            None,
            f"Invalid ISO 8601 duration: {duration}. Expected format like P30D, PT1H, P1M",
        )
    parts = {k: v for k, v in match.groupdict().items() if v is not None}
    base = now or datetime.now(timezone.utc)
    if base.tzinfo is None:
        base = base.replace(tzinfo=timezone.utc)
    result = _add_months(base, int(parts.get("years", 0)) * 12 + int(parts.get("months", 0)))
    result += timedelta(
        weeks=int(parts.get("weeks", 0)),
        days=int(parts.get("days", 0)),
        hours=int(parts.get("hours", 0)),
        minutes=int(parts.get("minutes", 0)),
        seconds=float(parts.get("seconds", 0)),
    )
    return _to_epoch(result)
