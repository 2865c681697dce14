from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

RETRY_ON_STATUS = frozenset({408, 429, 500, 502, 503, 504})
MAX_DELAY_S = 30.0


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff for idempotent reads. Mutations never go through it."""

    retries: int = 3
    retry_on: frozenset[int] = RETRY_ON_STATUS
    max_delay_s: float = MAX_DELAY_S

    def should_retry(self, attempt: int, response: httpx.Response | None) -> bool:
        if attempt >= self.retries:
            return False
        if response is None:
            return True
        return response.status_code in self.retry_on

    def delay(self, attempt: int, response: httpx.Response | None = None) -> float:
        if response is not None and response.status_code == 429:
            retry_after = _retry_after_seconds(response.headers.get("Retry-After"))
            if retry_after is not None:
                return retry_after
        return min(float(2 ** attempt), self.max_delay_s)


NO_RETRY = RetryPolicy(retries=0)


def _retry_after_seconds(value: str | None) -> float | None:
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def default_sleep(seconds: float) -> None:
    time.sleep(seconds)
