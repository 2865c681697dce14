from __future__ import annotations

import json
import logging
from typing import Any, Callable

import httpx

from .config_types import ClientConfig
from .errors import NetworkError, error_for_status
from .retry import NO_RETRY, RetryPolicy, default_sleep

logger = logging.getLogger(__name__)

USER_AGENT = "access-tokens-client/0.1.0"


class Transport:
    def __init__(
            self,
            cfg: ClientConfig,
            *,
            transport: httpx.BaseTransport | None = None,
            retry_policy: RetryPolicy | None = None,
            sleep: Callable[[float], None] = default_sleep,
    ):
        self._cfg = cfg
        self._retry = retry_policy or RetryPolicy()
        self._sleep = sleep
        headers = {"User-Agent": USER_AGENT}
        if cfg.client_version:
            headers["X-CLI-Version"] = cfg.client_version

        self._client = httpx.Client(
            base_url=cfg.endpoint.rstrip("/"),
            timeout=cfg.timeout_s,
            headers=headers,
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def request(
            self,
            method: str,
            path: str,
            *,
            bearer: str | None = None,
            json_body: Any | None = None,
            params: dict[str, str] | None = None,
            idempotent: bool = False,
            action: str | None = None,
    ) -> Any:
        """Send one request and return the decoded body (None when empty).

        Only idempotent requests are retried; a mutation is attempted exactly once.
        """
        headers = {"Authorization": f"Bearer {bearer}"} if bearer else None
        policy = self._retry if idempotent else NO_RETRY
        attempt = 0
        while True:
            try:
                logger.debug("%s %s (attempt %d)", method, path, attempt + 1)
                r = self._client.request(method, path, json=json_body, params=params, headers=headers)
            except httpx.RequestError as e:
                if policy.should_retry(attempt, None):
                    self._backoff(attempt, None, f"{method} {path}: {e}")
                    attempt += 1
                    continue
                raise NetworkError(f"{action or method + ' ' + path}: {e}") from e
            if r.status_code >= 400 and policy.should_retry(attempt, r):
                self._backoff(attempt, r, f"{method} {path} -> {r.status_code}")
                attempt += 1
                continue
            break

        # Try parse body as json for better errors / output
        data: Any = None
        text = r.text
        if text:
            try:
                data = r.json()
            except ValueError:
                data = None

        if r.status_code >= 400:
            raise _api_error(method, path, r, data, text, action)

        if data is not None:
            return data
        return text or None

    def _backoff(self, attempt: int, response: httpx.Response | None, reason: str) -> None:
        delay = self._retry.delay(attempt, response)
        logger.debug("retrying %s in %.1fs", reason, delay)
        self._sleep(delay)


def _api_error(method: str, path: str, r: httpx.Response, data: Any, text: str, action: str | None):
    prefix = action or f"{method} {path} failed"
    detail_msg = None
    details = None

    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            detail_msg = str(err["message"])
            if err.get("details") is not None:
                raw = err["details"]
                details = raw if isinstance(raw, str) else json.dumps(raw, ensure_ascii=False)
        elif "detail" in data:
            detail_msg = str(data.get("detail") or "") or None
            details = json.dumps(data, ensure_ascii=False)
    elif text:
        details = text[:1000]

    if not detail_msg:
        detail_msg = f"HTTP {r.status_code} {r.reason_phrase}".strip()
    return error_for_status(r.status_code, f"{prefix}: {detail_msg}", details)
