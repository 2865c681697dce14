from __future__ import annotations

import time
from typing import Any, Callable, Iterable
from urllib.parse import quote

import httpx

from .config_types import ClientConfig
from .errors import ApiError, NotFoundError, ValidationError
from .records import BatchLoadResult, IssueResult, TokenRecord, parse_records
from .retry import RetryPolicy, default_sleep
from .transport import Transport

MIN_TOKEN_VALIDITY_S = 30.0

# Python-side field name -> wire field name
UPDATE_FIELDS = {
    "owner": "owner",
    "is_admin": "isAdmin",
    "secret_phc": "secretPhc",
    "expires_at": "expiresAt",
}


class AccessTokensClient:
    def __init__(
            self,
            cfg: ClientConfig,
            *,
            transport: httpx.BaseTransport | None = None,
            retry_policy: RetryPolicy | None = None,
            sleep: Callable[[float], None] = default_sleep,
            clock: Callable[[], float] = time.monotonic,
    ):
        self._cfg = cfg
        self._t = Transport(cfg, transport=transport, retry_policy=retry_policy, sleep=sleep)
        self._clock = clock
        self._jwt: str | None = None
        self._jwt_expires_at: float | None = None

    def close(self) -> None:
        self._t.close()

    def __enter__(self) -> "AccessTokensClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _tokens_path(self, token_id: str | None = None, suffix: str = "") -> str:
        path = f"{self._cfg.admin_path}/tokens"
        if token_id is not None:
            path += "/" + quote(token_id, safe="")
        return path + suffix

    def authenticate(self) -> str:
        """Exchange the admin token for a bearer JWT, reusing a cached one while it is fresh."""
        now = self._clock()
        if self._jwt and self._jwt_expires_at is not None and now + MIN_TOKEN_VALIDITY_S < self._jwt_expires_at:
            return self._jwt

        data = self._t.request(
            "POST",
            f"{self._cfg.auth_path}/token",
            bearer=self._cfg.api_key,
            action="Failed to authenticate",
        )
        if not isinstance(data, dict):
            raise ApiError(None, "Invalid auth token response", None)
        token = data.get("access_token")
        expires_in = data.get("expires_in")
        if not isinstance(token, str) or not token or not isinstance(expires_in, (int, float)):
            raise ApiError(None, "Invalid auth token response", None)
        self._jwt = token
        self._jwt_expires_at = now + float(expires_in)
        return token

    def _admin(
            self,
            method: str,
            path: str,
            *,
            json_body: Any | None = None,
            params: dict[str, str] | None = None,
            idempotent: bool = False,
            action: str,
    ) -> Any:
        jwt = self.authenticate()
        return self._t.request(
            method,
            path,
            bearer=jwt,
            json_body=json_body,
            params=params,
            idempotent=idempotent,
            action=action,
        )

    # --- reads (retried) ---
    def list(
            self,
            *,
            include_revoked: bool = False,
            include_expired: bool = False,
            include_secret_phc: bool = False,
            has_role: str | None = None,
            after_token_id: str | None = None,
            limit: int | None = None,
    ) -> list[TokenRecord]:
        params: dict[str, str] = {}
        if after_token_id:
            params["afterTokenId"] = after_token_id
        if limit is not None:
            params["limit"] = str(int(limit))
        if include_revoked:
            params["includeRevoked"] = "true"
        if include_expired:
            params["includeExpired"] = "true"
        if include_secret_phc:
            params["includeSecretPhc"] = "true"
        if has_role:
            params["hasRole"] = has_role
        data = self._admin(
            "GET",
            self._tokens_path(),
            params=params or None,
            idempotent=True,
            action="Failed to list tokens",
        )
        return parse_records(data, "records")

    def batch_load(self, token_ids: Iterable[str], *, include_secret_phc: bool = False) -> BatchLoadResult:
        body: dict[str, Any] = {"tokenIds": list(dict.fromkeys(token_ids))}
        if include_secret_phc:
            body["includeSecretPhc"] = True
        data = self._admin(
            "POST",
            self._tokens_path(suffix="/batch"),
            json_body=body,
            idempotent=True,
            action="Failed to batch load tokens",
        )
        not_found = data.get("notFound") if isinstance(data, dict) else None
        return BatchLoadResult(
            found=parse_records(data, "found"),
            not_found=[str(t) for t in not_found] if isinstance(not_found, list) else [],
        )

    def get(self, token_id: str, *, include_secret_phc: bool = False) -> TokenRecord:
        result = self.batch_load([token_id], include_secret_phc=include_secret_phc)
        for record in result.found:
            if record.token_id == token_id:
                return record
        raise NotFoundError(404, f"Token {token_id} not found", None)

    # --- mutations (sent once) ---
    def issue(
            self,
            *,
            owner: str,
            is_admin: bool | None = None,
            roles: list[str] | None = None,
            expires_at: int | None = None,
            token_id: str | None = None,
    ) -> IssueResult:
        body: dict[str, Any] = {"owner": owner}
        if token_id:
            body["tokenId"] = token_id
        if is_admin is not None:
            body["isAdmin"] = bool(is_admin)
        if roles:
            body["roles"] = list(roles)
        if expires_at is not None:
            body["expiresAt"] = int(expires_at)
        data = self._admin("POST", self._tokens_path(), json_body=body, action="Failed to issue token")
        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise ApiError(None, "Invalid issue token response: no token", None)
        return IssueResult(token=token, record=TokenRecord.from_api(data.get("record")))

    def register(
            self,
            *,
            token_id: str,
            secret_phc: str,
            owner: str,
            is_admin: bool | None = None,
            roles: list[str] | None = None,
            expires_at: int | None = None,
    ) -> TokenRecord:
        body: dict[str, Any] = {"secretPhc": secret_phc, "owner": owner}
        if is_admin is not None:
            body["isAdmin"] = bool(is_admin)
        if roles:
            body["roles"] = list(roles)
        if expires_at is not None:
            body["expiresAt"] = int(expires_at)
        data = self._admin(
            "PUT",
            self._tokens_path(token_id),
            json_body=body,
            action=f"Failed to register token {token_id}",
        )
        record = data.get("record") if isinstance(data, dict) else None
        return TokenRecord.from_api(record)

    def update(self, token_id: str, updates: dict[str, Any]) -> TokenRecord:
        """Apply a partial update and return the token as the server now holds it.

        Only keys present in ``updates`` are sent; ``expires_at=None`` clears the expiry.
        """
        body = build_update_body(updates)
        data = self._admin(
            "PATCH",
            self._tokens_path(token_id),
            json_body=body,
            action=f"Failed to update token {token_id}",
        )
        return self._canonical(token_id, data)

    def revoke(self, token_id: str, *, expires_at: int | None = None) -> TokenRecord:
        body: dict[str, Any] = {}
        if expires_at is not None:
            body["expiresAt"] = int(expires_at)
        data = self._admin(
            "PUT",
            self._tokens_path(token_id, "/revoke"),
            json_body=body,
            action=f"Failed to revoke token {token_id}",
        )
        return self._canonical(token_id, data)

    def restore(self, token_id: str) -> TokenRecord:
        data = self._admin(
            "PUT",
            self._tokens_path(token_id, "/restore"),
            action=f"Failed to restore token {token_id}",
        )
        return self._canonical(token_id, data)

    def _canonical(self, token_id: str, data: Any) -> TokenRecord:
        if isinstance(data, dict):
            record = data.get("record", data if "tokenId" in data else None)
            if record is not None:
                return TokenRecord.from_api(record)
        return self.get(token_id)


def build_update_body(updates: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(k for k in updates if k not in UPDATE_FIELDS)
    if unknown:
        raise ValidationError(None, f"Unrecognized update field(s): {', '.join(unknown)}")
    if not updates:
        raise ValidationError(None, "No updates specified")

    body: dict[str, Any] = {}
    for key, value in updates.items():
        if key == "is_admin":
            if not isinstance(value, bool):
                raise ValidationError(None, "is_admin must be a boolean")
        elif key == "expires_at":
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ValidationError(None, "expires_at must be a Unix timestamp or None")
        elif not isinstance(value, str):
            raise ValidationError(None, f"{key} must be a string")
        body[UPDATE_FIELDS[key]] = value
    return body
