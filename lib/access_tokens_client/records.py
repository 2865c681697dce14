from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import ApiError


@dataclass
class TokenRecord:
    token_id: str
    owner: str
    is_admin: bool
    created_at: int
    roles: list[str] = field(default_factory=list)
    last_used_at: int | None = None
    expires_at: int | None = None
    revoked_at: int | None = None
    secret_phc: str | None = None

    @property
    def revoked(self) -> bool:
        return self.revoked_at is not None

    @classmethod
    def from_api(cls, data: Any) -> "TokenRecord":
        if not isinstance(data, dict):
            raise ApiError(None, "Invalid token record in response", None)
        token_id = data.get("tokenId")
        owner = data.get("owner")
        is_admin = data.get("isAdmin")
        created_at = data.get("createdAt")
        if not isinstance(token_id, str) or not token_id:
            raise ApiError(None, "Invalid token record in response: missing tokenId", None)
        if not isinstance(owner, str):
            raise ApiError(None, f"Invalid token record {token_id}: missing owner", None)
        if not isinstance(is_admin, bool):
            raise ApiError(None, f"Invalid token record {token_id}: missing isAdmin", None)
        if not _is_timestamp(created_at):
            raise ApiError(None, f"Invalid token record {token_id}: bad createdAt", None)
        roles_raw = data.get("roles") or []
        secret_phc = data.get("secretPhc")
        return cls(
            token_id=token_id,
            owner=owner,
            is_admin=is_admin,
            created_at=int(created_at),
            roles=[str(r) for r in roles_raw] if isinstance(roles_raw, list) else [],
            last_used_at=_optional_timestamp(data, "lastUsedAt", token_id),
            expires_at=_optional_timestamp(data, "expiresAt", token_id),
            revoked_at=_optional_timestamp(data, "revokedAt", token_id),
            secret_phc=secret_phc if isinstance(secret_phc, str) else None,
        )

    def to_api(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tokenId": self.token_id,
            "owner": self.owner,
            "isAdmin": self.is_admin,
            "roles": list(self.roles),
            "createdAt": self.created_at,
            "lastUsedAt": self.last_used_at,
            "expiresAt": self.expires_at,
            "revokedAt": self.revoked_at,
        }
        if self.secret_phc is not None:
            data["secretPhc"] = self.secret_phc
        return data


@dataclass
class IssueResult:
    token: str
    record: TokenRecord

    def to_api(self) -> dict[str, Any]:
        return {"token": self.token, "record": self.record.to_api()}


@dataclass
class BatchLoadResult:
    found: list[TokenRecord]
    not_found: list[str]


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _optional_timestamp(data: dict, key: str, token_id: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if not _is_timestamp(value):
        raise ApiError(None, f"Invalid token record {token_id}: bad {key}", None)
    return int(value)


def parse_records(data: Any, key: str) -> list[TokenRecord]:
    items = data.get(key) if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise ApiError(None, f"Invalid response: expected '{key}' list", None)
    return [TokenRecord.from_api(item) for item in items]
